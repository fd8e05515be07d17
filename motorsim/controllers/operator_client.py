"""
Operator client: submits speed changes and watches for other operators.

Operators never talk to each other or to the controller directly. A command
is a row appended to the shared log; a peer's activity is noticed by polling
the same log for its newest row.
"""

import re
import threading
from collections import deque, namedtuple

from motorsim.controllers.periodic import PeriodicTask
from motorsim.errors import InvalidInput, StoreUnavailable
from motorsim.store import EPOCH

SPEED   = 'speed'
SETID   = 'setid'
HISTORY = 'history'
HELP    = 'help'
QUIT    = 'quit'

Command = namedtuple('Command', ['kind', 'value'])

CLIENT_HELP = """
==================================================
  MOTOR OPERATOR
==================================================
  +25 / -10        - change motor speed by a percentage
  /setid NewName   - operate under a new name
  /history [n]     - show the last n commands
  /help            - show this help
  /quit            - exit
=================================================="""

# changes beyond this are rejected before they reach the log
MAX_PERCENT_CHANGE = 1_000_000

_SIGNED_INT = re.compile(r'^[+-]?[0-9]{1,7}$')
_COUNT      = re.compile(r'^[0-9]{1,6}$')


def parse_command(line):
    """
    Parse one line of operator input.

    Returns a Command(kind, value). Raises InvalidInput for anything that is
    not a nonzero signed integer of at most MAX_PERCENT_CHANGE, or a known
    slash command.
    """
    text = (line or '').strip()

    if text.startswith('/'):
        head, _, rest = text.partition(' ')
        rest = rest.strip()
        if head == '/setid':
            if not rest:
                raise InvalidInput("Invalid /setid command. Usage: /setid NewName")
            return Command(SETID, rest)
        if head == '/history':
            if not rest:
                return Command(HISTORY, None)
            if _COUNT.match(rest) and int(rest) > 0:
                return Command(HISTORY, int(rest))
            raise InvalidInput("Usage: /history [count]")
        if head == '/help':
            return Command(HELP, None)
        if head == '/quit':
            return Command(QUIT, None)
        raise InvalidInput(f"Unknown command {head}. Type /help for help.")

    if _SIGNED_INT.match(text):
        value = int(text)
        if value != 0 and abs(value) <= MAX_PERCENT_CHANGE:
            return Command(SPEED, value)
    raise InvalidInput("Invalid input. Please enter a number like +25 or -10.")


class PeerWatchCursor:
    """Timestamp of the last peer command this client reported."""

    def __init__(self, last_seen_timestamp=EPOCH):
        self.last_seen_timestamp = last_seen_timestamp

    def advance(self, timestamp):
        if timestamp > self.last_seen_timestamp:
            self.last_seen_timestamp = timestamp


class OperatorClient:
    """
    One operator: a mutable identity, command submission and peer watch.

    Parameters:
        command_log        - shared log (append / latest / recent)
        identity     (str) - initial operator name, must not be empty
        peer_poll_interval - seconds between peer watch polls
        on_peer_command    - callable(record) for each newly seen peer command;
                             defaults to printing a notification
        history_size (int) - default row count for /history
    """

    PROMPT_HINT = "(e.g., +25, -10, or /setid NewName)"

    def __init__(self, command_log, identity, peer_poll_interval=0.25,
                 on_peer_command=None, history_size=10):
        identity = (identity or '').strip()
        if not identity:
            raise ValueError("An operator identity is required")

        self.command_log     = command_log
        self.cursor          = PeerWatchCursor()
        self.on_peer_command = on_peer_command or self._print_peer_command
        self.history_size    = int(history_size)

        self._identity      = identity
        self._identity_lock = threading.Lock()
        # ids of rows this process appended, under any of its names
        self._authored      = deque(maxlen=256)
        self._authored_lock = threading.Lock()
        self._store_down    = False
        self._peer_task     = PeriodicTask("PEER", peer_poll_interval, self.check_peers)

    # ========== IDENTITY ==========

    @property
    def identity(self):
        with self._identity_lock:
            return self._identity

    def rename(self, name):
        """Operate under a new name from now on. Past records keep their issuer."""
        name = (name or '').strip()
        if not name:
            raise InvalidInput("Invalid /setid command. Usage: /setid NewName")
        with self._identity_lock:
            self._identity = name
        print(f"\n[CLIENT] Client ID successfully changed to: {name}")
        return name

    def prompt(self):
        return f"\n[{self.identity}] Enter command {self.PROMPT_HINT}: "

    # ========== SUBMIT ==========

    def submit(self, percent_change):
        """
        Append a speed change under the current identity.
        Raises InvalidInput for zero or out-of-range changes and lets
        StoreUnavailable propagate.
        """
        percent_change = int(percent_change)
        if percent_change == 0:
            raise InvalidInput("A speed change of 0% has no effect.")
        if abs(percent_change) > MAX_PERCENT_CHANGE:
            raise InvalidInput(f"A speed change must be within +/-{MAX_PERCENT_CHANGE}%.")
        record = self.command_log.append(self.identity, percent_change)
        if record.command_id is not None:
            with self._authored_lock:
                self._authored.append(record.command_id)
        print(f"\n[SENT] Change by {percent_change:+d}% from {record.issuer}.")
        return record

    # ========== PEER WATCH ==========

    def check_peers(self):
        """
        Report the log's newest record if another operator issued it and it is
        newer than anything reported so far. Returns the record, or None.
        """
        try:
            record = self.command_log.latest()
        except StoreUnavailable as exc:
            if not self._store_down:
                print(f"\n[PEER] Command log unavailable: {exc}")
                self._store_down = True
            return None
        if self._store_down:
            print("\n[PEER] Command log reachable again")
            self._store_down = False

        if record is None:
            return None
        if record.issuer == self.identity:
            return None
        if self._is_authored(record.command_id):
            return None
        if record.timestamp <= self.cursor.last_seen_timestamp:
            return None

        self.cursor.advance(record.timestamp)
        self.on_peer_command(record)
        return record

    def _is_authored(self, command_id):
        if command_id is None:
            return False
        with self._authored_lock:
            return command_id in self._authored

    def _print_peer_command(self, record):
        print("\n\n[PEER] COMMAND DETECTED:")
        print(f"  - Issued by: {record.issuer}")
        print(f"  - Command: Motor speed change by {record.percent_change:+g}%")
        print(f"  - Time: {record.timestamp.astimezone().strftime('%H:%M:%S')}")
        print(self.prompt(), end='', flush=True)

    def start(self):
        self._peer_task.start()

    def stop(self):
        self._peer_task.stop()

    # ========== COMMANDS ==========

    def history(self, limit=None):
        records = self.command_log.recent(limit or self.history_size)
        print("\n" + "=" * 50)
        print("RECENT COMMANDS")
        print("=" * 50)
        if not records:
            print("  (none)")
        for record in records:
            marker = "*" if self._is_authored(record.command_id) else " "
            print(f" {marker}[{record.command_id}] "
                  f"{record.timestamp.astimezone().strftime('%H:%M:%S.%f')[:-3]} "
                  f"{record.issuer:<16} {record.percent_change:+g}% "
                  f"via {record.issued_via}")
        print("=" * 50)
        return records

    def handle_line(self, line):
        """Handle one line of input. Returns False when the operator quits."""
        try:
            command = parse_command(line)
        except InvalidInput as exc:
            print(f"[INVALID] {exc}")
            return True

        try:
            if command.kind == SPEED:
                self.submit(command.value)
            elif command.kind == SETID:
                self.rename(command.value)
            elif command.kind == HISTORY:
                self.history(command.value)
            elif command.kind == HELP:
                print(CLIENT_HELP)
            elif command.kind == QUIT:
                return False
        except StoreUnavailable as exc:
            print(f"[ERROR] Command log unavailable: {exc}")
        return True
