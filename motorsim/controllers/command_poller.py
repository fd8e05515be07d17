"""Controller side of the command log: last-write-wins with a cooldown."""

from datetime import timedelta

from motorsim.errors import StoreUnavailable
from motorsim.store import EPOCH


class ControllerSyncCursor:
    """High-water mark of the last applied command's timestamp."""

    def __init__(self, last_applied_timestamp=EPOCH):
        self.last_applied_timestamp = last_applied_timestamp

    def advance(self, timestamp):
        if timestamp > self.last_applied_timestamp:
            self.last_applied_timestamp = timestamp


class CommandPoller:
    """
    Folds the newest command from the log into the motor setpoint.

    A record is applied only when its timestamp is later than the previously
    applied command's timestamp plus `cooldown`. The cooldown is measured
    between command timestamps, not from the wall clock, so a burst of
    commands inside one window collapses into whichever is newest when the
    poll runs. Superseded commands are never replayed. Commands from every
    issuer are applied.
    """

    def __init__(self, command_log, simulator, cooldown=0.2):
        self.command_log = command_log
        self.simulator = simulator
        self.cooldown = timedelta(seconds=float(cooldown))
        self.cursor = ControllerSyncCursor()

    def prime(self):
        """Mark whatever is already in the log as seen, without applying it."""
        try:
            record = self.command_log.latest()
        except StoreUnavailable as exc:
            print(f"[POLLER] Could not read existing commands: {exc}")
            return None
        if record is not None:
            self.cursor.advance(record.timestamp)
            print(f"[POLLER] Skipping backlog up to {record.timestamp.isoformat()}")
        return record

    def poll(self):
        """Apply the latest command if it is new. Returns it, or None."""
        try:
            record = self.command_log.latest()
        except StoreUnavailable as exc:
            print(f"[POLLER] Error reading commands: {exc}")
            return None

        if record is None:
            return None
        if record.timestamp <= self.cursor.last_applied_timestamp + self.cooldown:
            return None

        setpoint = self.simulator.apply_setpoint_delta(record.percent_change)
        self.cursor.advance(record.timestamp)
        print(f"\n[CONTROLLER] Applied command id={record.command_id} "
              f"from={record.issuer} change={record.percent_change:+g}% "
              f"-> setpoint {setpoint:.2f}")
        return record
