"""SQLite plumbing shared by the command log and the telemetry table."""

import re
import sqlite3
import threading
from datetime import datetime, timedelta, timezone

from motorsim.errors import StoreUnavailable

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Microseconds since the Unix epoch, evaluated by SQLite at statement time.
STORE_NOW_US = (
    "CAST(ROUND((julianday('now') - 2440587.5) * 86400000000.0) AS INTEGER)"
)

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def from_micros(value):
    return EPOCH + timedelta(microseconds=int(value))


def check_identifier(name):
    """Table names cannot be bound as parameters, so only plain identifiers pass."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


class SQLiteStore:
    """
    Thin wrapper around a SQLite database file.

    Each thread gets its own connection, so a slow statement on the telemetry
    thread never holds up the command poller. Connections run in autocommit
    mode and wait at most `timeout` seconds for a competing writer.
    Connections of threads that have finished are closed the next time any
    thread opens one, so a server that handles each request on a fresh
    thread keeps a bounded number open.
    Every sqlite3 failure surfaces as StoreUnavailable.
    """

    def __init__(self, path, timeout=5.0):
        self.path = path
        self.timeout = float(timeout)
        self._connections = {}
        self._lock = threading.Lock()

    @property
    def open_connections(self):
        with self._lock:
            self._prune_locked()
            return len(self._connections)

    def _prune_locked(self):
        for thread in [t for t in self._connections if not t.is_alive()]:
            conn = self._connections.pop(thread)
            try:
                conn.close()
            except sqlite3.Error as exc:
                print(f"[STORE] Error closing {self.path}: {exc}")

    def _connection(self):
        thread = threading.current_thread()
        with self._lock:
            conn = self._connections.get(thread)
            if conn is not None:
                return conn
            self._prune_locked()
        try:
            conn = sqlite3.connect(
                self.path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot open {self.path}: {exc}") from exc
        with self._lock:
            self._connections[thread] = conn
        return conn

    def execute(self, sql, params=()):
        """Run one statement and return (rows, lastrowid)."""
        conn = self._connection()
        try:
            cursor = conn.execute(sql, params)
            return cursor.fetchall(), cursor.lastrowid
        except sqlite3.Error as exc:
            raise StoreUnavailable(str(exc)) from exc

    def close(self):
        with self._lock:
            connections, self._connections = list(self._connections.values()), {}
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                print(f"[STORE] Error closing {self.path}: {exc}")
