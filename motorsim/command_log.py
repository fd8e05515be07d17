"""
Shared command log.

Operators append relative speed changes; the controller and every operator's
peer watcher read the newest row back. The log is append-only: rows are never
updated or deleted, and the store (not the issuer) assigns each row's
timestamp, so all readers agree on one total order even when operator clocks
disagree.
"""

from dataclasses import dataclass
from datetime import datetime

from motorsim.store import (
    STORE_NOW_US,
    SQLiteStore,
    check_identifier,
    from_micros,
)


@dataclass(frozen=True)
class CommandRecord:
    issuer: str
    percent_change: float
    timestamp: datetime
    command_id: int = None
    issued_via: str = 'cli'

    def to_dict(self):
        return {
            'id': self.command_id,
            'issuer': self.issuer,
            'percent_change': self.percent_change,
            'issued_via': self.issued_via,
            'ts': self.timestamp.isoformat(),
        }


class SQLiteCommandLog:
    """
    Command log stored in a SQLite table.

    Parameters:
        path    (str)   - database file shared by all processes
        table   (str)   - table name (configurable, e.g. 'commands')
        timeout (float) - seconds to wait for a competing writer
    """

    _COLUMNS = "id, issuer, percent_change, issued_via, ts"

    def __init__(self, path, table='commands', timeout=5.0):
        self.table = check_identifier(table)
        self._store = SQLiteStore(path, timeout)

    @property
    def path(self):
        return self._store.path

    def ensure_schema(self):
        self._store.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT,"
            "issuer TEXT NOT NULL,"
            "percent_change REAL NOT NULL,"
            "issued_via TEXT NOT NULL DEFAULT 'cli',"
            "ts INTEGER NOT NULL)"
        )
        self._store.execute(
            f"CREATE INDEX IF NOT EXISTS {self.table}_ts ON {self.table} (ts)"
        )

    # ========== PUBLIC API ==========

    def append(self, issuer, percent_change, issued_via='cli'):
        """
        Append one command and return it with its store-assigned timestamp.

        The timestamp is the store clock, bumped past the current maximum when
        needed, so it is strictly greater than every earlier row's.
        Raises StoreUnavailable; nothing is retried here.
        """
        _, row_id = self._store.execute(
            f"INSERT INTO {self.table} (issuer, percent_change, issued_via, ts) "
            f"SELECT ?, ?, ?, MAX({STORE_NOW_US}, COALESCE(MAX(ts), 0) + 1) "
            f"FROM {self.table}",
            (issuer, float(percent_change), issued_via),
        )
        rows, _ = self._store.execute(
            f"SELECT {self._COLUMNS} FROM {self.table} WHERE id = ?", (row_id,)
        )
        return self._to_record(rows[0])

    def latest(self):
        """Return the newest record across all issuers, or None if empty."""
        rows, _ = self._store.execute(
            f"SELECT {self._COLUMNS} FROM {self.table} ORDER BY ts DESC LIMIT 1"
        )
        if not rows:
            return None
        return self._to_record(rows[0])

    def recent(self, limit=10):
        """Return up to `limit` records, newest first."""
        rows, _ = self._store.execute(
            f"SELECT {self._COLUMNS} FROM {self.table} ORDER BY ts DESC LIMIT ?",
            (int(limit),),
        )
        return [self._to_record(row) for row in rows]

    def close(self):
        self._store.close()

    @staticmethod
    def _to_record(row):
        row_id, issuer, percent_change, issued_via, ts = row
        return CommandRecord(
            issuer=issuer,
            percent_change=percent_change,
            timestamp=from_micros(ts),
            command_id=row_id,
            issued_via=issued_via,
        )
