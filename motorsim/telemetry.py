"""Telemetry sinks: destinations for the controller's periodic snapshots."""

import time

from motorsim.store import (
    STORE_NOW_US,
    SQLiteStore,
    check_identifier,
    from_micros,
)


class SQLiteTelemetrySink:
    """
    Telemetry rows in the same SQLite file as the command log.
    Columns follow the controller's original telemetry table.
    """

    _COLUMNS = (
        "ts, gas_level, battery_level, motor_speed, "
        "motor_speed_set_point, motor_temp"
    )

    def __init__(self, path, table='telemetry', timeout=5.0):
        self.table = check_identifier(table)
        self._store = SQLiteStore(path, timeout)

    def ensure_schema(self):
        self._store.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT,"
            "ts INTEGER NOT NULL,"
            "gas_level REAL,"
            "battery_level REAL,"
            "motor_speed REAL,"
            "motor_speed_set_point REAL,"
            "motor_temp REAL)"
        )

    def append_snapshot(self, gas, battery, speed, setpoint, temperature):
        self._store.execute(
            f"INSERT INTO {self.table} ({self._COLUMNS}) "
            f"VALUES ({STORE_NOW_US}, ?, ?, ?, ?, ?)",
            (gas, battery, speed, setpoint, temperature),
        )

    def latest_snapshot(self):
        """Return the newest telemetry row as a dict, or None."""
        rows, _ = self._store.execute(
            f"SELECT {self._COLUMNS} FROM {self.table} ORDER BY id DESC LIMIT 1"
        )
        if not rows:
            return None
        ts, gas, battery, speed, setpoint, temperature = rows[0]
        return {
            'ts': from_micros(ts).isoformat(),
            'gas': gas,
            'battery': battery,
            'speed': speed,
            'setpoint': setpoint,
            'temperature': temperature,
        }

    def close(self):
        self._store.close()


class MQTTTelemetrySink:
    """Forwards snapshots to an MQTTBatchPublisher for live consumers."""

    def __init__(self, publisher, source_id):
        self.publisher = publisher
        self.source_id = source_id

    def append_snapshot(self, gas, battery, speed, setpoint, temperature):
        self.publisher.enqueue({
            'source': self.source_id,
            'sensor': 'MOTOR',
            'value': {
                'gas': gas,
                'battery': battery,
                'speed': speed,
                'setpoint': setpoint,
                'temperature': temperature,
            },
            'ts': time.time(),
        })
