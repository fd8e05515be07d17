"""Motor controller process: command polling plus telemetry on independent timers."""

from motorsim.command_log import SQLiteCommandLog
from motorsim.controllers.command_poller import CommandPoller
from motorsim.controllers.periodic import PeriodicTask
from motorsim.controllers.telemetry_writer import TelemetryWriter
from motorsim.mqtt_publisher import MQTTBatchPublisher
from motorsim.settings import resolve_store_path
from motorsim.simulators import MotorSimulator
from motorsim.telemetry import MQTTTelemetrySink, SQLiteTelemetrySink


class MotorController:
    """
    Owns the motor simulation and the two duties that mutate it.

    Duties  : POLLER    - reads the newest command every command_poll_interval
              TELEMETRY - ticks the simulation and writes a snapshot every
                          telemetry_interval (which is also the PID dt)
    Sinks   : SQLite telemetry table, plus MQTT when mqtt.enabled is set.

    The simulation is only reachable through MotorSimulator, whose lock
    serialises the tick against setpoint changes.
    """

    def __init__(self, settings, command_log=None, sinks=None, rng=None):
        self.settings       = settings
        store_cfg           = settings.get("store", {})
        ctrl_cfg            = settings.get("controller", {})
        self.controller_id  = ctrl_cfg.get("id", "motor_controller")
        self.skip_backlog   = bool(ctrl_cfg.get("skip_backlog", True))
        telemetry_interval  = float(ctrl_cfg.get("telemetry_interval", 0.2))
        poll_interval       = float(ctrl_cfg.get("command_poll_interval", 0.1))

        path    = resolve_store_path(settings)
        timeout = store_cfg.get("timeout", 5.0)

        self.command_log = command_log or SQLiteCommandLog(
            path, table=store_cfg.get("commands_table", "commands"), timeout=timeout,
        )

        self.publisher = None
        self._owned_sinks = []
        if sinks is None:
            sinks = self._build_sinks(path, store_cfg, timeout)

        self.simulator = MotorSimulator.from_settings(
            settings.get("motor", {}), dt=telemetry_interval, rng=rng,
        )
        self.poller = CommandPoller(
            self.command_log, self.simulator,
            cooldown=ctrl_cfg.get("command_cooldown", 0.2),
        )
        self.writer = TelemetryWriter(self.simulator, sinks)

        self._tasks = [
            PeriodicTask("POLLER", poll_interval, self.poller.poll),
            PeriodicTask("TELEMETRY", telemetry_interval, self.writer.write),
        ]
        self.running = False

    def _build_sinks(self, path, store_cfg, timeout):
        sqlite_sink = SQLiteTelemetrySink(
            path, table=store_cfg.get("telemetry_table", "telemetry"), timeout=timeout,
        )
        self._owned_sinks.append(sqlite_sink)
        sinks = [sqlite_sink]

        mqtt_cfg = self.settings.get("mqtt", {})
        if mqtt_cfg.get("enabled", False):
            self.publisher = MQTTBatchPublisher(mqtt_cfg, {"id": self.controller_id})
            sinks.append(MQTTTelemetrySink(self.publisher, self.controller_id))
        return sinks

    # ========== LIFECYCLE ==========

    def open(self):
        """Create the tables. Raises StoreUnavailable if the store is unreachable."""
        self.command_log.ensure_schema()
        for sink in self._owned_sinks:
            sink.ensure_schema()

    def start(self):
        if self.skip_backlog:
            self.poller.prime()
        if self.publisher:
            self.publisher.start()
        self.running = True
        for task in self._tasks:
            task.start()
        ctrl_cfg = self.settings.get("controller", {})
        print(f"[CONTROLLER] Running: telemetry every "
              f"{ctrl_cfg.get('telemetry_interval', 0.2)}s, polling "
              f"'{getattr(self.command_log, 'table', 'commands')}' every "
              f"{ctrl_cfg.get('command_poll_interval', 0.1)}s")

    def stop(self):
        self.running = False
        for task in self._tasks:
            task.stop()
        if self.publisher:
            self.publisher.stop()

    def cleanup(self):
        self.stop()
        for sink in self._owned_sinks:
            sink.close()
        close = getattr(self.command_log, "close", None)
        if close:
            close()

    # ========== STATUS ==========

    def get_status(self):
        state = self.simulator.snapshot()
        return {
            "mode": self.simulator.mode,
            "speed": state.speed,
            "setpoint": state.setpoint,
            "temperature": state.temperature,
            "gas": state.gas,
            "battery": state.battery,
            "last_command": self.poller.cursor.last_applied_timestamp.isoformat(),
            "telemetry_failures": self.writer.failures,
        }

    def show_status(self):
        status = self.get_status()
        print("\n" + "=" * 40)
        print("MOTOR STATUS")
        print("=" * 40)
        print(f"  Mode:         {status['mode']}")
        print(f"  Speed:        {status['speed']:.2f}")
        print(f"  Setpoint:     {status['setpoint']:.2f}")
        print(f"  Temperature:  {status['temperature']:.2f}")
        print(f"  Gas:          {status['gas']:.1f}%")
        print(f"  Battery:      {status['battery']:.1f}%")
        print(f"  Last command: {status['last_command']}")
        print("=" * 40)
