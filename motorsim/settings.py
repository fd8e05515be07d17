import copy
import json
import os


DEFAULT_SETTINGS = {
    "store": {
        "path": "motor.db",
        "commands_table": "commands",
        "telemetry_table": "telemetry",
        "timeout": 5.0,
    },
    "controller": {
        "id": "motor_controller",
        "telemetry_interval": 0.2,
        "command_poll_interval": 0.1,
        "command_cooldown": 0.2,
        "skip_backlog": True,
    },
    "motor": {
        "kp": 0.5,
        "ki": 0.1,
        "kd": 0.05,
        "random_error_max": 0.5,
        "gas_decay": 0.01,
        "battery_decay": 0.05,
        "initial_speed": 0.0,
        "initial_setpoint": 100.0,
        "initial_gas": 100.0,
        "initial_battery": 100.0,
    },
    "client": {
        "default_id": "ClientA",
        "peer_poll_interval": 0.25,
        "history_size": 10,
    },
    "mqtt": {
        "enabled": False,
        "host": "localhost",
        "port": 1883,
        "topic": "motor/telemetry",
        "qos": 1,
        "batch_interval": 2.0,
        "max_batch": 50,
        "retain_latest": True,
    },
    "influx": {
        "url": "http://localhost:8086",
        "token": "",
        "org": "motor",
        "bucket": "motor",
    },
    "webapp": {
        "host": "0.0.0.0",
        "port": 5000,
    },
}


def _merge(base, override):
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(filePath='settings.json'):
    """Load a JSON settings file on top of DEFAULT_SETTINGS.

    Relative paths resolve next to this module, so the bundled settings.json
    is found regardless of the working directory.
    """
    if not os.path.isabs(filePath):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        filePath = os.path.join(base_dir, filePath)
    with open(filePath, 'r') as f:
        settings = json.load(f)
    return _merge(DEFAULT_SETTINGS, settings)


def resolve_store_path(settings):
    """Return the store path, relative paths taken from the working directory."""
    return os.path.abspath(settings["store"]["path"])
