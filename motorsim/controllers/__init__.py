from motorsim.controllers.command_poller import CommandPoller, ControllerSyncCursor
from motorsim.controllers.motor_controller import MotorController
from motorsim.controllers.operator_client import OperatorClient, PeerWatchCursor, parse_command
from motorsim.controllers.periodic import PeriodicTask
from motorsim.controllers.telemetry_writer import TelemetryWriter

__all__ = [
    'CommandPoller',
    'ControllerSyncCursor',
    'MotorController',
    'OperatorClient',
    'PeerWatchCursor',
    'PeriodicTask',
    'TelemetryWriter',
    'parse_command',
]
