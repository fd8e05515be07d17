"""Error types shared by the controller and operator processes."""


class StoreUnavailable(Exception):
    """The command log or a telemetry store could not be reached."""


class InvalidInput(ValueError):
    """Operator input that is not a recognised command."""
