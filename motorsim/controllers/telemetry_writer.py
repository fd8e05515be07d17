"""Advances the simulation and records each resulting state."""

from motorsim.errors import StoreUnavailable


class TelemetryWriter:
    """
    Ticks the simulator, then hands the new state to every sink.

    The tick always happens first: a sink that cannot be written is logged
    and skipped, and the simulation keeps advancing.
    """

    def __init__(self, simulator, sinks=None, echo=True):
        self.simulator = simulator
        self.sinks = list(sinks or [])
        self.echo = echo
        self.failures = 0

    def write(self):
        state = self.simulator.tick()
        depleted = self.simulator.depleted

        for sink in self.sinks:
            try:
                sink.append_snapshot(
                    state.gas,
                    state.battery,
                    state.speed,
                    state.setpoint,
                    state.temperature,
                )
            except StoreUnavailable as exc:
                self.failures += 1
                print(f"[TELEMETRY] Write to {type(sink).__name__} failed: {exc}")

        if self.echo:
            print(self.format_line(state, depleted))
        return state

    @staticmethod
    def format_line(state, depleted=False):
        line = (
            f"[LOG] Speed: {state.speed:6.2f} | "
            f"SetPt: {state.setpoint:6.2f} | "
            f"Temp: {state.temperature:6.2f} | "
            f"Gas: {state.gas:5.1f}% | "
            f"Battery: {state.battery:5.1f}%"
        )
        if depleted:
            line += " | SHUTDOWN"
        return line
