"""
Motor simulation driven by a discrete PID loop.

Modes:
  NORMAL    - the PID loop drives speed toward the setpoint
  DEPLETED  - gas or battery reached zero; setpoint is forced to 0 every tick

Transitions:
  NORMAL + gas <= 0 or battery <= 0 after a tick -> DEPLETED
  DEPLETED is terminal: resources are never replenished.

Only two operations mutate the state: tick() (telemetry timer) and
apply_setpoint_delta() (command poller). Both hold the same lock.
"""

import random
import threading
from dataclasses import dataclass, replace


@dataclass
class SimulationState:
    speed: float = 0.0
    setpoint: float = 100.0
    temperature: float = 25.0
    gas: float = 100.0
    battery: float = 100.0
    pid_integral: float = 0.0
    pid_prev_error: float = 0.0


def clamp(value, low, high):
    return max(low, min(high, value))


class MotorSimulator:
    """
    Thread-safe motor state machine.

    Parameters:
        dt               (float) - tick length in seconds (telemetry interval)
        kp, ki, kd       (float) - PID gains
        random_error_max (float) - bound of the uniform noise added to speed
        gas_decay        (float) - gas used per unit speed per second
        battery_decay    (float) - battery used per unit speed per second
        rng              (Random) - noise source, mainly for tests
    """

    NORMAL   = 'NORMAL'
    DEPLETED = 'DEPLETED'

    SPEED_MIN = 0.0
    SPEED_MAX = 100.0
    AMBIENT_TEMPERATURE = 25.0
    TEMPERATURE_PER_SPEED = 0.2

    def __init__(self, dt, kp=0.5, ki=0.1, kd=0.05, random_error_max=0.5,
                 gas_decay=0.01, battery_decay=0.05,
                 initial_speed=0.0, initial_setpoint=100.0,
                 initial_gas=100.0, initial_battery=100.0, rng=None):
        if dt <= 0:
            raise ValueError("dt must be positive")
        self.dt               = float(dt)
        self.kp               = float(kp)
        self.ki               = float(ki)
        self.kd               = float(kd)
        self.random_error_max = abs(float(random_error_max))
        self.gas_decay        = float(gas_decay)
        self.battery_decay    = float(battery_decay)
        self._rng             = rng or random.Random()
        self._lock            = threading.Lock()

        speed = clamp(float(initial_speed), self.SPEED_MIN, self.SPEED_MAX)
        self._state = SimulationState(
            speed=speed,
            setpoint=clamp(float(initial_setpoint), self.SPEED_MIN, self.SPEED_MAX),
            temperature=self._temperature_for(speed),
            gas=max(0.0, float(initial_gas)),
            battery=max(0.0, float(initial_battery)),
        )
        self._mode = self.DEPLETED if self._resources_exhausted() else self.NORMAL

    @classmethod
    def from_settings(cls, motor_cfg, dt, rng=None):
        return cls(
            dt,
            kp=motor_cfg.get("kp", 0.5),
            ki=motor_cfg.get("ki", 0.1),
            kd=motor_cfg.get("kd", 0.05),
            random_error_max=motor_cfg.get("random_error_max", 0.5),
            gas_decay=motor_cfg.get("gas_decay", 0.01),
            battery_decay=motor_cfg.get("battery_decay", 0.05),
            initial_speed=motor_cfg.get("initial_speed", 0.0),
            initial_setpoint=motor_cfg.get("initial_setpoint", 100.0),
            initial_gas=motor_cfg.get("initial_gas", 100.0),
            initial_battery=motor_cfg.get("initial_battery", 100.0),
            rng=rng,
        )

    # ========== PUBLIC API ==========

    @property
    def mode(self):
        with self._lock:
            return self._mode

    @property
    def depleted(self):
        return self.mode == self.DEPLETED

    def snapshot(self):
        """Return a copy of the current state."""
        with self._lock:
            return replace(self._state)

    def tick(self, dt=None):
        """Advance the simulation one step and return the resulting state."""
        dt = self.dt if dt is None else float(dt)
        with self._lock:
            s = self._state

            if self._mode == self.DEPLETED:
                s.setpoint = 0.0
                s.pid_prev_error = 0.0

            error = s.setpoint - s.speed

            proportional = self.kp * error
            s.pid_integral += error * dt
            integral = self.ki * s.pid_integral
            derivative = self.kd * (error - s.pid_prev_error) / dt
            output = proportional + integral + derivative

            noise = self._rng.uniform(-self.random_error_max, self.random_error_max)
            s.speed = clamp(s.speed + output + noise, self.SPEED_MIN, self.SPEED_MAX)

            s.pid_prev_error = error
            s.temperature = self._temperature_for(s.speed)

            s.gas = max(0.0, s.gas - self.gas_decay * s.speed * dt)
            s.battery = max(0.0, s.battery - self.battery_decay * s.speed * dt)

            if self._mode == self.NORMAL and self._resources_exhausted():
                self._mode = self.DEPLETED
                print(f"[MOTOR] *** RESOURCES DEPLETED (gas={s.gas:.1f}%, "
                      f"battery={s.battery:.1f}%) - forcing shutdown ***")

            return replace(s)

    def apply_setpoint_delta(self, percent_change):
        """
        Scale the setpoint by a relative percentage and reset the PID history.
        Returns the new setpoint. While depleted the setpoint stays at 0.
        """
        with self._lock:
            s = self._state
            if self._mode == self.DEPLETED:
                s.setpoint = 0.0
            else:
                change = s.setpoint * (float(percent_change) / 100.0)
                s.setpoint = clamp(s.setpoint + change, self.SPEED_MIN, self.SPEED_MAX)
            s.pid_integral = 0.0
            s.pid_prev_error = 0.0
            return s.setpoint

    # ========== INTERNAL ==========

    def _resources_exhausted(self):
        return self._state.gas <= 0 or self._state.battery <= 0

    def _temperature_for(self, speed):
        return self.AMBIENT_TEMPERATURE + self.TEMPERATURE_PER_SPEED * speed
