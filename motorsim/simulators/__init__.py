from motorsim.simulators.motor_simulator import MotorSimulator, SimulationState

__all__ = [
    'MotorSimulator',
    'SimulationState',
]
