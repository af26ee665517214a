"""
Example Robot Module
====================

Reference assembly: a dual-actuator elevator carrying a single-actuator
arm, driven by a host that calls periodic() every tick (nominally 20 ms).

    Elevator (linear, +z, 10 kg, 2 × gear 10)
      └── Arm (rotating about +z, 5 kg, CG 0.3 m from pivot, gear 20)

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
from typing import Optional, Dict, Any
import numpy as np
from numpy.typing import NDArray

from src.actuators import ActuatorConfig, SimulatedActuator
from src.physics import PhysicalProperties
from src.mechanisms import (
    LinearMechanism,
    MechanismConfigError,
    MechanismSystem,
    RotatingMechanism,
    SetPoint,
)

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating]


def _elevator_actuator(name: str, device_id: int) -> ActuatorConfig:
    return ActuatorConfig(
        name=name,
        device_id=device_id,
        bus="rio",
        kP=0.1,
        kD=0.01,
        max_velocity=5.0,        # m/s
        max_acceleration=10.0,   # m/s²
        gear_ratio=10.0,
        brake_mode=True,
        supply_current_limit_enabled=True,
        supply_current_limit=40.0,
        stator_current_limit_enabled=True,
        stator_current_limit=40.0,
    )


def build_example_system(dt: float = 0.02) -> MechanismSystem:
    """
    Build the elevator + arm reference system with simulated actuators.

    Args:
        dt: Simulation step of each actuator (s)

    Returns:
        Wired MechanismSystem named "ExampleRobot"
    """
    elevator_props = PhysicalProperties(
        mass=10.0,
        center_of_gravity=np.array([0.0, 0.0, 0.5]),
        moment_of_inertia=np.diag([1.0, 1.0, 0.1]),
    )
    arm_props = PhysicalProperties(
        mass=5.0,
        center_of_gravity=np.array([0.3, 0.0, 0.0]),
        moment_of_inertia=np.diag([0.1, 0.1, 0.5]),
    )

    elevator = LinearMechanism(
        "Elevator", elevator_props,
        motion_axis=[0.0, 0.0, 1.0],
        start_point=[0.0, 0.0, 0.0],
    )
    arm = RotatingMechanism(
        "Arm", arm_props,
        rotation_axis=[0.0, 0.0, 1.0],
        pivot_point=[0.0, 0.0, 0.0],
    )

    for config in (_elevator_actuator("Elevator", 1), _elevator_actuator("Elevator2", 3)):
        elevator.register_actuator(SimulatedActuator(config, dt=dt), config)

    arm_config = ActuatorConfig(
        name="Arm",
        device_id=2,
        bus="rio",
        kP=0.2,
        kD=0.02,
        max_velocity=10.0,       # rad/s
        max_acceleration=20.0,   # rad/s²
        gear_ratio=20.0,
        brake_mode=True,
        supply_current_limit_enabled=True,
        supply_current_limit=30.0,
        stator_current_limit_enabled=True,
        stator_current_limit=30.0,
    )
    arm.register_actuator(SimulatedActuator(arm_config, dt=dt), arm_config)

    system = MechanismSystem("ExampleRobot")
    system.register_mechanism(elevator)
    system.register_mechanism(arm)
    system.set_parent_child("Elevator", "Arm")

    # 1 cm / 0.1 m/s and 0.01 rad / 0.1 rad/s
    elevator.set_control_parameters(0.01, 0.1)
    arm.set_control_parameters(0.01, 0.1)

    return system


class ExampleRobot:
    """
    Host-facing wrapper around the reference system.

    Example:
        >>> robot = ExampleRobot()
        >>> robot.set_elevator_height(1.0)
        >>> robot.set_arm_angle(0.5)
        >>> while not robot.are_all_mechanisms_at_target():
        ...     robot.periodic()
    """

    def __init__(self, system: Optional[MechanismSystem] = None) -> None:
        self.system = system if system is not None else build_example_system()
        self.current_setpoints: Dict[str, SetPoint] = {}
        self._tick_count = 0

    def periodic(self) -> None:
        """One host tick: pull feedback, then command actuators."""
        self.system.update_all_mechanism_states()
        self.system.execute_all_mechanism_control()
        self._tick_count += 1

    def set_target(self, name: str, setpoint: SetPoint) -> None:
        """
        Target one mechanism by name.

        Raises:
            MechanismConfigError: If the system has no such mechanism
        """
        if name not in self.system:
            logger.error(f"{self.system.system_name}: no mechanism '{name}' to target")
            raise MechanismConfigError(f"mechanism '{name}' not found")
        self.system.set_mechanism_setpoints({name: setpoint})
        self.current_setpoints[name] = setpoint

    def set_elevator_height(
        self,
        height: float,
        velocity: float = 0.0,
        acceleration: float = 0.0
    ) -> None:
        """Target elevator travel (m)."""
        self.set_target("Elevator", SetPoint(height, velocity, acceleration, 0.0))

    def set_arm_angle(
        self,
        angle: float,
        angular_velocity: float = 0.0,
        angular_acceleration: float = 0.0
    ) -> None:
        """Target arm angle (rad)."""
        self.set_target("Arm", SetPoint(angle, angular_velocity, angular_acceleration, 0.0))

    def planned_feedforward(self) -> Dict[str, FloatArray]:
        """Coupled feedforward for the current setpoints."""
        return self.system.calculate_system_feedforward(dict(self.current_setpoints))

    def are_all_mechanisms_at_target(self) -> bool:
        return self.system.are_all_mechanisms_at_target()

    def emergency_stop(self) -> None:
        self.system.emergency_stop_all_mechanisms()

    def get_status(self) -> Dict[str, Any]:
        status = self.system.get_status()
        status["tick_count"] = self._tick_count
        return status
