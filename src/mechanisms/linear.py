"""
Linear Mechanism Module
=======================

Mechanisms that translate along a fixed axis (elevators, telescopes,
linear slides).

    center of mass = start_point + position · motion_axis

Feedforward is gravity + inertia + viscous friction (see
mechanism.compute_feedforward) and is split across actuators by
mechanical advantage.

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
from typing import Optional, List
import numpy as np
from numpy.typing import NDArray

from src.physics import PhysicalProperties, VectorLike
from .mechanism import ASSUMED_EFFICIENCY, LinearAxis, Mechanism

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating]


class LinearMechanism(Mechanism):
    """
    Mechanism moving along a straight axis.

    Example:
        >>> props = PhysicalProperties(mass=10.0, center_of_gravity=[0, 0, 0.5])
        >>> elevator = LinearMechanism("Elevator", props, motion_axis=[0, 0, 1])
        >>> elevator.register_actuator(SimulatedActuator(cfg), cfg)
    """

    efficiency = ASSUMED_EFFICIENCY

    def __init__(
        self,
        name: str,
        properties: PhysicalProperties,
        motion_axis: VectorLike,
        start_point: Optional[VectorLike] = None,
        position_tolerance: float = 0.01,
        velocity_tolerance: float = 0.1
    ) -> None:
        """
        Initialize linear mechanism.

        Args:
            name: Unique mechanism name
            properties: Mass properties
            motion_axis: Direction of travel (normalized)
            start_point: World position at zero travel (default origin)
            position_tolerance: At-target position tolerance (m)
            velocity_tolerance: At-target velocity tolerance (m/s)
        """
        self._axis = LinearAxis(
            motion_axis=np.asarray(motion_axis, dtype=float),
            start_point=np.zeros(3) if start_point is None else np.asarray(start_point, dtype=float),
        )
        super().__init__(name, properties, position_tolerance, velocity_tolerance)
        logger.info(f"LinearMechanism '{name}': axis={self._axis.motion_axis.tolist()}")

    @property
    def axis_data(self) -> LinearAxis:
        return self._axis

    @property
    def motion_axis(self) -> FloatArray:
        return self._axis.motion_axis.copy()

    @property
    def start_point(self) -> FloatArray:
        return self._axis.start_point.copy()

    # Linear state
    @property
    def position(self) -> float:
        """Current travel (m)."""
        return self._state.position

    @property
    def velocity(self) -> float:
        """Current velocity (m/s)."""
        return self._state.velocity

    @property
    def acceleration(self) -> float:
        """Current acceleration (m/s²)."""
        return self._state.acceleration

    @property
    def current_center_of_mass(self) -> FloatArray:
        """World position of the carriage's center of mass."""
        return self._axis.start_point + self._axis.motion_axis * self._state.position

    def distribute_feedforward_among_motors(self, total_feedforward: FloatArray) -> List[float]:
        """Weighted by gear ratio, derated by drivetrain efficiency."""
        return self._distribute_by_gear_ratio(total_feedforward, self.efficiency)
