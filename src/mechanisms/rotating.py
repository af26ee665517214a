"""
Rotating Mechanism Module
=========================

Mechanisms that rotate about a fixed axis (arms, wrists, turrets).

Feedforward is gravity torque + inertial torque + coriolis torque (see
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
from .mechanism import ASSUMED_EFFICIENCY, Mechanism, RotaryAxis

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating]


class RotatingMechanism(Mechanism):
    """Mechanism rotating about a fixed axis through a pivot."""

    efficiency = ASSUMED_EFFICIENCY

    def __init__(
        self,
        name: str,
        properties: PhysicalProperties,
        rotation_axis: VectorLike,
        pivot_point: Optional[VectorLike] = None,
        position_tolerance: float = 0.01,
        velocity_tolerance: float = 0.1
    ) -> None:
        """
        Initialize rotating mechanism.

        Args:
            name: Unique mechanism name
            properties: Mass properties
            rotation_axis: Axis of rotation (normalized)
            pivot_point: World position of the pivot (default origin)
            position_tolerance: At-target angle tolerance (rad)
            velocity_tolerance: At-target angular velocity tolerance (rad/s)
        """
        self._axis = RotaryAxis(
            rotation_axis=np.asarray(rotation_axis, dtype=float),
            pivot_point=np.zeros(3) if pivot_point is None else np.asarray(pivot_point, dtype=float),
        )
        super().__init__(name, properties, position_tolerance, velocity_tolerance)
        logger.info(f"RotatingMechanism '{name}': axis={self._axis.rotation_axis.tolist()}")

    @property
    def axis_data(self) -> RotaryAxis:
        return self._axis

    @property
    def rotation_axis(self) -> FloatArray:
        return self._axis.rotation_axis.copy()

    @property
    def pivot_point(self) -> FloatArray:
        return self._axis.pivot_point.copy()

    @property
    def angle(self) -> float:
        """Current angle (rad)."""
        return self._state.position

    @property
    def angular_velocity(self) -> float:
        """Current angular velocity (rad/s)."""
        return self._state.velocity

    @property
    def angular_acceleration(self) -> float:
        """Current angular acceleration (rad/s²)."""
        return self._state.acceleration

    def distribute_feedforward_among_motors(self, total_feedforward: FloatArray) -> List[float]:
        return self._distribute_by_gear_ratio(total_feedforward, self.efficiency)
