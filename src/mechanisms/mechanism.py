"""
Mechanism Module
================

Base entity for one controllable physical body driven by one or more
actuators.

Cycle:
    update_mechanism_state()   actuators → feedback → mean state
    execute_control()          setpoint + feedforward → per-actuator commands

Feedforward Models:

    Each mechanism kind is a tag carrying its axis data, and a single
    compute_feedforward() dispatches on that tag.

    LINEAR (axis â, start point p₀):
        F = F_gravity + F_inertia + F_friction
        F_gravity  = (0, 0, -g·m)
        F_inertia  = â · m·a
        F_friction = -sign(v) · μ·|v| · â          (μ = 0.1, zero at v = 0)

    ROTATING (axis ê, pivot c):
        τ = τ_gravity + τ_inertia + τ_coriolis
        τ_gravity  = (r_cg - c) × (0, 0, -g·m)
        τ_inertia  = I · (ê·α)
        τ_coriolis = ω × (I·ω),  ω = ê·θ̇

    Both models depend only on the mechanism's own state and mass
    properties. The motion of the carrying frame is accepted but does
    not enter the result.

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, List, Dict, Any, Callable, Union
import numpy as np
from numpy.typing import NDArray

from src.physics import (
    PhysicalProperties,
    as_vector,
    cross_product,
    gravity_force,
    unit_vector,
    zero_vector,
)
from src.actuators import (
    ActuatorConfig,
    ActuatorFeedback,
    ActuatorPort,
    ActuatorRequest,
)
from .errors import MechanismConfigError

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating]

FRICTION_COEFFICIENT = 0.1   # N·s/m
ASSUMED_EFFICIENCY = 0.85    # per-actuator drivetrain efficiency


# =============================================================================
# Enums and Value Objects
# =============================================================================

class MechanismKind(Enum):
    """Mechanism type tag."""
    LINEAR = auto()     # Translates along a fixed axis
    ROTATING = auto()   # Rotates about a fixed axis


@dataclass(frozen=True)
class SetPoint:
    """
    Target for one mechanism.

    Replaced wholesale on each new target, never partially updated.

    Attributes:
        position: Target position (m or rad)
        velocity: Target velocity (m/s or rad/s)
        acceleration: Target acceleration (m/s² or rad/s²)
        feedforward: Extra open-loop magnitude from the planning layer
    """
    position: float = 0.0
    velocity: float = 0.0
    acceleration: float = 0.0
    feedforward: float = 0.0


@dataclass
class MechanismState:
    """Kinematic state along/around the mechanism axis."""
    position: float = 0.0
    velocity: float = 0.0
    acceleration: float = 0.0

    def copy(self) -> "MechanismState":
        return MechanismState(self.position, self.velocity, self.acceleration)


@dataclass(frozen=True, eq=False)
class LinearAxis:
    """
    Axis data for a linear mechanism.

    Attributes:
        motion_axis: Direction of travel (normalized on construction)
        start_point: World position at zero travel
    """
    motion_axis: FloatArray
    start_point: FloatArray = field(default_factory=zero_vector)
    kind = MechanismKind.LINEAR

    def __post_init__(self) -> None:
        object.__setattr__(self, "motion_axis", unit_vector(self.motion_axis))
        object.__setattr__(self, "start_point", as_vector(self.start_point))


@dataclass(frozen=True, eq=False)
class RotaryAxis:
    """
    Axis data for a rotating mechanism.

    Attributes:
        rotation_axis: Axis of rotation (normalized on construction)
        pivot_point: World position of the rotation center
    """
    rotation_axis: FloatArray
    pivot_point: FloatArray = field(default_factory=zero_vector)
    kind = MechanismKind.ROTATING

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation_axis", unit_vector(self.rotation_axis))
        object.__setattr__(self, "pivot_point", as_vector(self.pivot_point))


AxisData = Union[LinearAxis, RotaryAxis]


# =============================================================================
# Feedforward Models
# =============================================================================

def friction_force(velocity: float, axis: FloatArray) -> FloatArray:
    """Viscous friction opposing motion, exactly zero at rest."""
    if velocity == 0.0:
        return zero_vector()
    magnitude = FRICTION_COEFFICIENT * abs(velocity)
    return -np.sign(velocity) * magnitude * axis


def _linear_feedforward(
    state: MechanismState,
    properties: PhysicalProperties,
    axis: LinearAxis
) -> FloatArray:
    """Force needed along a linear axis."""
    gravity = gravity_force(properties.mass)
    inertia = axis.motion_axis * (properties.mass * state.acceleration)
    friction = friction_force(state.velocity, axis.motion_axis)
    return gravity + inertia + friction


def _rotating_feedforward(
    state: MechanismState,
    properties: PhysicalProperties,
    axis: RotaryAxis
) -> FloatArray:
    """Torque needed about a rotation axis."""
    moi = properties.moment_of_inertia
    lever = properties.center_of_gravity - axis.pivot_point

    gravity_torque = cross_product(lever, gravity_force(properties.mass))
    inertia_torque = moi @ (axis.rotation_axis * state.acceleration)

    omega = axis.rotation_axis * state.velocity
    coriolis_torque = cross_product(omega, moi @ omega)

    return gravity_torque + inertia_torque + coriolis_torque


_FEEDFORWARD_MODELS: Dict[MechanismKind, Callable[..., FloatArray]] = {
    MechanismKind.LINEAR: _linear_feedforward,
    MechanismKind.ROTATING: _rotating_feedforward,
}


def compute_feedforward(
    state: MechanismState,
    properties: PhysicalProperties,
    axis: AxisData,
    frame_acceleration: Optional[FloatArray] = None
) -> FloatArray:
    """
    Compute feedforward force/torque for one mechanism.

    Pure function of state and properties; neither is modified.

    Args:
        state: Kinematic state along/around the axis
        properties: Mass properties of the body
        axis: LinearAxis or RotaryAxis, selects the model
        frame_acceleration: Motion of the carrying frame (unused by the
            current models)

    Returns:
        Force (N) or torque (Nm) 3-vector
    """
    return _FEEDFORWARD_MODELS[axis.kind](state, properties, axis)


def mean(values: List[float]) -> float:
    """
    Arithmetic mean, exact when all values are identical.

    Accumulates deviations from the first sample so that N equal
    readings average back to that reading bit for bit.
    """
    reference = values[0]
    return reference + sum(value - reference for value in values) / len(values)


def motion_vector(state: MechanismState, axis: AxisData) -> FloatArray:
    """Axis-scaled position of a mechanism (its own motion contribution)."""
    if axis.kind is MechanismKind.LINEAR:
        return axis.motion_axis * state.position
    return axis.rotation_axis * state.position


# =============================================================================
# Mechanism
# =============================================================================

class Mechanism(ABC):
    """
    One physical moving body with its actuators, setpoint and tolerances.

    State is always the arithmetic mean of the latest feedback of all
    registered actuators. With no actuators, update and control are
    no-ops and the state keeps its last value.

    Subclasses supply the axis data; feedforward is computed from it by
    compute_feedforward().
    """

    def __init__(
        self,
        name: str,
        properties: PhysicalProperties,
        position_tolerance: float = 0.01,
        velocity_tolerance: float = 0.1
    ) -> None:
        """
        Initialize mechanism.

        Args:
            name: Unique mechanism name
            properties: Mass properties (shared, never mutated)
            position_tolerance: Allowed |position error| at target
            velocity_tolerance: Allowed |velocity error| at target
        """
        if not name:
            raise MechanismConfigError("mechanism name cannot be empty")

        self._name = name
        self._properties = properties

        # Actuators
        self._ports: List[ActuatorPort] = []
        self._configs: List[ActuatorConfig] = []
        self._feedback: List[ActuatorFeedback] = []
        self._disconnected: List[bool] = []

        # State
        self._state = MechanismState()
        self._setpoint: Optional[SetPoint] = None
        self._lock = threading.RLock()

        self.position_tolerance = 0.0
        self.velocity_tolerance = 0.0
        self.set_control_parameters(position_tolerance, velocity_tolerance)

    # =========================================================================
    # Identity and Configuration
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def properties(self) -> PhysicalProperties:
        return self._properties

    @property
    @abstractmethod
    def axis_data(self) -> AxisData:
        """Axis data selecting the feedforward model."""

    @property
    def kind(self) -> MechanismKind:
        """Type tag of this mechanism."""
        return self.axis_data.kind

    @property
    def description(self) -> str:
        return f"{self.kind.name.lower()} mechanism '{self._name}'"

    def set_control_parameters(
        self,
        position_tolerance: float,
        velocity_tolerance: float
    ) -> None:
        """
        Set at-target tolerances.

        Args:
            position_tolerance: Allowed |position error|
            velocity_tolerance: Allowed |velocity error|
        """
        if position_tolerance < 0 or velocity_tolerance < 0:
            raise ValueError("tolerances cannot be negative")
        self.position_tolerance = float(position_tolerance)
        self.velocity_tolerance = float(velocity_tolerance)

    def register_actuator(self, port: ActuatorPort, config: ActuatorConfig) -> None:
        """
        Attach an actuator to this mechanism.

        The config is pushed to the port and a feedback slot is created.

        Raises:
            MechanismConfigError: If the port is already registered or
                the gear ratio is not positive
        """
        with self._lock:
            if any(existing is port for existing in self._ports):
                logger.error(f"{self._name}: actuator '{config.name}' registered twice")
                raise MechanismConfigError(
                    f"actuator '{config.name}' is already registered with '{self._name}'"
                )
            if config.gear_ratio <= 0:
                logger.error(f"{self._name}: actuator '{config.name}' has gear ratio {config.gear_ratio}")
                raise MechanismConfigError(
                    f"gear_ratio must be positive, got {config.gear_ratio} for '{config.name}'"
                )

            port.apply_config(config)
            self._ports.append(port)
            self._configs.append(config)
            self._feedback.append(ActuatorFeedback())
            self._disconnected.append(False)

        logger.info(
            f"{self._name}: registered actuator '{config.name}' "
            f"(gear {config.gear_ratio}, {len(self._ports)} total)"
        )

    @property
    def actuator_count(self) -> int:
        return len(self._ports)

    @property
    def actuator_configs(self) -> List[ActuatorConfig]:
        return list(self._configs)

    @property
    def feedback(self) -> List[ActuatorFeedback]:
        """Latest feedback records, one per actuator."""
        return list(self._feedback)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> MechanismState:
        """Copy of the current kinematic state."""
        return self._state.copy()

    @property
    def setpoint(self) -> Optional[SetPoint]:
        return self._setpoint

    def update_mechanism_state(self) -> None:
        """Pull feedback from every actuator and average it into the state."""
        with self._lock:
            count = len(self._ports)
            if count == 0:
                return

            for i, (port, feedback) in enumerate(zip(self._ports, self._feedback)):
                port.update_feedback(feedback)
                self._track_connection(i, feedback)

            self._state.position = mean([f.position for f in self._feedback])
            self._state.velocity = mean([f.velocity for f in self._feedback])
            self._state.acceleration = mean([f.acceleration for f in self._feedback])

    def _track_connection(self, index: int, feedback: ActuatorFeedback) -> None:
        """Log connectivity transitions once."""
        was_disconnected = self._disconnected[index]
        if not feedback.connected and not was_disconnected:
            logger.warning(f"{self._name}: actuator '{self._configs[index].name}' disconnected")
        elif feedback.connected and was_disconnected:
            logger.info(f"{self._name}: actuator '{self._configs[index].name}' reconnected")
        self._disconnected[index] = not feedback.connected

    def project_state(
        self,
        position: float,
        velocity: float,
        acceleration: float
    ) -> None:
        """Force the kinematic state to planned values (no feedback involved)."""
        with self._lock:
            self._state.position = float(position)
            self._state.velocity = float(velocity)
            self._state.acceleration = float(acceleration)

    def motion_vector(self) -> FloatArray:
        """Axis-scaled position of this mechanism."""
        return motion_vector(self._state, self.axis_data)

    # =========================================================================
    # Control
    # =========================================================================

    def set_target_setpoint(self, setpoint: SetPoint) -> None:
        """Replace the active setpoint."""
        with self._lock:
            self._setpoint = setpoint
        logger.debug(f"{self._name}: setpoint {setpoint}")

    def clear_setpoint(self) -> None:
        with self._lock:
            self._setpoint = None

    def get_feedforward(self, frame_acceleration: Optional[FloatArray] = None) -> FloatArray:
        """
        Feedforward force/torque for the current state.

        Args:
            frame_acceleration: Motion of the carrying frame, as passed
                down by MechanismSystem (unused by the current models)

        Returns:
            Force or torque 3-vector
        """
        return compute_feedforward(self._state, self._properties, self.axis_data, frame_acceleration)

    def distribute_feedforward_among_motors(self, total_feedforward: FloatArray) -> List[float]:
        """
        Split the feedforward magnitude equally across actuators.

        Args:
            total_feedforward: Mechanism feedforward vector

        Returns:
            One magnitude per registered actuator
        """
        count = len(self._ports)
        if count == 0:
            return []
        magnitude = float(np.linalg.norm(total_feedforward))
        return [magnitude / count] * count

    def _distribute_by_gear_ratio(
        self,
        total_feedforward: FloatArray,
        efficiency: float
    ) -> List[float]:
        """
        Split the feedforward magnitude weighted by mechanical advantage.

            share_i = |F| · (N_i / ΣN) / η

        Raises:
            MechanismConfigError: If the gear ratios sum to zero
        """
        if not self._configs:
            return []

        total_gear_ratio = sum(config.gear_ratio for config in self._configs)
        if total_gear_ratio <= 0:
            logger.error(f"{self._name}: total gear ratio is {total_gear_ratio}")
            raise MechanismConfigError(f"'{self._name}' has zero total gear ratio")

        magnitude = float(np.linalg.norm(total_feedforward))
        return [
            magnitude * (config.gear_ratio / total_gear_ratio) / efficiency
            for config in self._configs
        ]

    def execute_control(self) -> None:
        """
        Distribute feedforward and command every actuator toward the setpoint.

        Each command carries the port's share of the model feedforward.
        A nonzero SetPoint.feedforward is a planner-supplied extra that
        is split equally across ports and added on top of that share.
        """
        with self._lock:
            setpoint = self._setpoint
            if not self._ports or setpoint is None:
                return

            total_feedforward = self.get_feedforward()
            shares = self.distribute_feedforward_among_motors(total_feedforward)
            bias = setpoint.feedforward / len(self._ports)

            for port, share in zip(self._ports, shares):
                port.issue_command(ActuatorRequest(
                    target_position=setpoint.position,
                    target_velocity=setpoint.velocity,
                    target_acceleration=setpoint.acceleration,
                    feedforward=share + bias,
                ))

    def control_cycle(self) -> None:
        """Read feedback and command actuators as one atomic step."""
        with self._lock:
            self.update_mechanism_state()
            self.execute_control()

    def is_at_target(self) -> bool:
        """
        Check whether mean feedback is within tolerance of the setpoint.

        False without actuators, without a setpoint, or while any
        actuator is disconnected.
        """
        with self._lock:
            setpoint = self._setpoint
            count = len(self._feedback)
            if count == 0 or setpoint is None:
                return False
            if not all(f.connected for f in self._feedback):
                return False

            position = mean([f.position for f in self._feedback])
            velocity = mean([f.velocity for f in self._feedback])

            position_ok = abs(position - setpoint.position) <= self.position_tolerance
            velocity_ok = abs(velocity - setpoint.velocity) <= self.velocity_tolerance
            return position_ok and velocity_ok

    def emergency_stop(self) -> None:
        """Command every actuator to zero immediately."""
        with self._lock:
            for port in self._ports:
                port.issue_command(ActuatorRequest.zero())
        logger.warning(f"{self._name}: EMERGENCY STOP ({len(self._ports)} actuators)")

    # =========================================================================
    # Monitoring
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get mechanism status for monitoring."""
        setpoint = self._setpoint
        return {
            "name": self._name,
            "kind": self.kind.name,
            "position": self._state.position,
            "velocity": self._state.velocity,
            "acceleration": self._state.acceleration,
            "setpoint": None if setpoint is None else {
                "position": setpoint.position,
                "velocity": setpoint.velocity,
                "acceleration": setpoint.acceleration,
                "feedforward": setpoint.feedforward,
            },
            "at_target": self.is_at_target(),
            "actuators": [
                {"name": config.name, **feedback.to_dict()}
                for config, feedback in zip(self._configs, self._feedback)
            ],
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, actuators={len(self._ports)})"
