"""
Mechanisms Module
=================

Hierarchical feedforward/control engine for multi-body mechanical
structures built from one or more actuators each.

Key Components:
    - Mechanism: Actuator aggregation, setpoint tracking, tolerances
    - LinearMechanism: Translation along a fixed axis (elevators)
    - RotatingMechanism: Rotation about a fixed axis (arms)
    - MechanismSystem: Parent/child tree with two-pass feedforward
    - compute_feedforward: Per-kind rigid-body feedforward models

Data Flow:
    update_all_mechanism_states() → calculate_system_feedforward()
    → execute_all_mechanism_control()

Author: Mechanism Control Team
License: MIT
"""

from .errors import MechanismConfigError

from .mechanism import (
    ASSUMED_EFFICIENCY,
    FRICTION_COEFFICIENT,
    LinearAxis,
    Mechanism,
    MechanismKind,
    MechanismState,
    RotaryAxis,
    SetPoint,
    compute_feedforward,
)

from .linear import LinearMechanism
from .rotating import RotatingMechanism

from .system import (
    MOTION_COUPLING,
    REACTION_COUPLING,
    MechanismSystem,
    child_motion_effect,
    reaction_force,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "MechanismConfigError",
    # Base
    "ASSUMED_EFFICIENCY",
    "FRICTION_COEFFICIENT",
    "LinearAxis",
    "Mechanism",
    "MechanismKind",
    "MechanismState",
    "RotaryAxis",
    "SetPoint",
    "compute_feedforward",
    # Kinds
    "LinearMechanism",
    "RotatingMechanism",
    # System
    "MOTION_COUPLING",
    "REACTION_COUPLING",
    "MechanismSystem",
    "child_motion_effect",
    "reaction_force",
]
