"""
Actuators Module
================

Hardware-independent actuator ports for the mechanism control core.

Key Components:
    - ActuatorPort: Protocol every hardware binding implements
    - ActuatorConfig: Gains, limits and gearing for one actuator
    - ActuatorFeedback: Per-cycle measurement record
    - ActuatorRequest: Position/velocity command with feedforward
    - SimulatedActuator: Deterministic simulated binding

Vendor drivers (CAN/register protocols) live outside this package and
only need to satisfy ActuatorPort.

Author: Mechanism Control Team
License: MIT
"""

from .port import (
    ActuatorConfig,
    ActuatorFeedback,
    ActuatorRequest,
    ActuatorPort,
)

from .simulated import (
    SimulatedActuator,
)

__version__ = "0.1.0"

__all__ = [
    "ActuatorConfig",
    "ActuatorFeedback",
    "ActuatorRequest",
    "ActuatorPort",
    "SimulatedActuator",
]
