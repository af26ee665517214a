"""
Actuator Port Module
====================

Hardware-independent interface through which a mechanism reads motion
feedback and issues motion commands to its actuators.

Contract:
    - update_feedback(feedback): fill the feedback record from hardware
    - issue_command(request): fire-and-forget motion command
    - apply_config(config): push gains/limits to the device

Command semantics:
    - target_position present → position-mode tracking
    - target_position None    → velocity-mode tracking using
      target_velocity / target_acceleration
    - feedforward is an open-loop term already unit-converted by the
      caller; ports scale it by kT into a torque current

Retry and backoff of bus traffic belong to the port implementation,
never to the control core.

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Protocol, runtime_checkable
import yaml

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class ActuatorConfig:
    """
    Configuration for one actuator.

    Attributes:
        name: Actuator identifier (used in logs and telemetry)
        device_id: Bus address of the controller
        bus: Bus name the controller lives on
        kP, kI, kD: Closed-loop gains (applied on the device)
        kS, kG, kV, kA: Device-side static/gravity/velocity/accel gains
        kT: Torque constant used to convert feedforward into current
        max_velocity: Motion profile cruise velocity
        max_acceleration: Motion profile acceleration
        gear_ratio: Sensor-to-mechanism ratio, strictly positive
        reversed: Invert positive direction
        brake_mode: Brake (True) or coast (False) when neutral
        continuous: Continuous (wrapping) position
        stall_torque: Motor stall torque (Nm)
        free_velocity: Motor free speed (rad/s)
        supply_current_limit_enabled: Enable supply current limiting
        supply_current_limit: Supply current limit (A)
        supply_current_lower_limit: Supply current lower limit (A)
        supply_current_lower_time: Time before dropping to lower limit (s)
        stator_current_limit_enabled: Enable stator current limiting
        stator_current_limit: Stator current limit (A)
        enable_foc: Use field-oriented control
    """
    name: str = "actuator"
    device_id: int = 0
    bus: str = "rio"

    kP: float = 0.0
    kI: float = 0.0
    kD: float = 0.0
    kS: float = 0.0
    kG: float = 0.0
    kV: float = 0.0
    kA: float = 0.0
    kT: float = 0.0

    max_velocity: float = 0.0
    max_acceleration: float = 0.0

    gear_ratio: float = 1.0
    reversed: bool = False
    brake_mode: bool = False
    continuous: bool = False

    stall_torque: float = 0.0
    free_velocity: float = 0.0

    supply_current_limit_enabled: bool = False
    supply_current_limit: float = 0.0
    supply_current_lower_limit: float = 0.0
    supply_current_lower_time: float = 0.0

    stator_current_limit_enabled: bool = False
    stator_current_limit: float = 0.0
    enable_foc: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.gear_ratio <= 0:
            raise ValueError(
                f"gear_ratio must be positive for actuator '{self.name}', "
                f"got {self.gear_ratio}"
            )
        if self.max_velocity < 0 or self.max_acceleration < 0:
            raise ValueError("motion profile limits cannot be negative")

    @property
    def current_limit(self) -> Optional[float]:
        """Tightest enabled current limit, or None if unlimited."""
        limits = []
        if self.supply_current_limit_enabled:
            limits.append(self.supply_current_limit)
        if self.stator_current_limit_enabled:
            limits.append(self.stator_current_limit)
        return min(limits) if limits else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActuatorConfig":
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str) -> "ActuatorConfig":
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            ActuatorConfig instance
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def to_yaml(self, path: str) -> None:
        """Save configuration to YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)


# =============================================================================
# Feedback and Request Records
# =============================================================================

@dataclass
class ActuatorFeedback:
    """
    Latest measurement from one actuator.

    Filled in place by ActuatorPort.update_feedback each cycle.

    Attributes:
        position: Mechanism-side position (m or rad)
        velocity: Mechanism-side velocity
        acceleration: Mechanism-side acceleration
        current_draw: Measured current (A)
        temperature: Device temperature (°C)
        connected: Whether the device answered this cycle
        latency_ms: Age of the measurement (ms)
        timestamp: Time the record was last filled
    """
    position: float = 0.0
    velocity: float = 0.0
    acceleration: float = 0.0
    current_draw: float = 0.0
    temperature: float = 25.0
    connected: bool = True
    latency_ms: float = 0.0
    timestamp: float = 0.0

    def stamp(self) -> None:
        """Record the fill time."""
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for telemetry."""
        return {
            "connected": self.connected,
            "position": self.position,
            "velocity": self.velocity,
            "acceleration": self.acceleration,
            "current": self.current_draw,
            "temperature": self.temperature,
            "latency": self.latency_ms,
        }


@dataclass(frozen=True)
class ActuatorRequest:
    """
    Motion command for one actuator.

    Attributes:
        target_position: Position target, None selects velocity mode
        target_velocity: Velocity target
        target_acceleration: Acceleration target
        feedforward: Open-loop feedforward magnitude for this actuator
    """
    target_position: Optional[float] = None
    target_velocity: float = 0.0
    target_acceleration: float = 0.0
    feedforward: float = 0.0

    @property
    def is_position_mode(self) -> bool:
        return self.target_position is not None

    @classmethod
    def zero(cls) -> "ActuatorRequest":
        """All-zero position-mode command used for emergency stops."""
        return cls(
            target_position=0.0,
            target_velocity=0.0,
            target_acceleration=0.0,
            feedforward=0.0,
        )


# =============================================================================
# Port Protocol
# =============================================================================

@runtime_checkable
class ActuatorPort(Protocol):
    """Protocol for actuator hardware bindings."""

    def update_feedback(self, feedback: ActuatorFeedback) -> None:
        """Fill feedback record from hardware."""
        ...

    def issue_command(self, request: ActuatorRequest) -> None:
        """Send a motion command (never blocks)."""
        ...

    def apply_config(self, config: ActuatorConfig) -> None:
        """Apply gains and limits to the device."""
        ...
