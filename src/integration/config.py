"""
System Configuration Module
===========================

Declarative description of a mechanism system and a builder that turns
it into a wired MechanismSystem.

Example YAML:

    name: ExampleRobot
    control_rate_hz: 50.0
    mechanisms:
      - name: Elevator
        kind: linear
        mass: 10.0
        center_of_gravity: [0.0, 0.0, 0.5]
        axis: [0.0, 0.0, 1.0]
        actuators:
          - {name: Elevator, device_id: 1, gear_ratio: 10.0}
      - name: Arm
        kind: rotating
        parent: Elevator
        mass: 5.0
        axis: [0.0, 0.0, 1.0]
        actuators:
          - {name: Arm, device_id: 2, gear_ratio: 20.0}

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Optional, List, Dict, Any, Callable
import yaml
import numpy as np

from src.actuators import ActuatorConfig, ActuatorPort, SimulatedActuator
from src.physics import Material, PhysicalProperties
from src.mechanisms import (
    LinearMechanism,
    Mechanism,
    MechanismConfigError,
    MechanismSystem,
    RotatingMechanism,
)

logger = logging.getLogger(__name__)

PortFactory = Callable[[ActuatorConfig], ActuatorPort]

_KINDS = ("linear", "rotating")


@dataclass
class MechanismConfig:
    """
    Configuration for one mechanism.

    Attributes:
        name: Unique mechanism name
        kind: "linear" or "rotating"
        mass: Body mass (kg)
        center_of_gravity: Center of gravity (m)
        moment_of_inertia: 3x3 inertia tensor (kg·m²)
        axis: Motion axis (linear) or rotation axis (rotating)
        origin: Start point (linear) or pivot point (rotating)
        position_tolerance: At-target position tolerance
        velocity_tolerance: At-target velocity tolerance
        parent: Name of the mechanism this one rides on
        material: Optional {friction, restitution, damping}
        actuators: Actuator configurations
    """
    name: str
    kind: str = "linear"
    mass: float = 1.0
    center_of_gravity: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    moment_of_inertia: List[List[float]] = field(
        default_factory=lambda: np.eye(3).tolist()
    )
    axis: List[float] = field(default_factory=lambda: [0.0, 0.0, 1.0])
    origin: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    position_tolerance: float = 0.01
    velocity_tolerance: float = 0.1
    parent: Optional[str] = None
    material: Optional[Dict[str, float]] = None
    actuators: List[ActuatorConfig] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Normalize kind and nested actuator dictionaries."""
        self.kind = self.kind.lower()
        if self.kind not in _KINDS:
            raise ValueError(f"kind must be one of {_KINDS}, got '{self.kind}'")
        self.actuators = [
            a if isinstance(a, ActuatorConfig) else ActuatorConfig.from_dict(a)
            for a in self.actuators
        ]

    def physical_properties(self) -> PhysicalProperties:
        material = Material(**self.material) if self.material else None
        return PhysicalProperties(
            mass=self.mass,
            center_of_gravity=np.asarray(self.center_of_gravity, dtype=float),
            moment_of_inertia=np.asarray(self.moment_of_inertia, dtype=float),
            material=material,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "kind": self.kind,
            "mass": self.mass,
            "center_of_gravity": list(self.center_of_gravity),
            "moment_of_inertia": [list(row) for row in self.moment_of_inertia],
            "axis": list(self.axis),
            "origin": list(self.origin),
            "position_tolerance": self.position_tolerance,
            "velocity_tolerance": self.velocity_tolerance,
            "parent": self.parent,
            "material": self.material,
            "actuators": [a.to_dict() for a in self.actuators],
        }


@dataclass
class SystemConfig:
    """
    Configuration for a mechanism system.

    Attributes:
        name: System identifier
        control_rate_hz: Host tick rate (50 Hz = 20 ms)
        root: Explicit root mechanism (default: first mechanism)
        mechanisms: Mechanism configurations, parents before children
        log_level: Logging verbosity
    """
    name: str = "MechanismSystem"
    control_rate_hz: float = 50.0
    root: Optional[str] = None
    mechanisms: List[MechanismConfig] = field(default_factory=list)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.mechanisms = [
            m if isinstance(m, MechanismConfig) else MechanismConfig(**m)
            for m in self.mechanisms
        ]

    @property
    def control_period(self) -> float:
        return 1.0 / self.control_rate_hz

    def validate(self) -> List[str]:
        """Validate configuration, return list of issues."""
        issues = []
        if self.control_rate_hz <= 0:
            issues.append("control_rate_hz must be positive")

        names = [m.name for m in self.mechanisms]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            issues.append(f"duplicate mechanism names: {duplicates}")

        known = set(names)
        for mechanism in self.mechanisms:
            if mechanism.parent is not None and mechanism.parent not in known:
                issues.append(f"'{mechanism.name}' has unknown parent '{mechanism.parent}'")
            if mechanism.mass <= 0:
                issues.append(f"'{mechanism.name}' mass must be positive")
        if self.root is not None and self.root not in known:
            issues.append(f"unknown root '{self.root}'")
        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "control_rate_hz": self.control_rate_hz,
            "root": self.root,
            "log_level": self.log_level,
            "mechanisms": [m.to_dict() for m in self.mechanisms],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemConfig":
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str) -> "SystemConfig":
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            SystemConfig instance
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def to_yaml(self, path: str) -> None:
        """Save configuration to YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def build_mechanism(config: MechanismConfig) -> Mechanism:
    """Construct a mechanism (without actuators) from its configuration."""
    properties = config.physical_properties()
    if config.kind == "linear":
        return LinearMechanism(
            config.name,
            properties,
            motion_axis=config.axis,
            start_point=config.origin,
            position_tolerance=config.position_tolerance,
            velocity_tolerance=config.velocity_tolerance,
        )
    return RotatingMechanism(
        config.name,
        properties,
        rotation_axis=config.axis,
        pivot_point=config.origin,
        position_tolerance=config.position_tolerance,
        velocity_tolerance=config.velocity_tolerance,
    )


def build_system(
    config: SystemConfig,
    port_factory: Optional[PortFactory] = None
) -> MechanismSystem:
    """
    Build a wired MechanismSystem from configuration.

    Args:
        config: System configuration
        port_factory: Creates one actuator port per ActuatorConfig
            (default: SimulatedActuator stepping once per control period)

    Returns:
        MechanismSystem with mechanisms, actuators and relations set

    Raises:
        MechanismConfigError: If the configuration does not validate
    """
    issues = config.validate()
    if issues:
        for issue in issues:
            logger.error(f"Config issue: {issue}")
        raise MechanismConfigError("; ".join(issues))

    if port_factory is None:
        port_factory = partial(SimulatedActuator, dt=config.control_period)

    system = MechanismSystem(config.name)

    for mechanism_config in config.mechanisms:
        mechanism = build_mechanism(mechanism_config)
        for actuator_config in mechanism_config.actuators:
            mechanism.register_actuator(port_factory(actuator_config), actuator_config)
        system.register_mechanism(mechanism)

    for mechanism_config in config.mechanisms:
        if mechanism_config.parent is not None:
            system.set_parent_child(mechanism_config.parent, mechanism_config.name)

    if config.root is not None:
        system.set_root(config.root)

    logger.info(
        f"Built system '{config.name}': {len(system)} mechanisms, root '{system.root_mechanism}'"
    )
    return system
