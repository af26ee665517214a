"""
Integration Module
==================

Assembly of mechanism systems from configuration, plus the reference
elevator + arm robot used by the demo and tests.

Components:
    - SystemConfig / MechanismConfig: YAML-backed configuration
    - build_system: Configuration → wired MechanismSystem
    - build_example_system / ExampleRobot: Reference assembly

Author: Mechanism Control Team
License: MIT
"""

from .config import (
    MechanismConfig,
    SystemConfig,
    build_mechanism,
    build_system,
)

from .example import (
    ExampleRobot,
    build_example_system,
)

__version__ = "0.1.0"

__all__ = [
    "MechanismConfig",
    "SystemConfig",
    "build_mechanism",
    "build_system",
    "ExampleRobot",
    "build_example_system",
]
