"""
Pytest Configuration and Fixtures
==================================

Shared test configuration and fixtures for all test modules.
Handles path setup for importing src modules.

Author: Mechanism Control Team
License: MIT
"""

import sys
from pathlib import Path
from unittest.mock import Mock

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest
import numpy as np

from src.actuators import ActuatorConfig, ActuatorFeedback
from src.physics import PhysicalProperties


# =============================================================================
# Global Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root_path():
    """Get project root path."""
    return project_root


@pytest.fixture
def make_port():
    """
    Factory for mock actuator ports reporting fixed feedback.

    The returned Mock records issue_command/apply_config calls; its
    `reading` attribute can be changed between cycles.
    """
    def _make(position=0.0, velocity=0.0, acceleration=0.0, connected=True):
        port = Mock()
        port.reading = {
            "position": position,
            "velocity": velocity,
            "acceleration": acceleration,
            "connected": connected,
        }

        def fill(feedback: ActuatorFeedback) -> None:
            feedback.position = port.reading["position"]
            feedback.velocity = port.reading["velocity"]
            feedback.acceleration = port.reading["acceleration"]
            feedback.connected = port.reading["connected"]

        port.update_feedback.side_effect = fill
        return port

    return _make


@pytest.fixture
def actuator_config():
    """Factory for actuator configurations."""
    def _make(name="motor", gear_ratio=1.0, **kwargs):
        return ActuatorConfig(name=name, gear_ratio=gear_ratio, **kwargs)

    return _make


@pytest.fixture
def elevator_properties():
    """10 kg carriage with CG 0.5 m up."""
    return PhysicalProperties(
        mass=10.0,
        center_of_gravity=np.array([0.0, 0.0, 0.5]),
        moment_of_inertia=np.diag([1.0, 1.0, 0.1]),
    )


@pytest.fixture
def arm_properties():
    """5 kg arm with CG 0.3 m from the pivot along x."""
    return PhysicalProperties(
        mass=5.0,
        center_of_gravity=np.array([0.3, 0.0, 0.0]),
        moment_of_inertia=np.diag([0.1, 0.1, 0.5]),
    )


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "hardware: marks tests requiring hardware")
    config.addinivalue_line("markers", "integration: marks integration tests")
