"""
Simulated Actuator Module
=========================

Simulated actuator port for testing and desktop runs.

Model (one fixed step per feedback pull):
    current  = kP·e_pos + kI·∫e_pos + kD·e_vel + kT·feedforward
    current  = clamp(current, ±current_limit)
    torque   = K_TORQUE · current · gear_ratio
    accel    = torque / J_total
    velocity += accel · dt,  position += velocity · dt
    velocity -= (b · velocity / J_total) · dt        (viscous damping)
    temp     = ambient + R_th · I²·R_winding          (thermal)

In velocity mode the position error term is dropped.

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
from typing import Optional, Dict, Any
import numpy as np

from .port import ActuatorConfig, ActuatorFeedback, ActuatorRequest

logger = logging.getLogger(__name__)

# Simulation constants
SIMULATION_DT = 0.02          # s, one control tick
MOTOR_RESISTANCE = 0.1        # ohms
K_TORQUE = 0.1                # Nm/A
ROTOR_INERTIA = 0.001         # kg·m²
LOAD_INERTIA = 0.1            # kg·m²
DAMPING_COEFFICIENT = 0.1     # N·m·s/rad
THERMAL_RESISTANCE = 0.1      # °C/W
AMBIENT_TEMPERATURE = 25.0    # °C
INTEGRAL_ZONE = 0.1           # position error below which integral accumulates
INTEGRAL_LIMIT = 1.0


class SimulatedActuator:
    """
    Simulated actuator implementing the ActuatorPort protocol.

    Deterministic: every update_feedback call advances the model by
    exactly one step of `dt`, so tests do not depend on wall-clock time.

    Example:
        >>> actuator = SimulatedActuator(ActuatorConfig(name="lift", kP=5.0))
        >>> actuator.issue_command(ActuatorRequest(target_position=0.5))
        >>> feedback = ActuatorFeedback()
        >>> actuator.update_feedback(feedback)
    """

    def __init__(
        self,
        config: Optional[ActuatorConfig] = None,
        dt: float = SIMULATION_DT
    ) -> None:
        """
        Initialize simulated actuator.

        Args:
            config: Actuator configuration
            dt: Simulation step per feedback pull (s)
        """
        if dt <= 0:
            raise ValueError("dt must be positive")
        self.dt = dt
        self.config = config or ActuatorConfig()
        self.connected = True
        self.reset()
        logger.info(f"SimulatedActuator '{self.config.name}': dt={dt}s")

    # =========================================================================
    # ActuatorPort
    # =========================================================================

    def apply_config(self, config: ActuatorConfig) -> None:
        """Apply configuration and reset the simulation state."""
        self.config = config
        self.reset()
        logger.debug(f"SimulatedActuator '{config.name}' configured: {config.to_dict()}")

    def issue_command(self, request: ActuatorRequest) -> None:
        """Latch the command; it takes effect on the next step."""
        self._request = request
        self._command_count += 1

    def update_feedback(self, feedback: ActuatorFeedback) -> None:
        """Advance one step and fill the feedback record."""
        if not self.connected:
            feedback.connected = False
            feedback.stamp()
            return

        desired_current = self._control_output()
        self._simulate(desired_current)

        feedback.connected = True
        feedback.position = self._position
        feedback.velocity = self._velocity
        feedback.acceleration = self._acceleration
        feedback.current_draw = self._current
        feedback.temperature = self._temperature
        feedback.latency_ms = self.dt * 1000.0
        feedback.stamp()

    # =========================================================================
    # Simulation
    # =========================================================================

    def _control_output(self) -> float:
        """Compute desired current from the latched request."""
        request = self._request
        cfg = self.config

        velocity_error = request.target_velocity - self._velocity

        if request.is_position_mode:
            position_error = request.target_position - self._position

            # Anti-windup
            if abs(position_error) < INTEGRAL_ZONE:
                self._integral_error += position_error * self.dt
            else:
                self._integral_error = 0.0
            self._integral_error = float(
                np.clip(self._integral_error, -INTEGRAL_LIMIT, INTEGRAL_LIMIT)
            )
            pid = cfg.kP * position_error + cfg.kI * self._integral_error + cfg.kD * velocity_error
        else:
            self._integral_error = 0.0
            pid = cfg.kP * velocity_error

        return pid + request.feedforward * cfg.kT

    def _simulate(self, desired_current: float) -> None:
        """Integrate motor dynamics over one step."""
        limit = self.config.current_limit
        if limit is not None:
            desired_current = float(np.clip(desired_current, -limit, limit))
        self._current = desired_current

        direction = -1.0 if self.config.reversed else 1.0
        output_torque = direction * self._current * K_TORQUE * self.config.gear_ratio
        total_inertia = ROTOR_INERTIA + LOAD_INERTIA

        self._acceleration = output_torque / total_inertia
        self._velocity += self._acceleration * self.dt
        self._position += self._velocity * self.dt

        damping_torque = -DAMPING_COEFFICIENT * self._velocity
        self._velocity += (damping_torque / total_inertia) * self.dt

        power_loss = self._current ** 2 * MOTOR_RESISTANCE
        self._temperature = AMBIENT_TEMPERATURE + power_loss * THERMAL_RESISTANCE

    # =========================================================================
    # Test Helpers
    # =========================================================================

    def reset(self) -> None:
        """Reset simulation state and targets."""
        self._position = 0.0
        self._velocity = 0.0
        self._acceleration = 0.0
        self._current = 0.0
        self._temperature = AMBIENT_TEMPERATURE
        self._integral_error = 0.0
        self._request = ActuatorRequest.zero()
        self._command_count = 0

    def set_state(
        self,
        position: float = 0.0,
        velocity: float = 0.0,
        acceleration: float = 0.0
    ) -> None:
        """Teleport the simulated actuator."""
        self._position = position
        self._velocity = velocity
        self._acceleration = acceleration

    def disconnect(self) -> None:
        """Simulate a lost bus connection."""
        self.connected = False
        logger.warning(f"SimulatedActuator '{self.config.name}' disconnected")

    def reconnect(self) -> None:
        self.connected = True

    @property
    def last_request(self) -> ActuatorRequest:
        """Most recently issued command."""
        return self._request

    @property
    def command_count(self) -> int:
        return self._command_count

    def get_state(self) -> Dict[str, Any]:
        """Get simulation state for monitoring."""
        return {
            "name": self.config.name,
            "connected": self.connected,
            "position": self._position,
            "velocity": self._velocity,
            "acceleration": self._acceleration,
            "current": self._current,
            "temperature": self._temperature,
            "command_count": self._command_count,
        }
