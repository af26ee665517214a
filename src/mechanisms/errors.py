"""
Mechanism Errors
================

Exceptions raised for caller misuse of the mechanism core. Degenerate
inputs (no actuators, missing setpoints) never raise.

Author: Mechanism Control Team
License: MIT
"""


class MechanismConfigError(ValueError):
    """Invalid mechanism, actuator or topology configuration."""
