"""
Physical Properties Module
==========================

Rigid-body description shared by every mechanism: mass, center of
gravity, inertia tensor and an optional surface material.

Conventions:
    - SI units throughout (kg, m, kg·m²)
    - World frame is right-handed with gravity along -z
    - Vectors are numpy arrays of shape (3,), tensors of shape (3, 3)

Properties are frozen after construction and may be shared by reference
between mechanisms; nothing in the control core mutates them.

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Sequence, Union
import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# Type aliases
FloatArray = NDArray[np.floating]
VectorLike = Union[Sequence[float], FloatArray]

GRAVITY = 9.81  # m/s²


# =============================================================================
# Vector Helpers
# =============================================================================

def as_vector(value: VectorLike) -> FloatArray:
    """
    Convert a 3-element sequence to a float vector.

    Args:
        value: Any sequence of three numbers

    Returns:
        Array of shape (3,)

    Raises:
        ValueError: If the input does not hold exactly three elements
    """
    vector = np.asarray(value, dtype=float).flatten()
    if vector.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {vector.shape}")
    return vector


def zero_vector() -> FloatArray:
    """Return a fresh (0, 0, 0) vector."""
    return np.zeros(3)


def cross_product(a: VectorLike, b: VectorLike) -> FloatArray:
    """Right-handed cross product a × b of two 3-vectors."""
    return np.cross(as_vector(a), as_vector(b))


def unit_vector(value: VectorLike) -> FloatArray:
    """
    Normalize a vector to unit length.

    Raises:
        ValueError: If the vector has (near) zero length
    """
    vector = as_vector(value)
    norm = np.linalg.norm(vector)
    if norm < 1e-12:
        raise ValueError("axis must have non-zero length")
    return vector / norm


def gravity_force(mass: float) -> FloatArray:
    """Weight of a body of the given mass, (0, 0, -g·m)."""
    return np.array([0.0, 0.0, -GRAVITY * mass])


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class Material:
    """
    Surface material of a body.

    Attributes:
        friction: Coefficient of friction (0-1)
        restitution: Coefficient of restitution (0-1)
        damping: Damping factor (0-1)
    """
    friction: float = 0.0
    restitution: float = 0.0
    damping: float = 0.0

    def __post_init__(self) -> None:
        """Validate coefficient ranges."""
        for name in ("friction", "restitution", "damping"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

    def to_dict(self) -> Dict[str, float]:
        return {
            "friction": self.friction,
            "restitution": self.restitution,
            "damping": self.damping,
        }


@dataclass(frozen=True, eq=False)
class PhysicalProperties:
    """
    Mass properties of one rigid body.

    Attributes:
        mass: Body mass (kg), strictly positive
        center_of_gravity: Center of gravity in world frame (m)
        moment_of_inertia: 3x3 inertia tensor (kg·m²)
        material: Optional surface material
    """
    mass: float
    center_of_gravity: FloatArray = field(default_factory=zero_vector)
    moment_of_inertia: FloatArray = field(default_factory=lambda: np.eye(3))
    material: Optional[Material] = None

    def __post_init__(self) -> None:
        """Validate and freeze arrays."""
        if self.mass <= 0:
            raise ValueError(f"mass must be positive, got {self.mass}")

        cog = as_vector(self.center_of_gravity)
        moi = np.asarray(self.moment_of_inertia, dtype=float)
        if moi.shape != (3, 3):
            raise ValueError(f"moment_of_inertia must be 3x3, got shape {moi.shape}")

        # Arrays are shared by reference, so lock them
        cog.setflags(write=False)
        moi = moi.copy()
        moi.setflags(write=False)

        object.__setattr__(self, "mass", float(self.mass))
        object.__setattr__(self, "center_of_gravity", cog)
        object.__setattr__(self, "moment_of_inertia", moi)

    @classmethod
    def point_mass(
        cls,
        mass: float,
        center_of_gravity: VectorLike = (0.0, 0.0, 0.0)
    ) -> "PhysicalProperties":
        """Body with negligible rotational inertia."""
        return cls(
            mass=mass,
            center_of_gravity=as_vector(center_of_gravity),
            moment_of_inertia=np.zeros((3, 3)),
        )

    @property
    def weight(self) -> FloatArray:
        """Gravity force acting on the body (N)."""
        return gravity_force(self.mass)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "mass": self.mass,
            "center_of_gravity": self.center_of_gravity.tolist(),
            "moment_of_inertia": self.moment_of_inertia.tolist(),
            "material": self.material.to_dict() if self.material else None,
        }
