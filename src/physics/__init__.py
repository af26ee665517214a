"""
Physics Module
==============

Rigid-body properties and small vector helpers used by the
feedforward models.

Key Components:
    - PhysicalProperties: Mass, center of gravity, inertia tensor
    - Material: Optional surface coefficients
    - cross_product / as_vector / unit_vector: 3-vector helpers

Author: Mechanism Control Team
License: MIT
"""

from .properties import (
    GRAVITY,
    Material,
    PhysicalProperties,
    VectorLike,
    as_vector,
    cross_product,
    gravity_force,
    unit_vector,
    zero_vector,
)

__version__ = "0.1.0"

__all__ = [
    "GRAVITY",
    "Material",
    "PhysicalProperties",
    "VectorLike",
    "as_vector",
    "cross_product",
    "gravity_force",
    "unit_vector",
    "zero_vector",
]
