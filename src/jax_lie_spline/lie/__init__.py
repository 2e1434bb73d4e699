"""
Lie groups implemented with JAX.

This module provides:
- the LieGroup interface (base module) every group type implements
- SO(2) and SO(3) rotations (so2, so3 modules)
- SE(3) rigid body transforms (se3 module)
- Euclidean spaces R^n (rn module)

All operations are pure and work under jit / vmap / grad.
"""

from . import so2
from . import so3
from . import se3
from .base import LieGroup
from .so2 import SO2
from .so3 import SO3
from .se3 import SE3
from .rn import rn, R1, R2, R3, R4, R5, R6, R7, R8, R9, R10

__all__ = [
    "LieGroup",
    "SO2",
    "SO3",
    "SE3",
    "rn",
    "R1", "R2", "R3", "R4", "R5", "R6", "R7", "R8", "R9", "R10",
    "so2",
    "so3",
    "se3",
]
