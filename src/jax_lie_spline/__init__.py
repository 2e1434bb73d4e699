"""
JAX Lie Spline: differentiable Lie group algebra and B-splines on Lie groups.

This library provides JIT-compilable implementations of Lie group operations
(exp / log, adjoints, exponential Jacobians) and cardinal B-splines whose
control points live on a Lie group, with analytic derivatives.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import lie
from . import interp
from .common import EPS2, SizeViolationError
from .diff import dr_autodiff
from .interp import BSpline, BSplineEval, bspline_eval, bspline_eval_ctrl
from .lie import LieGroup, SE3, SO2, SO3, rn

__version__ = "0.1.0"
__all__ = [
    "lie",
    "interp",
    "EPS2",
    "SizeViolationError",
    "dr_autodiff",
    "BSpline",
    "BSplineEval",
    "bspline_eval",
    "bspline_eval_ctrl",
    "LieGroup",
    "SE3",
    "SO2",
    "SO3",
    "rn",
]
