"""
Interpolation on Lie groups.

- basis: exact coefficient matrices of cardinal B-spline bases
- bspline: segment evaluators and the BSpline curve type
"""

from .basis import card_coeffmat, cum_card_coeffmat, cum_coeffmat_array
from .bspline import BSpline, BSplineEval, bspline_eval, bspline_eval_ctrl

__all__ = [
    "BSpline",
    "BSplineEval",
    "bspline_eval",
    "bspline_eval_ctrl",
    "card_coeffmat",
    "cum_card_coeffmat",
    "cum_coeffmat_array",
]
