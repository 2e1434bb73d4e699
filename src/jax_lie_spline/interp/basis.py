"""Coefficient matrices of cardinal B-spline basis functions.

Matrices are computed with exact rational arithmetic and cached per degree,
so every evaluation of a given degree shares the same constant data.
Entry [i][j] of a degree K matrix is the coefficient of u**i in basis
function j, for u in [0, 1) within one knot interval.
"""

import functools
import logging
from fractions import Fraction
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)

Matrix = Tuple[Tuple[Fraction, ...], ...]


def _matmul(A, B):
    return [
        [sum((A[i][k] * B[k][j] for k in range(len(B))), Fraction(0)) for j in range(len(B[0]))]
        for i in range(len(A))
    ]


def _check_degree(K: int) -> None:
    if K < 0:
        raise ValueError(f"spline degree must be non-negative, got {K}")


@functools.lru_cache(maxsize=None)
def card_coeffmat(K: int) -> Matrix:
    """
    Coefficient matrix of the cardinal B-spline basis of degree K.

    The degree K matrix is assembled from the degree K-1 matrix placed in
    the low and high rows, blended by the knot weights of each basis index.

    Args:
        K: spline degree

    Returns:
        (K+1) x (K+1) matrix of Fractions
    """
    _check_degree(K)
    if K == 0:
        return ((Fraction(1),),)

    prev = card_coeffmat(K - 1)
    zero = Fraction(0)

    low = [[zero] * K for _ in range(K + 1)]
    high = [[zero] * K for _ in range(K + 1)]
    for i in range(K):
        for j in range(K):
            low[i][j] = prev[i][j]
            high[i + 1][j] = prev[i][j]

    left = [[zero] * (K + 1) for _ in range(K)]
    right = [[zero] * (K + 1) for _ in range(K)]
    for k in range(K):
        left[k][k + 1] = Fraction(K - (k + 1), K)
        left[k][k] = 1 - left[k][k + 1]

        right[k][k + 1] = Fraction(1, K)
        right[k][k] = -right[k][k + 1]

    lo = _matmul(low, left)
    hi = _matmul(high, right)
    return tuple(tuple(lo[i][j] + hi[i][j] for j in range(K + 1)) for i in range(K + 1))


@functools.lru_cache(maxsize=None)
def cum_card_coeffmat(K: int) -> Matrix:
    """
    Coefficient matrix of the cumulative cardinal B-spline basis of degree K.

    Column j holds the coefficients of Btilde_j = sum_{l >= j} B_l, obtained
    by a right-to-left running sum over the columns of card_coeffmat.
    """
    ret = [list(row) for row in card_coeffmat(K)]
    for i in range(K + 1):
        for j in range(K):
            ret[i][K - 1 - j] += ret[i][K - j]
    logger.debug("Computed cumulative B-spline coefficients for degree %d", K)
    return tuple(tuple(row) for row in ret)


@functools.lru_cache(maxsize=None)
def cum_coeffmat_array(K: int) -> np.ndarray:
    """Read-only float64 array of cum_card_coeffmat(K)."""
    M = np.array([[float(c) for c in row] for row in cum_card_coeffmat(K)], dtype=np.float64)
    M.setflags(write=False)
    return M
