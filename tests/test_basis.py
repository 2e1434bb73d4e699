"""Tests for the B-spline basis coefficient matrices."""

from fractions import Fraction

import numpy as np
import pytest

from jax_lie_spline.interp.basis import card_coeffmat, cum_card_coeffmat, cum_coeffmat_array


def eval_columns(M, u):
    """Values of all basis functions (columns of M) at u."""
    M = np.asarray(M, dtype=float)
    powers = np.array([u**i for i in range(M.shape[0])])
    return powers @ M


def test_degree_zero():
    """The degree 0 basis is the constant 1."""
    assert card_coeffmat(0) == ((Fraction(1),),)
    assert cum_card_coeffmat(0) == ((Fraction(1),),)
    np.testing.assert_array_equal(cum_coeffmat_array(0), [[1.0]])


def test_degree_one():
    """Linear basis: 1 - u and u."""
    assert card_coeffmat(1) == ((1, 0), (-1, 1))
    assert cum_card_coeffmat(1) == ((1, 0), (0, 1))


def test_degree_two():
    """Quadratic basis: (1 - u)^2 / 2, 1/2 + u - u^2, u^2 / 2."""
    half = Fraction(1, 2)
    assert card_coeffmat(2) == ((half, half, 0), (-1, 1, 0), (half, -1, half))
    assert cum_card_coeffmat(2) == ((1, half, 0), (0, 1, 0), (0, -half, half))


def test_cubic_values():
    """Cubic basis matches the well known values at the knots."""
    np.testing.assert_allclose(eval_columns(card_coeffmat(3), 0.0), [1 / 6, 2 / 3, 1 / 6, 0.0])
    np.testing.assert_allclose(eval_columns(card_coeffmat(3), 1.0), [0.0, 1 / 6, 2 / 3, 1 / 6])
    np.testing.assert_allclose(eval_columns(cum_card_coeffmat(3), 0.0), [1.0, 5 / 6, 1 / 6, 0.0])
    np.testing.assert_allclose(eval_columns(cum_card_coeffmat(3), 1.0), [1.0, 1.0, 5 / 6, 1 / 6])


@pytest.mark.parametrize("K", range(0, 8))
def test_partition_of_unity(K):
    """Basis functions sum to one, so the first cumulative basis function is constant."""
    M = card_coeffmat(K)
    for i in range(K + 1):
        assert sum(M[i]) == (1 if i == 0 else 0)

    cum = cum_card_coeffmat(K)
    assert [row[0] for row in cum] == [1] + [0] * K


@pytest.mark.parametrize("K", range(1, 8))
def test_nonnegative_and_continuous(K):
    """Basis functions are non-negative and neighbouring intervals join continuously."""
    M = card_coeffmat(K)
    for u in np.linspace(0.0, 1.0, 11):
        assert np.all(eval_columns(M, u) >= -1e-12)

    # B_j at u=1 equals B_{j-1} at u=0 on the next interval
    np.testing.assert_allclose(eval_columns(M, 1.0)[1:], eval_columns(M, 0.0)[:-1], atol=1e-12)


@pytest.mark.parametrize("K", range(0, 6))
def test_cumulative_is_running_sum(K):
    """Column j of the cumulative matrix is the sum of columns j..K."""
    M = card_coeffmat(K)
    cum = cum_card_coeffmat(K)
    for i in range(K + 1):
        for j in range(K + 1):
            assert cum[i][j] == sum(M[i][j:])


def test_matrices_are_cached_and_read_only():
    """Each degree is computed once and the float array cannot be modified."""
    assert card_coeffmat(4) is card_coeffmat(4)
    assert cum_coeffmat_array(4) is cum_coeffmat_array(4)

    arr = cum_coeffmat_array(4)
    with pytest.raises(ValueError):
        arr[0, 0] = 2.0


def test_negative_degree():
    """Negative degrees are rejected."""
    with pytest.raises(ValueError, match="non-negative"):
        card_coeffmat(-1)
