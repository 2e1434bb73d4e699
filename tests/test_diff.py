"""Tests for tangent space automatic differentiation."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jax_lie_spline import dr_autodiff
from jax_lie_spline.lie import R3, SE3, SO2, SO3, so3

GROUPS = [SO2, SO3, SE3, R3]


def test_plain_arrays():
    """For arrays the right Jacobian is the ordinary Jacobian."""
    x = jnp.array([0.1, 0.2, 0.3])
    val, J = dr_autodiff(lambda x: 2.0 * jnp.sin(x), x)

    np.testing.assert_allclose(val, 2.0 * jnp.sin(x))
    np.testing.assert_allclose(J, jnp.diag(2.0 * jnp.cos(x)), atol=1e-12)


@pytest.mark.parametrize("G", GROUPS)
def test_exp_gives_right_jacobian(G):
    a = 0.4 * jax.random.normal(jax.random.PRNGKey(0), (G.dof,))
    val, J = dr_autodiff(G.exp, a)

    assert val.is_approx(G.exp(a))
    np.testing.assert_allclose(J, G.dr_exp(a), atol=1e-10)


@pytest.mark.parametrize("G", GROUPS)
def test_log_gives_inverse_right_jacobian(G):
    g = G.random(jax.random.PRNGKey(1))
    _, J = dr_autodiff(lambda g: g.log(), g)
    np.testing.assert_allclose(J, G.dr_expinv(g.log()), atol=1e-8)


@pytest.mark.parametrize("G", GROUPS)
def test_inverse(G):
    """d(g^-1) = -Ad(g)."""
    g = G.random(jax.random.PRNGKey(2))
    _, J = dr_autodiff(lambda g: g.inverse(), g)
    np.testing.assert_allclose(J, -g.adjoint(), atol=1e-10)


@pytest.mark.parametrize("G", GROUPS)
def test_composition_two_arguments(G):
    """d(g * h) = [Ad(h^-1), I], with argument Jacobians stacked as columns."""
    k1, k2 = jax.random.split(jax.random.PRNGKey(3))
    g, h = G.random(k1), G.random(k2)
    val, J = dr_autodiff(lambda g, h: g * h, g, h)

    assert J.shape == (G.dof, 2 * G.dof)
    assert val.is_approx(g * h)
    np.testing.assert_allclose(J[:, : G.dof], h.inverse().adjoint(), atol=1e-10)
    np.testing.assert_allclose(J[:, G.dof :], jnp.eye(G.dof), atol=1e-10)


@pytest.mark.parametrize("G", [SO3, SE3])
def test_batched_argument(G):
    """A batched argument is perturbed element by element in batch order."""
    pts = G.random(jax.random.PRNGKey(4), (2,))
    _, J = dr_autodiff(lambda p: p[0] * p[1], pts)
    _, J_ref = dr_autodiff(lambda g, h: g * h, pts[0], pts[1])

    np.testing.assert_allclose(J, J_ref, atol=1e-12)


def test_mixed_group_and_array():
    """Group and array arguments can be combined."""
    g = SO3.random(jax.random.PRNGKey(5))
    v = jnp.array([1.0, -2.0, 0.5])
    val, J = dr_autodiff(lambda g, v: g.act(v), g, v)

    np.testing.assert_allclose(val, g.act(v), atol=1e-12)
    # d/da R exp(a) v = -R [v]_x
    np.testing.assert_allclose(J[:, :3], -g.matrix() @ so3.skew_symmetric(v), atol=1e-10)
    np.testing.assert_allclose(J[:, 3:], g.matrix(), atol=1e-10)


def test_jit():
    g = SE3.random(jax.random.PRNGKey(6))
    J = jax.jit(lambda g: dr_autodiff(lambda x: x.inverse(), g)[1])(g)
    np.testing.assert_allclose(J, -g.adjoint(), atol=1e-10)
