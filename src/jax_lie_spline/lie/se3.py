"""SE(3) and se(3) Lie group operations in JAX.

Rigid body transforms are stored as (tx, ty, tz, qx, qy, qz, qw) and twists as
(vx, vy, vz, wx, wy, wz): the first 3 elements are linear, the last 3 angular.
This implementation focuses on numerical stability, especially for small angles.
"""

from __future__ import annotations

from typing import Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from ..common import EPS2
from . import so3
from .base import LieGroup, default_dtype, matvec

Array = jax.Array


def _blocks(A: Array, B: Array, C: Array, D: Array) -> Array:
    """Assemble [[A, B], [C, D]] from (..., 3, 3) blocks."""
    top = jnp.concatenate([A, B], axis=-1)
    bottom = jnp.concatenate([C, D], axis=-1)
    return jnp.concatenate([top, bottom], axis=-2)


def from_position_and_rotation(p: Array, q: Array) -> Array:
    """
    Construct SE(3) coefficients from position and quaternion.

    Args:
        p: (..., 3) position vector
        q: (..., 4) quaternion (x, y, z, w)

    Returns:
        (..., 7) SE(3) coefficients
    """
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], q.shape[:-1])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    q = jnp.broadcast_to(q, batch_shape + (4,))
    return jnp.concatenate([p, q], axis=-1)


def multiply(T1: Array, T2: Array) -> Array:
    """
    Compose two SE(3) elements.

    Args:
        T1: (..., 7) first transform
        T2: (..., 7) second transform

    Returns:
        (..., 7) transform T1 * T2
    """
    q1 = T1[..., 3:]
    t = T1[..., :3] + so3.apply(q1, T2[..., :3])
    return from_position_and_rotation(t, so3.multiply(q1, T2[..., 3:]))


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) element.

    T^-1 = (-R^T t, R^T)

    Args:
        T: (..., 7) transform

    Returns:
        (..., 7) inverse transform
    """
    q_inv = so3.inverse(T[..., 3:])
    return from_position_and_rotation(-so3.apply(q_inv, T[..., :3]), q_inv)


def exp(twist: Array, eps2: float = EPS2) -> Array:
    """
    SE(3) exponential map: convert twist to transform.

    The rotation is the SO(3) exponential of the angular part and the
    translation is V(w) @ v where V is the left Jacobian of SO(3).

    Args:
        twist: (..., 6) array of twists [vx, vy, vz, wx, wy, wz]

    Returns:
        (..., 7) array of transforms
    """
    v, w = twist[..., :3], twist[..., 3:]
    q = so3.exp(w, eps2)
    V = jnp.matmul(so3.to_matrix(q), so3.dr_exp(w, eps2))
    return from_position_and_rotation(matvec(V, v), q)


def log(T: Array, eps2: float = EPS2) -> Array:
    """
    SE(3) logarithm map: convert transform to twist.

    Args:
        T: (..., 7) array of transforms

    Returns:
        (..., 6) array of twists [vx, vy, vz, wx, wy, wz]
    """
    w = so3.log(T[..., 3:], eps2)
    # V^-1 = I - 0.5*K + C*K^2, the inverse left Jacobian of SO(3)
    V_inv = so3.dr_expinv(w, eps2) - so3.skew_symmetric(w)
    v = matvec(V_inv, T[..., :3])
    return jnp.concatenate([v, w], axis=-1)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (..., 7) transform
        points: (..., 3) or (..., N, 3) points to transform

    Returns:
        (..., 3) or (..., N, 3) transformed points
    """
    rotated = so3.apply(T[..., 3:], points)
    if points.ndim == T.ndim:  # Single point case
        return rotated + T[..., :3]
    return rotated + T[..., None, :3]


def to_matrix(T: Array) -> Array:
    """
    Homogeneous 4x4 matrix of SE(3) element.

    Args:
        T: (..., 7) transform

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    batch_shape = T.shape[:-1]
    M = jnp.zeros(batch_shape + (4, 4), dtype=T.dtype)
    M = M.at[..., :3, :3].set(so3.to_matrix(T[..., 3:]))
    M = M.at[..., :3, 3].set(T[..., :3])
    M = M.at[..., 3, 3].set(1.0)
    return M


def adjoint(T: Array) -> Array:
    """
    Compute the adjoint matrix of SE(3) element.

    The adjoint matrix is used to transform twists between coordinate frames.

    Args:
        T: (..., 7) transform

    Returns:
        (..., 6, 6) adjoint matrix [[R, [t]_x R], [0, R]]
    """
    R = so3.to_matrix(T[..., 3:])
    t_skew = so3.skew_symmetric(T[..., :3])
    return _blocks(R, jnp.matmul(t_skew, R), jnp.zeros_like(R), R)


def ad(twist: Array) -> Array:
    """
    Lie bracket matrix of se(3): [[w^, v^], [0, w^]].

    Args:
        twist: (..., 6) twist

    Returns:
        (..., 6, 6) matrix
    """
    v_skew = so3.skew_symmetric(twist[..., :3])
    w_skew = so3.skew_symmetric(twist[..., 3:])
    return _blocks(w_skew, v_skew, jnp.zeros_like(w_skew), w_skew)


def _q_matrix(v: Array, w: Array, eps2: float) -> Array:
    """
    Off-diagonal block of the left Jacobian of SE(3) at twist (v, w).

    Q = V/2 + c1 (WV + VW + WVW) + c2 (WWV + VWW - 3 WVW) + c3 (WVWW + WWVW)
    with V = [v]x and W = [w]x.
    """
    th2 = jnp.sum(w * w, axis=-1)[..., None, None]
    small = th2 < eps2
    th2_safe = jnp.where(small, 1.0, th2)
    th = jnp.sqrt(th2_safe)
    th4 = th2_safe * th2_safe
    sin_th = jnp.sin(th)
    cos_th = jnp.cos(th)

    c1 = jnp.where(small, 1.0 / 6.0 - th2 / 120.0, (th - sin_th) / (th2_safe * th))
    c2 = jnp.where(small, 1.0 / 24.0 - th2 / 720.0, (th2_safe + 2.0 * cos_th - 2.0) / (2.0 * th4))
    c3 = jnp.where(
        small,
        1.0 / 120.0 - th2 / 2520.0,
        (2.0 * th - 3.0 * sin_th + th * cos_th) / (2.0 * th4 * th),
    )

    V = so3.skew_symmetric(v)
    W = so3.skew_symmetric(w)
    WV = jnp.matmul(W, V)
    VW = jnp.matmul(V, W)
    WVW = jnp.matmul(WV, W)
    WW = jnp.matmul(W, W)

    return (
        0.5 * V
        + c1 * (WV + VW + WVW)
        + c2 * (jnp.matmul(WW, V) + jnp.matmul(VW, W) - 3.0 * WVW)
        + c3 * (jnp.matmul(WVW, W) + jnp.matmul(W, WVW))
    )


def dr_exp(twist: Array, eps2: float = EPS2) -> Array:
    """
    Right Jacobian of the SE(3) exponential.

    Args:
        twist: (..., 6) twist

    Returns:
        (..., 6, 6) Jacobian [[Jr(w), Q(-v, -w)], [0, Jr(w)]]
    """
    v, w = twist[..., :3], twist[..., 3:]
    Jr = so3.dr_exp(w, eps2)
    Q = _q_matrix(-v, -w, eps2)
    return _blocks(Jr, Q, jnp.zeros_like(Jr), Jr)


def dr_expinv(twist: Array, eps2: float = EPS2) -> Array:
    """
    Inverse of the right Jacobian of the SE(3) exponential.

    Args:
        twist: (..., 6) twist

    Returns:
        (..., 6, 6) Jacobian [[Jr^-1, -Jr^-1 Q Jr^-1], [0, Jr^-1]]
    """
    v, w = twist[..., :3], twist[..., 3:]
    Jr_inv = so3.dr_expinv(w, eps2)
    Q = _q_matrix(-v, -w, eps2)
    top_right = -jnp.matmul(jnp.matmul(Jr_inv, Q), Jr_inv)
    return _blocks(Jr_inv, top_right, jnp.zeros_like(Jr_inv), Jr_inv)


@register_pytree_node_class
class SE3(LieGroup):
    """Rigid motions in 3D, coefficients (tx, ty, tz, qx, qy, qz, qw)."""

    dof = 6
    rep_size = 7

    @classmethod
    def identity(cls, batch_shape: Tuple[int, ...] = (), dtype=None) -> "SE3":
        T = jnp.array([0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0], dtype=default_dtype(dtype))
        return cls(jnp.broadcast_to(T, tuple(batch_shape) + (7,)))

    @classmethod
    def random(cls, key: Array, batch_shape: Tuple[int, ...] = (), dtype=None) -> "SE3":
        key_t, key_r = jax.random.split(key)
        dtype = default_dtype(dtype)
        t = jax.random.uniform(key_t, tuple(batch_shape) + (3,), dtype=dtype, minval=-1.0, maxval=1.0)
        return cls(from_position_and_rotation(t, so3.SO3.random(key_r, batch_shape, dtype).coeffs))

    @classmethod
    def from_parts(cls, translation: Array, rotation: so3.SO3) -> "SE3":
        return cls(from_position_and_rotation(jnp.asarray(translation), rotation.coeffs))

    @property
    def translation(self) -> Array:
        return self.coeffs[..., :3]

    @property
    def so3(self) -> so3.SO3:
        return so3.SO3(self.coeffs[..., 3:])

    def matrix(self) -> Array:
        return to_matrix(self.coeffs)

    def act(self, points: Array) -> Array:
        """Transform point(s) of shape (..., 3) or (..., N, 3)."""
        return apply(self.coeffs, jnp.asarray(points))

    def compose(self, other: "SE3") -> "SE3":
        return SE3(multiply(self.coeffs, other.coeffs))

    def inverse(self) -> "SE3":
        return SE3(inverse(self.coeffs))

    @classmethod
    def exp(cls, a: Array) -> "SE3":
        return cls(exp(jnp.asarray(a), cls.eps2))

    def log(self) -> Array:
        return log(self.coeffs, self.eps2)

    def adjoint(self) -> Array:
        return adjoint(self.coeffs)

    @classmethod
    def ad(cls, a: Array) -> Array:
        return ad(jnp.asarray(a))

    @classmethod
    def dr_exp(cls, a: Array) -> Array:
        return dr_exp(jnp.asarray(a), cls.eps2)

    @classmethod
    def dr_expinv(cls, a: Array) -> Array:
        return dr_expinv(jnp.asarray(a), cls.eps2)
