"""SO(3) and so(3) Lie group operations in JAX.

Rotations are stored as unit quaternions with coefficients (qx, qy, qz, qw)
and tangent vectors are axis-angle vectors. The module-level functions are
pure, JIT-able and operate on raw coefficient arrays; the SO3 class wraps
them into the LieGroup interface.
"""

from typing import Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from ..common import EPS2
from .base import LieGroup, batch_eye, default_dtype

Array = jax.Array


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def multiply(q1: Array, q2: Array) -> Array:
    """
    Hamilton product of two quaternions.

    Args:
        q1: (..., 4) first quaternion (x, y, z, w)
        q2: (..., 4) second quaternion (x, y, z, w)

    Returns:
        (..., 4) product quaternion, R(q1 * q2) = R(q1) @ R(q2)
    """
    x1, y1, z1, w1 = jnp.moveaxis(q1, -1, 0)
    x2, y2, z2, w2 = jnp.moveaxis(q2, -1, 0)

    return jnp.stack([
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
    ], axis=-1)


def inverse(q: Array) -> Array:
    """
    Inverse of a unit quaternion, i.e. its conjugate.

    Args:
        q: (..., 4) unit quaternion

    Returns:
        (..., 4) inverse quaternion
    """
    return jnp.concatenate([-q[..., :3], q[..., 3:]], axis=-1)


def exp(a: Array, eps2: float = EPS2) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to unit quaternion.

    Args:
        a: (..., 3) array of axis-angle vectors
        eps2: squared angle below which the Taylor expansion is used

    Returns:
        (..., 4) array of quaternions (x, y, z, w)
    """
    th2 = jnp.sum(a * a, axis=-1, keepdims=True)
    small = th2 < eps2

    # Keep the unused branch finite so gradients do not turn into NaN
    th = jnp.sqrt(jnp.where(small, 1.0, th2))

    # sin(th/2)/th ≈ 1/2 - th^2/48, cos(th/2) ≈ 1 - th^2/8
    A = jnp.where(small, 0.5 - th2 / 48.0, jnp.sin(th / 2.0) / th)
    B = jnp.where(small, 1.0 - th2 / 8.0, jnp.cos(th / 2.0))

    return jnp.concatenate([A * a, B], axis=-1)


def log(q: Array, eps2: float = EPS2) -> Array:
    """
    SO(3) logarithm map: convert unit quaternion to axis-angle vector.

    The returned angle lies in [0, pi].

    Args:
        q: (..., 4) array of quaternions (x, y, z, w)
        eps2: squared vector-part norm below which the Taylor expansion is used

    Returns:
        (..., 3) array of axis-angle vectors
    """
    # q and -q are the same rotation, pick the one with w >= 0
    sign = jnp.where(q[..., 3:] < 0, -1.0, 1.0)
    xyz = sign * q[..., :3]
    w = sign * q[..., 3:]

    n2 = jnp.sum(xyz * xyz, axis=-1, keepdims=True)
    small = n2 < eps2

    n = jnp.sqrt(jnp.where(small, 1.0, n2))
    w_safe = jnp.where(small, w, 1.0)

    # 2 atan(n / w) / n ≈ 2 / w - 2 n^2 / (3 w^3)
    scale = jnp.where(
        small,
        2.0 / w_safe - 2.0 / 3.0 * n2 / (w_safe ** 3),
        2.0 * jnp.arctan2(n, w) / n,
    )
    return scale * xyz


def to_matrix(q: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        q: (..., 4) array of quaternions in (x, y, z, w) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    x, y, z, w = jnp.moveaxis(q, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    return jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)


def from_matrix(matrix: Array) -> Array:
    """
    Convert rotation matrices to quaternions (x, y, z, w).
    Batch-safe and JIT-friendly implementation.

    Args:
        matrix: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 4) array of quaternions in (x, y, z, w) format with w >= 0
    """
    m00 = matrix[..., 0, 0]
    m01 = matrix[..., 0, 1]
    m02 = matrix[..., 0, 2]
    m10 = matrix[..., 1, 0]
    m11 = matrix[..., 1, 1]
    m12 = matrix[..., 1, 2]
    m20 = matrix[..., 2, 0]
    m21 = matrix[..., 2, 1]
    m22 = matrix[..., 2, 2]

    trace = m00 + m11 + m22
    eps = jnp.finfo(matrix.dtype).eps

    # Four candidates in (x, y, z, w) order, each well conditioned in one region
    q0 = jnp.stack([m21 - m12, m02 - m20, m10 - m01, trace + 1.0], axis=-1) * 0.5
    q1 = jnp.stack([m00 - m11 - m22 + 1.0, m01 + m10, m02 + m20, m21 - m12], axis=-1) * 0.5
    q2 = jnp.stack([m01 + m10, m11 - m00 - m22 + 1.0, m12 + m21, m02 - m20], axis=-1) * 0.5
    q3 = jnp.stack([m02 + m20, m12 + m21, m22 - m00 - m11 + 1.0, m10 - m01], axis=-1) * 0.5

    q0 = q0 / jnp.sqrt(jnp.maximum(1.0 + trace, eps))[..., None]
    q1 = q1 / jnp.sqrt(jnp.maximum(1.0 + m00 - m11 - m22, eps))[..., None]
    q2 = q2 / jnp.sqrt(jnp.maximum(1.0 + m11 - m00 - m22, eps))[..., None]
    q3 = q3 / jnp.sqrt(jnp.maximum(1.0 + m22 - m00 - m11, eps))[..., None]

    mask0 = (trace > 0)
    mask1 = (~mask0) & (m00 > m11) & (m00 > m22)
    mask2 = (~mask0) & (~mask1) & (m11 > m22)
    mask3 = (~mask0) & (~mask1) & (~mask2)

    quaternion = (
        jnp.where(mask0[..., None], q0, 0) +
        jnp.where(mask1[..., None], q1, 0) +
        jnp.where(mask2[..., None], q2, 0) +
        jnp.where(mask3[..., None], q3, 0)
    )

    quaternion = jnp.where(quaternion[..., 3:4] < 0, -quaternion, quaternion)
    return quaternion / jnp.linalg.norm(quaternion, axis=-1, keepdims=True)


def apply(q: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        q: (..., 4) quaternion
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    R = to_matrix(q)
    if v.ndim == R.ndim - 1:  # Single vector case
        return jnp.einsum('...ij,...j->...i', R, v)
    else:  # Multiple vectors case
        return jnp.einsum('...ij,...nj->...ni', R, v)


def dr_exp(a: Array, eps2: float = EPS2) -> Array:
    """
    Right Jacobian of the SO(3) exponential.

    Jr(a) = I - (1 - cos th) / th^2 [a]x + (th - sin th) / th^3 [a]x^2

    Args:
        a: (..., 3) axis-angle vectors

    Returns:
        (..., 3, 3) Jacobian matrices
    """
    th2 = jnp.sum(a * a, axis=-1)[..., None, None]
    small = th2 < eps2
    th2_safe = jnp.where(small, 1.0, th2)
    th = jnp.sqrt(th2_safe)

    A = jnp.where(small, 0.5 - th2 / 24.0, (1.0 - jnp.cos(th)) / th2_safe)
    B = jnp.where(small, 1.0 / 6.0 - th2 / 120.0, (th - jnp.sin(th)) / (th2_safe * th))

    K = skew_symmetric(a)
    I = batch_eye(3, a.shape[:-1], a.dtype)
    return I - A * K + B * jnp.matmul(K, K)


def dr_expinv(a: Array, eps2: float = EPS2) -> Array:
    """
    Inverse of the right Jacobian of the SO(3) exponential.

    Jr^-1(a) = I + [a]x / 2 + (1 / th^2 - (1 + cos th) / (2 th sin th)) [a]x^2

    Args:
        a: (..., 3) axis-angle vectors

    Returns:
        (..., 3, 3) Jacobian matrices
    """
    th2 = jnp.sum(a * a, axis=-1)[..., None, None]
    small = th2 < eps2
    th2_safe = jnp.where(small, 1.0, th2)
    th = jnp.sqrt(th2_safe)

    C = jnp.where(
        small,
        1.0 / 12.0 + th2 / 720.0,
        1.0 / th2_safe - (1.0 + jnp.cos(th)) / (2.0 * th * jnp.sin(th)),
    )

    K = skew_symmetric(a)
    I = batch_eye(3, a.shape[:-1], a.dtype)
    return I + 0.5 * K + C * jnp.matmul(K, K)


@register_pytree_node_class
class SO3(LieGroup):
    """Rotation group in 3D, coefficients (qx, qy, qz, qw)."""

    dof = 3
    rep_size = 4

    @classmethod
    def identity(cls, batch_shape: Tuple[int, ...] = (), dtype=None) -> "SO3":
        dtype = default_dtype(dtype)
        q = jnp.array([0.0, 0.0, 0.0, 1.0], dtype=dtype)
        return cls(jnp.broadcast_to(q, tuple(batch_shape) + (4,)))

    @classmethod
    def random(cls, key: Array, batch_shape: Tuple[int, ...] = (), dtype=None) -> "SO3":
        # Normalized Gaussian samples are uniform on S^3
        q = jax.random.normal(key, tuple(batch_shape) + (4,), dtype=default_dtype(dtype))
        q = q / jnp.linalg.norm(q, axis=-1, keepdims=True)
        return cls(jnp.where(q[..., 3:] < 0, -q, q))

    @classmethod
    def from_matrix(cls, matrix: Array) -> "SO3":
        return cls(from_matrix(jnp.asarray(matrix)))

    @classmethod
    def from_wxyz(cls, quat: Array) -> "SO3":
        quat = jnp.asarray(quat)
        quat = quat / jnp.linalg.norm(quat, axis=-1, keepdims=True)
        return cls(jnp.concatenate([quat[..., 1:], quat[..., :1]], axis=-1))

    def wxyz(self) -> Array:
        return jnp.concatenate([self.coeffs[..., 3:], self.coeffs[..., :3]], axis=-1)

    def matrix(self) -> Array:
        return to_matrix(self.coeffs)

    def act(self, v: Array) -> Array:
        """Rotate vector(s) of shape (..., 3) or (..., N, 3)."""
        return apply(self.coeffs, jnp.asarray(v))

    def compose(self, other: "SO3") -> "SO3":
        return SO3(multiply(self.coeffs, other.coeffs))

    def inverse(self) -> "SO3":
        return SO3(inverse(self.coeffs))

    @classmethod
    def exp(cls, a: Array) -> "SO3":
        return cls(exp(jnp.asarray(a), cls.eps2))

    def log(self) -> Array:
        return log(self.coeffs, self.eps2)

    def adjoint(self) -> Array:
        return to_matrix(self.coeffs)

    @classmethod
    def ad(cls, a: Array) -> Array:
        return skew_symmetric(jnp.asarray(a))

    @classmethod
    def dr_exp(cls, a: Array) -> Array:
        return dr_exp(jnp.asarray(a), cls.eps2)

    @classmethod
    def dr_expinv(cls, a: Array) -> Array:
        return dr_expinv(jnp.asarray(a), cls.eps2)
