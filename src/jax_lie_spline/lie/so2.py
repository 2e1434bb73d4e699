"""SO(2) planar rotations, stored as unit complex numbers (cos th, sin th)."""

from typing import Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .base import LieGroup, batch_eye, default_dtype

Array = jax.Array


@register_pytree_node_class
class SO2(LieGroup):
    """Rotation group in 2D. The group is commutative, so Ad is identity and ad is zero."""

    dof = 1
    rep_size = 2

    @classmethod
    def identity(cls, batch_shape: Tuple[int, ...] = (), dtype=None) -> "SO2":
        z = jnp.array([1.0, 0.0], dtype=default_dtype(dtype))
        return cls(jnp.broadcast_to(z, tuple(batch_shape) + (2,)))

    @classmethod
    def random(cls, key: Array, batch_shape: Tuple[int, ...] = (), dtype=None) -> "SO2":
        angle = jax.random.uniform(
            key, tuple(batch_shape) + (1,), dtype=default_dtype(dtype), minval=-jnp.pi, maxval=jnp.pi
        )
        return cls.exp(angle)

    @property
    def angle(self) -> Array:
        return jnp.arctan2(self.coeffs[..., 1], self.coeffs[..., 0])

    def matrix(self) -> Array:
        c, s = self.coeffs[..., 0], self.coeffs[..., 1]
        return jnp.stack([jnp.stack([c, -s], axis=-1), jnp.stack([s, c], axis=-1)], axis=-2)

    def compose(self, other: "SO2") -> "SO2":
        c1, s1 = self.coeffs[..., 0], self.coeffs[..., 1]
        c2, s2 = other.coeffs[..., 0], other.coeffs[..., 1]
        return SO2(jnp.stack([c1 * c2 - s1 * s2, s1 * c2 + c1 * s2], axis=-1))

    def inverse(self) -> "SO2":
        return SO2(self.coeffs * jnp.array([1.0, -1.0], dtype=self.coeffs.dtype))

    @classmethod
    def exp(cls, a: Array) -> "SO2":
        a = jnp.asarray(a)
        return cls(jnp.concatenate([jnp.cos(a), jnp.sin(a)], axis=-1))

    def log(self) -> Array:
        return self.angle[..., None]

    def adjoint(self) -> Array:
        return batch_eye(1, self.shape, self.coeffs.dtype)

    @classmethod
    def ad(cls, a: Array) -> Array:
        a = jnp.asarray(a)
        return jnp.zeros(a.shape[:-1] + (1, 1), dtype=a.dtype)

    @classmethod
    def dr_exp(cls, a: Array) -> Array:
        a = jnp.asarray(a)
        return batch_eye(1, a.shape[:-1], a.dtype)

    @classmethod
    def dr_expinv(cls, a: Array) -> Array:
        a = jnp.asarray(a)
        return batch_eye(1, a.shape[:-1], a.dtype)
