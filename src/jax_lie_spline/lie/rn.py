"""Euclidean vector spaces R^n viewed as (commutative) Lie groups under addition."""

import functools
from typing import Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .base import LieGroup, batch_eye, default_dtype

Array = jax.Array


@functools.lru_cache(maxsize=None)
def rn(n: int) -> type:
    """
    Create (once per dimension) the group type of R^n.

    Composition is addition and exp / log are the identity map, so every
    exponential Jacobian is the identity and the Lie bracket vanishes.

    Args:
        n: dimension of the space

    Returns:
        LieGroup subclass with dof == rep_size == n
    """
    if n < 1:
        raise ValueError(f"dimension must be positive, got {n}")

    @register_pytree_node_class
    class Rn(LieGroup):
        dof = n
        rep_size = n

        @classmethod
        def identity(cls, batch_shape: Tuple[int, ...] = (), dtype=None):
            return cls(jnp.zeros(tuple(batch_shape) + (n,), dtype=default_dtype(dtype)))

        @classmethod
        def random(cls, key: Array, batch_shape: Tuple[int, ...] = (), dtype=None):
            return cls(jax.random.normal(key, tuple(batch_shape) + (n,), dtype=default_dtype(dtype)))

        def compose(self, other):
            return type(self)(self.coeffs + other.coeffs)

        def inverse(self):
            return type(self)(-self.coeffs)

        @classmethod
        def exp(cls, a: Array):
            return cls(jnp.asarray(a))

        def log(self) -> Array:
            return self.coeffs

        def adjoint(self) -> Array:
            return batch_eye(n, self.shape, self.coeffs.dtype)

        @classmethod
        def ad(cls, a: Array) -> Array:
            a = jnp.asarray(a)
            return jnp.zeros(a.shape[:-1] + (n, n), dtype=a.dtype)

        @classmethod
        def dr_exp(cls, a: Array) -> Array:
            a = jnp.asarray(a)
            return batch_eye(n, a.shape[:-1], a.dtype)

        @classmethod
        def dr_expinv(cls, a: Array) -> Array:
            a = jnp.asarray(a)
            return batch_eye(n, a.shape[:-1], a.dtype)

    Rn.__name__ = Rn.__qualname__ = f"R{n}"
    return Rn


R1 = rn(1)
R2 = rn(2)
R3 = rn(3)
R4 = rn(4)
R5 = rn(5)
R6 = rn(6)
R7 = rn(7)
R8 = rn(8)
R9 = rn(9)
R10 = rn(10)
