"""Abstract Lie group interface shared by all group types.

A group element is an immutable PyTree holding a single coefficient array of
shape (..., rep_size). Leading dimensions are batch dimensions and every
operation broadcasts over them, so elements work with jit / vmap / grad.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import ClassVar, Sequence, Tuple, TypeVar

import jax
import jax.numpy as jnp
import numpy as np

from ..common import EPS2, dummy_precision

Array = jax.Array

G = TypeVar("G", bound="LieGroup")


def default_dtype(dtype=None):
    """Return dtype, or the default floating point dtype (float64 with x64 enabled) if None."""
    if dtype is None:
        return jnp.result_type(float)
    return dtype


def batch_eye(n: int, batch_shape: Tuple[int, ...], dtype) -> Array:
    """Identity matrices broadcast to (*batch_shape, n, n)."""
    return jnp.broadcast_to(jnp.eye(n, dtype=dtype), tuple(batch_shape) + (n, n))


def matvec(M: Array, v: Array) -> Array:
    """Batched matrix-vector product."""
    return jnp.einsum("...ij,...j->...i", M, v)


@dataclass(frozen=True, eq=False)
class LieGroup(abc.ABC):
    """Base class for Lie group elements.

    Subclasses set ``dof`` (tangent dimension) and ``rep_size`` (number of
    coefficients) and implement the primitive operations. ``dl_exp`` and
    ``dl_expinv`` are derived from the primitives.

    Note:
        ``is_approx`` compares coefficient vectors, not geodesic distance.
        For double-cover representations (unit quaternions) ``q`` and ``-q``
        are the same rotation but do not compare as approximately equal.
    """

    coeffs: Array  # shape (..., rep_size)

    dof: ClassVar[int]
    rep_size: ClassVar[int]
    eps2: ClassVar[float] = EPS2

    # PyTree boiler-plate
    def tree_flatten(self):
        return (self.coeffs,), None

    @classmethod
    def tree_unflatten(cls, aux, children):
        (coeffs,) = children
        return cls(coeffs)

    # Constructors
    @classmethod
    def from_coeffs(cls: type[G], coeffs) -> G:
        coeffs = jnp.asarray(coeffs)
        if coeffs.ndim == 0 or coeffs.shape[-1] != cls.rep_size:
            raise ValueError(
                f"{cls.__name__} coefficients must have shape (..., {cls.rep_size}), got {coeffs.shape}"
            )
        return cls(coeffs)

    @classmethod
    def stack(cls: type[G], elements: Sequence[G]) -> G:
        """Stack unbatched elements into one element with a leading batch axis."""
        return cls(jnp.stack([g.coeffs for g in elements]))

    @classmethod
    @abc.abstractmethod
    def identity(cls: type[G], batch_shape: Tuple[int, ...] = (), dtype=None) -> G:
        """Neutral element."""

    @classmethod
    @abc.abstractmethod
    def random(cls: type[G], key: Array, batch_shape: Tuple[int, ...] = (), dtype=None) -> G:
        """Random element drawn with the PRNG key ``key``."""

    # Primitive algebra
    @abc.abstractmethod
    def compose(self: G, other: G) -> G:
        """Group product self * other."""

    @abc.abstractmethod
    def inverse(self: G) -> G:
        """Group inverse."""

    @classmethod
    @abc.abstractmethod
    def exp(cls: type[G], a: Array) -> G:
        """Exponential map from the tangent space (..., dof) to the group."""

    @abc.abstractmethod
    def log(self) -> Array:
        """Logarithm map from the group to the tangent space (..., dof)."""

    @abc.abstractmethod
    def adjoint(self) -> Array:
        """Adjoint matrix Ad (..., dof, dof), satisfying exp(Ad a) = g exp(a) g^-1."""

    @classmethod
    @abc.abstractmethod
    def ad(cls, a: Array) -> Array:
        """Matrix (..., dof, dof) of the Lie bracket operator [a, .]."""

    @classmethod
    @abc.abstractmethod
    def dr_exp(cls, a: Array) -> Array:
        """Right Jacobian of the exponential map at a."""

    @classmethod
    @abc.abstractmethod
    def dr_expinv(cls, a: Array) -> Array:
        """Inverse of the right Jacobian of the exponential map at a."""

    # Derived Jacobians
    @classmethod
    def dl_exp(cls, a: Array) -> Array:
        """Left Jacobian of the exponential map: Ad(exp(a)) @ dr_exp(a)."""
        return jnp.matmul(cls.exp(a).adjoint(), cls.dr_exp(a))

    @classmethod
    def dl_expinv(cls, a: Array) -> Array:
        """Inverse of the left Jacobian of the exponential map: -ad(a) + dr_expinv(a)."""
        return -cls.ad(a) + cls.dr_expinv(a)

    # Syntactic sugar
    def __mul__(self, other):
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.compose(other)

    def __add__(self, a):
        """Right-plus: g + a := g * exp(a)."""
        return self.compose(type(self).exp(jnp.asarray(a)))

    def __sub__(self, other):
        """Right-minus: g1 - g2 := log(g2^-1 * g1)."""
        if not isinstance(other, type(self)):
            return NotImplemented
        return other.inverse().compose(self).log()

    def is_approx(self, other: "LieGroup", eps=None) -> Array:
        """Approximate equality of coefficient vectors relative to their norms."""
        if eps is None:
            eps = dummy_precision(self.coeffs.dtype)
        n1 = jnp.linalg.norm(self.coeffs, axis=-1)
        n2 = jnp.linalg.norm(other.coeffs, axis=-1)
        n12 = jnp.linalg.norm(self.coeffs - other.coeffs, axis=-1)
        return n12 <= eps * jnp.minimum(n1, n2)

    def cast(self: G, dtype) -> G:
        return type(self)(self.coeffs.astype(dtype))

    # Batch helpers
    @property
    def shape(self) -> Tuple[int, ...]:
        """Batch shape of the element."""
        return self.coeffs.shape[:-1]

    @property
    def dtype(self):
        return self.coeffs.dtype

    def __len__(self) -> int:
        if not self.shape:
            raise TypeError(f"unbatched {type(self).__name__} has no length")
        return self.shape[0]

    def __getitem__(self: G, idx) -> G:
        if not self.shape:
            raise TypeError(f"unbatched {type(self).__name__} cannot be indexed")
        return type(self)(self.coeffs[idx])

    def __iter__(self):
        # jax clamps out-of-range indices, so iteration must be bounded explicitly
        return (self[i] for i in range(len(self)))

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self.coeffs, dtype=dtype)
