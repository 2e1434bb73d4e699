"""Shared constants and error types for jax_lie_spline."""

import jax
import jax.numpy as jnp

Array = jax.Array

# Cutoff on the squared tangent magnitude below which small-angle series are used.
EPS2 = 1e-8


def dummy_precision(dtype) -> float:
    """Default relative tolerance for approximate comparisons of a given dtype."""
    if jnp.finfo(dtype).bits >= 64:
        return 1e-12
    return 1e-5


class SizeViolationError(ValueError):
    """Raised when a window of points does not match the size required by the spline degree."""

    def __init__(self, what: str, expected: int, actual: int):
        super().__init__(f"{what} must have size {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
