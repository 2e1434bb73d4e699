"""Automatic differentiation in tangent space.

Uses JAX forward-mode differentiation to compute right Jacobians of functions
whose arguments and results are Lie group elements or plain arrays.
"""

from typing import Any, Callable, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from .lie.base import LieGroup, default_dtype

Array = jax.Array


def _tangent_size(x) -> int:
    if isinstance(x, LieGroup):
        return int(np.prod(x.shape, dtype=int)) * x.dof
    return int(np.size(x))


def _tangent_dtype(x):
    if isinstance(x, LieGroup):
        return x.dtype
    dtype = jnp.result_type(x)
    return dtype if jnp.issubdtype(dtype, jnp.floating) else default_dtype()


def _rplus(x, a: Array):
    if isinstance(x, LieGroup):
        return x + a.reshape(x.shape + (x.dof,))
    return x + a.reshape(np.shape(x))


def _rminus(y, y0) -> Array:
    if isinstance(y, LieGroup):
        return (y - y0).reshape(-1)
    return (jnp.asarray(y) - y0).reshape(-1)


def dr_autodiff(f: Callable[..., Any], *wrt) -> Tuple[Any, Array]:
    """Compute a function value and its right Jacobian w.r.t. all arguments.

    The Jacobian is d/da (f(wrt + a) - f(wrt)) at a = 0, where + and - are the
    right-plus and right-minus of the group (ordinary addition for arrays).
    Batched group arguments are perturbed element by element, in batch order.

    Args:
        f: Function of the arguments in ``wrt``, returning a group element or array
        *wrt: Arguments to differentiate with respect to

    Returns:
        Tuple (f(*wrt), J) where J has one row per tangent dimension of the
        result and the tangent dimensions of all arguments stacked as columns
    """
    val = f(*wrt)

    def f_tangent(*deltas):
        perturbed = [_rplus(x, a) for x, a in zip(wrt, deltas)]
        return _rminus(f(*perturbed), val)

    zeros = [jnp.zeros(_tangent_size(x), dtype=_tangent_dtype(x)) for x in wrt]
    jacs = jax.jacfwd(f_tangent, argnums=tuple(range(len(wrt))))(*zeros)

    return val, jnp.concatenate(jacs, axis=-1)
