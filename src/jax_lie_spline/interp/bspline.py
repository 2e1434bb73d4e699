"""Cardinal B-splines on Lie groups.

A degree K spline segment is the product of exponentials

    g(u) = g_0 * prod_{j=1}^{K} exp(Btilde_j(u) * v_j)

where Btilde_j are cumulative cardinal B-spline basis functions and
v_j = log(g_{j-1}^-1 * g_j) are differences between consecutive control
points. The evaluators are pure functions of their inputs and can be traced
by jit; the window length is a static shape checked at trace time.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional, Sequence, Union

import jax
import jax.numpy as jnp
from flax import struct

from ..common import SizeViolationError
from ..lie.base import LieGroup, matvec
from .basis import cum_coeffmat_array

logger = logging.getLogger(__name__)

Array = jax.Array


class BSplineEval(NamedTuple):
    """Result of a spline evaluation. Outputs that were not requested are None.

    Attributes:
        value: group element on the curve
        vel: (dof,) body velocity, derivative of value w.r.t. the parameter
        acc: (dof,) body acceleration
        der: (dof, dof * (K + 1)) Jacobian of value w.r.t. the K + 1 control points
    """
    value: LieGroup
    vel: Optional[Array] = None
    acc: Optional[Array] = None
    der: Optional[Array] = None


def _as_tangents(diff_points) -> Array:
    if isinstance(diff_points, (list, tuple)):
        if not diff_points:
            return jnp.zeros((0, 0))
        return jnp.stack([jnp.asarray(v) for v in diff_points])
    return jnp.asarray(diff_points)


def _as_group(ctrl_points, what: str, expected: int) -> LieGroup:
    if isinstance(ctrl_points, LieGroup):
        return ctrl_points
    ctrl_points = list(ctrl_points)
    if not ctrl_points:
        raise SizeViolationError(what, expected, 0)
    return type(ctrl_points[0]).stack(ctrl_points)


def bspline_eval(
    degree: int,
    g_0: LieGroup,
    diff_points: Union[Array, Sequence[Array]],
    u,
    *,
    vel: bool = False,
    acc: bool = False,
    der: bool = False,
) -> BSplineEval:
    """
    Evaluate a cardinal B-spline segment from a base value and K differences.

    Args:
        degree: spline degree K
        g_0: base value (unbatched group element)
        diff_points: (K, dof) array or sequence of K tangent vectors v_1..v_K
        u: interval location u = (t - t_i) / dt in [0, 1)
        vel: also compute the first derivative w.r.t. u
        acc: also compute the second derivative w.r.t. u
        der: also compute the Jacobian w.r.t. the K + 1 control points

    Returns:
        BSplineEval with the requested outputs

    Raises:
        SizeViolationError: if the number of differences is not K
    """
    K = degree
    G = type(g_0)
    vs = _as_tangents(diff_points)
    if vs.ndim != 2 or vs.shape[0] != K:
        # a single tangent vector counts as a window of one
        actual = 0 if vs.ndim == 0 else 1 if vs.ndim == 1 else vs.shape[0]
        raise SizeViolationError(f"bspline: diff_points for degree K={K}", K, actual)

    dtype = g_0.coeffs.dtype
    u = jnp.asarray(u, dtype=dtype)

    # powers of u and their derivatives w.r.t. u
    uvec, duvec, d2uvec = [jnp.ones((), dtype)], [jnp.zeros((), dtype)], [jnp.zeros((), dtype)]
    for k in range(1, K + 1):
        uvec.append(u * uvec[k - 1])
        duvec.append(k * uvec[k - 1])
        d2uvec.append(k * duvec[k - 1])
    uvec, duvec, d2uvec = jnp.stack(uvec), jnp.stack(duvec), jnp.stack(d2uvec)

    # row j holds the polynomial coefficients of Btilde_j
    M = jnp.asarray(cum_coeffmat_array(K).T, dtype=dtype)

    want_vel = vel or acc
    v_out = jnp.zeros(G.dof, dtype) if want_vel else None
    a_out = jnp.zeros(G.dof, dtype) if acc else None

    g = g_0
    for j in range(1, K + 1):
        v = vs[j - 1]
        Btilde = jnp.dot(uvec, M[j])
        g = g * G.exp(Btilde * v)

        if want_vel:
            dBtilde = jnp.dot(duvec, M[j])
            Ad = G.exp(-Btilde * v).adjoint()
            v_out = matvec(Ad, v_out) + dBtilde * v

            if acc:
                d2Btilde = jnp.dot(d2uvec, M[j])
                a_out = matvec(Ad, a_out) + dBtilde * matvec(G.ad(v_out), v) + d2Btilde * v

    d_out = None
    if der:
        z2inv = G.identity(dtype=dtype)
        blocks = [jnp.zeros((G.dof, G.dof), dtype) for _ in range(K + 1)]

        for j in range(K, -1, -1):
            if j != K:
                Btilde_jp = jnp.dot(uvec, M[j + 1])
                vjp = vs[j]
                sjp = Btilde_jp * vjp
                blocks[j] = blocks[j] - Btilde_jp * (
                    z2inv.adjoint() @ G.dr_exp(sjp) @ G.dl_expinv(vjp)
                )
                z2inv = z2inv * G.exp(-sjp)

            if j == 0:
                # Btilde_0 == 1 and dr_exp(v) @ dr_expinv(v) == I
                blocks[j] = blocks[j] + z2inv.adjoint()
            else:
                Btilde_j = jnp.dot(uvec, M[j])
                vj = vs[j - 1]
                blocks[j] = blocks[j] + Btilde_j * (
                    z2inv.adjoint() @ G.dr_exp(Btilde_j * vj) @ G.dr_expinv(vj)
                )

        d_out = jnp.concatenate(blocks, axis=-1)

    return BSplineEval(
        value=g,
        vel=v_out if vel else None,
        acc=a_out,
        der=d_out,
    )


def bspline_eval_ctrl(
    degree: int,
    ctrl_points: Union[LieGroup, Sequence[LieGroup]],
    u,
    *,
    vel: bool = False,
    acc: bool = False,
    der: bool = False,
) -> BSplineEval:
    """
    Evaluate a cardinal B-spline segment from K + 1 control points.

    The differences v_i = log(ctrl[i-1]^-1 * ctrl[i]) are formed here and the
    segment is evaluated with ctrl[0] as base value.

    Args:
        degree: spline degree K
        ctrl_points: group element batched as (K + 1,), or sequence of K + 1 elements
        u: interval location u = (t - t_i) / dt in [0, 1)
        vel: also compute the first derivative w.r.t. u
        acc: also compute the second derivative w.r.t. u
        der: also compute the Jacobian w.r.t. the K + 1 control points

    Returns:
        BSplineEval with the requested outputs

    Raises:
        SizeViolationError: if the number of control points is not K + 1
    """
    K = degree
    what = f"bspline: ctrl_points for degree K={K}"
    pts = _as_group(ctrl_points, what, K + 1)
    if len(pts.shape) != 1 or pts.shape[0] != K + 1:
        actual = pts.shape[0] if pts.shape else 1
        raise SizeViolationError(what, K + 1, actual)

    diff_points = (pts[:-1].inverse() * pts[1:]).log()
    return bspline_eval(K, pts[0], diff_points, u, vel=vel, acc=acc, der=der)


@struct.dataclass
class BSpline:
    """Cardinal B-spline of degree K over uniformly spaced control points.

    Control point / knot correspondence for N + 1 control points:

        KNOT  -K  -K+1  -K+2  ...   0   1  ...  N-K
        CTRL   0     1     2  ...   K  K+1        N
                                    ^             ^
                                  t_min         t_max

    The first K control points lie outside the support of the spline, which
    is defined on [t0, t0 + (N + 1 - K) * dt]. For interpolation purposes use
    an odd degree and set t0 = (time of first control point) + dt * K / 2,
    which aligns control points with the maximum of their basis function.

    Queries outside [t_min, t_max] are clamped to the boundary.

    Attributes:
        degree: spline degree K. Static field.
        t0: start time. Static field.
        dt: interval width, > 0. Static field.
        ctrl_pts: control points as one group element batched as (N + 1,).
    """
    degree: int = struct.field(pytree_node=False)
    t0: float = struct.field(pytree_node=False)
    dt: float = struct.field(pytree_node=False)
    ctrl_pts: LieGroup

    @classmethod
    def create(
        cls,
        degree: int,
        t0: float,
        dt: float,
        ctrl_pts: Union[LieGroup, Sequence[LieGroup]],
    ) -> "BSpline":
        """
        Create a cardinal B-spline.

        Args:
            degree: spline degree K >= 0
            t0: start of the spline
            dt: distance between knots, must be positive
            ctrl_pts: at least K + 1 control points

        Raises:
            ValueError: if dt is not positive or the degree is negative
            SizeViolationError: if fewer than K + 1 control points are given
        """
        if degree < 0:
            raise ValueError(f"spline degree must be non-negative, got {degree}")
        if not dt > 0:
            raise ValueError(f"dt must be positive, got {dt}")

        what = f"BSpline: ctrl_pts for degree K={degree}"
        pts = _as_group(ctrl_pts, what, degree + 1)
        count = pts.shape[0] if pts.shape else 1
        if len(pts.shape) != 1 or count < degree + 1:
            raise SizeViolationError(what, degree + 1, count)

        logger.debug(
            "Created degree %d %s spline on [%g, %g] with %d control points",
            degree, type(pts).__name__, t0, t0 + (count - degree) * dt, count,
        )
        return cls(degree=degree, t0=float(t0), dt=float(dt), ctrl_pts=pts)

    @classmethod
    def constant(cls, degree: int, group: type, value: Optional[LieGroup] = None) -> "BSpline":
        """Spline on [0, 1) with K + 1 copies of value (identity by default)."""
        if value is None:
            value = group.identity()
        return cls.create(degree, 0.0, 1.0, group.stack([value] * (degree + 1)))

    @property
    def num_ctrl_pts(self) -> int:
        return self.ctrl_pts.shape[0]

    def t_min(self) -> float:
        return self.t0

    def t_max(self) -> float:
        return self.t0 + (self.num_ctrl_pts - self.degree) * self.dt

    def eval(self, t, *, vel: bool = False, acc: bool = False) -> BSplineEval:
        """
        Evaluate the spline at time t.

        Args:
            t: query time (may be a traced scalar)
            vel: also compute the first derivative w.r.t. t
            acc: also compute the second derivative w.r.t. t

        Returns:
            BSplineEval with value and the requested derivatives
        """
        K = self.degree
        n = self.num_ctrl_pts
        t = jnp.asarray(t, dtype=self.ctrl_pts.dtype)

        # index of relevant interval, floating point until clamped to the valid range
        s = (t - self.t0) / self.dt
        istar = jnp.floor(s)

        # clamp to end of range if necessary
        u = jnp.where(istar < 0, 0.0, jnp.where(istar + K + 1 > n, 1.0, s - istar))
        istar = jnp.clip(istar, 0, n - K - 1).astype(jnp.int32)

        window = type(self.ctrl_pts)(
            jax.lax.dynamic_slice_in_dim(self.ctrl_pts.coeffs, istar, K + 1, axis=0)
        )
        res = bspline_eval_ctrl(K, window, u, vel=vel, acc=acc)

        return res._replace(
            vel=None if res.vel is None else res.vel / self.dt,
            acc=None if res.acc is None else res.acc / (self.dt * self.dt),
        )
