from __future__ import annotations

import numpy as np
from jaxtyping import Float, jaxtyped

from ..utils import debug, debug_helpers
from .bezier import BezierSegment, bernstein_matrix, derivative_many, evaluate_many
from .consts import (
    DEFAULT_FIT_ITERATIONS,
    DEFAULT_FIT_MAX_DEPTH,
    DEFAULT_FIT_TOLERANCE,
)
from .errors import FitToleranceUnreachable
from .geometry import chord_lengths
from .point import as_points, normalize
from .subpath import Subpath
from .types import typechecker

# Ends are freed in the refinement solve only when there are enough samples
# to pin both handles down.
_MIN_FREE_SAMPLES = 6


def _unit(v: np.ndarray) -> np.ndarray | None:
    n = float(np.linalg.norm(v))
    if n <= 1e-12:
        return None
    return v / n


def _start_tangent(P: np.ndarray) -> np.ndarray:
    for k in range(1, P.shape[0]):
        d = _unit(P[k] - P[0])
        if d is not None:
            return d
    return np.array([1.0, 0.0])


def _end_tangent(P: np.ndarray) -> np.ndarray:
    return _start_tangent(P[::-1]) * -1.0


def _center_tangent(P: np.ndarray, k: int) -> np.ndarray:
    d = _unit(P[k + 1] - P[k - 1])
    if d is None:
        d = _unit(P[k] - P[k - 1])
    if d is None:
        d = _start_tangent(P[k:])
    return d


def chord_parameters(P: Float[np.ndarray, "N 2"]) -> Float[np.ndarray, "N"]:
    """Chord-length parameterization in [0, 1]."""

    u = chord_lengths(P)
    if u[-1] <= 0.0:
        return np.linspace(0.0, 1.0, P.shape[0])
    return u / u[-1]


def _solve_alpha(
    P: np.ndarray, u: np.ndarray, t0: np.ndarray, t1: np.ndarray
) -> BezierSegment:
    """
    Schneider's least-squares handle lengths along fixed end tangents
    (t0 leaves P[0], t1 arrives at P[-1]).
    """
    p0, p3 = P[0], P[-1]
    B = bernstein_matrix(4, u)
    A1 = B[:, 1:2] * t0[None, :]
    A2 = -B[:, 2:3] * t1[None, :]
    tmp = P - (B[:, 0:1] + B[:, 1:2]) * p0 - (B[:, 2:3] + B[:, 3:4]) * p3

    c00 = float(np.sum(A1 * A1))
    c01 = float(np.sum(A1 * A2))
    c11 = float(np.sum(A2 * A2))
    x0 = float(np.sum(A1 * tmp))
    x1 = float(np.sum(A2 * tmp))

    det = c00 * c11 - c01 * c01
    seg_len = float(np.linalg.norm(p3 - p0))
    eps = 1e-6 * seg_len
    alpha = beta = 0.0
    if abs(det) > 1e-12:
        alpha = (x0 * c11 - x1 * c01) / det
        beta = (c00 * x1 - c01 * x0) / det
    if alpha < eps or beta < eps:
        # Wu/Barsky heuristic
        debug.log(f"fit: degenerate handle lengths ({alpha:.3g}, {beta:.3g}), using chord/3")
        alpha = beta = seg_len / 3.0
    return BezierSegment(np.stack([p0, p0 + alpha * t0, p3 - beta * t1, p3]))


def _solve_free(
    P: np.ndarray,
    u: np.ndarray,
    t0: np.ndarray,
    t1: np.ndarray,
    free0: bool,
    free1: bool,
) -> BezierSegment | None:
    """
    Least squares for the two inner control points where a free end solves
    for its handle position outright and a fixed end only for its length.
    None when a fixed handle would point backwards.
    """
    p0, p3 = P[0], P[-1]
    B = bernstein_matrix(4, u)
    rhs = (P - (B[:, 0:1] + B[:, 1:2]) * p0 - (B[:, 2:3] + B[:, 3:4]) * p3).T.reshape(-1)
    cols: list[np.ndarray] = []
    ex = np.array([1.0, 0.0])
    ey = np.array([0.0, 1.0])

    def column(weights: np.ndarray, direction: np.ndarray) -> np.ndarray:
        return (weights[:, None] * direction[None, :]).T.reshape(-1)

    if free0:
        cols += [column(B[:, 1], ex), column(B[:, 1], ey)]
    else:
        cols.append(column(B[:, 1], t0))
    if free1:
        cols += [column(B[:, 2], ex), column(B[:, 2], ey)]
    else:
        cols.append(column(B[:, 2], -t1))
    A = np.stack(cols, axis=1)
    x, *_ = np.linalg.lstsq(A, rhs, rcond=None)

    if free0:
        c1 = p0 + x[0:2]
        k = 2
    else:
        if x[0] <= 0.0:
            return None
        c1 = p0 + x[0] * t0
        k = 1
    if free1:
        c2 = p3 + x[k : k + 2]
    else:
        if x[k] <= 0.0:
            return None
        c2 = p3 - x[k] * t1
    return BezierSegment(np.stack([p0, c1, c2, p3]))


def _reparameterize(curve: BezierSegment, P: np.ndarray, u: np.ndarray) -> np.ndarray:
    """One Newton-Raphson step towards each sample's closest curve parameter."""

    d = evaluate_many(curve, u) - P
    d1 = derivative_many(curve, u, 1)
    d2 = derivative_many(curve, u, 2)
    num = np.sum(d * d1, axis=1)
    den = np.sum(d1 * d1, axis=1) + np.sum(d * d2, axis=1)
    step = np.divide(num, den, out=np.zeros_like(num), where=np.abs(den) > 1e-18)
    out = np.clip(u - step, 0.0, 1.0)
    out[0] = 0.0
    out[-1] = 1.0
    return out


def _max_error(curve: BezierSegment, P: np.ndarray, u: np.ndarray) -> tuple[float, int]:
    dist = np.linalg.norm(evaluate_many(curve, u) - P, axis=1)
    k = int(np.argmax(dist))
    return float(dist[k]), k


def _fit_single(
    P: np.ndarray,
    t0: np.ndarray,
    t1: np.ndarray,
    free0: bool,
    free1: bool,
    tolerance: float,
    max_iterations: int,
) -> tuple[BezierSegment, float, int]:
    """Best single cubic for the samples with its max error and worst index."""

    n = P.shape[0]
    if n == 2:
        third = float(np.linalg.norm(P[1] - P[0])) / 3.0
        curve = BezierSegment(np.stack([P[0], P[0] + third * t0, P[1] - third * t1, P[1]]))
        return curve, 0.0, 0

    free0 = free0 and n >= _MIN_FREE_SAMPLES
    free1 = free1 and n >= _MIN_FREE_SAMPLES
    u = chord_parameters(P)
    curve = _solve_alpha(P, u, t0, t1)
    err, worst = _max_error(curve, P, u)

    for _ in range(max_iterations):
        if err <= 1e-3 * tolerance:
            break
        u_next = _reparameterize(curve, P, u)
        cand = _solve_free(P, u_next, t0, t1, free0, free1) if free0 or free1 else None
        if cand is None:
            cand = _solve_alpha(P, u_next, t0, t1)
        cand_err, cand_worst = _max_error(cand, P, u_next)
        if not cand_err < err:
            break
        gain = (err - cand_err) / err
        curve, err, worst, u = cand, cand_err, cand_worst, u_next
        if gain < 1e-3:
            break
    return curve, err, worst


def _fit_range(
    P: np.ndarray,
    t0: np.ndarray,
    t1: np.ndarray,
    free0: bool,
    free1: bool,
    tolerance: float,
    depth: int,
    max_depth: int,
    max_iterations: int,
) -> list[BezierSegment]:
    curve, err, worst = _fit_single(P, t0, t1, free0, free1, tolerance, max_iterations)
    if err <= tolerance:
        return [curve]
    n = P.shape[0]
    if depth >= max_depth:
        raise FitToleranceUnreachable(err, tolerance, n)

    k = min(max(worst, 1), n - 2)
    center = _center_tangent(P, k)
    debug.log(f"fit: split {n} samples at {k} (error {err:.3g} > {tolerance:.3g})")
    left = _fit_range(
        P[: k + 1], t0, center, free0, False, tolerance, depth + 1, max_depth, max_iterations
    )
    right = _fit_range(
        P[k:], center, t1, False, free1, tolerance, depth + 1, max_depth, max_iterations
    )
    return left + right


def _dedupe(P: np.ndarray) -> np.ndarray:
    keep = np.ones(P.shape[0], dtype=bool)
    keep[1:] = np.linalg.norm(P[1:] - P[:-1], axis=1) > 0.0
    return P[keep]


def _tangent_hint(v: Float[np.ndarray, "2"] | None) -> np.ndarray | None:
    if v is None:
        return None
    try:
        return normalize(np.asarray(v, dtype=np.float64))
    except ValueError as exc:
        raise ValueError("tangent hints must be non-zero vectors") from exc


@jaxtyped(typechecker=typechecker)
def fit_cubic(
    points: Float[np.ndarray, "N 2"],
    *,
    start_tangent: Float[np.ndarray, "2"] | None = None,
    end_tangent: Float[np.ndarray, "2"] | None = None,
    tolerance: float = DEFAULT_FIT_TOLERANCE,
    max_iterations: int = DEFAULT_FIT_ITERATIONS,
) -> tuple[BezierSegment, float]:
    """Single cubic through the first and last sample and its max deviation."""

    P = _dedupe(as_points(points))
    if P.shape[0] < 2:
        raise ValueError("fitting needs at least two distinct points")
    s_hint = _tangent_hint(start_tangent)
    e_hint = _tangent_hint(end_tangent)
    t0 = s_hint if s_hint is not None else _start_tangent(P)
    t1 = e_hint if e_hint is not None else _end_tangent(P)
    curve, err, _ = _fit_single(
        P, t0, t1, s_hint is None, e_hint is None, tolerance, max_iterations
    )
    return curve, err


@jaxtyped(typechecker=typechecker)
def fit(
    points: Float[np.ndarray, "N 2"],
    *,
    tolerance: float = DEFAULT_FIT_TOLERANCE,
    start_tangent: Float[np.ndarray, "2"] | None = None,
    end_tangent: Float[np.ndarray, "2"] | None = None,
    max_depth: int = DEFAULT_FIT_MAX_DEPTH,
    max_iterations: int = DEFAULT_FIT_ITERATIONS,
) -> Subpath:
    """
    Fit an open subpath of C1-joined cubics to ordered samples (Schneider).

    Every sample ends up within `tolerance` of the result. Tangent hints fix
    the end directions; without them the ends are estimated from the
    neighbouring samples and refined by the solver. Raises
    FitToleranceUnreachable when `max_depth` splits cannot meet tolerance.
    """
    if tolerance <= 0.0:
        raise ValueError("tolerance must be > 0")
    P = as_points(points)
    if P.shape[0] < 2:
        raise ValueError("fitting needs at least two points")
    debug_helpers.log_array("fit.points", P)
    P = _dedupe(P)
    if P.shape[0] == 1:
        return Subpath.from_beziers([BezierSegment.linear(P[0], P[0])])

    s_hint = _tangent_hint(start_tangent)
    e_hint = _tangent_hint(end_tangent)
    if P.shape[0] == 2 and s_hint is None and e_hint is None:
        return Subpath.from_beziers([BezierSegment.linear(P[0], P[1])])

    t0 = s_hint if s_hint is not None else _start_tangent(P)
    t1 = e_hint if e_hint is not None else _end_tangent(P)
    curves = _fit_range(
        P, t0, t1, s_hint is None, e_hint is None, tolerance, 0, max_depth, max_iterations
    )
    debug.log(f"fit: {P.shape[0]} samples -> {len(curves)} cubic(s)")
    return Subpath.from_beziers(curves)
