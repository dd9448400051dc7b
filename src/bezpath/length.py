from __future__ import annotations

import numpy as np
from jaxtyping import Float, jaxtyped
from scipy.special import roots_legendre  # type: ignore[reportMissingTypeStubs]

from .bezier import BezierSegment, derivative, derivative_many, evaluate
from .consts import (
    DEFAULT_EUCLIDEAN_ERROR,
    DEFAULT_LENGTH_ITERATIONS,
    DEFAULT_LENGTH_TOLERANCE,
    DEFAULT_LUT_STEPS,
    GAUSS_ORDER,
    LENGTH_MAX_DEPTH,
    SPEED_EPSILON,
)
from .errors import NonMonotonicLength
from .point import distance, length
from .types import BezierKind, typechecker

_NODES, _WEIGHTS = roots_legendre(GAUSS_ORDER)
_NODES = np.asarray(_NODES, dtype=np.float64)
_WEIGHTS = np.asarray(_WEIGHTS, dtype=np.float64)


def _gauss(curve: BezierSegment, a: float, b: float) -> float:
    half = 0.5 * (b - a)
    ts = 0.5 * (a + b) + half * _NODES
    speed = np.linalg.norm(derivative_many(curve, ts, 1), axis=1)
    return half * float(speed @ _WEIGHTS)


def _adaptive(
    curve: BezierSegment, a: float, b: float, whole: float, tol: float, depth: int
) -> float:
    m = 0.5 * (a + b)
    left = _gauss(curve, a, m)
    right = _gauss(curve, m, b)
    both = left + right
    if depth >= LENGTH_MAX_DEPTH or abs(both - whole) <= tol * abs(both):
        return both
    return _adaptive(curve, a, m, left, tol, depth + 1) + _adaptive(
        curve, m, b, right, tol, depth + 1
    )


@jaxtyped(typechecker=typechecker)
def arc_length(
    curve: BezierSegment,
    t0: float = 0.0,
    t1: float = 1.0,
    *,
    tolerance: float = DEFAULT_LENGTH_TOLERANCE,
) -> float:
    """
    Length of the curve between t0 and t1 (t0 <= t1).

    Lines are measured exactly; other degrees use adaptive order-10
    Gauss-Legendre quadrature of the speed to the relative `tolerance`.
    """
    if not 0.0 <= t0 <= t1 <= 1.0:
        raise ValueError(f"arc_length needs 0 <= t0 <= t1 <= 1, got t0={t0} t1={t1}")
    if tolerance <= 0.0:
        raise ValueError("tolerance must be > 0")
    if curve.kind is BezierKind.LINEAR:
        return distance(evaluate(curve, t0), evaluate(curve, t1))
    if t0 == t1:
        return 0.0
    return _adaptive(curve, t0, t1, _gauss(curve, t0, t1), tolerance, 0)


@jaxtyped(typechecker=typechecker)
def parameterize_by_length(
    curve: BezierSegment,
    s: float,
    *,
    tolerance: float = DEFAULT_LENGTH_TOLERANCE,
    max_iterations: int = DEFAULT_LENGTH_ITERATIONS,
) -> float:
    """
    Parameter t with arc_length(curve, 0, t) ~= s.

    Newton steps on the arc length, guarded by a bisection bracket; the
    speed is floored at SPEED_EPSILON so cusps cannot blow up the step.
    Raises NonMonotonicLength when the iteration budget runs out.
    """
    total = arc_length(curve, tolerance=tolerance)
    if s < 0.0 or s > total:
        raise ValueError(f"s={s} is not in [0, {total}]")
    if s == 0.0:
        return 0.0
    if s == total:
        return 1.0
    if curve.kind is BezierKind.LINEAR:
        return s / total

    abs_tol = tolerance * total
    lo, hi = 0.0, 1.0
    t = s / total
    f = 0.0
    for _ in range(max_iterations):
        f = arc_length(curve, 0.0, t, tolerance=tolerance) - s
        if abs(f) <= abs_tol:
            return t
        if f < 0.0:
            lo = t
        else:
            hi = t
        if hi - lo <= 1e-15:
            return t
        speed = max(length(derivative(curve, t)), SPEED_EPSILON)
        t_next = t - f / speed
        if not lo < t_next < hi:
            t_next = 0.5 * (lo + hi)
        t = float(t_next)
    raise NonMonotonicLength(s, t, f)


@jaxtyped(typechecker=typechecker)
def euclidean_to_parametric(
    curve: BezierSegment,
    ratio: float,
    *,
    error: float = DEFAULT_EUCLIDEAN_ERROR,
) -> float:
    """Parameter at `ratio` (0..1) of the total arc length."""

    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"ratio must be in [0, 1], got {ratio}")
    if ratio < error:
        return 0.0
    if 1.0 - ratio < error:
        return 1.0
    total = arc_length(curve)
    if total == 0.0:
        return ratio
    return parameterize_by_length(curve, ratio * total)


@jaxtyped(typechecker=typechecker)
def lookup_table(
    curve: BezierSegment,
    steps: int = DEFAULT_LUT_STEPS,
    *,
    euclidean: bool = False,
) -> Float[np.ndarray, "S 2"]:
    """steps+1 points spaced evenly in t, or in arc length with euclidean=True."""

    if steps < 1:
        raise ValueError("steps must be >= 1")
    pts = []
    for i in range(steps + 1):
        r = i / steps
        t = euclidean_to_parametric(curve, r) if euclidean else r
        pts.append(evaluate(curve, t))
    return np.stack(pts)
