from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from jaxtyping import Float, jaxtyped
from numpy.typing import ArrayLike

from .consts import DEGENERATE_EPSILON
from .errors import DegenerateCurve
from .point import as_point, as_points, cross, length, lerp, perpendicular
from .roots import roots_in_unit_interval
from .types import BezierKind, Box, ControlPoints, Point, typechecker

_BINOMIAL = {
    1: np.array([1.0]),
    2: np.array([1.0, 1.0]),
    3: np.array([1.0, 2.0, 1.0]),
    4: np.array([1.0, 3.0, 3.0, 1.0]),
}


@dataclass(frozen=True, eq=False)
class BezierSegment:
    """
    Linear, quadratic or cubic Bezier segment.

    The degree is tagged by the number of control points (2, 3 or 4) and
    fixed at construction. `points` is a read-only (n,2) float64 array.
    """

    points: ControlPoints

    def __post_init__(self) -> None:
        P = as_points(self.points)
        if P.shape[0] not in (2, 3, 4):
            raise ValueError(
                f"a Bezier segment takes 2 to 4 control points, got {P.shape[0]}"
            )
        P.setflags(write=False)
        object.__setattr__(self, "points", P)

    @classmethod
    def linear(cls, p0: ArrayLike, p1: ArrayLike) -> BezierSegment:
        return cls(np.stack([as_point(p0), as_point(p1)]))

    @classmethod
    def quadratic(cls, p0: ArrayLike, p1: ArrayLike, p2: ArrayLike) -> BezierSegment:
        return cls(np.stack([as_point(p0), as_point(p1), as_point(p2)]))

    @classmethod
    def cubic(
        cls, p0: ArrayLike, p1: ArrayLike, p2: ArrayLike, p3: ArrayLike
    ) -> BezierSegment:
        return cls(np.stack([as_point(p0), as_point(p1), as_point(p2), as_point(p3)]))

    @classmethod
    def from_points(cls, points: ArrayLike) -> BezierSegment:
        return cls(as_points(points))

    @property
    def kind(self) -> BezierKind:
        return BezierKind(self.points.shape[0])

    @property
    def degree(self) -> int:
        return self.points.shape[0] - 1

    @property
    def start(self) -> Point:
        return self.points[0].copy()

    @property
    def end(self) -> Point:
        return self.points[-1].copy()

    @property
    def handles(self) -> list[Point]:
        return [p.copy() for p in self.points[1:-1]]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BezierSegment):
            return NotImplemented
        return bool(np.array_equal(self.points, other.points))

    def __hash__(self) -> int:
        return hash(self.points.tobytes())

    def __repr__(self) -> str:
        pts = ", ".join(f"({x:.6g}, {y:.6g})" for x, y in self.points)
        return f"{self.kind.name.capitalize()}({pts})"


def _check_t(t: float) -> None:
    if not 0.0 <= t <= 1.0:
        raise ValueError(f"t must be in [0, 1], got {t}")


def de_casteljau(P: np.ndarray, t: float) -> list[np.ndarray]:
    """All levels of De Casteljau's triangle; levels[-1][0] is the point at t."""

    levels = [np.asarray(P, dtype=np.float64)]
    while levels[-1].shape[0] > 1:
        prev = levels[-1]
        levels.append(
            np.stack([lerp(prev[i], prev[i + 1], t) for i in range(prev.shape[0] - 1)])
        )
    return levels


@jaxtyped(typechecker=typechecker)
def evaluate(curve: BezierSegment, t: float) -> Float[np.ndarray, "2"]:
    """Point at parameter t in [0,1]; exact control points at t=0 and t=1."""

    _check_t(t)
    return de_casteljau(curve.points, t)[-1][0]


def bernstein_matrix(n_ctrl: int, ts: np.ndarray) -> np.ndarray:
    """(M, n_ctrl) Bernstein basis so that samples = B @ P."""

    ts = np.asarray(ts, dtype=np.float64)[:, None]
    i = np.arange(n_ctrl, dtype=np.float64)[None, :]
    deg = n_ctrl - 1
    return _BINOMIAL[n_ctrl][None, :] * ts**i * (1.0 - ts) ** (deg - i)


@jaxtyped(typechecker=typechecker)
def evaluate_many(
    curve: BezierSegment, ts: Float[np.ndarray, "M"]
) -> Float[np.ndarray, "M 2"]:
    """Vectorized evaluation; not bit-exact at the endpoints like `evaluate`."""

    return bernstein_matrix(curve.points.shape[0], ts) @ curve.points


def hodograph(P: np.ndarray) -> np.ndarray:
    """Control points of the derivative curve."""

    n = P.shape[0] - 1
    if n == 0:
        return np.zeros((1, 2), dtype=np.float64)
    return n * (P[1:] - P[:-1])


def _eval_control(P: np.ndarray, t: float) -> np.ndarray:
    if P.shape[0] == 1:
        return P[0].copy()
    return de_casteljau(P, t)[-1][0]


@jaxtyped(typechecker=typechecker)
def derivative(curve: BezierSegment, t: float) -> Float[np.ndarray, "2"]:
    _check_t(t)
    return _eval_control(hodograph(curve.points), t)


@jaxtyped(typechecker=typechecker)
def second_derivative(curve: BezierSegment, t: float) -> Float[np.ndarray, "2"]:
    _check_t(t)
    return _eval_control(hodograph(hodograph(curve.points)), t)


def derivative_many(curve: BezierSegment, ts: np.ndarray, order: int = 1) -> np.ndarray:
    H = curve.points
    for _ in range(order):
        H = hodograph(H)
    if H.shape[0] == 1:
        return np.repeat(H, len(ts), axis=0)
    return bernstein_matrix(H.shape[0], ts) @ H


@jaxtyped(typechecker=typechecker)
def tangent(curve: BezierSegment, t: float) -> Float[np.ndarray, "2"]:
    """Unit tangent; DegenerateCurve where the speed vanishes."""

    d = derivative(curve, t)
    speed = length(d)
    if speed <= DEGENERATE_EPSILON:
        raise DegenerateCurve(t, speed)
    return d / speed


@jaxtyped(typechecker=typechecker)
def normal(curve: BezierSegment, t: float) -> Float[np.ndarray, "2"]:
    """Unit tangent rotated 90 degrees counter-clockwise."""

    return perpendicular(tangent(curve, t))


@jaxtyped(typechecker=typechecker)
def curvature(curve: BezierSegment, t: float) -> float:
    """Signed curvature, positive when the curve turns counter-clockwise."""

    d1 = derivative(curve, t)
    speed = length(d1)
    if speed <= DEGENERATE_EPSILON:
        raise DegenerateCurve(t, speed)
    d2 = second_derivative(curve, t)
    return cross(d1, d2) / speed**3


def power_basis(curve: BezierSegment) -> np.ndarray:
    """
    Polynomial coefficients, highest power first, one column per axis:
    B(t) = sum_k C[k] * t^(degree-k).
    """
    P = curve.points
    kind = curve.kind
    if kind is BezierKind.LINEAR:
        return np.stack([P[1] - P[0], P[0]])
    if kind is BezierKind.QUADRATIC:
        return np.stack([P[0] - 2.0 * P[1] + P[2], 2.0 * (P[1] - P[0]), P[0]])
    return np.stack(
        [
            -P[0] + 3.0 * P[1] - 3.0 * P[2] + P[3],
            3.0 * P[0] - 6.0 * P[1] + 3.0 * P[2],
            3.0 * (P[1] - P[0]),
            P[0],
        ]
    )


def extrema(curve: BezierSegment) -> list[float]:
    """Sorted interior parameters where x'(t) = 0 or y'(t) = 0."""

    if curve.kind is BezierKind.LINEAR:
        return []
    C = power_basis(curve)
    ts: set[float] = set()
    for axis in range(2):
        ts.update(roots_in_unit_interval(np.polyder(C[:, axis]), open_interval=True))
    return sorted(ts)


@jaxtyped(typechecker=typechecker)
def bounding_box(curve: BezierSegment) -> Box:
    """Tight axis-aligned box as (min_xy, max_xy)."""

    ts = [0.0, 1.0, *extrema(curve)]
    pts = np.stack([evaluate(curve, float(t)) for t in ts])
    return pts.min(axis=0), pts.max(axis=0)


def hull_box(P: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Box of the control polygon; contains the curve by the convex hull property."""
    return P.min(axis=0), P.max(axis=0)


def inflections(curve: BezierSegment) -> list[float]:
    """Parameters in (0,1) where cross(B'(t), B''(t)) changes sign."""

    if curve.kind is not BezierKind.CUBIC:
        return []
    C = power_basis(curve)
    d1x, d1y = np.polyder(C[:, 0]), np.polyder(C[:, 1])
    d2x, d2y = np.polyder(d1x), np.polyder(d1y)
    num = np.polysub(np.polymul(d1x, d2y), np.polymul(d1y, d2x))
    if not np.any(np.abs(num) > 1e-12 * max(1.0, float(np.max(np.abs(C))) ** 2)):
        return []
    return roots_in_unit_interval(num, open_interval=True)


@jaxtyped(typechecker=typechecker)
def project(curve: BezierSegment, point: Float[np.ndarray, "2"]) -> float:
    """Parameter of the point on the curve closest to `point`."""

    C = power_basis(curve)
    shifted = C.copy()
    shifted[-1] = shifted[-1] - point
    dx, dy = np.polyder(C[:, 0]), np.polyder(C[:, 1])
    f = np.polyadd(np.polymul(shifted[:, 0], dx), np.polymul(shifted[:, 1], dy))
    candidates = [0.0, *roots_in_unit_interval(f), 1.0]

    best_t = 0.0
    best_d2 = math.inf
    for t in candidates:
        diff = evaluate(curve, float(t)) - point
        d2 = float(diff @ diff)
        if d2 < best_d2:
            best_d2 = d2
            best_t = float(t)
    return best_t


def reverse(curve: BezierSegment) -> BezierSegment:
    return BezierSegment(curve.points[::-1].copy())


def translate(curve: BezierSegment, offset: ArrayLike) -> BezierSegment:
    return BezierSegment(curve.points + as_point(offset)[None, :])


def is_point(curve: BezierSegment, eps: float = DEGENERATE_EPSILON) -> bool:
    """True when every control point coincides with the start."""
    return bool(np.all(np.abs(curve.points - curve.points[0]) <= eps))
