from __future__ import annotations

import math

import numpy as np
from jaxtyping import Float, jaxtyped
from numpy.typing import ArrayLike

from .types import Point, typechecker


def as_point(p: ArrayLike) -> Point:
    """Copy `p` into a fresh float64 (2,) array."""

    arr = np.array(p, dtype=np.float64)
    if arr.shape != (2,):
        raise ValueError(f"point must have shape (2,), got {arr.shape}")
    if not np.isfinite(arr).all():
        raise ValueError("point contains non-finite coordinates")
    return arr


def as_points(points: ArrayLike) -> Float[np.ndarray, "N 2"]:
    P = np.array(points, dtype=np.float64)
    if P.ndim != 2 or P.shape[1] != 2:
        raise ValueError("points must have shape (N,2)")
    if not np.isfinite(P).all():
        raise ValueError("points contains non-finite coordinates")
    return P


def lerp(a: Point, b: Point, t: float) -> Point:
    # (1-t)*a + t*b is exact at both ends, a + t*(b-a) is not at t=1.
    return (1.0 - t) * a + t * b


def dot(u: Point, v: Point) -> float:
    return float(u[0] * v[0] + u[1] * v[1])


def cross(u: Point, v: Point) -> float:
    """z component of the 3D cross product."""
    return float(u[0] * v[1] - u[1] * v[0])


def length(v: Point) -> float:
    return math.hypot(float(v[0]), float(v[1]))


def distance(a: Point, b: Point) -> float:
    return math.hypot(float(b[0] - a[0]), float(b[1] - a[1]))


def perpendicular(v: Point) -> Point:
    """Rotate 90 degrees counter-clockwise."""
    return np.array([-v[1], v[0]], dtype=np.float64)


@jaxtyped(typechecker=typechecker)
def normalize(v: Float[np.ndarray, "2"], eps: float = 0.0) -> Float[np.ndarray, "2"]:
    """Unit vector along `v`; raises ValueError when |v| <= eps."""

    n = length(v)
    if n <= eps:
        raise ValueError("cannot normalize a zero-length vector")
    return np.asarray(v, dtype=np.float64) / n


def angle_between(u: Point, v: Point) -> float:
    """Signed angle in radians from u to v, in (-pi, pi]."""
    return math.atan2(cross(u, v), dot(u, v))


def rotate(v: Point, angle: float) -> Point:
    c = math.cos(angle)
    s = math.sin(angle)
    return np.array([c * v[0] - s * v[1], s * v[0] + c * v[1]], dtype=np.float64)


def line_line_intersection(
    p: Point, r: Point, q: Point, s: Point, eps: float = 1e-12
) -> tuple[float, float] | None:
    """Solve p + u*r = q + v*s; None for (near) parallel lines."""

    denom = cross(r, s)
    if abs(denom) <= eps * max(1.0, length(r) * length(s)):
        return None
    qp = q - p
    u = cross(qp, s) / denom
    v = cross(qp, r) / denom
    return u, v
