from __future__ import annotations

import numpy as np
from jaxtyping import Float, jaxtyped

from .types import typechecker


@jaxtyped(typechecker=typechecker)
def point_segment_dist2(
    p: Float[np.ndarray, "... 2"],
    a: Float[np.ndarray, "... 2"],
    b: Float[np.ndarray, "... 2"],
    eps: float = 1e-18,
) -> Float[np.ndarray, "..."]:
    """
    p: (...,2)
    a,b: (...,2) broadcastable
    """
    ab = b - a
    t = np.sum((p - a) * ab, axis=-1) / (np.sum(ab * ab, axis=-1) + eps)
    t = np.clip(t, 0.0, 1.0)
    q = a + t[..., None] * ab
    d = p - q
    return np.asarray(np.sum(d * d, axis=-1))


@jaxtyped(typechecker=typechecker)
def polyline_dist(
    points: Float[np.ndarray, "Q 2"],
    polyline: Float[np.ndarray, "M 2"],
) -> Float[np.ndarray, "Q"]:
    """Distance from each point to the nearest edge of an open polyline."""

    if polyline.shape[0] == 1:
        return np.linalg.norm(points - polyline[0], axis=-1)
    d2 = point_segment_dist2(
        points[:, None, :], polyline[None, :-1, :], polyline[None, 1:, :]
    )
    return np.sqrt(np.min(d2, axis=1))


@jaxtyped(typechecker=typechecker)
def chord_lengths(x: Float[np.ndarray, "M 2"]) -> Float[np.ndarray, "M"]:
    """Cumulative straight-line distance along the points, starting at 0."""

    seglen = np.linalg.norm(x[1:, :] - x[:-1, :], axis=-1)
    return np.concatenate([[0.0], np.cumsum(seglen)])


@jaxtyped(typechecker=typechecker)
def polyline_length(
    x: Float[np.ndarray, "M 2"],
    *,
    closed: bool = False,
) -> float:
    """Polyline length in world units."""

    length = float(chord_lengths(x)[-1])
    if closed:
        length += float(np.linalg.norm(x[0, :] - x[-1, :]))
    return length


@jaxtyped(typechecker=typechecker)
def total_turning(
    d: Float[np.ndarray, "M 2"],
    eps: float = 1e-12,
) -> float:
    """
    d: (M,2) direction vectors sampled along a curve.
    Returns the summed absolute angle between consecutive non-zero directions.
    """
    keep = np.linalg.norm(d, axis=-1) > eps
    u = d[keep]
    if u.shape[0] < 2:
        return 0.0
    a = u[:-1]
    b = u[1:]
    crs = a[:, 0] * b[:, 1] - a[:, 1] * b[:, 0]
    dt = np.sum(a * b, axis=-1)
    return float(np.sum(np.abs(np.arctan2(crs, dt))))
