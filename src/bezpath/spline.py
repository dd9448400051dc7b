from __future__ import annotations

import numpy as np
from jaxtyping import Float, jaxtyped

from .point import as_points
from .subpath import ManipulatorGroup, Subpath
from .types import typechecker


def _vertex_tangents(P: np.ndarray, scale: float, max_handle_ratio: float) -> np.ndarray:
    """
    Catmull-Rom tangents, clamped per vertex so both adjacent handles stay
    within `max_handle_ratio` of the shorter neighbouring edge.
    """
    N = P.shape[0]
    m = np.empty_like(P)
    m[0] = P[1] - P[0]
    m[-1] = P[-1] - P[-2]
    if N > 2:
        m[1:-1] = 0.5 * (P[2:] - P[:-2])

    edge = np.linalg.norm(P[1:] - P[:-1], axis=1)
    for i in range(N):
        L = min(edge[max(i - 1, 0)], edge[min(i, N - 2)])
        if L <= 1e-12:
            m[i] = 0.0
            continue
        max_tan = (3.0 / scale) * max_handle_ratio * L
        tn = float(np.linalg.norm(m[i]))
        if tn > max_tan:
            m[i] *= max_tan / tn

        # No handle may point backwards along an adjacent edge.
        for d in (P[i] - P[i - 1] if i > 0 else None, P[i + 1] - P[i] if i < N - 1 else None):
            if d is None:
                continue
            dd = float(d @ d)
            along = float(m[i] @ d)
            if dd > 1e-12 and along < 0.0:
                m[i] -= (along / dd) * d
    return m


@jaxtyped(typechecker=typechecker)
def polyline_to_subpath(
    points: Float[np.ndarray, "N 2"],
    *,
    handle_scale: float = 1.0,
    max_handle_ratio: float = 0.5,
) -> Subpath:
    """Interpolating cubic subpath through the polyline vertices.

    - `handle_scale` controls smoothing (0 -> straight segments, 1 -> full Catmull-Rom).
    - `max_handle_ratio` caps each handle length to a fraction of its edge length.

    Tangents are clamped per vertex, not per handle, so the in and out
    handles of a vertex stay collinear and the joints stay C1.
    """

    P = as_points(points)
    if not np.isfinite(handle_scale) or handle_scale < 0:
        raise ValueError("handle_scale must be finite and >= 0")
    if not np.isfinite(max_handle_ratio) or max_handle_ratio < 0:
        raise ValueError("max_handle_ratio must be finite and >= 0")
    if P.shape[0] < 2 or handle_scale == 0.0:
        return Subpath.from_anchors(P)

    m = (handle_scale / 3.0) * _vertex_tangents(P, handle_scale, max_handle_ratio)
    groups = []
    for i, p in enumerate(P):
        has = float(np.linalg.norm(m[i])) > 1e-12
        groups.append(
            ManipulatorGroup(
                p,
                p - m[i] if has and i > 0 else None,
                p + m[i] if has and i < len(P) - 1 else None,
            )
        )
    return Subpath(tuple(groups))

