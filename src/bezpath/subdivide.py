from __future__ import annotations

from collections.abc import Iterator

import numpy as np
from jaxtyping import jaxtyped

from ..utils import debug_helpers
from .bezier import (
    BezierSegment,
    de_casteljau,
    derivative_many,
    extrema,
    inflections,
)
from .consts import (
    DEFAULT_REDUCE_MAX_TURN,
    REDUCE_MAX_DEPTH,
    REDUCE_SAMPLES,
    ROOT_EPSILON,
    SPEED_EPSILON,
)
from .geometry import total_turning
from .types import BezierKind, typechecker

_DEPTH_CAP = "reduce: depth cap"


@jaxtyped(typechecker=typechecker)
def split(curve: BezierSegment, t: float) -> tuple[BezierSegment, BezierSegment]:
    """
    De Casteljau subdivision at t.
    Both halves keep the input degree and share the split point exactly.
    """
    if not 0.0 <= t <= 1.0:
        raise ValueError(f"t must be in [0, 1], got {t}")
    levels = de_casteljau(curve.points, t)
    left = np.stack([lvl[0] for lvl in levels])
    right = np.stack([lvl[-1] for lvl in reversed(levels)])
    return BezierSegment(left), BezierSegment(right)


@jaxtyped(typechecker=typechecker)
def trim(curve: BezierSegment, t0: float, t1: float) -> BezierSegment:
    """Restrict the curve to [t0, t1], t0 < t1."""

    if not 0.0 <= t0 < t1 <= 1.0:
        raise ValueError(f"trim needs 0 <= t0 < t1 <= 1, got t0={t0} t1={t1}")
    if t0 == 0.0:
        return curve if t1 == 1.0 else split(curve, t1)[0]
    right = split(curve, t0)[1]
    if t1 == 1.0:
        return right
    return split(right, (t1 - t0) / (1.0 - t0))[0]


def _split_at(curve: BezierSegment, cuts: list[float]) -> list[tuple[float, float, BezierSegment]]:
    """Pieces between consecutive sorted cut parameters, with their domains."""

    bounds = [0.0, *[c for c in cuts if ROOT_EPSILON < c < 1.0 - ROOT_EPSILON], 1.0]
    pieces: list[tuple[float, float, BezierSegment]] = []
    for a, b in zip(bounds[:-1], bounds[1:]):
        if b - a <= ROOT_EPSILON:
            continue
        pieces.append((a, b, trim(curve, a, b)))
    return pieces


def _curvature_samples(curve: BezierSegment, n: int) -> tuple[np.ndarray, np.ndarray]:
    ts = np.linspace(0.0, 1.0, n + 1)
    d1 = derivative_many(curve, ts, 1)
    d2 = derivative_many(curve, ts, 2)
    speed = np.maximum(np.linalg.norm(d1, axis=1), SPEED_EPSILON)
    kappa = (d1[:, 0] * d2[:, 1] - d1[:, 1] * d2[:, 0]) / speed**3
    return ts, kappa


def curvature_peaks(curve: BezierSegment, bound: float) -> list[float]:
    """Interior local maxima of |curvature| that exceed `bound`."""

    ts, kappa = _curvature_samples(curve, 4 * REDUCE_SAMPLES)
    k = np.abs(kappa)
    peaks: list[float] = []
    for i in range(1, len(ts) - 1):
        if k[i] > bound and k[i] >= k[i - 1] and k[i] > k[i + 1]:
            peaks.append(float(ts[i]))
    return peaks


def _piece_turn(piece: BezierSegment) -> float:
    ts = np.linspace(0.0, 1.0, REDUCE_SAMPLES + 1)
    return total_turning(derivative_many(piece, ts, 1))


def _reduce_piece(
    piece: BezierSegment, max_turn: float, depth: int, max_depth: int
) -> Iterator[BezierSegment]:
    if _piece_turn(piece) <= max_turn:
        yield piece
        return
    if depth >= max_depth:
        debug_helpers.log_once(
            _DEPTH_CAP, f"{_DEPTH_CAP} {max_depth} reached, yielding piece as-is"
        )
        yield piece
        return
    left, right = split(piece, 0.5)
    yield from _reduce_piece(left, max_turn, depth + 1, max_depth)
    yield from _reduce_piece(right, max_turn, depth + 1, max_depth)


def reduce(
    curve: BezierSegment,
    *,
    max_curvature: float | None = None,
    max_turn: float = DEFAULT_REDUCE_MAX_TURN,
    max_depth: int = REDUCE_MAX_DEPTH,
) -> Iterator[BezierSegment]:
    """
    Lazily split `curve` into inflection-free pieces that each turn by at
    most `max_turn` radians. With `max_curvature`, the curve is also cut at
    every local curvature peak above that bound. Pieces come out in order
    along the curve.
    """
    if curve.kind is BezierKind.LINEAR:
        yield curve
        return
    cuts = list(inflections(curve))
    if max_curvature is not None:
        cuts.extend(curvature_peaks(curve, max_curvature))
    try:
        for _a, _b, piece in _split_at(curve, sorted(cuts)):
            yield from _reduce_piece(piece, max_turn, 0, max_depth)
    finally:
        debug_helpers.flush_repeats(_DEPTH_CAP)


def monotonic_pieces(curve: BezierSegment) -> list[tuple[float, float, BezierSegment]]:
    """Pieces monotone in x and y, free of inflections, with their [t0, t1] domains."""

    cuts = sorted(set(extrema(curve)) | set(inflections(curve)))
    return _split_at(curve, cuts)
