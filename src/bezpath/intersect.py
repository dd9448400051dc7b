from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from jaxtyping import jaxtyped

from ..utils import debug
from .bezier import (
    BezierSegment,
    de_casteljau,
    evaluate,
    hull_box,
    power_basis,
    project,
)
from .consts import DEFAULT_INTERSECTION_TOLERANCE, DEFAULT_MAX_DEPTH
from .errors import IntersectionDepthExceeded
from .point import distance, length, line_line_intersection
from .roots import roots_in_unit_interval
from .subdivide import monotonic_pieces
from .types import BezierKind, TPair, typechecker

_OVERLAP_SAMPLES = 7


@dataclass(frozen=True)
class IntersectionResult:
    """
    pairs: (t_a, t_b) parameter pairs sorted by t_a then t_b.
    overlapping: the curves coincide along an interval; `pairs` holds the
        two ends of that interval.
    abandoned: subdivision branches dropped at the depth cap.
    """

    pairs: list[TPair] = field(default_factory=list)
    overlapping: bool = False
    abandoned: int = 0


def _halves(P: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    levels = de_casteljau(P, 0.5)
    left = np.stack([lvl[0] for lvl in levels])
    right = np.stack([lvl[-1] for lvl in reversed(levels)])
    return left, right


def _subdivide(
    Pa: np.ndarray,
    da: tuple[float, float, int],
    Pb: np.ndarray,
    db: tuple[float, float, int],
    tol: float,
    max_depth: int,
) -> tuple[list[tuple[float, float, float, float]], int]:
    """
    Recursive hull-box clipping. `da`/`db` carry (t0, t1, depth) of each
    sub-curve's domain. Returns candidates (t_a, t_b, width_a, width_b) and
    the number of branches abandoned at the depth cap.
    """
    amin, amax = hull_box(Pa)
    bmin, bmax = hull_box(Pb)
    if (amax < bmin).any() or (bmax < amin).any():
        return [], 0

    diag_a = float(np.linalg.norm(amax - amin))
    diag_b = float(np.linalg.norm(bmax - bmin))
    a0, a1, depth_a = da
    b0, b1, depth_b = db
    if diag_a < tol and diag_b < tol:
        return [(0.5 * (a0 + a1), 0.5 * (b0 + b1), a1 - a0, b1 - b0)], 0

    split_a = diag_a >= diag_b
    if (split_a and depth_a >= max_depth) or (not split_a and depth_b >= max_depth):
        return [], 1

    found: list[tuple[float, float, float, float]] = []
    abandoned = 0
    if split_a:
        am = 0.5 * (a0 + a1)
        for P, dom in zip(_halves(Pa), ((a0, am), (am, a1))):
            hits, lost = _subdivide(P, (*dom, depth_a + 1), Pb, db, tol, max_depth)
            found.extend(hits)
            abandoned += lost
    else:
        bm = 0.5 * (b0 + b1)
        for P, dom in zip(_halves(Pb), ((b0, bm), (bm, b1))):
            hits, lost = _subdivide(Pa, da, P, (*dom, depth_b + 1), tol, max_depth)
            found.extend(hits)
            abandoned += lost
    return found, abandoned


def _merge(
    candidates: list[tuple[float, float, float, float]], tol: float
) -> list[TPair]:
    """Collapse clusters of nearby candidates into their mean."""

    def near(c: tuple[float, float, float, float], d: tuple[float, float, float, float]) -> bool:
        return abs(c[0] - d[0]) <= max(tol, 2.0 * max(c[2], d[2])) and abs(
            c[1] - d[1]
        ) <= max(tol, 2.0 * max(c[3], d[3]))

    clusters: list[list[tuple[float, float, float, float]]] = []
    for cand in sorted(candidates):
        for cluster in clusters:
            if any(near(cand, member) for member in cluster):
                cluster.append(cand)
                break
        else:
            clusters.append([cand])
    pairs = [
        (
            float(np.mean([c[0] for c in cluster])),
            float(np.mean([c[1] for c in cluster])),
        )
        for cluster in clusters
    ]
    return sorted(pairs)


def _line_line(a: BezierSegment, b: BezierSegment, tol: float) -> list[TPair]:
    p, q = a.points[0], b.points[0]
    r, s = a.points[1] - p, b.points[1] - q
    hit = line_line_intersection(p, r, q, s)
    if hit is None:
        return []
    u, v = hit
    eu = tol / max(length(r), tol)
    ev = tol / max(length(s), tol)
    if -eu <= u <= 1.0 + eu and -ev <= v <= 1.0 + ev:
        return [(min(max(u, 0.0), 1.0), min(max(v, 0.0), 1.0))]
    return []


def _line_curve(line: BezierSegment, curve: BezierSegment, tol: float) -> list[TPair]:
    """Roots of the curve's signed distance to the line, as (t_line, t_curve)."""

    p = line.points[0]
    r = line.points[1] - p
    L = length(r)
    if L <= tol:
        t = project(curve, p)
        return [(0.0, t)] if distance(evaluate(curve, t), p) <= tol else []
    d = r / L
    rel = curve.points - p
    local = np.stack([rel @ d, d[0] * rel[:, 1] - d[1] * rel[:, 0]], axis=1)
    local_curve = BezierSegment(local)
    ys = power_basis(local_curve)[:, 1]
    eu = tol / L
    pairs: list[TPair] = []
    for t in roots_in_unit_interval(ys):
        x = float(evaluate(local_curve, t)[0])
        u = x / L
        if -eu <= u <= 1.0 + eu:
            pairs.append((min(max(u, 0.0), 1.0), t))
    return pairs


def _overlap(a: BezierSegment, b: BezierSegment, tol: float) -> tuple[list[TPair], bool]:
    """
    Endpoint contacts of the two curves and whether they coincide along an
    interval. Contacts are found by projecting each curve's endpoints onto
    the other; an overlap returns the two ends of the interval after
    sampling its interior.
    """
    hits: list[TPair] = []
    for ta in (0.0, 1.0):
        pa = evaluate(a, ta)
        tb = project(b, pa)
        if distance(evaluate(b, tb), pa) <= tol:
            hits.append((ta, tb))
    for tb in (0.0, 1.0):
        pb = evaluate(b, tb)
        ta = project(a, pb)
        if distance(evaluate(a, ta), pb) <= tol:
            hits.append((ta, tb))
    contacts = _merge_exact(hits, tol)
    if len(hits) < 2:
        return contacts, False
    hits.sort()
    lo, hi = hits[0], hits[-1]
    if distance(evaluate(a, lo[0]), evaluate(a, hi[0])) <= tol:
        return contacts, False
    for ta in np.linspace(lo[0], hi[0], _OVERLAP_SAMPLES + 2)[1:-1]:
        pa = evaluate(a, float(ta))
        if distance(evaluate(b, project(b, pa)), pa) > tol:
            return contacts, False
    return [lo, hi], True


def _with_contacts(
    a: BezierSegment, b: BezierSegment, pairs: list[TPair], contacts: list[TPair], tol: float
) -> list[TPair]:
    """
    Add endpoint contacts to `pairs`, replacing any pair that lands on the
    same points. Collinear segments meeting end to end are only found here.
    """
    if not contacts:
        return pairs
    reach = 4.0 * tol
    kept = [
        (ta, tb)
        for ta, tb in pairs
        if not any(
            distance(evaluate(a, ta), evaluate(a, ca)) <= reach
            and distance(evaluate(b, tb), evaluate(b, cb)) <= reach
            for ca, cb in contacts
        )
    ]
    return sorted(kept + contacts)


@jaxtyped(typechecker=typechecker)
def intersect_detailed(
    a: BezierSegment,
    b: BezierSegment,
    *,
    tolerance: float = DEFAULT_INTERSECTION_TOLERANCE,
    max_depth: int = DEFAULT_MAX_DEPTH,
    strict: bool = False,
) -> IntersectionResult:
    """
    Intersections of two segments with the overlap flag and the count of
    branches abandoned at the depth cap. With strict=True, abandoned
    branches that leave no isolated result raise IntersectionDepthExceeded.
    """
    if tolerance <= 0.0:
        raise ValueError("tolerance must be > 0")

    contacts, overlapping = _overlap(a, b, tolerance)
    if overlapping:
        debug.log(f"intersect: overlapping curves on t_a in [{contacts[0][0]:.6g}, {contacts[1][0]:.6g}]")
        return IntersectionResult(pairs=contacts, overlapping=True)

    linear_a = a.kind is BezierKind.LINEAR
    linear_b = b.kind is BezierKind.LINEAR
    if linear_a and linear_b:
        pairs = _line_line(a, b, tolerance)
        return IntersectionResult(pairs=_with_contacts(a, b, pairs, contacts, tolerance))
    if linear_a:
        pairs = _merge_exact(_line_curve(a, b, tolerance), tolerance)
        return IntersectionResult(pairs=_with_contacts(a, b, pairs, contacts, tolerance))
    if linear_b:
        swapped = [(tb, ta) for ta, tb in _line_curve(b, a, tolerance)]
        pairs = _merge_exact(swapped, tolerance)
        return IntersectionResult(pairs=_with_contacts(a, b, pairs, contacts, tolerance))

    candidates, abandoned = _subdivide(
        np.asarray(a.points), (0.0, 1.0, 0), np.asarray(b.points), (0.0, 1.0, 0),
        tolerance, max_depth,
    )
    pairs = _with_contacts(a, b, _merge(candidates, tolerance), contacts, tolerance)
    if abandoned:
        debug.log(
            f"intersect: {abandoned} branch(es) abandoned at depth {max_depth}, "
            f"{len(pairs)} isolated intersection(s)"
        )
        if strict and not pairs:
            raise IntersectionDepthExceeded(abandoned, max_depth)
    return IntersectionResult(pairs=pairs, abandoned=abandoned)


def _merge_exact(pairs: list[TPair], tol: float) -> list[TPair]:
    return _merge([(ta, tb, 0.0, 0.0) for ta, tb in pairs], tol)


@jaxtyped(typechecker=typechecker)
def intersect(
    a: BezierSegment,
    b: BezierSegment,
    *,
    tolerance: float = DEFAULT_INTERSECTION_TOLERANCE,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[TPair]:
    """(t_a, t_b) pairs where the two segments meet within `tolerance`."""

    return intersect_detailed(a, b, tolerance=tolerance, max_depth=max_depth).pairs


@jaxtyped(typechecker=typechecker)
def self_intersect(
    curve: BezierSegment,
    *,
    tolerance: float = DEFAULT_INTERSECTION_TOLERANCE,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[TPair]:
    """
    (t_a, t_b) pairs with t_a < t_b where the curve crosses itself.
    The curve is cut into x/y-monotone pieces, which cannot cross
    themselves, and every pair of pieces is intersected.
    """
    if curve.kind is not BezierKind.CUBIC:
        return []
    pieces = monotonic_pieces(curve)
    found: list[tuple[float, float, float, float]] = []
    for i in range(len(pieces)):
        a0, a1, pa = pieces[i]
        for j in range(i + 1, len(pieces)):
            b0, b1, pb = pieces[j]
            res = intersect_detailed(pa, pb, tolerance=tolerance, max_depth=max_depth)
            if res.overlapping:
                continue
            for sa, sb in res.pairs:
                ta = a0 + sa * (a1 - a0)
                tb = b0 + sb * (b1 - b0)
                if j == i + 1 and distance(evaluate(pa, sa), pa.points[-1]) <= tolerance:
                    continue
                if tb - ta <= tolerance:
                    continue
                found.append((ta, tb, 0.0, 0.0))
    return _merge(found, tolerance)

