from __future__ import annotations

import math

import numpy as np
from jaxtyping import Float, jaxtyped

from ..utils import debug, debug_helpers
from .bezier import (
    BezierSegment,
    derivative_many,
    evaluate,
    evaluate_many,
    is_point,
    normal,
    tangent,
    translate,
)
from .consts import (
    DEFAULT_FIT_TOLERANCE,
    DEFAULT_MITER_LIMIT,
    DEGENERATE_EPSILON,
    OFFSET_SAMPLES,
)
from .errors import BezpathError, SegmentError
from .fit import fit
from .intersect import intersect
from .point import angle_between, distance, length, line_line_intersection, perpendicular
from .subdivide import reduce, trim
from .subpath import Subpath
from .types import BezierKind, Cap, Join, Point, typechecker

# How many segments from each side of a join are searched for the trim point.
_JOIN_SEARCH = 3


@jaxtyped(typechecker=typechecker)
def offset_point(curve: BezierSegment, t: float, distance: float) -> Float[np.ndarray, "2"]:
    """Point at t moved `distance` along the left-hand normal."""

    return evaluate(curve, t) + distance * normal(curve, t)


def _sample_normals(piece: BezierSegment, ts: np.ndarray) -> np.ndarray | None:
    """
    Unit normals at ts. Where the speed vanishes (a cusp at a piece end) the
    next non-zero derivative gives the limiting direction.
    """
    d = derivative_many(piece, ts, 1)
    speed = np.linalg.norm(d, axis=1)
    for order in (2, 3):
        bad = speed <= DEGENERATE_EPSILON
        if not bad.any() or order > piece.degree:
            break
        dn = derivative_many(piece, ts, order)
        # Near t=1 the limiting direction of B' is -B'' for an even order step.
        sign = np.where(ts > 0.5, -1.0, 1.0) if order == 2 else 1.0
        d = np.where(bad[:, None], dn * np.asarray(sign)[..., None], d)
        speed = np.linalg.norm(d, axis=1)
    if (speed <= DEGENERATE_EPSILON).any():
        return None
    unit = d / speed[:, None]
    return np.stack([-unit[:, 1], unit[:, 0]], axis=1)


def _offset_piece(piece: BezierSegment, d: float, tolerance: float) -> list[BezierSegment]:
    ts = np.linspace(0.0, 1.0, OFFSET_SAMPLES)
    normals = _sample_normals(piece, ts)
    if normals is None:
        debug.log("offset: skipping a piece with no defined normal")
        return []
    samples = evaluate_many(piece, ts) + d * normals
    samples[0] = evaluate(piece, 0.0) + d * normals[0]
    samples[-1] = evaluate(piece, 1.0) + d * normals[-1]
    t_start = -perpendicular(normals[0])
    t_end = -perpendicular(normals[-1])
    sub = fit(samples, tolerance=tolerance, start_tangent=t_start, end_tangent=t_end)
    return list(sub.segments())


def _chain(curves: list[BezierSegment], tolerance: float) -> list[BezierSegment]:
    """Bridge gaps wider than `tolerance` with straight segments."""

    out: list[BezierSegment] = []
    for c in curves:
        if out:
            gap = distance(out[-1].points[-1], c.points[0])
            if gap > tolerance:
                out.append(BezierSegment.linear(out[-1].points[-1], c.points[0]))
        out.append(c)
    return out


def _offset_curves(curve: BezierSegment, d: float, tolerance: float) -> list[BezierSegment]:
    if curve.kind is BezierKind.LINEAR:
        n = normal(curve, 0.0)
        return [translate(curve, d * n)]
    pieces = reduce(curve, max_curvature=1.0 / abs(d))
    curves: list[BezierSegment] = []
    for piece in pieces:
        curves.extend(_offset_piece(piece, d, tolerance))
    return _chain(curves, tolerance)


@jaxtyped(typechecker=typechecker)
def offset(
    curve: BezierSegment,
    distance: float,
    *,
    tolerance: float = DEFAULT_FIT_TOLERANCE,
) -> Subpath:
    """
    Approximate offset at signed `distance` along the left-hand normal.
    Lines offset exactly; curves are reduced, displaced and refit so the
    result stays within `tolerance` of the true offset at the samples.
    """
    if tolerance <= 0.0:
        raise ValueError("tolerance must be > 0")
    if distance == 0.0:
        return Subpath.from_beziers([curve])
    return Subpath.from_beziers(_offset_curves(curve, distance, tolerance), tolerance=tolerance)


def arc_segments(center: Point, start: Point, sweep: float) -> list[BezierSegment]:
    """Cubic approximation of a circular arc, at most a quarter turn per cubic."""

    r = distance(center, start)
    if r <= DEGENERATE_EPSILON or sweep == 0.0:
        return []
    a0 = math.atan2(float(start[1] - center[1]), float(start[0] - center[0]))
    n = max(1, math.ceil(abs(sweep) / (0.5 * math.pi) - 1e-9))
    step = sweep / n
    k = 4.0 / 3.0 * math.tan(step / 4.0)
    out: list[BezierSegment] = []
    p0 = np.asarray(start, dtype=np.float64)
    for i in range(n):
        a = a0 + i * step
        b = a + step
        p3 = center + r * np.array([math.cos(b), math.sin(b)])
        p1 = p0 + k * r * np.array([-math.sin(a), math.cos(a)])
        p2 = p3 - k * r * np.array([-math.sin(b), math.cos(b)])
        out.append(BezierSegment(np.stack([p0, p1, p2, p3])))
        p0 = p3
    return out


def _join(
    a_end: Point,
    a_dir: Point,
    b_start: Point,
    b_dir: Point,
    corner: Point,
    join: Join,
    miter_limit: float,
    radius: float,
) -> list[BezierSegment]:
    """Segments bridging the outer side of a corner."""

    if join is Join.ROUND:
        sweep = angle_between(a_end - corner, b_start - corner)
        arc = arc_segments(corner, a_end, sweep)
        if arc:
            last = arc[-1].points.copy()
            last[-1] = b_start
            arc[-1] = BezierSegment(last)
            return arc
    if join is Join.MITER:
        hit = line_line_intersection(a_end, a_dir, b_start, b_dir)
        if hit is not None and hit[0] > 0.0 and hit[1] < 0.0:
            tip = a_end + hit[0] * a_dir
            if distance(tip, corner) <= miter_limit * radius:
                return [BezierSegment.linear(a_end, tip), BezierSegment.linear(tip, b_start)]
        debug.log("offset: miter limit exceeded, using bevel")
    return [BezierSegment.linear(a_end, b_start)]


def _trim_inner(
    A: list[BezierSegment], B: list[BezierSegment], tolerance: float
) -> tuple[list[BezierSegment], list[BezierSegment]] | None:
    """Cut two overlapping chains back to the crossing nearest the corner."""

    for back in range(min(_JOIN_SEARCH, len(A))):
        ai = len(A) - 1 - back
        for bi in range(min(_JOIN_SEARCH, len(B))):
            hits = intersect(A[ai], B[bi], tolerance=min(tolerance, 1e-6))
            if not hits:
                continue
            ta, tb = max(hits, key=lambda h: h[0] - h[1])
            head = A[:ai] + ([trim(A[ai], 0.0, ta)] if ta > 0.0 else [])
            tail = ([trim(B[bi], tb, 1.0)] if tb < 1.0 else []) + B[bi + 1 :]
            if head and tail:
                joint = head[-1].points[-1]
                fixed = tail[0].points.copy()
                fixed[0] = joint
                tail[0] = BezierSegment(fixed)
            return head, tail
    return None


def _end_dir(curve: BezierSegment, t: float) -> Point:
    try:
        return tangent(curve, t)
    except ValueError:
        return curve.points[-1] - curve.points[0]


@jaxtyped(typechecker=typechecker)
def offset_subpath(
    subpath: Subpath,
    distance: float,
    *,
    join: Join = Join.MITER,
    miter_limit: float = DEFAULT_MITER_LIMIT,
    tolerance: float = DEFAULT_FIT_TOLERANCE,
) -> Subpath:
    """
    Offset every segment, then reconcile the corners: chains that cross on
    the inner side are trimmed to their intersection, chains that diverge on
    the outer side get a bevel, miter or round join. A failing segment is
    reported as SegmentError with its index.
    """
    originals: list[BezierSegment] = []
    chains: list[list[BezierSegment]] = []
    for i, seg in enumerate(subpath.segments()):
        if is_point(seg):
            continue
        try:
            chain = _offset_curves(seg, distance, tolerance) if distance else [seg]
        except BezpathError as exc:
            debug_helpers.log_curve(f"offset: segment {i} failed", seg)
            raise SegmentError(i, exc) from exc
        originals.append(seg)
        chains.append(chain)
    if not chains:
        return Subpath((), subpath.closed)

    n = len(chains)
    corners = range(n if subpath.closed and n > 1 else n - 1)
    joins: list[list[BezierSegment]] = [[] for _ in range(n)]
    for i in corners:
        j = (i + 1) % n
        A, B = chains[i], chains[j]
        a_end, b_start = A[-1].points[-1], B[0].points[0]
        if length(a_end - b_start) <= tolerance:
            continue
        a_dir = _end_dir(originals[i], 1.0)
        b_dir = _end_dir(originals[j], 0.0)
        turn = float(a_dir[0] * b_dir[1] - a_dir[1] * b_dir[0])
        corner = originals[j].points[0]
        if turn * distance > 0.0:
            trimmed = _trim_inner(A, B, tolerance)
            if trimmed is not None and trimmed[0] and trimmed[1]:
                chains[i], chains[j] = trimmed
                continue
            debug.log(f"offset: no inner crossing at corner {j}, bridging")
            joins[i] = [BezierSegment.linear(a_end, b_start)]
        else:
            joins[i] = _join(a_end, a_dir, b_start, b_dir, corner, join, miter_limit, abs(distance))

    curves: list[BezierSegment] = []
    for i in range(n):
        curves.extend(chains[i])
        curves.extend(joins[i])
    return Subpath.from_beziers(_chain(curves, tolerance), closed=subpath.closed, tolerance=tolerance)


def _cap(
    a: Point, b: Point, center: Point, direction: Point, cap: Cap, radius: float
) -> list[BezierSegment]:
    """Close the gap from side a to side b around an open end facing `direction`."""

    if cap is Cap.ROUND:
        u = a - center
        sweep = math.pi if float(perpendicular(u) @ direction) > 0.0 else -math.pi
        arc = arc_segments(center, a, sweep)
        if arc:
            last = arc[-1].points.copy()
            last[-1] = b
            arc[-1] = BezierSegment(last)
            return arc
    if cap is Cap.SQUARE:
        push = radius * direction
        return [
            BezierSegment.linear(a, a + push),
            BezierSegment.linear(a + push, b + push),
            BezierSegment.linear(b + push, b),
        ]
    return [BezierSegment.linear(a, b)]


@jaxtyped(typechecker=typechecker)
def outline(
    subpath: Subpath,
    distance: float,
    *,
    join: Join = Join.MITER,
    cap: Cap = Cap.BUTT,
    miter_limit: float = DEFAULT_MITER_LIMIT,
    tolerance: float = DEFAULT_FIT_TOLERANCE,
) -> list[Subpath]:
    """
    Stroke outline at half-width `distance`. An open subpath gives one
    closed shape (left side, end cap, right side reversed, start cap); a
    closed subpath gives its two offset loops.
    """
    if distance <= 0.0:
        raise ValueError("outline distance must be > 0")
    opts = dict(join=join, miter_limit=miter_limit, tolerance=tolerance)
    left = offset_subpath(subpath, distance, **opts)
    right = offset_subpath(subpath, -distance, **opts)
    if subpath.closed:
        return [left, right]
    if subpath.segment_count == 0:
        return []

    first = subpath.segment(0)
    last = subpath.segment(subpath.segment_count - 1)
    end_dir = _end_dir(last, 1.0)
    start_dir = _end_dir(first, 0.0)
    end_dir = end_dir / max(length(end_dir), DEGENERATE_EPSILON)
    start_dir = start_dir / max(length(start_dir), DEGENERATE_EPSILON)

    lhs = list(left.segments())
    rhs = list(right.reverse().segments())
    if not lhs or not rhs:
        return []
    curves = list(lhs)
    curves += _cap(lhs[-1].points[-1], rhs[0].points[0], last.points[-1], end_dir, cap, distance)
    curves += rhs
    curves += _cap(rhs[-1].points[-1], lhs[0].points[0], first.points[0], -start_dir, cap, distance)
    return [Subpath.from_beziers(_chain(curves, tolerance), closed=True, tolerance=tolerance)]
