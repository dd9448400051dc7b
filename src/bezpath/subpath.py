from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace

import numpy as np
from jaxtyping import Float
from numpy.typing import ArrayLike

from .bezier import BezierSegment, bounding_box, evaluate, tangent
from .consts import DEFAULT_INTERSECTION_TOLERANCE, DEGENERATE_EPSILON
from .intersect import intersect
from .length import arc_length
from .point import as_point, cross, distance, dot, length
from .subdivide import split
from .types import BezierKind, Box, Point


def _opt_point(p: ArrayLike | None) -> Point | None:
    if p is None:
        return None
    arr = as_point(p)
    arr.setflags(write=False)
    return arr


def _same(a: Point | None, b: Point | None) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return bool(np.array_equal(a, b))


@dataclass(frozen=True, eq=False)
class ManipulatorGroup:
    """An anchor with optional absolute incoming/outgoing handle positions."""

    anchor: Point
    in_handle: Point | None = None
    out_handle: Point | None = None

    def __post_init__(self) -> None:
        if self.anchor is None:
            raise ValueError("a manipulator group needs an anchor")
        object.__setattr__(self, "anchor", _opt_point(self.anchor))
        object.__setattr__(self, "in_handle", _opt_point(self.in_handle))
        object.__setattr__(self, "out_handle", _opt_point(self.out_handle))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ManipulatorGroup):
            return NotImplemented
        return (
            _same(self.anchor, other.anchor)
            and _same(self.in_handle, other.in_handle)
            and _same(self.out_handle, other.out_handle)
        )

    def __hash__(self) -> int:
        parts = [
            None if p is None else p.tobytes()
            for p in (self.anchor, self.in_handle, self.out_handle)
        ]
        return hash(tuple(parts))

    def __repr__(self) -> str:
        def fmt(p: Point | None) -> str:
            return "None" if p is None else f"({p[0]:.6g}, {p[1]:.6g})"

        return (
            f"ManipulatorGroup(anchor={fmt(self.anchor)}, "
            f"in={fmt(self.in_handle)}, out={fmt(self.out_handle)})"
        )

    def flipped(self) -> ManipulatorGroup:
        return ManipulatorGroup(self.anchor, self.out_handle, self.in_handle)

    def is_smooth(self, eps: float = 1e-9) -> bool:
        """Both handles present, collinear with the anchor and on opposite sides."""

        if self.in_handle is None or self.out_handle is None:
            return False
        u = self.in_handle - self.anchor
        v = self.out_handle - self.anchor
        lu, lv = length(u), length(v)
        if lu <= eps or lv <= eps:
            return False
        return abs(cross(u, v)) <= eps * lu * lv and dot(u, v) < 0.0


def segment_between(start: ManipulatorGroup, end: ManipulatorGroup) -> BezierSegment:
    """Degree follows the handles present: none linear, one quadratic, two cubic."""

    h1, h2 = start.out_handle, end.in_handle
    if h1 is None and h2 is None:
        return BezierSegment(np.stack([start.anchor, end.anchor]))
    if h1 is not None and h2 is not None:
        return BezierSegment(np.stack([start.anchor, h1, h2, end.anchor]))
    handle = h1 if h1 is not None else h2
    return BezierSegment(np.stack([start.anchor, handle, end.anchor]))


def handles_of(curve: BezierSegment) -> tuple[Point | None, Point | None]:
    """(out handle of the start group, in handle of the end group)."""

    P = curve.points
    if curve.kind is BezierKind.LINEAR:
        return None, None
    if curve.kind is BezierKind.QUADRATIC:
        return P[1].copy(), None
    return P[1].copy(), P[2].copy()


@dataclass(frozen=True)
class Subpath:
    """
    Ordered manipulator groups plus an open/closed flag.

    Segments are never stored; `segment(i)` derives them from consecutive
    groups, and closed subpaths get one more segment from the last group
    back to the first. Every edit returns a new Subpath.
    """

    groups: tuple[ManipulatorGroup, ...]
    closed: bool = False

    def __post_init__(self) -> None:
        groups = tuple(self.groups)
        for g in groups:
            if not isinstance(g, ManipulatorGroup):
                raise TypeError(f"expected ManipulatorGroup, got {type(g).__name__}")
        object.__setattr__(self, "groups", groups)

    @classmethod
    def from_beziers(
        cls,
        curves: Iterable[BezierSegment],
        closed: bool = False,
        *,
        tolerance: float = 1e-9,
    ) -> Subpath:
        """
        Chain segments end to start. Each segment must start within
        `tolerance` of where the previous one ended; the joint takes the
        previous segment's end point.
        """
        curves = list(curves)
        if not curves:
            return cls((), closed)
        groups: list[ManipulatorGroup] = []
        pending_in: Point | None = None
        prev_end: Point | None = None
        for i, c in enumerate(curves):
            if prev_end is not None and distance(prev_end, c.points[0]) > tolerance:
                raise ValueError(
                    f"segment {i} starts at {c.points[0]} but segment {i - 1} "
                    f"ends at {prev_end}"
                )
            out_h, in_h = handles_of(c)
            anchor = c.points[0] if prev_end is None else prev_end
            groups.append(ManipulatorGroup(anchor, pending_in, out_h))
            pending_in = in_h
            prev_end = c.points[-1]
        assert prev_end is not None
        if closed and distance(prev_end, groups[0].anchor) <= tolerance:
            groups[0] = replace(groups[0], in_handle=pending_in)
        else:
            groups.append(ManipulatorGroup(prev_end, pending_in, None))
        return cls(tuple(groups), closed)

    @classmethod
    def from_anchors(cls, anchors: ArrayLike, closed: bool = False) -> Subpath:
        """Polyline subpath: one handle-free group per anchor."""

        pts = np.asarray(anchors, dtype=np.float64)
        return cls(tuple(ManipulatorGroup(p) for p in pts), closed)

    def __len__(self) -> int:
        return len(self.groups)

    @property
    def is_closed(self) -> bool:
        return self.closed

    @property
    def segment_count(self) -> int:
        n = len(self.groups)
        if n < 2:
            return 0
        return n if self.closed else n - 1

    def segment(self, index: int) -> BezierSegment:
        count = self.segment_count
        if not 0 <= index < count:
            raise IndexError(f"segment index {index} out of range for {count} segments")
        start = self.groups[index]
        end = self.groups[(index + 1) % len(self.groups)]
        return segment_between(start, end)

    def segments(self) -> Iterator[BezierSegment]:
        """Derived segments in order, including the closing one."""

        for i in range(self.segment_count):
            yield self.segment(i)

    def anchors(self) -> Float[np.ndarray, "N 2"]:
        if not self.groups:
            return np.zeros((0, 2), dtype=np.float64)
        return np.stack([g.anchor for g in self.groups])

    # -- editing ---------------------------------------------------------

    def insert_group(self, index: int, group: ManipulatorGroup) -> Subpath:
        if not 0 <= index <= len(self.groups):
            raise IndexError(f"insert index {index} out of range")
        groups = list(self.groups)
        groups.insert(index, group)
        return Subpath(tuple(groups), self.closed)

    def remove_group(self, index: int) -> Subpath:
        if not 0 <= index < len(self.groups):
            raise IndexError(f"group index {index} out of range")
        groups = list(self.groups)
        del groups[index]
        return Subpath(tuple(groups), self.closed)

    def replace_segment(self, index: int, curve: BezierSegment) -> Subpath:
        """
        Swap segment `index` for `curve`. The two groups around it take the
        curve's end points and handles; a smooth handle on the far side of
        either group is turned to stay opposite the new tangent, keeping its
        length. Other handles move with their anchor.
        """
        count = self.segment_count
        if not 0 <= index < count:
            raise IndexError(f"segment index {index} out of range for {count} segments")
        i = index
        j = (index + 1) % len(self.groups)
        out_h, in_h = handles_of(curve)
        start_dir = _direction(curve, 0.0)
        end_dir = _direction(curve, 1.0)

        gi, gj = self.groups[i], self.groups[j]
        new_i = ManipulatorGroup(
            curve.points[0],
            _follow(gi, gi.in_handle, curve.points[0], start_dir, -1.0),
            out_h,
        )
        new_j = ManipulatorGroup(
            curve.points[-1],
            in_h,
            _follow(gj, gj.out_handle, curve.points[-1], end_dir, 1.0),
        )
        groups = list(self.groups)
        groups[i] = new_i
        groups[j] = new_j
        return Subpath(tuple(groups), self.closed)

    def set_closed(self, closed: bool) -> Subpath:
        """
        Closing a subpath whose last anchor repeats the first merges the two
        groups, so the closing segment is not a zero-length one.
        """
        if not closed:
            return Subpath(self.groups, False)
        groups = list(self.groups)
        if len(groups) >= 2 and distance(groups[0].anchor, groups[-1].anchor) <= DEGENERATE_EPSILON:
            last = groups.pop()
            groups[0] = replace(groups[0], in_handle=last.in_handle)
        return Subpath(tuple(groups), True)

    def close(self) -> Subpath:
        return self.set_closed(True)

    def open(self) -> Subpath:
        return self.set_closed(False)

    def reverse(self) -> Subpath:
        groups = tuple(g.flipped() for g in reversed(self.groups))
        if self.closed and groups:
            # Keep the same first anchor.
            groups = groups[-1:] + groups[:-1]
        return Subpath(groups, self.closed)

    def insert(self, t: float) -> Subpath:
        """Split the segment under global parameter t, adding an anchor there."""

        index, local = self.global_to_local(t)
        if local in (0.0, 1.0):
            return self
        left, right = split(self.segment(index), local)
        l_out, l_in = handles_of(left)
        r_out, r_in = handles_of(right)
        i = index
        j = (index + 1) % len(self.groups)
        groups = list(self.groups)
        groups[i] = replace(groups[i], out_handle=l_out)
        groups[j] = replace(groups[j], in_handle=r_in)
        groups.insert(i + 1, ManipulatorGroup(left.points[-1], l_in, r_out))
        return Subpath(tuple(groups), self.closed)

    # -- queries ---------------------------------------------------------

    def global_to_local(self, t: float) -> tuple[int, float]:
        """Map t in [0,1] over the whole subpath to (segment index, local t)."""

        n = self.segment_count
        if n == 0:
            raise ValueError("subpath has no segments")
        if not 0.0 <= t <= 1.0:
            raise ValueError(f"t must be in [0, 1], got {t}")
        if t == 1.0:
            return n - 1, 1.0
        scaled = t * n
        index = min(int(math.floor(scaled)), n - 1)
        return index, float(scaled - index)

    def evaluate(self, t: float) -> Point:
        index, local = self.global_to_local(t)
        return evaluate(self.segment(index), local)

    def length(self) -> float:
        return float(sum(arc_length(c) for c in self.segments()))

    def bounding_box(self) -> Box:
        if self.segment_count == 0:
            A = self.anchors()
            if A.shape[0] == 0:
                raise ValueError("empty subpath has no bounding box")
            return A.min(axis=0), A.max(axis=0)
        boxes = [bounding_box(c) for c in self.segments()]
        return (
            np.min(np.stack([b[0] for b in boxes]), axis=0),
            np.max(np.stack([b[1] for b in boxes]), axis=0),
        )

    def intersections(
        self,
        curve: BezierSegment,
        *,
        tolerance: float = DEFAULT_INTERSECTION_TOLERANCE,
    ) -> list[tuple[int, float, float]]:
        """(segment index, t on segment, t on curve) for every crossing."""

        out: list[tuple[int, float, float]] = []
        for i, seg in enumerate(self.segments()):
            for ta, tb in intersect(seg, curve, tolerance=tolerance):
                out.append((i, ta, tb))
        return out


def _direction(curve: BezierSegment, t: float) -> Point | None:
    try:
        return tangent(curve, t)
    except ValueError:
        return None


def _follow(
    group: ManipulatorGroup,
    handle: Point | None,
    new_anchor: Point,
    new_tangent: Point | None,
    sign: float,
) -> Point | None:
    """
    Far-side handle of `group` once its anchor moves to `new_anchor`.
    sign is -1 for an incoming handle (points against the tangent), +1 for
    an outgoing one.
    """

    if handle is None:
        return None
    offset = handle - group.anchor
    if group.is_smooth() and new_tangent is not None:
        return new_anchor + sign * length(offset) * new_tangent
    return new_anchor + offset

