import importlib

import numpy as np
import pytest

from src.bezpath.bezier import BezierSegment, evaluate, evaluate_many, project
from src.bezpath.errors import DegenerateCurve, SegmentError
from src.bezpath.offset import offset, offset_point, offset_subpath, outline
from src.bezpath.subpath import Subpath
from src.bezpath.types import BezierKind, Cap, Join

ARCH = BezierSegment.cubic([0.0, 0.0], [1.0, 2.0], [3.0, 2.0], [4.0, 0.0])
L_SHAPE = Subpath.from_anchors([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0]])
SQUARE = Subpath.from_anchors([[0.0, 0.0], [4.0, 0.0], [4.0, 4.0], [0.0, 4.0]], closed=True)


def _samples(sub: Subpath, n: int = 25) -> np.ndarray:
    ts = np.linspace(0.0, 1.0, n)
    return np.concatenate([evaluate_many(c, ts) for c in sub.segments()])


def test_linear_offset_is_exact() -> None:
    line = BezierSegment.linear([0.0, 0.0], [4.0, 0.0])
    sub = offset(line, 1.0)
    assert sub.segment_count == 1
    seg = sub.segment(0)
    assert seg.kind is BezierKind.LINEAR
    np.testing.assert_allclose(seg.points, [[0.0, 1.0], [4.0, 1.0]], atol=1e-6)

    below = offset(line, -1.0).segment(0)
    np.testing.assert_allclose(below.points, [[0.0, -1.0], [4.0, -1.0]], atol=1e-6)


def test_offset_accepts_integer_distance() -> None:
    line = BezierSegment.linear([0.0, 0.0], [4.0, 0.0])
    seg = offset(line, 1).segment(0)
    np.testing.assert_allclose(seg.points, [[0.0, 1.0], [4.0, 1.0]], atol=1e-6)


def test_offset_point() -> None:
    line = BezierSegment.linear([0.0, 0.0], [4.0, 0.0])
    np.testing.assert_allclose(offset_point(line, 0.25, 2.0), [1.0, 2.0])


def test_zero_offset_returns_curve() -> None:
    assert offset(ARCH, 0.0).segment(0) == ARCH


@pytest.mark.parametrize("d", [0.5, -0.5])
def test_curve_offset_keeps_distance(d: float) -> None:
    sub = offset(ARCH, d)
    for p in _samples(sub):
        foot = evaluate(ARCH, project(ARCH, p))
        assert abs(np.linalg.norm(p - foot) - abs(d)) < 5e-3
    np.testing.assert_allclose(sub.segment(0).points[0], offset_point(ARCH, 0.0, d), atol=1e-9)
    last = sub.segment(sub.segment_count - 1)
    np.testing.assert_allclose(last.points[-1], offset_point(ARCH, 1.0, d), atol=1e-9)


def test_quadratic_offset() -> None:
    q = BezierSegment.quadratic([0.0, 0.0], [2.0, 2.0], [4.0, 0.0])
    sub = offset(q, 0.25)
    for p in _samples(sub):
        foot = evaluate(q, project(q, p))
        assert abs(np.linalg.norm(p - foot) - 0.25) < 5e-3


def test_inner_corner_is_trimmed() -> None:
    sub = offset_subpath(L_SHAPE, 1.0)
    np.testing.assert_allclose(sub.anchors(), [[0.0, 1.0], [1.0, 1.0], [1.0, 2.0]], atol=1e-9)


def test_outer_corner_miter() -> None:
    sub = offset_subpath(L_SHAPE, -1.0, join=Join.MITER)
    np.testing.assert_allclose(
        sub.anchors(),
        [[0.0, -1.0], [2.0, -1.0], [3.0, -1.0], [3.0, 0.0], [3.0, 2.0]],
        atol=1e-9,
    )


def test_outer_corner_bevel() -> None:
    sub = offset_subpath(L_SHAPE, -1.0, join=Join.BEVEL)
    np.testing.assert_allclose(
        sub.anchors(), [[0.0, -1.0], [2.0, -1.0], [3.0, 0.0], [3.0, 2.0]], atol=1e-9
    )


def test_miter_limit_falls_back_to_bevel() -> None:
    sub = offset_subpath(L_SHAPE, -1.0, join=Join.MITER, miter_limit=1.0)
    assert sub.segment_count == 3


def test_outer_corner_round() -> None:
    sub = offset_subpath(L_SHAPE, -1.0, join=Join.ROUND)
    assert sub.segment_count == 3
    arc = sub.segment(1)
    assert arc.kind is BezierKind.CUBIC
    corner = np.array([2.0, 0.0])
    for t in (0.0, 0.25, 0.5, 0.75, 1.0):
        assert np.isclose(np.linalg.norm(evaluate(arc, t) - corner), 1.0, atol=1e-3)


def test_closed_square_outward_and_inward() -> None:
    outer = offset_subpath(SQUARE, -1.0)
    assert outer.closed
    lo, hi = outer.bounding_box()
    np.testing.assert_allclose(lo, [-1.0, -1.0], atol=1e-9)
    np.testing.assert_allclose(hi, [5.0, 5.0], atol=1e-9)

    inner = offset_subpath(SQUARE, 1.0)
    assert inner.segment_count == 4
    lo, hi = inner.bounding_box()
    np.testing.assert_allclose(lo, [1.0, 1.0], atol=1e-9)
    np.testing.assert_allclose(hi, [3.0, 3.0], atol=1e-9)


def test_segment_failure_names_the_segment(monkeypatch: pytest.MonkeyPatch) -> None:
    mod = importlib.import_module("src.bezpath.offset")
    original = mod._offset_curves

    def failing(curve: BezierSegment, d: float, tolerance: float) -> list[BezierSegment]:
        if curve.points[0][0] == 2.0:
            raise DegenerateCurve(0.0, 0.0)
        return original(curve, d, tolerance)

    monkeypatch.setattr(mod, "_offset_curves", failing)
    with pytest.raises(SegmentError) as info:
        offset_subpath(L_SHAPE, 1.0)
    assert info.value.index == 1
    assert isinstance(info.value.__cause__, DegenerateCurve)


def test_outline_open_line_butt() -> None:
    line = Subpath.from_anchors([[0.0, 0.0], [4.0, 0.0]])
    shapes = outline(line, 1.0)
    assert len(shapes) == 1
    shape = shapes[0]
    assert shape.closed
    assert shape.segment_count == 4
    lo, hi = shape.bounding_box()
    np.testing.assert_allclose(lo, [0.0, -1.0], atol=1e-9)
    np.testing.assert_allclose(hi, [4.0, 1.0], atol=1e-9)


def test_outline_square_cap() -> None:
    line = Subpath.from_anchors([[0.0, 0.0], [4.0, 0.0]])
    (shape,) = outline(line, 1.0, cap=Cap.SQUARE)
    lo, hi = shape.bounding_box()
    np.testing.assert_allclose(lo, [-1.0, -1.0], atol=1e-9)
    np.testing.assert_allclose(hi, [5.0, 1.0], atol=1e-9)


def test_outline_round_cap() -> None:
    line = Subpath.from_anchors([[0.0, 0.0], [4.0, 0.0]])
    (shape,) = outline(line, 1.0, cap=Cap.ROUND)
    lo, hi = shape.bounding_box()
    np.testing.assert_allclose(lo, [-1.0, -1.0], atol=1e-3)
    np.testing.assert_allclose(hi, [5.0, 1.0], atol=1e-3)


def test_outline_closed_gives_two_loops() -> None:
    shapes = outline(SQUARE, 0.5)
    assert len(shapes) == 2
    assert all(s.closed for s in shapes)


def test_outline_rejects_nonpositive_width() -> None:
    with pytest.raises(ValueError):
        outline(L_SHAPE, 0.0)
