import numpy as np
import pytest

from src.bezpath.bezier import BezierSegment, derivative_many, evaluate
from src.bezpath.geometry import total_turning
from src.bezpath.subdivide import monotonic_pieces, reduce, split, trim
from src.bezpath.types import BezierKind

ARCH = BezierSegment.cubic([0.0, 0.0], [1.0, 2.0], [3.0, 2.0], [4.0, 0.0])
S_CURVE = BezierSegment.cubic([0.0, 0.0], [1.0, 1.0], [2.0, -1.0], [3.0, 0.0])


@pytest.mark.parametrize("t", [0.1, 0.37, 0.5, 0.9])
def test_split_continuity(t: float) -> None:
    left, right = split(ARCH, t)
    assert np.array_equal(left.points[-1], right.points[0])
    assert np.array_equal(left.points[0], ARCH.points[0])
    assert np.array_equal(right.points[-1], ARCH.points[-1])
    np.testing.assert_allclose(left.points[-1], evaluate(ARCH, t), atol=1e-9)
    for u in np.linspace(0.0, 1.0, 7):
        u = float(u)
        np.testing.assert_allclose(evaluate(left, u), evaluate(ARCH, u * t), atol=1e-9)
        np.testing.assert_allclose(
            evaluate(right, u), evaluate(ARCH, min(t + u * (1.0 - t), 1.0)), atol=1e-9
        )


def test_split_keeps_degree() -> None:
    q = BezierSegment.quadratic([0.0, 0.0], [1.0, 1.0], [2.0, 0.0])
    left, right = split(q, 0.3)
    assert left.kind is BezierKind.QUADRATIC
    assert right.kind is BezierKind.QUADRATIC


def test_trim() -> None:
    piece = trim(ARCH, 0.25, 0.75)
    np.testing.assert_allclose(piece.points[0], evaluate(ARCH, 0.25), atol=1e-12)
    np.testing.assert_allclose(piece.points[-1], evaluate(ARCH, 0.75), atol=1e-12)
    np.testing.assert_allclose(evaluate(piece, 0.5), evaluate(ARCH, 0.5), atol=1e-12)
    assert trim(ARCH, 0.0, 1.0) == ARCH


@pytest.mark.parametrize("t0,t1", [(0.5, 0.5), (0.7, 0.2), (-0.1, 0.5)])
def test_trim_rejects_bad_range(t0: float, t1: float) -> None:
    with pytest.raises(ValueError):
        trim(ARCH, t0, t1)


def test_reduce_linear_is_unchanged() -> None:
    line = BezierSegment.linear([0.0, 0.0], [1.0, 1.0])
    assert list(reduce(line)) == [line]


@pytest.mark.parametrize("curve", [ARCH, S_CURVE])
def test_reduce_pieces_are_ordered_and_bounded(curve: BezierSegment) -> None:
    max_turn = 0.3
    pieces = list(reduce(curve, max_turn=max_turn))
    assert len(pieces) >= 2
    assert np.array_equal(pieces[0].points[0], curve.points[0])
    assert np.array_equal(pieces[-1].points[-1], curve.points[-1])
    for a, b in zip(pieces[:-1], pieces[1:]):
        np.testing.assert_allclose(a.points[-1], b.points[0], atol=1e-12)
    ts = np.linspace(0.0, 1.0, 17)
    for p in pieces:
        assert total_turning(derivative_many(p, ts, 1)) <= max_turn + 1e-9


def test_reduce_cuts_at_inflection() -> None:
    pieces = list(reduce(S_CURVE, max_turn=10.0))
    assert len(pieces) == 2
    np.testing.assert_allclose(pieces[0].points[-1], evaluate(S_CURVE, 0.5), atol=1e-12)


def test_reduce_is_lazy() -> None:
    gen = reduce(ARCH, max_turn=0.05)
    first = next(gen)
    assert np.array_equal(first.points[0], ARCH.points[0])


def test_reduce_cuts_at_sharp_curvature() -> None:
    sharp = BezierSegment.cubic([0.0, 0.0], [2.0, 0.1], [2.0, -0.1], [0.0, 0.05])
    plain = list(reduce(sharp, max_turn=10.0))
    bounded = list(reduce(sharp, max_curvature=1.0, max_turn=10.0))
    assert len(bounded) > len(plain)


def test_monotonic_pieces_cover_domain() -> None:
    pieces = monotonic_pieces(S_CURVE)
    assert pieces[0][0] == 0.0
    assert pieces[-1][1] == 1.0
    for (_a0, a1, _pa), (b0, _b1, _pb) in zip(pieces[:-1], pieces[1:]):
        assert a1 == b0
    for t0, t1, piece in pieces:
        np.testing.assert_allclose(piece.points[0], evaluate(S_CURVE, t0), atol=1e-9)
        np.testing.assert_allclose(piece.points[-1], evaluate(S_CURVE, t1), atol=1e-9)
