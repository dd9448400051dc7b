import numpy as np
import pytest

from src.bezpath.bezier import BezierSegment, evaluate, evaluate_many, project, tangent
from src.bezpath.errors import FitToleranceUnreachable
from src.bezpath.fit import chord_parameters, fit, fit_cubic
from src.bezpath.types import BezierKind

K = 0.5522847498307936


def _max_distance(points: np.ndarray, curves: list[BezierSegment]) -> float:
    worst = 0.0
    for p in points:
        d = min(float(np.linalg.norm(evaluate(c, project(c, p)) - p)) for c in curves)
        worst = max(worst, d)
    return worst


def _sine(n: int) -> np.ndarray:
    x = np.linspace(0.0, 2.0 * np.pi, n)
    return np.stack([x, np.sin(x)], axis=1)


def test_refit_cubic_recovers_control_points() -> None:
    c = BezierSegment.cubic([0.0, 0.0], [1.0, 2.0], [3.0, 2.0], [4.0, 0.0])
    samples = evaluate_many(c, np.linspace(0.0, 1.0, 50))
    sub = fit(samples, tolerance=1e-4)
    assert sub.segment_count == 1
    out = sub.segment(0)
    assert out.kind is BezierKind.CUBIC
    np.testing.assert_allclose(out.points, c.points, atol=1e-3)


def test_fit_within_tolerance() -> None:
    P = _sine(100)
    tol = 1e-2
    sub = fit(P, tolerance=tol)
    curves = list(sub.segments())
    assert _max_distance(P, curves) <= tol * (1.0 + 1e-6)
    np.testing.assert_array_equal(curves[0].points[0], P[0])
    np.testing.assert_array_equal(curves[-1].points[-1], P[-1])


def test_fit_joints_are_c1() -> None:
    sub = fit(_sine(100), tolerance=1e-3)
    curves = list(sub.segments())
    assert len(curves) > 1
    for a, b in zip(curves[:-1], curves[1:]):
        assert np.array_equal(a.points[-1], b.points[0])
        assert np.isclose(float(tangent(a, 1.0) @ tangent(b, 0.0)), 1.0, atol=1e-9)


def test_tangent_hints_are_respected() -> None:
    arc = BezierSegment.cubic([1.0, 0.0], [1.0, K], [K, 1.0], [0.0, 1.0])
    P = evaluate_many(arc, np.linspace(0.0, 1.0, 30))
    sub = fit(P, start_tangent=np.array([0.0, 1.0]), end_tangent=np.array([-1.0, 0.0]))
    first = sub.segment(0)
    last = sub.segment(sub.segment_count - 1)
    np.testing.assert_allclose(tangent(first, 0.0), [0.0, 1.0], atol=1e-12)
    np.testing.assert_allclose(tangent(last, 1.0), [-1.0, 0.0], atol=1e-12)


def test_two_points_fit_a_line() -> None:
    sub = fit(np.array([[0.0, 0.0], [1.0, 1.0]]))
    assert sub.segment_count == 1
    assert sub.segment(0).kind is BezierKind.LINEAR


def test_repeated_points_collapse() -> None:
    sub = fit(np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]]))
    assert sub.segment_count == 1
    np.testing.assert_array_equal(sub.segment(0).points, [[1.0, 1.0], [1.0, 1.0]])


def test_too_few_points() -> None:
    with pytest.raises(ValueError):
        fit(np.array([[0.0, 0.0]]))


def test_non_finite_points() -> None:
    with pytest.raises(ValueError):
        fit(np.array([[0.0, 0.0], [np.nan, 1.0], [2.0, 0.0]]))


def test_zero_tangent_hint() -> None:
    with pytest.raises(ValueError):
        fit(_sine(10), start_tangent=np.array([0.0, 0.0]))


def test_depth_limit_raises() -> None:
    with pytest.raises(FitToleranceUnreachable) as info:
        fit(_sine(100), tolerance=1e-6, max_depth=0)
    assert info.value.error > 1e-6


def test_fit_cubic_single_segment() -> None:
    c = BezierSegment.cubic([0.0, 0.0], [0.5, 1.5], [2.5, -1.0], [3.0, 0.5])
    samples = evaluate_many(c, np.linspace(0.0, 1.0, 40))
    out, err = fit_cubic(samples)
    assert err < 1e-3
    np.testing.assert_array_equal(out.points[0], samples[0])
    np.testing.assert_array_equal(out.points[-1], samples[-1])


def test_chord_parameters() -> None:
    P = np.array([[0.0, 0.0], [1.0, 0.0], [3.0, 0.0]])
    np.testing.assert_allclose(chord_parameters(P), [0.0, 1.0 / 3.0, 1.0])
