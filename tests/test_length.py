import math

import numpy as np
import pytest

from src.bezpath.bezier import BezierSegment, evaluate
from src.bezpath.errors import NonMonotonicLength
from src.bezpath.length import (
    arc_length,
    euclidean_to_parametric,
    lookup_table,
    parameterize_by_length,
)

K = 0.5522847498307936
ARCH = BezierSegment.cubic([0.0, 0.0], [1.0, 2.0], [3.0, 2.0], [4.0, 0.0])


def test_linear_length_is_exact() -> None:
    line = BezierSegment.linear([0.0, 0.0], [3.0, 4.0])
    assert arc_length(line) == 5.0
    assert np.isclose(arc_length(line, 0.0, 0.5), 2.5)


def test_straight_cubic_length() -> None:
    c = BezierSegment.cubic([0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0])
    assert np.isclose(arc_length(c), 3.0, atol=1e-9)


def test_quarter_circle_length() -> None:
    c = BezierSegment.cubic([1.0, 0.0], [1.0, K], [K, 1.0], [0.0, 1.0])
    assert np.isclose(arc_length(c), 0.5 * math.pi, atol=1e-3)


def test_length_is_additive() -> None:
    total = arc_length(ARCH)
    parts = arc_length(ARCH, 0.0, 0.3) + arc_length(ARCH, 0.3, 1.0)
    assert np.isclose(parts, total, rtol=1e-9)


def test_bad_range_raises() -> None:
    with pytest.raises(ValueError):
        arc_length(ARCH, 0.8, 0.2)


def test_parameterize_by_full_length_is_one() -> None:
    total = arc_length(ARCH)
    assert parameterize_by_length(ARCH, total) == 1.0
    assert parameterize_by_length(ARCH, 0.0) == 0.0


@pytest.mark.parametrize("frac", [0.1, 0.25, 0.5, 0.8, 0.99])
def test_length_round_trip(frac: float) -> None:
    total = arc_length(ARCH)
    s = frac * total
    t = parameterize_by_length(ARCH, s)
    assert 0.0 <= t <= 1.0
    assert np.isclose(arc_length(ARCH, 0.0, t), s, atol=1e-6 * total)


def test_parameterize_out_of_range() -> None:
    with pytest.raises(ValueError):
        parameterize_by_length(ARCH, arc_length(ARCH) * 1.5)
    with pytest.raises(ValueError):
        parameterize_by_length(ARCH, -1.0)


def test_parameterize_runs_out_of_iterations() -> None:
    # Nearly all of the length sits near t=1, so the first guess is far off.
    c = BezierSegment.cubic([0.0, 0.0], [0.01, 0.0], [0.02, 0.0], [10.0, 0.0])
    with pytest.raises(NonMonotonicLength):
        parameterize_by_length(c, 0.5 * arc_length(c), max_iterations=1)


def test_euclidean_to_parametric_symmetric_curve() -> None:
    assert np.isclose(euclidean_to_parametric(ARCH, 0.5), 0.5, atol=1e-5)
    assert euclidean_to_parametric(ARCH, 0.0) == 0.0
    assert euclidean_to_parametric(ARCH, 1.0) == 1.0


def test_lookup_table_parametric() -> None:
    lut = lookup_table(ARCH, 4)
    assert lut.shape == (5, 2)
    np.testing.assert_allclose(lut[2], evaluate(ARCH, 0.5))


def test_lookup_table_euclidean_is_evenly_spaced() -> None:
    steps = 4
    lut = lookup_table(ARCH, steps, euclidean=True)
    total = arc_length(ARCH)
    ts = [euclidean_to_parametric(ARCH, i / steps) for i in range(steps + 1)]
    lengths = [arc_length(ARCH, a, b) for a, b in zip(ts[:-1], ts[1:])]
    np.testing.assert_allclose(lengths, total / steps, rtol=1e-4)
    np.testing.assert_allclose(lut[0], ARCH.points[0])
    np.testing.assert_allclose(lut[-1], ARCH.points[-1])
