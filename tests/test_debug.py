import numpy as np
import pytest

from src.bezpath.bezier import BezierSegment
from src.bezpath.fit import fit
from src.bezpath.intersect import intersect_detailed
from src.bezpath.subdivide import reduce
from src.utils import debug, debug_helpers

ARCH = BezierSegment.cubic([0.0, 0.0], [1.0, 2.0], [3.0, 2.0], [4.0, 0.0])
VALLEY = BezierSegment.cubic([0.0, 2.0], [1.0, 0.0], [3.0, 0.0], [4.0, 2.0])
S_CURVE = BezierSegment.cubic([0.0, 0.0], [1.0, 2.0], [2.0, -2.0], [3.0, 0.0])


def _sine() -> np.ndarray:
    x = np.linspace(0.0, 2.0 * np.pi, 100)
    return np.stack([x, np.sin(x)], axis=1)


def test_log_is_silent_by_default(capsys: pytest.CaptureFixture[str]) -> None:
    assert not debug.is_verbose()
    debug.log("hidden")
    assert capsys.readouterr().out == ""


def test_verbose_context_restores_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with debug.verbose():
        assert debug.is_verbose()
        debug.log("shown")
    assert not debug.is_verbose()
    assert "shown" in capsys.readouterr().out


def test_log_once_counts_repeats(capsys: pytest.CaptureFixture[str]) -> None:
    with debug.verbose():
        debug_helpers.log_once("repeat", "first")
        debug_helpers.log_once("repeat", "second")
        debug_helpers.log_once("repeat", "third")
        debug_helpers.flush_repeats("repeat")
    out = capsys.readouterr().out
    assert "first" in out
    assert "second" not in out
    assert "repeat: 2 more" in out


def test_reduce_reports_depth_cap_once(capsys: pytest.CaptureFixture[str]) -> None:
    with debug.verbose():
        pieces = list(reduce(S_CURVE, max_turn=0.01, max_depth=0))
    out = capsys.readouterr().out
    assert len(pieces) == 2
    assert out.count("depth cap 0 reached") == 1
    assert "reduce: depth cap: 1 more" in out


def test_log_array_summary(capsys: pytest.CaptureFixture[str]) -> None:
    with debug.verbose():
        debug_helpers.log_array("arr", np.array([[1.0, np.inf], [-2.0, 0.5]]))
    out = capsys.readouterr().out
    assert "arr: shape=(2, 2)" in out
    assert "finite_all=False" in out
    assert "min=-2" in out


def test_log_curve(capsys: pytest.CaptureFixture[str]) -> None:
    with debug.verbose():
        debug_helpers.log_curve("arch", ARCH)
    out = capsys.readouterr().out
    assert "arch: cubic (0, 0) -> (4, 0)" in out


def test_fit_logs_splits_without_changing_result(capsys: pytest.CaptureFixture[str]) -> None:
    quiet = fit(_sine(), tolerance=1e-3)
    with debug.verbose():
        loud = fit(_sine(), tolerance=1e-3)
    out = capsys.readouterr().out
    assert "fit: split" in out
    assert "fit.points" in out
    assert quiet == loud


def test_intersect_logs_abandoned_branches(capsys: pytest.CaptureFixture[str]) -> None:
    with debug.verbose():
        intersect_detailed(ARCH, VALLEY, max_depth=2)
    assert "abandoned" in capsys.readouterr().out
