from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from . import debug

if TYPE_CHECKING:
    from ..bezpath.bezier import BezierSegment

_repeats: dict[str, int] = {}


def log_once(key: str, message: str) -> None:
    """Log `message` the first time `key` is seen; later calls are only counted."""

    if not debug.is_verbose():
        return
    if key in _repeats:
        _repeats[key] += 1
        return
    _repeats[key] = 0
    debug.log(message)


def flush_repeats(key: str) -> None:
    """Report how many `key` messages were held back and forget the key."""

    count = _repeats.pop(key, 0)
    if count:
        debug.log(f"{key}: {count} more")


def _finite_range(arr: np.ndarray) -> tuple[bool, float, float]:
    finite_mask = np.isfinite(arr)
    if arr.size == 0 or not finite_mask.any():
        return arr.size == 0, float("nan"), float("nan")
    vals = arr[finite_mask]
    return bool(finite_mask.all()), float(np.min(vals)), float(np.max(vals))


def log_array(name: str, arr: np.ndarray) -> None:
    if not debug.is_verbose():
        return
    finite_all, min_val, max_val = _finite_range(arr)
    debug.log(
        f"{name}: shape={arr.shape} dtype={arr.dtype} "
        f"finite_all={finite_all} min={min_val:.6g} max={max_val:.6g}"
    )


def log_curve(name: str, curve: BezierSegment) -> None:
    """One-line summary of a segment: kind, end points and control box."""

    if not debug.is_verbose():
        return
    P = curve.points
    lo, hi = P.min(axis=0), P.max(axis=0)
    debug.log(
        f"{name}: {curve.kind.name.lower()} "
        f"({P[0][0]:.6g}, {P[0][1]:.6g}) -> ({P[-1][0]:.6g}, {P[-1][1]:.6g}) "
        f"box=[{lo[0]:.6g}, {lo[1]:.6g}]..[{hi[0]:.6g}, {hi[1]:.6g}]"
    )
