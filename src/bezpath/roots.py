from __future__ import annotations

import math

import numpy as np
from jaxtyping import Float, jaxtyped

from .consts import ROOT_EPSILON
from .types import typechecker


def _trim_leading(coeffs: np.ndarray, rel: float = 1e-12) -> np.ndarray:
    c = np.asarray(coeffs, dtype=np.float64)
    scale = float(np.max(np.abs(c))) if c.size else 0.0
    if scale == 0.0:
        return c[:0]
    i = 0
    while i < c.size - 1 and abs(c[i]) <= rel * scale:
        i += 1
    return c[i:]


def solve_quadratic(a: float, b: float, c: float) -> list[float]:
    """Real roots of a*x^2 + b*x + c, degrading to the linear case when a ~ 0."""

    scale = max(abs(a), abs(b), abs(c))
    if scale == 0.0:
        return []
    if abs(a) <= 1e-12 * scale:
        if abs(b) <= 1e-12 * scale:
            return []
        return [-c / b]
    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        # Tangential double roots often land slightly negative.
        if disc > -1e-14 * scale * scale:
            return [-b / (2.0 * a)]
        return []
    sq = math.sqrt(disc)
    # Citardauq form avoids cancellation for the smaller root.
    q = -0.5 * (b + math.copysign(sq, b))
    if q == 0.0:
        return [0.0]
    return sorted({q / a, c / q})


@jaxtyped(typechecker=typechecker)
def real_roots(coeffs: Float[np.ndarray, "k"]) -> list[float]:
    """
    Real roots of a polynomial given highest power first.
    Degree <= 2 is solved in closed form, higher degrees via companion
    matrix eigenvalues followed by two Newton polishing steps.
    """
    c = _trim_leading(coeffs)
    if c.size <= 1:
        return []
    if c.size == 2:
        return [-float(c[1]) / float(c[0])]
    if c.size == 3:
        return solve_quadratic(float(c[0]), float(c[1]), float(c[2]))

    out: list[float] = []
    dc = np.polyder(c)
    for r in np.roots(c):
        if abs(r.imag) > 1e-7 * max(1.0, abs(r.real)):
            continue
        x = float(r.real)
        for _ in range(2):
            d = float(np.polyval(dc, x))
            if d == 0.0:
                break
            x -= float(np.polyval(c, x)) / d
        out.append(x)
    return sorted(out)


def roots_in_unit_interval(
    coeffs: Float[np.ndarray, "k"],
    *,
    open_interval: bool = False,
    eps: float = ROOT_EPSILON,
) -> list[float]:
    """
    Sorted, de-duplicated real roots clamped into [0, 1].
    With open_interval=True, roots within eps of 0 or 1 are dropped.
    """
    found: list[float] = []
    for r in real_roots(np.asarray(coeffs, dtype=np.float64)):
        if r < -eps or r > 1.0 + eps:
            continue
        r = min(max(r, 0.0), 1.0)
        if open_interval and (r <= eps or r >= 1.0 - eps):
            continue
        if found and abs(r - found[-1]) <= eps:
            continue
        found.append(r)
    return found
