from __future__ import annotations


class BezpathError(Exception):
    """Base class for recoverable geometry failures."""


class DegenerateCurve(BezpathError, ValueError):
    """The derivative vanishes where a tangent direction is required."""

    def __init__(self, t: float, speed: float) -> None:
        super().__init__(f"degenerate tangent at t={t:.6g} (speed={speed:.3g})")
        self.t = t
        self.speed = speed


class NonMonotonicLength(BezpathError):
    """Arc-length inversion ran out of iterations before converging."""

    def __init__(self, s: float, t: float, residual: float) -> None:
        super().__init__(
            f"no parameter found for arc length s={s:.6g} "
            f"(last t={t:.6g}, residual={residual:.3g})"
        )
        self.s = s
        self.t = t
        self.residual = residual


class IntersectionDepthExceeded(BezpathError):
    """Subdivision hit the depth cap without isolating an intersection."""

    def __init__(self, abandoned: int, max_depth: int) -> None:
        super().__init__(
            f"no isolated intersection found within tolerance: "
            f"{abandoned} branch(es) reached depth {max_depth}"
        )
        self.abandoned = abandoned
        self.max_depth = max_depth


class FitToleranceUnreachable(BezpathError):
    """Recursive fitting bottomed out while still above tolerance."""

    def __init__(self, error: float, tolerance: float, n_points: int) -> None:
        super().__init__(
            f"fit error {error:.6g} exceeds tolerance {tolerance:.6g} "
            f"on a range of {n_points} points"
        )
        self.error = error
        self.tolerance = tolerance
        self.n_points = n_points


class SegmentError(BezpathError):
    """A per-segment operation failed; `index` names the segment."""

    def __init__(self, index: int, cause: BaseException) -> None:
        super().__init__(f"segment {index}: {cause}")
        self.index = index
        self.cause = cause
