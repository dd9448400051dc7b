from __future__ import annotations

# Intersection
DEFAULT_INTERSECTION_TOLERANCE = 1e-6
DEFAULT_MAX_DEPTH = 60

# Arc length
GAUSS_ORDER = 10
DEFAULT_LENGTH_TOLERANCE = 1e-6
LENGTH_MAX_DEPTH = 20
DEFAULT_LENGTH_ITERATIONS = 100
SPEED_EPSILON = 1e-9
DEFAULT_EUCLIDEAN_ERROR = 1e-4

# Speed at or below this is treated as a cusp / coincident control points.
DEGENERATE_EPSILON = 1e-12

# Roots closer than this to 0 or 1 are treated as endpoints.
ROOT_EPSILON = 1e-12

DEFAULT_LUT_STEPS = 10

# Reduce
DEFAULT_REDUCE_MAX_TURN = 0.5  # radians
REDUCE_SAMPLES = 16
REDUCE_MAX_DEPTH = 12

# Fitting
DEFAULT_FIT_TOLERANCE = 1e-3
DEFAULT_FIT_MAX_DEPTH = 32
DEFAULT_FIT_ITERATIONS = 128

# Offsetting
OFFSET_SAMPLES = 24
DEFAULT_MITER_LIMIT = 4.0
