from . import (
    bezier,
    errors,
    geometry,
    length,
    point,
    roots,
    spline,
    subdivide,
    subpath,
)
from .bezier import (
    BezierSegment,
    bounding_box,
    curvature,
    derivative,
    evaluate,
    extrema,
    inflections,
    normal,
    project,
    tangent,
)
from .errors import (
    BezpathError,
    DegenerateCurve,
    FitToleranceUnreachable,
    IntersectionDepthExceeded,
    NonMonotonicLength,
    SegmentError,
)
from .fit import fit, fit_cubic
from .intersect import IntersectionResult, intersect, intersect_detailed, self_intersect
from .length import arc_length, euclidean_to_parametric, lookup_table, parameterize_by_length
from .offset import offset, offset_point, offset_subpath, outline
from .spline import polyline_to_subpath
from .subdivide import reduce, split, trim
from .subpath import ManipulatorGroup, Subpath
from .types import BezierKind, Cap, Join

__all__ = [
    "bezier",
    "errors",
    "geometry",
    "length",
    "point",
    "roots",
    "spline",
    "subdivide",
    "subpath",
    "BezierKind",
    "BezierSegment",
    "BezpathError",
    "Cap",
    "DegenerateCurve",
    "FitToleranceUnreachable",
    "IntersectionDepthExceeded",
    "IntersectionResult",
    "Join",
    "ManipulatorGroup",
    "NonMonotonicLength",
    "SegmentError",
    "Subpath",
    "arc_length",
    "bounding_box",
    "curvature",
    "derivative",
    "euclidean_to_parametric",
    "evaluate",
    "extrema",
    "fit",
    "fit_cubic",
    "inflections",
    "intersect",
    "intersect_detailed",
    "lookup_table",
    "normal",
    "offset",
    "offset_point",
    "offset_subpath",
    "outline",
    "parameterize_by_length",
    "polyline_to_subpath",
    "project",
    "reduce",
    "self_intersect",
    "split",
    "tangent",
    "trim",
]
