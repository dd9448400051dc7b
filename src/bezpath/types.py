from __future__ import annotations

from enum import Enum
from typing import TypeAlias

import numpy as np
from beartype import BeartypeConf, beartype
from jaxtyping import Float

Point: TypeAlias = Float[np.ndarray, "2"]
ControlPoints: TypeAlias = Float[np.ndarray, "n 2"]
Box: TypeAlias = tuple[Float[np.ndarray, "2"], Float[np.ndarray, "2"]]
TPair: TypeAlias = tuple[float, float]

# ints pass wherever a float is annotated.
typechecker = beartype(conf=BeartypeConf(is_pep484_tower=True))


class BezierKind(Enum):
    """Degree tag of a segment; the value is the control point count."""

    LINEAR = 2
    QUADRATIC = 3
    CUBIC = 4

    @property
    def degree(self) -> int:
        return self.value - 1


class Join(Enum):
    BEVEL = "bevel"
    MITER = "miter"
    ROUND = "round"


class Cap(Enum):
    BUTT = "butt"
    ROUND = "round"
    SQUARE = "square"
