from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np


@dataclass(frozen=True)
class Precision:
    """Floating-point width used for every real in buffers and outputs."""

    name: str
    dtype: np.dtype

    @property
    def itemsize(self) -> int:
        return int(self.dtype.itemsize)


FLOAT32 = Precision(name="float32", dtype=np.dtype("<f4"))
FLOAT64 = Precision(name="float64", dtype=np.dtype("<f8"))

# Angle headers always start with a little-endian int32 count.
INT32 = np.dtype("<i4")

_PRECISIONS = {p.name: p for p in (FLOAT32, FLOAT64)}

PrecisionLike = Union[Precision, str]


def get_precision(precision: PrecisionLike) -> Precision:
    """Return a Precision from an instance or its name ("float32"/"float64")."""
    if isinstance(precision, Precision):
        return precision
    try:
        return _PRECISIONS[str(precision)]
    except KeyError as e:
        raise ValueError(
            f"Unknown precision {precision!r}. Available: {tuple(_PRECISIONS.keys())}"
        ) from e
