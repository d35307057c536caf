"""Independent-variable ("user info") buffers.

The engine passes X data to every kernel through an untyped byte buffer whose
size alone selects one of three layouts:

- empty / absent: X is the point index,
- exactly ``n_points`` reals: one X sequence shared by every fit,
- more than ``n_points`` reals: per-fit X sequences, flattened as
  ``chunk * n_fits * n_points + fit * n_points + point``.

Two levels are provided. :func:`resolve_x` is the raw per-point resolver the
kernels use; it never raises and does no bounds checking. :class:`XData` and
:class:`AngularUserInfo` classify and validate a buffer once per chunk and
expose typed accessors instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple
from warnings import warn

import numpy as np

from .errors import UserInfoError
from .precision import FLOAT64, INT32, PrecisionLike, get_precision


class XLayout(Enum):
    INDEX = "index"
    SHARED = "shared"
    PER_FIT = "per_fit"


def buffer_nbytes(buffer: Any) -> int:
    """Size in bytes of a bytes-like object (0 for None)."""
    if buffer is None:
        return 0
    return int(memoryview(buffer).nbytes)


def classify_x_layout(
    nbytes: int, n_points: int, precision: PrecisionLike = FLOAT64
) -> Optional[XLayout]:
    """Classify an X buffer by size only; None means no layout matches."""
    if nbytes <= 0:
        return XLayout.INDEX
    n_reals = int(nbytes) // get_precision(precision).itemsize
    if n_reals == n_points:
        return XLayout.SHARED
    if n_reals > n_points:
        return XLayout.PER_FIT
    return None


def resolve_x(
    buffer: Any,
    buffer_size: int,
    n_points: int,
    n_fits: int,
    point_index: int,
    fit_index: int,
    chunk_index: int,
    precision: PrecisionLike = FLOAT64,
    offset: int = 0,
) -> float:
    """Return X for one (fit, point) pair from a raw buffer.

    ``buffer_size`` is the byte count of the X region, which starts ``offset``
    bytes into ``buffer``. Sizes that match no layout fall back to the point
    index. Callers guarantee the buffer is large enough.
    """
    if buffer is None or buffer_size <= 0:
        return float(point_index)
    p = get_precision(precision)
    n_reals = buffer_size // p.itemsize
    if n_reals == n_points:
        idx = point_index
    elif n_reals > n_points:
        idx = chunk_index * n_fits * n_points + fit_index * n_points + point_index
    else:
        return float(point_index)
    return float(np.frombuffer(buffer, dtype=p.dtype, count=1, offset=offset + idx * p.itemsize)[0])


def _warn_or_raise(strict: bool, message: str) -> None:
    """Warn or raise based on strict mode."""
    if strict:
        raise UserInfoError(message)
    warn(message, UserWarning, stacklevel=3)


def _check_sizes(n_points: int, n_fits: int) -> None:
    if int(n_points) < 1:
        raise UserInfoError(f"n_points must be >= 1; got {n_points}.")
    if int(n_fits) < 1:
        raise UserInfoError(f"n_fits must be >= 1; got {n_fits}.")


@dataclass(frozen=True)
class XData:
    """X values for one chunk, tagged with their layout."""

    layout: XLayout
    n_points: int
    n_fits: int
    values: Optional[np.ndarray] = None

    # ---- constructors ----
    @staticmethod
    def index(n_points: int, n_fits: int = 1) -> "XData":
        """X is the point index for every fit."""
        _check_sizes(n_points, n_fits)
        return XData(layout=XLayout.INDEX, n_points=int(n_points), n_fits=int(n_fits))

    @staticmethod
    def shared(x: Any, n_fits: int = 1) -> "XData":
        """One X sequence reused by every fit."""
        arr = np.asarray(x, dtype=float).reshape(-1)
        _check_sizes(arr.size, n_fits)
        return XData(
            layout=XLayout.SHARED, n_points=int(arr.size), n_fits=int(n_fits), values=arr
        )

    @staticmethod
    def per_fit(x: Any) -> "XData":
        """Per-fit X from an array shaped (n_fits, n_points) or (n_chunks, n_fits, n_points)."""
        arr = np.asarray(x, dtype=float)
        if arr.ndim == 2:
            arr = arr[None, :, :]
        if arr.ndim != 3:
            raise UserInfoError(
                "per-fit x must have shape (n_fits, n_points) or (n_chunks, n_fits, n_points); "
                f"got {arr.shape}."
            )
        _, n_fits, n_points = arr.shape
        _check_sizes(n_points, n_fits)
        if n_fits == 1 and arr.shape[0] == 1:
            # A single fit's X block has exactly n_points reals and would be
            # read back as shared X; that is the same values for that fit.
            return XData.shared(arr.reshape(-1), n_fits=1)
        return XData(
            layout=XLayout.PER_FIT,
            n_points=int(n_points),
            n_fits=int(n_fits),
            values=arr.reshape(-1),
        )

    @staticmethod
    def from_user_info(
        user_info: Any,
        n_points: int,
        n_fits: int,
        *,
        precision: PrecisionLike = FLOAT64,
        strict: bool = True,
        offset: int = 0,
        nbytes: Optional[int] = None,
    ) -> "XData":
        """Classify and validate a raw X buffer once per chunk.

        ``nbytes`` defaults to everything in ``user_info`` after ``offset``.
        Undersized buffers raise in strict mode; otherwise they warn and keep
        the index-as-X fallback of the raw resolver.
        """
        _check_sizes(n_points, n_fits)
        p = get_precision(precision)
        if nbytes is None:
            nbytes = buffer_nbytes(user_info) - int(offset)
        nbytes = int(nbytes)
        if nbytes < 0:
            raise UserInfoError(f"X region starts past the end of the buffer ({nbytes} bytes).")
        if user_info is None or nbytes == 0:
            return XData.index(n_points, n_fits)
        if nbytes % p.itemsize:
            raise UserInfoError(
                f"X region of {nbytes} bytes is not a whole number of {p.name} values."
            )

        layout = classify_x_layout(nbytes, n_points, p)
        n_reals = nbytes // p.itemsize
        if layout is None:
            _warn_or_raise(
                strict,
                f"X region holds {n_reals} values but n_points={n_points}; "
                "falling back to the point index as X.",
            )
            return XData.index(n_points, n_fits)

        values = np.frombuffer(user_info, dtype=p.dtype, count=n_reals, offset=int(offset))
        values = values.astype(float)
        if layout is XLayout.PER_FIT and n_reals % (n_fits * n_points):
            raise UserInfoError(
                f"Per-fit X region holds {n_reals} values, which is not a whole number "
                f"of chunks of n_fits*n_points={n_fits * n_points}."
            )
        return XData(layout=layout, n_points=int(n_points), n_fits=int(n_fits), values=values)

    # ---- accessors ----
    @property
    def n_chunks(self) -> Optional[int]:
        """Chunks covered by a per-fit buffer; None when any chunk is valid."""
        if self.layout is not XLayout.PER_FIT:
            return None
        return int(self.values.size // (self.n_fits * self.n_points))

    def _check_chunk(self, fit_index: int, chunk_index: int) -> None:
        # Index and shared X serve any number of fits.
        if fit_index < 0 or (self.layout is XLayout.PER_FIT and fit_index >= self.n_fits):
            raise IndexError(f"fit_index {fit_index} out of range for n_fits={self.n_fits}.")
        n_chunks = self.n_chunks
        if chunk_index < 0 or (n_chunks is not None and chunk_index >= n_chunks):
            raise IndexError(f"chunk_index {chunk_index} out of range for {n_chunks} chunk(s).")

    def x(self, point_index: int, fit_index: int = 0, chunk_index: int = 0) -> float:
        if not 0 <= point_index < self.n_points:
            raise IndexError(
                f"point_index {point_index} out of range for n_points={self.n_points}."
            )
        self._check_chunk(fit_index, chunk_index)
        if self.layout is XLayout.INDEX:
            return float(point_index)
        if self.layout is XLayout.SHARED:
            return float(self.values[point_index])
        start = chunk_index * self.n_fits * self.n_points + fit_index * self.n_points
        return float(self.values[start + point_index])

    def for_fit(self, fit_index: int, chunk_index: int = 0) -> np.ndarray:
        """All X values of one fit, shape (n_points,)."""
        self._check_chunk(fit_index, chunk_index)
        if self.layout is XLayout.INDEX:
            return np.arange(self.n_points, dtype=float)
        if self.layout is XLayout.SHARED:
            return self.values
        start = chunk_index * self.n_fits * self.n_points + fit_index * self.n_points
        return self.values[start : start + self.n_points]

    def to_bytes(self, precision: PrecisionLike = FLOAT64) -> bytes:
        """Pack back into the raw user-info representation."""
        if self.layout is XLayout.INDEX:
            return b""
        return np.ascontiguousarray(self.values, dtype=get_precision(precision).dtype).tobytes()


def pack_x_user_info(x: Any = None, precision: PrecisionLike = FLOAT64) -> bytes:
    """Pack X values (None, 1D shared, or per-fit ND in C order) into bytes."""
    if x is None:
        return b""
    return np.ascontiguousarray(x, dtype=get_precision(precision).dtype).reshape(-1).tobytes()


# ---- angle distributions ---------------------------------------------------


@dataclass(frozen=True)
class AngleDistribution:
    """Discrete angle set for the angular-integration model.

    ``angles`` are stored as doubled half angles: the model uses
    ``sin(angle / 2)``.
    """

    angles: np.ndarray
    geometric_correction: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "angles", np.asarray(self.angles, dtype=float).reshape(-1))
        object.__setattr__(self, "geometric_correction", float(self.geometric_correction))

    @property
    def count(self) -> int:
        return int(self.angles.size)

    def to_bytes(self, precision: PrecisionLike = FLOAT64) -> bytes:
        p = get_precision(precision)
        return (
            np.asarray([self.count], dtype=INT32).tobytes()
            + np.asarray([self.geometric_correction], dtype=p.dtype).tobytes()
            + np.ascontiguousarray(self.angles, dtype=p.dtype).tobytes()
        )


def angle_header_nbytes(count: int, precision: PrecisionLike = FLOAT64) -> int:
    """Bytes taken by ``int32 count | real correction | real[count] angles``."""
    return INT32.itemsize + (1 + int(count)) * get_precision(precision).itemsize


def read_angle_header(
    buffer: Any, precision: PrecisionLike = FLOAT64
) -> Tuple[float, np.ndarray, int]:
    """Unchecked header read: (geometric_correction, angles, x_offset)."""
    p = get_precision(precision)
    count = int(np.frombuffer(buffer, dtype=INT32, count=1, offset=0)[0])
    correction = float(np.frombuffer(buffer, dtype=p.dtype, count=1, offset=INT32.itemsize)[0])
    angles = np.frombuffer(
        buffer, dtype=p.dtype, count=count, offset=INT32.itemsize + p.itemsize
    )
    return correction, angles, angle_header_nbytes(count, p)


def pack_angular_user_info(
    angles: Any,
    geometric_correction: float = 1.0,
    x: Any = None,
    precision: PrecisionLike = FLOAT64,
) -> bytes:
    """Pack an angle header followed by optional X data."""
    dist = AngleDistribution(angles=angles, geometric_correction=geometric_correction)
    return dist.to_bytes(precision) + pack_x_user_info(x, precision)


@dataclass(frozen=True)
class AngularUserInfo:
    """Decoded user info of the angular-integration model."""

    distribution: AngleDistribution
    x: XData

    @staticmethod
    def from_user_info(
        user_info: Any,
        n_points: int,
        n_fits: int,
        *,
        precision: PrecisionLike = FLOAT64,
        strict: bool = True,
        nbytes: Optional[int] = None,
    ) -> "AngularUserInfo":
        """Validate and decode ``int32 count | real g | real[count] | x_data``."""
        p = get_precision(precision)
        if nbytes is None:
            nbytes = buffer_nbytes(user_info)
        nbytes = int(nbytes)
        min_header = angle_header_nbytes(0, p)
        if user_info is None or nbytes < min_header:
            raise UserInfoError(
                f"Angular user info needs at least {min_header} bytes of header; got {nbytes}."
            )
        count = int(np.frombuffer(user_info, dtype=INT32, count=1, offset=0)[0])
        if count < 0:
            raise UserInfoError(f"Angle count must be >= 0; got {count}.")
        header = angle_header_nbytes(count, p)
        if header > nbytes:
            raise UserInfoError(
                f"Angle header for {count} angles needs {header} bytes; buffer has {nbytes}."
            )
        correction, angles, x_offset = read_angle_header(user_info, p)
        if not (np.all(np.isfinite(angles)) and np.isfinite(correction)):
            raise UserInfoError("Angles and geometric correction must be finite.")

        x = XData.from_user_info(
            user_info,
            n_points,
            n_fits,
            precision=p,
            strict=strict,
            offset=x_offset,
            nbytes=nbytes - x_offset,
        )
        dist = AngleDistribution(angles=np.array(angles, dtype=float), geometric_correction=correction)
        return AngularUserInfo(distribution=dist, x=x)
