from __future__ import annotations

from typing import Any, Tuple

import numpy as np

from ..precision import FLOAT64, PrecisionLike
from ..user_info import XData, resolve_x
from .common import ChunkContext, KernelModel

_PI = np.pi
_TWO_PI = 2.0 * np.pi


def damped_cosine_point(parameters: Any, x: float) -> Tuple[float, Tuple[float, ...]]:
    """Value and Jacobian row at one x.

    value = amplitude * exp(-pi x width) * cos(2 pi shift x) + offset
    """
    amplitude, shift, width, offset = np.asarray(parameters, dtype=float)[:4]
    with np.errstate(over="ignore", invalid="ignore"):
        decay = np.exp(-_PI * x * width)
        phase = _TWO_PI * shift * x
        # Normalized shape: value term and d/d(amplitude).
        shape = decay * np.cos(phase)
        value = amplitude * shape + offset
        d_shift = -amplitude * decay * np.sin(phase) * _TWO_PI * x
        d_width = -amplitude * shape * _PI * x
    return float(value), (float(shape), float(d_shift), float(d_width), 1.0)


def evaluate(
    parameters: Any,
    n_fits: int,
    n_points: int,
    value_out: np.ndarray,
    derivative_out: np.ndarray,
    point_index: int,
    fit_index: int,
    chunk_index: int,
    user_info: Any,
    user_info_size: int,
    precision: PrecisionLike = FLOAT64,
) -> None:
    """Raw per-point kernel: writes value_out[p] and the 4 derivatives of point p."""
    x = resolve_x(
        user_info,
        user_info_size,
        n_points,
        n_fits,
        point_index,
        fit_index,
        chunk_index,
        precision,
    )
    value, derivatives = damped_cosine_point(parameters, x)
    value_out[point_index] = value
    for k, d in enumerate(derivatives):
        derivative_out[k * n_points + point_index] = d


def damped_cosine_func(x, amplitude, shift, width, offset):
    """Module-level damped cosine: A exp(-pi x w) cos(2 pi s x) + offset."""
    x = np.asarray(x, dtype=float)
    with np.errstate(over="ignore", invalid="ignore"):
        return amplitude * (np.exp(-_PI * x * width) * np.cos(_TWO_PI * shift * x)) + offset


def damped_cosine_jac(x, amplitude, shift, width, offset):
    """Jacobian of damped_cosine_func, shape (N, 4)."""
    x = np.asarray(x, dtype=float)
    with np.errstate(over="ignore", invalid="ignore"):
        decay = np.exp(-_PI * x * width)
        phase = _TWO_PI * shift * x
        shape = decay * np.cos(phase)
        return np.stack(
            [
                shape,
                -amplitude * decay * np.sin(phase) * _TWO_PI * x,
                -amplitude * shape * _PI * x,
                np.ones_like(x),
            ],
            axis=-1,
        )


def _decode(user_info, n_points, n_fits, *, precision, strict=True) -> ChunkContext:
    return ChunkContext(
        x=XData.from_user_info(
            user_info, n_points, n_fits, precision=precision, strict=strict
        )
    )


def damped_cosine(*, name: str = "damped cosine") -> KernelModel:
    """Return the exponentially damped cosine model.

    Parameters in the model
    -----------------------
    amplitude : scale of the oscillation
    shift     : oscillation frequency
    width     : decay rate (> 0)
    offset    : baseline
    """
    return KernelModel(
        name=name,
        param_names=("amplitude", "shift", "width", "offset"),
        kernel=evaluate,
        point=damped_cosine_point,
        func=damped_cosine_func,
        jac=damped_cosine_jac,
        decode=_decode,
        positive=("width",),
    )
