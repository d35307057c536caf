"""Lorentzian line averaged over a discrete angle distribution.

For each angle ``psi_i`` (stored doubled, so ``u_i = sin(psi_i / 2)``)::

    alpha_i = x + s * u_i            with s = shift * geometric_correction
    beta_i  = width * u_i**2
    gamma_i = (2 * alpha_i / beta_i)**2

    value = amplitude * sum_i 1 / (1 + gamma_i) + offset

Derivatives follow from the chain rule through ``gamma_i``::

    d/d amplitude = sum_i 1 / (1 + gamma_i)
    d/d shift     = -8 * amplitude * g * sum_i u_i alpha_i / ((1 + gamma_i)**2 beta_i**2)
    d/d width     = 2 * amplitude / width * sum_i gamma_i / (1 + gamma_i)**2
    d/d offset    = 1

The width sum is often quoted as ``sum_i ratio_i**2 / (1 + ratio_i**2)**2``
with the unsquared ``ratio_i = 2 * alpha_i / beta_i``; that is the same sum
as above. The shift derivative carries the factor ``g`` because the
correction scales the shift; with ``g == 1`` it reduces to the familiar
``-8 * amplitude * sum_s``.

``beta_i == 0`` (zero width or a zero angle) is not special-cased: that
angle contributes 0 to the value sum and NaN to the shift/width sums.
"""

from __future__ import annotations

from typing import Any, Tuple

import numpy as np

from ..precision import FLOAT64, PrecisionLike
from ..user_info import AngularUserInfo, read_angle_header, resolve_x
from .common import ChunkContext, KernelModel


def angular_sums(x, shift, width, angles):
    """Return (sum_val, sum_s, sum_w) for x of any shape.

    ``shift`` is the effective (already corrected) shift. Sums run over the
    trailing angle axis, so the results have the shape of ``x``.
    """
    x = np.asarray(x, dtype=float)[..., None]
    u = np.sin(0.5 * np.asarray(angles, dtype=float))
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        alpha = x + shift * u
        beta = width * u * u
        ratio = 2.0 * alpha / beta
        gamma = ratio * ratio
        one_plus = 1.0 + gamma
        denom = one_plus * one_plus
        sum_val = np.sum(1.0 / one_plus, axis=-1)
        sum_s = np.sum(u * alpha / (denom * beta * beta), axis=-1)
        sum_w = np.sum(gamma / denom, axis=-1)
    return sum_val, sum_s, sum_w


def angular_lorentzian_point(
    parameters: Any, x: float, *, angles: Any, geometric_correction: float = 1.0
) -> Tuple[float, Tuple[float, ...]]:
    """Value and Jacobian row at one x."""
    amplitude, shift_raw, width, offset = np.asarray(parameters, dtype=float)[:4]
    g = np.float64(geometric_correction)
    sum_val, sum_s, sum_w = angular_sums(x, shift_raw * g, width, angles)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        value = amplitude * sum_val + offset
        d_shift = -8.0 * amplitude * g * sum_s
        d_width = (2.0 * amplitude / width) * sum_w
    return float(value), (float(sum_val), float(d_shift), float(d_width), 1.0)


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
    """Raw per-point kernel.

    ``user_info`` must hold ``int32 count | real g | real[count] angles``
    followed by X data sized by the usual three-case rule.
    """
    correction, angles, x_offset = read_angle_header(user_info, precision)
    x = resolve_x(
        user_info,
        user_info_size - x_offset,
        n_points,
        n_fits,
        point_index,
        fit_index,
        chunk_index,
        precision,
        offset=x_offset,
    )
    value, derivatives = angular_lorentzian_point(
        parameters, x, angles=angles, geometric_correction=correction
    )
    value_out[point_index] = value
    for k, d in enumerate(derivatives):
        derivative_out[k * n_points + point_index] = d


def angular_lorentzian_func(
    x, amplitude, shift, width, offset, *, angles, geometric_correction=1.0
):
    """Vectorized model value over an x array."""
    sum_val, _, _ = angular_sums(x, shift * geometric_correction, width, angles)
    return amplitude * sum_val + offset


def angular_lorentzian_jac(
    x, amplitude, shift, width, offset, *, angles, geometric_correction=1.0
):
    """Jacobian of angular_lorentzian_func, shape (N, 4)."""
    g = float(geometric_correction)
    sum_val, sum_s, sum_w = angular_sums(x, shift * g, width, angles)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return np.stack(
            [
                sum_val,
                -8.0 * amplitude * g * sum_s,
                (2.0 * amplitude / np.float64(width)) * sum_w,
                np.ones_like(sum_val),
            ],
            axis=-1,
        )


def _decode(user_info, n_points, n_fits, *, precision, strict=True) -> ChunkContext:
    info = AngularUserInfo.from_user_info(
        user_info, n_points, n_fits, precision=precision, strict=strict
    )
    return ChunkContext(
        x=info.x,
        extra={
            "angles": info.distribution.angles,
            "geometric_correction": info.distribution.geometric_correction,
        },
    )


def angular_lorentzian(*, name: str = "angular lorentzian") -> KernelModel:
    """Return the angle-averaged Lorentzian model.

    Parameters in the model
    -----------------------
    amplitude : scale of the averaged line
    shift     : line shift before geometric correction
    width     : linewidth (> 0)
    offset    : baseline
    """
    return KernelModel(
        name=name,
        param_names=("amplitude", "shift", "width", "offset"),
        kernel=evaluate,
        point=angular_lorentzian_point,
        func=angular_lorentzian_func,
        jac=angular_lorentzian_jac,
        decode=_decode,
        positive=("width",),
        required_context=("angles",),
        optional_context=("geometric_correction",),
    )
