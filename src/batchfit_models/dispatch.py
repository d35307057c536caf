"""Chunk-level entry points: validate once, then evaluate every (fit, point).

The per-point kernels are exception-free and unchecked. Everything that can
be wrong with a chunk (parameter shape and domain, user-info layout, output
sizes) is checked here before any point is evaluated.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Literal, Optional, Tuple, Union

import numpy as np

from .errors import OutputShapeError, ParameterError, UserInfoError
from .jacobian import DerivativeView
from .models import N_PARAMETERS, ChunkContext, KernelModel, get_model
from .precision import FLOAT64, PrecisionLike, get_precision
from .user_info import XLayout, buffer_nbytes

ModelLike = Union[str, KernelModel]


@dataclass(frozen=True)
class ChunkResult:
    """Values (n_fits, n_points) and derivatives (n_fits, n_parameters, n_points)."""

    model: str
    param_names: Tuple[str, ...]
    values: np.ndarray
    derivatives: np.ndarray
    precision: str = "float64"

    @property
    def n_fits(self) -> int:
        return int(self.values.shape[0])

    @property
    def n_points(self) -> int:
        return int(self.values.shape[1])

    def jacobian(self, fit_index: int) -> np.ndarray:
        """Jacobian of one fit, shape (n_points, n_parameters)."""
        return self.derivatives[fit_index].T

    def flat_derivatives(self) -> np.ndarray:
        """Derivatives in the engine layout: (n_fits, n_parameters * n_points)."""
        return self.derivatives.reshape(self.n_fits, -1)


def validate_parameters(
    model: ModelLike, parameters: Any, *, check_domain: bool = True
) -> np.ndarray:
    """Return parameters as an (n_fits, n_parameters) float array or raise ParameterError."""
    model = get_model(model)
    arr = np.asarray(parameters, dtype=float)
    if arr.ndim == 1:
        arr = arr[None, :]
    if arr.ndim != 2 or arr.shape[1] != model.n_parameters or arr.shape[0] < 1:
        raise ParameterError(
            f"{model.name} expects parameters shaped (n_fits, {model.n_parameters}); "
            f"got {np.shape(parameters)}."
        )
    if not np.all(np.isfinite(arr)):
        raise ParameterError("Parameters must be finite.")
    if check_domain:
        for name in model.positive:
            j = model.param_names.index(name)
            bad = np.flatnonzero(arr[:, j] <= 0.0)
            if bad.size:
                raise ParameterError(
                    f"{model.name}: {name} must be > 0; violated by fit(s) {bad.tolist()}."
                )
    return arr


def decode_chunk(
    model: ModelLike,
    user_info: Any,
    n_points: int,
    n_fits: int,
    *,
    chunk_index: int = 0,
    precision: PrecisionLike = FLOAT64,
    strict: bool = True,
) -> ChunkContext:
    """Decode user info once for a chunk and check it covers ``chunk_index``."""
    model = get_model(model)
    if isinstance(user_info, ChunkContext):
        ctx = user_info
    else:
        ctx = model.decode_user_info(
            user_info, n_points, n_fits, precision=get_precision(precision), strict=strict
        )
    fits_mismatch = ctx.x.layout is XLayout.PER_FIT and ctx.x.n_fits != n_fits
    if ctx.x.n_points != n_points or fits_mismatch:
        raise UserInfoError(
            f"User info describes {ctx.x.n_fits} fit(s) x {ctx.x.n_points} point(s); "
            f"chunk has {n_fits} x {n_points}."
        )
    n_chunks = ctx.x.n_chunks
    if chunk_index < 0 or (n_chunks is not None and chunk_index >= n_chunks):
        raise UserInfoError(
            f"chunk_index {chunk_index} is outside the {n_chunks} chunk(s) of per-fit X data."
        )
    missing = [k for k in model.required_context if k not in ctx.extra]
    unknown = [
        k for k in ctx.extra if k not in model.required_context + model.optional_context
    ]
    if missing or unknown:
        raise UserInfoError(
            f"{model.name} user info context is missing {missing} and has unexpected {unknown}."
        )
    return ctx


def _resolve_workers(n_workers: Optional[int], n_tasks: int) -> int:
    if n_workers is None:
        n_workers = os.cpu_count() or 1
    return max(1, min(int(n_workers), int(n_tasks)))


def evaluate_chunk(
    model: ModelLike,
    parameters: Any,
    n_points: int,
    *,
    user_info: Any = None,
    chunk_index: int = 0,
    precision: PrecisionLike = FLOAT64,
    strict: bool = True,
    method: Literal["pointwise", "vectorized"] = "pointwise",
    parallel: Optional[Literal[None, "auto"]] = None,
    n_workers: Optional[int] = None,
    check_domain: bool = True,
) -> ChunkResult:
    """Evaluate values and Jacobians of every (fit, point) in one chunk.

    Parameters
    ----------
    model:
        Registered model name or a KernelModel.
    parameters:
        Array shaped (n_fits, 4), or (4,) for a single fit.
    user_info:
        Raw user-info bytes (or a pre-decoded ChunkContext).
    method:
        "pointwise" runs the per-point function once per (fit, point);
        "vectorized" evaluates each fit's points in one numpy call.
    parallel:
        None runs fits serially; "auto" spreads fits across a thread pool.
        Each worker owns whole fits, so no two workers write the same slot.
    """
    model = get_model(model)
    p = get_precision(precision)
    if int(n_points) < 1:
        raise UserInfoError(f"n_points must be >= 1; got {n_points}.")
    n_points = int(n_points)
    params = validate_parameters(model, parameters, check_domain=check_domain)
    n_fits = params.shape[0]
    ctx = decode_chunk(
        model,
        user_info,
        n_points,
        n_fits,
        chunk_index=chunk_index,
        precision=p,
        strict=strict,
    )
    if method not in ("pointwise", "vectorized"):
        raise ValueError(f"Unknown method {method!r}; use 'pointwise' or 'vectorized'.")

    n_params = model.n_parameters
    values = np.empty((n_fits, n_points), dtype=p.dtype)
    derivatives = np.empty((n_fits, n_params, n_points), dtype=p.dtype)

    def run_fit(f: int) -> None:
        x = ctx.x.for_fit(f, chunk_index)
        theta = params[f]
        if method == "pointwise":
            view = DerivativeView(derivatives[f].reshape(-1), n_params, n_points)
            for pt in range(n_points):
                value, row = model.point(theta, float(x[pt]), **ctx.extra)
                values[f, pt] = value
                view.write_row(pt, row)
        else:
            values[f] = model.func(x, *theta, **ctx.extra)
            derivatives[f] = model.jac(x, *theta, **ctx.extra).T

    if parallel is None:
        for f in range(n_fits):
            run_fit(f)
    elif parallel == "auto":
        workers = _resolve_workers(n_workers, n_fits)
        with ThreadPoolExecutor(max_workers=workers) as ex:
            # list() re-raises any worker exception here.
            list(ex.map(run_fit, range(n_fits)))
    else:
        raise ValueError(f"Unknown parallel mode {parallel!r}; use None or 'auto'.")

    return ChunkResult(
        model=model.name,
        param_names=model.param_names,
        values=values,
        derivatives=derivatives,
        precision=p.name,
    )


def launch(
    model: ModelLike,
    parameters: Any,
    n_fits: int,
    n_points: int,
    values: np.ndarray,
    derivatives: np.ndarray,
    *,
    chunk_index: int = 0,
    user_info: Any = None,
    user_info_size: Optional[int] = None,
    precision: PrecisionLike = FLOAT64,
    order: Literal["sequential", "shuffled"] = "sequential",
    rng: Optional[np.random.Generator] = None,
) -> None:
    """Call the raw kernel once per (fit, point), the way the engine does.

    ``values`` (n_fits * n_points) and ``derivatives``
    (n_fits * n_parameters * n_points) are flat engine arrays; each call gets
    the slices owned by its fit. ``order="shuffled"`` visits pairs in a
    random order, which must not change the result.
    """
    model = get_model(model)
    p = get_precision(precision)
    n_params = model.n_parameters
    params = np.asarray(parameters, dtype=float).reshape(int(n_fits), n_params)
    if user_info_size is None:
        user_info_size = buffer_nbytes(user_info)

    for label, out in (("values", values), ("derivatives", derivatives)):
        if not isinstance(out, np.ndarray) or not out.flags.writeable:
            raise OutputShapeError(f"{label} must be a writeable numpy array.")
    if values.ndim != 1 or values.size < n_fits * n_points:
        raise OutputShapeError(
            f"values must be a flat array of at least {n_fits * n_points} elements."
        )
    if derivatives.ndim != 1 or derivatives.size < n_fits * n_params * n_points:
        raise OutputShapeError(
            f"derivatives must be a flat array of at least {n_fits * n_params * n_points} elements."
        )

    pairs = [(f, pt) for f in range(n_fits) for pt in range(n_points)]
    if order == "shuffled":
        rng = np.random.default_rng() if rng is None else rng
        pairs = [pairs[i] for i in rng.permutation(len(pairs))]
    elif order != "sequential":
        raise ValueError(f"Unknown order {order!r}; use 'sequential' or 'shuffled'.")

    block = n_params * n_points
    for f, pt in pairs:
        model.kernel(
            params[f],
            n_fits,
            n_points,
            values[f * n_points : (f + 1) * n_points],
            derivatives[f * block : (f + 1) * block],
            pt,
            f,
            chunk_index,
            user_info,
            user_info_size,
            p,
        )


def output_addresses(
    n_fits: int, n_points: int, n_parameters: int = N_PARAMETERS
) -> Tuple[np.ndarray, np.ndarray]:
    """Flat output offsets written by each (fit, point) invocation.

    Returns ``(value_addr, derivative_addr)`` shaped (n_fits, n_points) and
    (n_fits, n_points, n_parameters), indexing the engine's flat value and
    derivative arrays respectively.
    """
    f = np.arange(n_fits)[:, None]
    pt = np.arange(n_points)[None, :]
    value_addr = f * n_points + pt
    k = np.arange(n_parameters)[None, None, :]
    # Per fit block, then parameter-major inside the block.
    derivative_addr = f[:, :, None] * n_parameters * n_points + DerivativeView.offset(
        k, pt[:, :, None], n_points
    )
    return value_addr, derivative_addr
