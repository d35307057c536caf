"""Reference fitting loop on top of the kernels (scipy.optimize.curve_fit).

This is the engine's side of the contract in miniature: it decodes the user
info once per chunk and hands each fit's x, model and analytic Jacobian to
curve_fit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np
from scipy.optimize import curve_fit

from .dispatch import decode_chunk, validate_parameters
from .errors import ParameterError
from .models import KernelModel, get_model
from .precision import FLOAT64, PrecisionLike


@dataclass(frozen=True)
class FitResult:
    """Normalized result of one fit."""

    theta: np.ndarray  # shape (P,)
    cov: Optional[np.ndarray] = None  # (P, P)
    success: bool = True
    message: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def stderr(self) -> Optional[np.ndarray]:
        if self.cov is None:
            return None
        return np.sqrt(np.clip(np.diag(self.cov), 0.0, np.inf))


@dataclass(frozen=True)
class ChunkFit:
    model: str
    param_names: Tuple[str, ...]
    results: Tuple[FitResult, ...]

    def __getitem__(self, fit_index: int) -> FitResult:
        return self.results[fit_index]

    def __len__(self) -> int:
        return len(self.results)

    @property
    def theta(self) -> np.ndarray:
        return np.stack([r.theta for r in self.results])

    @property
    def success(self) -> np.ndarray:
        return np.asarray([r.success for r in self.results], dtype=bool)


def _bounds(
    model: KernelModel, bounds: Optional[Mapping[str, Tuple[Optional[float], Optional[float]]]]
) -> Tuple[np.ndarray, np.ndarray]:
    lo = np.full(model.n_parameters, -np.inf)
    hi = np.full(model.n_parameters, np.inf)
    # Domain-restricted parameters stay strictly positive.
    for name in model.positive:
        lo[model.param_names.index(name)] = 1e-12
    for name, (b_lo, b_hi) in dict(bounds or {}).items():
        if name not in model.param_names:
            raise KeyError(name)
        j = model.param_names.index(name)
        if b_lo is not None:
            lo[j] = float(b_lo)
        if b_hi is not None:
            hi[j] = float(b_hi)
    return lo, hi


def _sigma_for_fits(sigma: Any, n_fits: int, n_points: int):
    if sigma is None:
        return [None] * n_fits
    arr = np.asarray(sigma, dtype=float)
    if arr.shape == ():
        arr = np.full((n_points,), float(arr))
    return list(np.broadcast_to(arr, (n_fits, n_points)))


def fit_chunk(
    model: Union[str, KernelModel],
    y: Any,
    p0: Any,
    *,
    user_info: Any = None,
    sigma: Any = None,
    chunk_index: int = 0,
    precision: PrecisionLike = FLOAT64,
    strict: bool = True,
    bounds: Optional[Mapping[str, Tuple[Optional[float], Optional[float]]]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> ChunkFit:
    """Fit every dataset of a chunk using the model's analytic Jacobian.

    ``y`` is (n_fits, n_points) (or (n_points,) for one fit) and ``p0`` the
    matching (n_fits, 4) seeds. ``options`` may carry ``maxfev``. Solver
    failures do not raise: the seed is returned with ``success=False``.
    """
    model = get_model(model)
    y = np.asarray(y, dtype=float)
    if y.ndim == 1:
        y = y[None, :]
    n_fits, n_points = y.shape
    seeds = validate_parameters(model, p0)
    if seeds.shape[0] != n_fits:
        raise ParameterError(f"Got {seeds.shape[0]} seed vector(s) for {n_fits} fit(s).")
    ctx = decode_chunk(
        model,
        user_info,
        n_points,
        n_fits,
        chunk_index=chunk_index,
        precision=precision,
        strict=strict,
    )
    lo, hi = _bounds(model, bounds)
    sigmas = _sigma_for_fits(sigma, n_fits, n_points)

    options = dict(options or {})
    kwargs: Dict[str, Any] = {}
    maxfev = options.get("maxfev", None)
    if maxfev is not None:
        kwargs["maxfev"] = int(maxfev)

    def f_model(xi, *theta):
        return model.func(xi, *theta, **ctx.extra)

    def f_jac(xi, *theta):
        return model.jac(xi, *theta, **ctx.extra)

    results = []
    for f in range(n_fits):
        x = ctx.x.for_fit(f, chunk_index)
        p_start = np.clip(seeds[f], lo, hi)
        try:
            popt, pcov = curve_fit(
                f_model,
                x,
                y[f],
                p0=p_start,
                sigma=sigmas[f],
                absolute_sigma=(sigmas[f] is not None),
                bounds=(lo, hi),
                jac=f_jac,
                **kwargs,
            )
            results.append(
                FitResult(
                    theta=np.asarray(popt, dtype=float),
                    cov=None if pcov is None else np.asarray(pcov, dtype=float),
                    success=True,
                    message="ok",
                    stats={"backend": "scipy.curve_fit"},
                )
            )
        except (RuntimeError, ValueError) as e:
            # Soft fail: return seed point.
            results.append(
                FitResult(
                    theta=np.asarray(p_start, dtype=float),
                    cov=None,
                    success=False,
                    message=str(e),
                    stats={"backend": "scipy.curve_fit", "error": str(e)},
                )
            )

    return ChunkFit(model=model.name, param_names=model.param_names, results=tuple(results))
