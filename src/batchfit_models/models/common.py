from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Protocol, Tuple

import numpy as np

from ..precision import Precision
from ..user_info import XData

N_PARAMETERS = 4


class RawKernel(Protocol):
    """Per-point kernel contract used by the fitting engine."""

    def __call__(
        self,
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
        precision: Any = ...,
    ) -> None: ...


@dataclass(frozen=True)
class ChunkContext:
    """User info decoded once per chunk.

    ``extra`` holds model-specific keyword arguments (e.g. angles) passed to
    the point and vectorized functions.
    """

    x: XData
    extra: Dict[str, Any] = field(default_factory=dict)


Decoder = Callable[..., ChunkContext]


@dataclass(frozen=True)
class KernelModel:
    """A 4-parameter model with value and analytic Jacobian at several levels.

    - ``kernel``: raw per-point kernel reading the byte buffer,
    - ``point``: ``point(parameters, x, **extra) -> (value, derivatives)``,
    - ``func``/``jac``: vectorized value and (N, 4) Jacobian over an x array,
    - ``decode``: validating user-info decoder returning a ChunkContext.

    ``required_context`` and ``optional_context`` name the ChunkContext.extra
    keys the point and vectorized functions take.
    """

    name: str
    param_names: Tuple[str, ...]
    kernel: RawKernel
    point: Callable[..., Tuple[float, Tuple[float, ...]]]
    func: Callable[..., np.ndarray]
    jac: Callable[..., np.ndarray]
    decode: Decoder
    positive: Tuple[str, ...] = ()
    required_context: Tuple[str, ...] = ()
    optional_context: Tuple[str, ...] = ()

    @property
    def n_parameters(self) -> int:
        return len(self.param_names)

    def eval(self, x: Any, parameters: Any, **extra: Any) -> np.ndarray:
        """Evaluate the vectorized model at x for one parameter vector."""
        return self.func(x, *np.asarray(parameters, dtype=float), **extra)

    def jacobian(self, x: Any, parameters: Any, **extra: Any) -> np.ndarray:
        return self.jac(x, *np.asarray(parameters, dtype=float), **extra)

    def decode_user_info(
        self,
        user_info: Any,
        n_points: int,
        n_fits: int,
        *,
        precision: Precision,
        strict: bool = True,
    ) -> ChunkContext:
        return self.decode(user_info, n_points, n_fits, precision=precision, strict=strict)
