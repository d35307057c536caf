"""Finite-difference checks for the analytic Jacobians."""

from __future__ import annotations

from typing import Any, Callable

import numpy as np

from .models import KernelModel, get_model


def finite_difference_jacobian(
    func: Callable[..., Any],
    x: Any,
    parameters: Any,
    *,
    rel_step: float = 1e-6,
    **extra: Any,
) -> np.ndarray:
    """Central-difference Jacobian of ``func(x, *parameters, **extra)``, shape (N, P)."""
    theta = np.asarray(parameters, dtype=float).reshape(-1)
    cols = []
    for k in range(theta.size):
        h = rel_step * max(abs(theta[k]), 1.0)
        tp = theta.copy()
        tm = theta.copy()
        tp[k] += h
        tm[k] -= h
        fp = np.asarray(func(x, *tp, **extra), dtype=float)
        fm = np.asarray(func(x, *tm, **extra), dtype=float)
        cols.append((fp - fm) / (tp[k] - tm[k]))
    return np.stack(cols, axis=-1)


def jacobian_max_rel_error(
    model: str | KernelModel,
    x: Any,
    parameters: Any,
    *,
    rel_step: float = 1e-6,
    atol: float = 1e-9,
    **extra: Any,
) -> float:
    """Largest relative deviation between the analytic and numeric Jacobians.

    Each column is compared relative to its own magnitude, so derivatives that
    vanish at isolated points do not dominate the error.
    """
    model = get_model(model)
    analytic = np.asarray(model.jacobian(x, parameters, **extra), dtype=float)
    numeric = finite_difference_jacobian(
        model.func, x, parameters, rel_step=rel_step, **extra
    )
    scale = np.max(np.abs(numeric), axis=0, keepdims=True) + atol
    return float(np.max(np.abs(analytic - numeric) / scale))
