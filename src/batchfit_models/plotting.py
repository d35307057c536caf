from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np


def plot_chunk(
    result: Any,
    fit_index: int = 0,
    *,
    x: Optional[Any] = None,
    axs: Optional[Sequence[Any]] = None,
    y: Optional[Any] = None,
    data_kwargs: Optional[Mapping[str, Any]] = None,
    line_kwargs: Optional[Mapping[str, Any]] = None,
) -> Tuple[Any, Any]:
    """Plot one fit's model values and Jacobian rows on two Matplotlib Axes.

    Parameters
    ----------
    result : ChunkResult
        Output of evaluate_chunk().
    fit_index : int
        Which fit of the chunk to draw.
    x : array-like, optional
        X values of the fit. Defaults to the point index.
    axs : pair of matplotlib.axes.Axes, optional
        If None, a new figure with two stacked axes is created.
    y : array-like, optional
        Measured data drawn as points on the value panel.
    data_kwargs, line_kwargs : dict, optional
        Styling kwargs for the data markers and the model lines.
    """
    values = np.asarray(result.values[fit_index], dtype=float)
    jac = np.asarray(result.jacobian(fit_index), dtype=float)
    x_arr = np.arange(values.size, dtype=float) if x is None else np.asarray(x, dtype=float)
    if x_arr.shape != values.shape:
        raise ValueError("plot_chunk requires x to have one value per point.")

    import matplotlib.pyplot as plt

    if axs is None:
        fig, axs = plt.subplots(2, 1, sharex=True, constrained_layout=True)
    else:
        fig = axs[0].figure

    data_kwargs = dict(data_kwargs or {})
    line_kwargs = dict(line_kwargs or {})

    ax_val, ax_jac = axs[0], axs[1]
    if y is not None:
        data_kwargs.setdefault("marker", "o")
        data_kwargs.setdefault("linestyle", "none")
        data_kwargs.setdefault("label", "data")
        ax_val.plot(x_arr, np.asarray(y, dtype=float), **data_kwargs)
    ax_val.plot(x_arr, values, label=line_kwargs.pop("label", "model"), **line_kwargs)
    ax_val.set_ylabel("value")
    ax_val.set_title(f"{result.model} (fit {fit_index})")

    for k, name in enumerate(result.param_names):
        ax_jac.plot(x_arr, jac[:, k], label=f"d/d {name}", **line_kwargs)
    ax_jac.set_ylabel("derivative")
    ax_jac.set_xlabel("x")
    ax_jac.legend(fontsize=8)

    return fig, axs
