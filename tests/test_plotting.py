import numpy as np
import pytest

from batchfit_models import evaluate_chunk, pack_x_user_info
from batchfit_models.plotting import plot_chunk


def test_plot_chunk_draws_values_and_jacobian_rows():
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt

    x = np.linspace(0.0, 3.0, 30)
    res = evaluate_chunk(
        "damped_cosine", [[1.0, 1.0, 0.3, 0.0]], x.size, user_info=pack_x_user_info(x)
    )
    y = res.values[0] + 0.01

    fig, axs = plot_chunk(res, 0, x=x, y=y)
    try:
        assert len(axs[0].lines) == 2
        assert len(axs[1].lines) == 4
        assert axs[0].get_title() == "damped cosine (fit 0)"
        labels = [line.get_label() for line in axs[1].lines]
        assert labels == ["d/d amplitude", "d/d shift", "d/d width", "d/d offset"]
    finally:
        plt.close(fig)


def test_plot_chunk_rejects_mismatched_x():
    pytest.importorskip("matplotlib")
    res = evaluate_chunk("damped_cosine", [[1.0, 1.0, 0.3, 0.0]], 5)
    with pytest.raises(ValueError, match="one value per point"):
        plot_chunk(res, x=np.arange(4.0))
