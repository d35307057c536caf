import numpy as np
import pytest

from batchfit_models import models, pack_x_user_info
from batchfit_models.diagnostics import finite_difference_jacobian, jacobian_max_rel_error
from batchfit_models.models.damped_cosine import (
    damped_cosine_func,
    damped_cosine_jac,
    damped_cosine_point,
    evaluate,
)


def test_value_and_derivatives_at_zero():
    value, d = damped_cosine_point([2.0, 1.0, 0.5, 0.1], 0.0)
    assert value == pytest.approx(2.1)
    assert d[0] == pytest.approx(1.0)
    assert d[1] == pytest.approx(0.0)
    assert d[2] == pytest.approx(0.0)
    assert d[3] == 1.0


def test_quarter_period_derivatives():
    # shift=0.25, x=1 puts the cosine at pi/2.
    value, d = damped_cosine_point([1.0, 0.25, 0.0, 0.0], 1.0)
    assert value == pytest.approx(0.0, abs=1e-12)
    assert d[1] == pytest.approx(-2.0 * np.pi)
    assert d[2] == pytest.approx(0.0, abs=1e-12)


def test_raw_kernel_writes_one_value_and_four_derivatives():
    n_points = 3
    value_out = np.full(n_points, np.nan)
    derivative_out = np.full(4 * n_points, np.nan)

    evaluate([2.0, 1.0, 0.5, 0.1], 1, n_points, value_out, derivative_out, 0, 0, 0, None, 0)

    assert value_out[0] == pytest.approx(2.1)
    assert np.all(np.isnan(value_out[1:]))
    written = [0, n_points, 2 * n_points, 3 * n_points]
    assert np.allclose(derivative_out[written], [1.0, 0.0, 0.0, 1.0])
    untouched = np.setdiff1d(np.arange(4 * n_points), written)
    assert np.all(np.isnan(derivative_out[untouched]))


def test_raw_kernel_reads_shared_x():
    x = np.array([0.3, 1.2])
    buf = pack_x_user_info(x)
    params = [1.5, 0.7, 0.4, -0.2]
    value_out = np.empty(2)
    derivative_out = np.empty(8)

    evaluate(params, 5, 2, value_out, derivative_out, 1, 3, 0, buf, len(buf))

    value, d = damped_cosine_point(params, 1.2)
    assert value_out[1] == value
    assert np.array_equal(derivative_out[[1, 3, 5, 7]], d)


def test_point_matches_vectorized():
    x = np.linspace(0.0, 4.0, 17)
    params = (1.3, 0.8, 0.6, 0.05)
    y = damped_cosine_func(x, *params)
    jac = damped_cosine_jac(x, *params)
    assert jac.shape == (x.size, 4)
    for i, xi in enumerate(x):
        value, d = damped_cosine_point(params, xi)
        assert value == pytest.approx(y[i], rel=1e-12, abs=1e-14)
        assert np.allclose(d, jac[i], rtol=1e-12, atol=1e-14)


def test_jacobian_matches_finite_differences():
    model = models.damped_cosine()
    rng = np.random.default_rng(0)
    x = np.linspace(0.0, 3.0, 40)
    for _ in range(25):
        params = [
            rng.uniform(0.5, 3.0) * rng.choice([-1.0, 1.0]),
            rng.uniform(0.1, 2.0),
            rng.uniform(0.1, 2.0),
            rng.uniform(-1.0, 1.0),
        ]
        assert jacobian_max_rel_error(model, x, params) < 1e-5


def test_offset_derivative_is_exactly_one():
    x = np.linspace(0.0, 2.0, 5)
    numeric = finite_difference_jacobian(damped_cosine_func, x, [1.0, 1.0, 1.0, 0.3])
    assert np.allclose(numeric[:, 3], 1.0)
    assert np.all(damped_cosine_jac(x, 1.0, 1.0, 1.0, 0.3)[:, 3] == 1.0)


def test_huge_decay_does_not_raise():
    value, d = damped_cosine_point([1.0, 1.0, -1e6, 0.0], 1e3)
    assert np.isinf(value) or np.isnan(value)
