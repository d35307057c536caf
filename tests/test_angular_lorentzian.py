import warnings

import numpy as np
import pytest

from batchfit_models import models, pack_angular_user_info
from batchfit_models.diagnostics import jacobian_max_rel_error
from batchfit_models.models.angular_lorentzian import (
    angular_lorentzian_func,
    angular_lorentzian_jac,
    angular_lorentzian_point,
    angular_sums,
    evaluate,
)


def test_single_angle_at_resonance():
    value, d = angular_lorentzian_point(
        [1.0, 0.0, 1.0, 0.0], 0.0, angles=[np.pi], geometric_correction=1.0
    )
    assert value == pytest.approx(1.0)
    assert d[0] == pytest.approx(1.0)
    assert d[1] == pytest.approx(0.0)
    assert d[2] == pytest.approx(0.0)
    assert d[3] == 1.0


def test_single_angle_half_height():
    # alpha = 0.5, beta = 1 -> gamma = 1.
    value, d = angular_lorentzian_point([2.0, 0.0, 1.0, 0.5], 0.5, angles=[np.pi])
    assert value == pytest.approx(1.5)
    assert d[0] == pytest.approx(0.5)
    assert d[1] == pytest.approx(-2.0)
    assert d[2] == pytest.approx(1.0)


def test_geometric_correction_scales_shift_and_its_derivative():
    value, d = angular_lorentzian_point(
        [2.0, 0.25, 1.0, 0.5], 0.0, angles=[np.pi], geometric_correction=2.0
    )
    assert value == pytest.approx(1.5)
    assert d[1] == pytest.approx(-4.0)


def test_sums_accumulate_over_angles():
    angles = np.array([np.pi, np.pi])
    sum_val, sum_s, sum_w = angular_sums(0.5, 0.0, 1.0, angles)
    assert float(sum_val) == pytest.approx(1.0)
    assert float(sum_s) == pytest.approx(0.25)
    assert float(sum_w) == pytest.approx(0.5)


def test_raw_kernel_scenario():
    buf = pack_angular_user_info([np.pi], 1.0)
    value_out = np.empty(1)
    derivative_out = np.empty(4)

    evaluate([1.0, 0.0, 1.0, 0.0], 1, 1, value_out, derivative_out, 0, 0, 0, buf, len(buf))

    assert value_out[0] == pytest.approx(1.0)
    assert np.allclose(derivative_out, [1.0, 0.0, 0.0, 1.0])


def test_raw_kernel_reads_x_after_header():
    buf = pack_angular_user_info([np.pi], 1.0, x=[0.0, 0.5])
    value_out = np.empty(2)
    derivative_out = np.empty(8)

    evaluate([2.0, 0.0, 1.0, 0.5], 1, 2, value_out, derivative_out, 1, 0, 0, buf, len(buf))

    assert value_out[1] == pytest.approx(1.5)
    assert derivative_out[1 * 2 + 1] == pytest.approx(-2.0)


def test_raw_kernel_ambiguous_x_falls_back_to_index():
    # 1 value of X for 3 points matches no layout.
    buf = pack_angular_user_info([np.pi], 1.0, x=[42.0])
    value_out = np.empty(3)
    derivative_out = np.empty(12)
    params = [1.0, 0.0, 1.0, 0.0]

    evaluate(params, 1, 3, value_out, derivative_out, 2, 0, 0, buf, len(buf))

    expected, _ = angular_lorentzian_point(params, 2.0, angles=[np.pi])
    assert value_out[2] == expected


def test_zero_width_is_ieee_not_an_exception():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        value, d = angular_lorentzian_point(
            [1.0, 0.0, 0.0, 0.25], 0.5, angles=[np.pi / 2, np.pi]
        )
    # Every angle has beta == 0, so nothing reaches the value sum.
    assert value == pytest.approx(0.25)
    assert d[0] == 0.0
    assert np.isnan(d[1])
    assert np.isnan(d[2])
    assert d[3] == 1.0


def test_zero_angle_drops_out_of_value_sum():
    value, d = angular_lorentzian_point([1.0, 0.0, 1.0, 0.0], 0.5, angles=[0.0, np.pi])
    assert value == pytest.approx(0.5)
    assert np.isnan(d[1])


def test_zero_alpha_and_zero_beta_is_nan():
    value, _ = angular_lorentzian_point([1.0, 0.0, 0.0, 0.0], 0.0, angles=[np.pi])
    assert np.isnan(value)


def test_point_matches_vectorized():
    angles = np.linspace(0.6, 3.0, 5)
    x = np.linspace(-2.0, 2.0, 21)
    params = (1.2, 0.3, 0.8, -0.1)
    y = angular_lorentzian_func(x, *params, angles=angles, geometric_correction=0.7)
    jac = angular_lorentzian_jac(x, *params, angles=angles, geometric_correction=0.7)
    assert jac.shape == (x.size, 4)
    for i, xi in enumerate(x):
        value, d = angular_lorentzian_point(params, xi, angles=angles, geometric_correction=0.7)
        assert value == pytest.approx(y[i], rel=1e-12)
        assert np.allclose(d, jac[i], rtol=1e-12, atol=1e-14)


def test_jacobian_matches_finite_differences():
    model = models.angular_lorentzian()
    rng = np.random.default_rng(1)
    x = np.linspace(-3.0, 3.0, 31)
    for _ in range(25):
        angles = rng.uniform(0.6, 3.0, size=7)
        g = rng.uniform(0.5, 1.5)
        params = [
            rng.uniform(0.5, 3.0) * rng.choice([-1.0, 1.0]),
            rng.uniform(-1.0, 1.0),
            rng.uniform(0.5, 2.0),
            rng.uniform(-1.0, 1.0),
        ]
        err = jacobian_max_rel_error(
            model, x, params, angles=angles, geometric_correction=g
        )
        assert err < 1e-5
