import numpy as np
import pandas as pd
import pytest

from econ_forecaster_src.arima_utils import fit_arima
from econ_forecaster_src.diagnostics_utils import decompose, irregular_check, residual_diagnostics, white_noise_check
from econ_forecaster_src.model_types import ARIMASpec


def create_ar1(n=200, phi=0.9, seed=13):
    rng = np.random.default_rng(seed)
    x = np.zeros(n)
    for t in range(1, n):
        x[t] = phi * x[t - 1] + rng.normal()
    return pd.Series(x, index=pd.period_range("1960Q1", periods=n, freq="Q"))


def test_autocorrelated_series_is_not_white_noise():
    result = white_noise_check(create_ar1(), lags=8)
    assert not result.is_white_noise
    assert 1 in result.significant_lags
    assert len(result.acf) == 9


def test_lags_capped_by_length():
    result = white_noise_check(np.array([1.0, -1.0, 0.5, 0.2]), lags=20)
    assert result.lags == 3


def test_white_noise_check_needs_data():
    with pytest.raises(ValueError):
        white_noise_check([1.0, 2.0])


def test_residual_diagnostics_of_adequate_model():
    model = fit_arima(create_ar1(), ARIMASpec(1, 0, 0, False))
    out = residual_diagnostics(model, lags=8)
    assert set(out) == {"lb_stat", "lb_pvalue", "lags", "arch_lm_pvalue", "resid_mean", "resid_sd"}
    assert out["lb_pvalue"] > 0.01
    assert abs(out["resid_mean"]) < 0.5


def test_decompose_components_add_up():
    rng = np.random.default_rng(1)
    n = 40
    s = pd.Series(50 + 0.5 * np.arange(n) + np.tile([2.0, -1.0, 0.5, -1.5], n // 4) + rng.normal(0, 0.1, n),
                  index=pd.period_range("2000Q1", periods=n, freq="Q"))
    parts = decompose(s)
    total = parts["trend"] + parts["seasonal"] + parts["irregular"]
    assert np.allclose(total.to_numpy(), s.to_numpy())
    with pytest.raises(ValueError):
        decompose(s.iloc[:6])


def test_irregular_check_reports_ljung_box():
    result = irregular_check(create_ar1(n=80), period=4, lags=8)
    assert set(result) == {"lb_stat", "lb_pvalue", "lags", "white_noise", "irregular_sd"}
    assert result["lags"] == 8
    assert 0.0 <= result["lb_pvalue"] <= 1.0
    assert result["white_noise"] in (0.0, 1.0)
    assert result["irregular_sd"] > 0.0


def test_irregular_check_skips_short_series():
    assert irregular_check(create_ar1(n=6), period=4) is None
