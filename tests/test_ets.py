import warnings

import numpy as np
import pandas as pd
import pytest

from econ_forecaster_src.errors import NonConvergenceError, NumericInstabilityWarning
from econ_forecaster_src.ets_utils import ets_filter, fit_ets, select_ets
from econ_forecaster_src.forecasting_utils import forecast
from econ_forecaster_src.model_types import ETSSpec


def create_random_walk(n=80, seed=42, start=100.0):
    """Quarterly random walk around ``start``."""
    rng = np.random.default_rng(seed)
    values = start + np.cumsum(rng.normal(0, 1, n))
    return pd.Series(values, index=pd.period_range("2000Q1", periods=n, freq="Q"), name="gdp")


def create_trend(n=60, seed=0, slope=2.0):
    rng = np.random.default_rng(seed)
    values = 100.0 + slope * np.arange(n) + rng.normal(0, 0.5, n)
    return pd.Series(values, index=pd.period_range("2005Q1", periods=n, freq="Q"), name="gdp")


def test_filter_alpha_one_tracks_last_observation():
    y = np.array([3.0, 5.0, 4.0, 8.0])
    out = ets_filter(y, ETSSpec("A", "N", "N"), {"alpha": 1.0, "l0": 1.0})
    assert np.isclose(out.level, 8.0)
    # Each one-step prediction is the previous observation
    assert np.allclose(out.mu[1:], y[:-1])


def test_filter_alpha_zero_keeps_initial_level():
    y = np.array([3.0, 5.0, 4.0, 8.0])
    out = ets_filter(y, ETSSpec("A", "N", "N"), {"alpha": 0.0, "l0": 2.5})
    assert np.isclose(out.level, 2.5)
    assert np.allclose(out.mu, 2.5)
    assert np.allclose(out.errors, y - 2.5)


def test_filter_linear_trend_is_exact():
    y = 10.0 + 2.0 * np.arange(1, 9)
    out = ets_filter(y, ETSSpec("A", "A", "N"), {"alpha": 0.5, "beta": 0.1, "l0": 10.0, "b0": 2.0})
    assert np.allclose(out.errors, 0.0)
    assert np.isclose(out.slope, 2.0)


def test_multiplicative_filter_flags_non_positive_prediction():
    out = ets_filter(np.array([1.0, 2.0]), ETSSpec("M", "N", "N"), {"alpha": 0.5, "l0": -1.0})
    assert not out.feasible


def test_fit_ann_on_random_walk_has_high_alpha():
    s = create_random_walk()
    model = fit_ets(s, ETSSpec("A", "N", "N"))
    assert model.model_id == "ETS(A,N,N)"
    assert model.family == "ETS"
    assert model.params["alpha"] > 0.7
    assert model.n_params == 3
    assert np.isfinite(model.aicc) and model.aicc > model.aic
    assert model.residuals.index.equals(s.index)


def test_fitted_parameters_respect_constraints():
    s = create_trend()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericInstabilityWarning)
        model = fit_ets(s, ETSSpec("A", "Ad", "N"))
    p = model.params
    assert 0.0 < p["alpha"] < 1.0
    assert 0.0 < p["beta"] <= p["alpha"]
    assert 0.8 <= p["phi"] <= 0.98


def test_fit_ets_needs_four_observations():
    with pytest.raises(ValueError):
        fit_ets(create_random_walk(n=3), ETSSpec("A", "N", "N"))


def test_fit_ets_reports_exhausted_budget():
    with pytest.raises(NonConvergenceError) as excinfo:
        fit_ets(create_trend(), ETSSpec("A", "A", "N"), config={"max_iter": 2})
    assert excinfo.value.model_id == "ETS(A,A,N)"


def test_select_ets_finds_trend():
    s = create_trend()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericInstabilityWarning)
        selection = select_ets(s)
    assert selection.best.spec.has_trend
    assert selection.best.aicc == min(m.aicc for m in selection.candidates)
    assert {"model", "aicc"} <= set(selection.table.columns)


def test_select_ets_restricted_grid_without_auto():
    s = create_random_walk()
    selection = select_ets(s, specs=[ETSSpec("A", "N", "N")], auto=False)
    assert [m.model_id for m in selection.candidates] == ["ETS(A,N,N)"]


def test_ann_forecast_is_flat_with_widening_intervals():
    s = create_random_walk()
    model = fit_ets(s, ETSSpec("A", "N", "N"))
    fc = forecast(model, 8)
    assert np.allclose(fc.point().to_numpy(), model.state["level"])
    widths = fc.width(95)
    assert np.all(np.diff(widths) >= -1e-12)
    assert fc.index[0] == s.index[-1] + 1


def test_invalid_spec_rejected():
    with pytest.raises(ValueError):
        ETSSpec("A", "M", "N")
    with pytest.raises(ValueError):
        ETSSpec("A", "N", "A")


def test_auto_selection_on_trendless_log_series():
    """73 quarters (2003Q1-2021Q1): flat first half, then a driftless random walk, modelled in logs."""
    rng = np.random.default_rng(2021)
    calm = rng.normal(0, 0.002, 36)
    volatile = rng.normal(0, 0.02, 36)
    increments = np.r_[0.0, calm - calm.mean(), volatile - volatile.mean()]
    y = pd.Series(np.log(250.0) + np.cumsum(increments),
                  index=pd.period_range("2003Q1", "2021Q1", freq="Q"))
    assert len(y) == 73
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericInstabilityWarning)
        selection = select_ets(y)
    assert selection.best.spec.trend == "N"
    assert selection.best.params["alpha"] > 0.7
