"""End-to-end runs of the forecasting workflow and the command-line entry point."""

import warnings

import numpy as np
import pandas as pd
import pytest

from econ_forecaster_src.config_utils import initialize_config
from econ_forecaster_src.errors import NumericInstabilityWarning
from econ_forecaster_src.file_utils import REPORT_COLUMNS
from econ_forecaster_src.main import main, run_forecast_workflow
from evaluation.selection import PolicyCandidate
from validation import DataValidationError


def create_gdp_series(n=56, seed=42):
    """Positive quarterly series with growth and noise."""
    rng = np.random.default_rng(seed)
    values = 500.0 * np.exp(np.cumsum(0.008 + rng.normal(0, 0.006, n)))
    return pd.Series(values, index=pd.period_range("2008Q1", periods=n, freq="Q"), name="gdp")


@pytest.fixture(autouse=True)
def _quiet_instability():
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericInstabilityWarning)
        yield


def test_workflow_reports_both_families():
    s = create_gdp_series()
    report = run_forecast_workflow(s, test_length=4, horizon=6, p_max=1, q_max=1, lam=0.0,
                                   cv=True, cv_min_window=40, cv_step=4, series_name="gdp_test")
    assert set(report.decisions) == {"ETS", "ARIMA"}
    frame = report.to_frame()
    assert list(frame.columns) == REPORT_COLUMNS
    for family in ("ETS", "ARIMA"):
        rows = frame[frame["family"] == family]
        assert rows["selected"].sum() == 1
        assert rows["optimal"].sum() == 1
        assert (rows.loc[rows["selected"], "aicc_gap"] >= 0).all()
    # Three folds per candidate: origins after 40, 44 and 48 training quarters
    assert all(r.n_folds == 3 for r in report.cv_results.values())
    assert np.isfinite(frame["test_MASE"]).all()
    assert all(fc.h == 6 for fc in report.forecasts.values())
    assert set(report.diagnostics) == {m.model_id for m in report.selected.values()}
    forecasts = report.forecast_frame((80, 95))
    assert len(forecasts) == 12
    assert (forecasts["lo_95"] <= forecasts["forecast"]).all()


def test_workflow_aborts_on_non_positive_values():
    s = create_gdp_series()
    s.iloc[10] = -1.0
    with pytest.raises(DataValidationError):
        run_forecast_workflow(s, test_length=4, cv=False)


def test_cli_writes_report_and_forecasts(tmp_path):
    s = create_gdp_series(n=48)
    series_csv = tmp_path / "gdp_US.csv"
    pd.DataFrame({"date": s.index.to_timestamp(how="end").strftime("%Y-%m-%d"), "gdp": s.to_numpy()}) \
        .to_csv(series_csv, index=False)
    metrics_csv = tmp_path / "out" / "metrics.csv"
    forecast_csv = tmp_path / "out" / "forecast.csv"

    code = main([
        "--series-csv", str(series_csv),
        "--test-length", "4",
        "--horizon", "4",
        "--p-max", "0-1",
        "--q-max", "1",
        "--lambda", "0",
        "--no-cv",
        "--metrics-csv", str(metrics_csv),
        "--forecast-csv", str(forecast_csv),
        "--log-level", "WARNING",
    ])
    assert code == 0

    report = pd.read_csv(metrics_csv)
    assert list(report.columns) == REPORT_COLUMNS
    assert set(report["series"]) == {"gdp_US"}
    assert report["selected"].sum() == 2
    assert report["cv_MASE"].isna().all()

    forecasts = pd.read_csv(forecast_csv)
    assert {"period", "family", "model", "forecast", "lo_80", "hi_95"} <= set(forecasts.columns)
    assert len(forecasts) == 8


def test_workflow_flags_unstable_candidates_consistently():
    s = create_gdp_series(n=64, seed=7)
    report = run_forecast_workflow(s, test_length=4, horizon=4, p_max=2, q_max=2, lam=0.0,
                                   cv=True, cv_min_window=44, cv_step=4)
    frame = report.to_frame().set_index("model")
    threshold = report.max_fold_failure_rate
    for model_id, model in report.models.items():
        issues = PolicyCandidate(model, report.cv_results.get(model_id)).stability_issues(threshold)
        assert frame.loc[model_id, "unstable"] == bool(issues)

    arima = report.decisions["ARIMA"]
    arima_rows = frame[frame["family"] == "ARIMA"]
    # an unstable ARIMA model is only kept when no ARIMA candidate is stable
    if frame.loc[arima.selected_id, "unstable"]:
        assert arima_rows["unstable"].all()
        assert "no candidate passed the stability check" in arima.reason
    assert len(arima_rows) >= 2


def test_workflow_runs_irregular_check_and_reuses_d():
    s = create_gdp_series()
    report = run_forecast_workflow(s, test_length=4, horizon=4, p_max=1, q_max=1, lam=0.0, cv=False)
    assert report.pre_model_check is not None
    assert {"lb_pvalue", "white_noise"} <= set(report.pre_model_check)
    assert report.d == report.stationarity["d"]


def test_cli_interval_levels_come_from_config(tmp_path, monkeypatch):
    s = create_gdp_series(n=48)
    series_csv = tmp_path / "gdp_US.csv"
    pd.DataFrame({"date": s.index.to_timestamp(how="end").strftime("%Y-%m-%d"), "gdp": s.to_numpy()}) \
        .to_csv(series_csv, index=False)
    user = tmp_path / "user.yaml"
    user.write_text("forecast:\n  coverage_levels: [90]\n", encoding="utf-8")
    forecast_csv = tmp_path / "forecast.csv"

    monkeypatch.setenv("ECON_FORECASTER_CONFIG", str(user))
    try:
        code = main(["--series-csv", str(series_csv), "--test-length", "4", "--horizon", "2",
                     "--p-max", "1", "--q-max", "1", "--lambda", "0", "--no-cv",
                     "--forecast-csv", str(forecast_csv), "--config", str(user), "--log-level", "WARNING"])
    finally:
        monkeypatch.undo()
        initialize_config(reload=True)
    assert code == 0
    forecasts = pd.read_csv(forecast_csv)
    assert {"lo_90", "hi_90"} <= set(forecasts.columns)
    assert "lo_80" not in forecasts.columns
