import numpy as np
import pandas as pd
import pytest

from backtesting import rolling_cv
from econ_forecaster_src.arima_utils import fit_arima
from econ_forecaster_src.model_types import ARIMASpec
from evaluation import AccuracyReport, accuracy_table, cv_accuracy, evaluate


def create_series(values, start="2010Q1"):
    return pd.Series(values, index=pd.period_range(start, periods=len(values), freq="Q"))


def test_perfect_forecast_scores_zero():
    train = create_series([1.0, 3.0, 2.0, 4.0, 5.0])
    test = create_series([5.0, 5.0], start="2011Q2")
    model = fit_arima(train, ARIMASpec(0, 1, 0, False))
    assert np.isclose(evaluate(model, train, test), 0.0)


def test_evaluate_matches_hand_computed_mase():
    train = create_series([1.0, 3.0, 2.0, 4.0, 5.0])
    test = create_series([6.0, 3.0], start="2011Q2")
    model = fit_arima(train, ARIMASpec(0, 1, 0, False))
    # |errors| = [1, 2], naive scale = mean([2, 1, 2, 1]) = 1.5
    assert np.isclose(evaluate(model, train, test), 1.0)


def test_accuracy_table_ranks_models():
    rng = np.random.default_rng(4)
    values = 100 + np.cumsum(1.0 + rng.normal(0, 0.3, 48))
    s = create_series(values)
    train, test = s.iloc[:40], s.iloc[40:]
    models = {
        "ARIMA(0,1,0)": fit_arima(train, ARIMASpec(0, 1, 0, False)),
        "ARIMA(0,1,0) w/ drift": fit_arima(train, ARIMASpec(0, 1, 0, True)),
    }
    report = accuracy_table(models, train, test)
    assert report.mode == "test"
    assert report.best == "ARIMA(0,1,0) w/ drift"
    frame = report.to_frame()
    assert list(frame["model"])[0] == report.best
    assert {"MAE", "RMSE", "ME"} <= set(frame.columns)


def test_cv_accuracy_uses_fold_errors():
    rng = np.random.default_rng(8)
    s = create_series(100 + np.cumsum(rng.normal(0, 1, 30)))
    result = rolling_cv(s, ARIMASpec(0, 1, 0, False), min_window=20)
    report = cv_accuracy({result.model_id: result}, s.iloc[:20])
    assert report.mode == "cv"
    assert np.isclose(report.scores["ARIMA(0,1,0)"], result.mase(s.iloc[:20]))
    assert report.details["ARIMA(0,1,0)"]["n_folds"] == 10


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        AccuracyReport(mode="holdout")


def test_empty_test_window_rejected():
    train = create_series([1.0, 3.0, 2.0, 4.0, 5.0])
    model = fit_arima(train, ARIMASpec(0, 1, 0, False))
    with pytest.raises(ValueError):
        evaluate(model, train, create_series([]))
