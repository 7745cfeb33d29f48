"""Out-of-sample accuracy of fitted models, scored by MASE.

MASE divides the mean absolute forecast error by the mean absolute in-sample
error of the one-step naive method on the training data. Being scale free, it
compares models fitted on differently transformed data and series of
different magnitudes on equal terms; values below one beat the naive method.

Two evaluation modes are supported:
- ``test``: a model fitted on the training window forecasts the held-out test window
- ``cv``: fold errors collected by rolling-origin cross-validation
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from econ_forecaster_src.forecasting_utils import forecast
from econ_forecaster_src.metrics_utils import compute_metrics, forecast_errors, mae, mase, naive_errors
from econ_forecaster_src.model_types import FittedModel
from econ_forecaster_src.transform_utils import TransformSpec

logger = logging.getLogger(__name__)

EVALUATION_MODES = ("test", "cv")


@dataclass
class AccuracyReport:
    """MASE per model id for one evaluation mode, with supporting metrics."""

    mode: str
    scores: Dict[str, float] = field(default_factory=dict)
    details: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def __post_init__(self):
        if self.mode not in EVALUATION_MODES:
            raise ValueError(f"Unknown evaluation mode {self.mode!r}; expected one of {EVALUATION_MODES}")

    @property
    def best(self) -> Optional[str]:
        """Model id with the lowest finite MASE."""
        finite = {k: v for k, v in self.scores.items() if np.isfinite(v)}
        if not finite:
            return None
        return min(finite, key=finite.get)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for model_id, score in self.scores.items():
            row = {"model": model_id, "mode": self.mode, "MASE": score}
            row.update({k: v for k, v in self.details.get(model_id, {}).items() if k != "MASE"})
            rows.append(row)
        df = pd.DataFrame(rows)
        if df.empty:
            return df
        return df.sort_values(by="MASE", ascending=True, na_position="last").reset_index(drop=True)


def _forecast_test(fitted: FittedModel, test_series: pd.Series,
                   transform: Optional[TransformSpec]) -> np.ndarray:
    if len(test_series) == 0:
        raise ValueError("Test series is empty")
    fc = forecast(fitted, len(test_series), transform=transform)
    return fc.point().to_numpy(dtype=float)


def evaluate(fitted: FittedModel,
             train_series: pd.Series,
             test_series: pd.Series,
             transform: Optional[TransformSpec] = None) -> float:
    """MASE of a fitted model on a held-out test window.

    Parameters
    ----------
    fitted : FittedModel
        Model fitted on the (transformed) training window
    train_series : pd.Series
        Training window on the original scale; defines the naive scale
    test_series : pd.Series
        Held-out observations immediately following the training window
    transform : TransformSpec, optional
        Transform used to fit; forecasts are back-transformed before scoring

    Returns
    -------
    float
        MASE, or NaN if the naive scale is zero
    """
    point = _forecast_test(fitted, test_series, transform)
    errors = forecast_errors(test_series, point)
    score = mase(errors, naive_errors(train_series, m=1))
    logger.debug("%s test MASE=%.4f over %d periods", fitted.model_id, score, len(test_series))
    return score


def accuracy_table(models: Mapping[str, FittedModel],
                   train_series: pd.Series,
                   test_series: pd.Series,
                   transform: Optional[TransformSpec] = None) -> AccuracyReport:
    """Test-window MASE, MAE, RMSE and mean error for several fitted models."""
    report = AccuracyReport(mode="test")
    for model_id, fitted in models.items():
        point = _forecast_test(fitted, test_series, transform)
        metrics = compute_metrics(test_series, point, train_series, m=1)
        report.scores[model_id] = metrics["MASE"]
        report.details[model_id] = metrics
    logger.info("Test accuracy: %s", {k: round(v, 4) for k, v in report.scores.items()})
    return report


def cv_accuracy(cv_results: Mapping[str, "CVResult"], train_series: pd.Series) -> AccuracyReport:
    """MASE of rolling-origin fold errors for several cross-validated specifications."""
    report = AccuracyReport(mode="cv")
    for model_id, result in cv_results.items():
        score = result.mase(train_series)
        errors = result.errors
        report.scores[model_id] = score
        report.details[model_id] = {
            "MASE": score,
            "MAE": mae(errors),
            "n_folds": result.n_folds,
            "failure_rate": result.failure_rate,
        }
    return report
