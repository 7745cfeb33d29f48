# econ_forecaster_src/metrics_utils.py

import logging
from typing import Dict, List, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to 1D numpy array, filtering out non-finite values.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D array containing only finite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def naive_errors(train: ArrayLike, m: int = 1) -> np.ndarray:
    """
    In-sample errors of the (seasonal) naive method: ``y_t - y_{t-m}``.

    With ``m=1`` this is the random-walk benchmark used to scale MASE.

    Parameters
    ----------
    train : array-like
        Training observations on the original scale
    m : int, default=1
        Lag of the naive forecast

    Returns
    -------
    np.ndarray
        Array of length ``len(train) - m``
    """
    if m < 1:
        raise ValueError("Naive lag m must be >= 1")
    tr = to_1d_array(train)
    if len(tr) <= m:
        return np.zeros(0)
    return tr[m:] - tr[:-m]


def mase(forecast_errors: ArrayLike, naive_in_sample_errors: ArrayLike) -> float:
    """
    Mean Absolute Scaled Error.

    ``mean(|forecast_errors|) / mean(|naive_in_sample_errors|)``. Values below
    one beat the in-sample naive benchmark. The statistic is scale free:
    multiplying the data (and therefore both error sets) by a constant leaves
    it unchanged.

    Returns
    -------
    float
        MASE, or NaN when either input is empty or the naive scale is zero
    """
    fe = to_1d_array(forecast_errors)
    ne = to_1d_array(naive_in_sample_errors)
    if fe.size == 0 or ne.size == 0:
        return float("nan")
    scale = float(np.mean(np.abs(ne)))
    if not np.isfinite(scale) or scale <= 0.0:
        logger.warning("MASE undefined: naive in-sample errors have zero scale")
        return float("nan")
    return float(np.mean(np.abs(fe)) / scale)


def forecast_errors(y_true: ArrayLike, y_hat: ArrayLike) -> np.ndarray:
    """
    ``actual - forecast`` paired by position over the common length.

    A pair is dropped when either side is non-finite, so a single missing
    forecast never shifts later forecasts onto the wrong actual.
    """
    yt = np.asarray(y_true, dtype=float).ravel()
    yh = np.asarray(y_hat, dtype=float).ravel()
    n = min(len(yt), len(yh))
    yt, yh = yt[:n], yh[:n]
    mask = np.isfinite(yt) & np.isfinite(yh)
    return yt[mask] - yh[mask]


def mae(errors: ArrayLike) -> float:
    """Mean absolute error of a set of forecast errors (NaN if empty)."""
    e = to_1d_array(errors)
    return float(np.mean(np.abs(e))) if e.size else float("nan")


def rmse(errors: ArrayLike) -> float:
    """Root mean squared error of a set of forecast errors (NaN if empty)."""
    e = to_1d_array(errors)
    return float(np.sqrt(np.mean(e ** 2))) if e.size else float("nan")


def mase_metric(y_true: ArrayLike, y_hat: ArrayLike, y_train: ArrayLike, m: int = 1) -> float:
    """
    MASE of a forecast against held-out values, scaled by the naive method on ``y_train``.

    Parameters
    ----------
    y_true : array-like
        Held-out values
    y_hat : array-like
        Point forecasts for the same periods
    y_train : array-like
        Training data for the naive scale
    m : int, default=1
        Naive lag (1 = random walk, 4 = seasonal naive for quarterly data)
    """
    return mase(forecast_errors(y_true, y_hat), naive_errors(y_train, m=m))


def compute_metrics(y_true: ArrayLike, y_hat: ArrayLike, y_train: ArrayLike, m: int = 1) -> Dict[str, float]:
    """
    Point-forecast accuracy summary: ME, MAE, RMSE and MASE.

    Returns
    -------
    Dict[str, float]
    """
    err = forecast_errors(y_true, y_hat)
    return {
        "ME": float(np.mean(err)) if err.size else float("nan"),
        "MAE": mae(err),
        "RMSE": rmse(err),
        "MASE": mase(err, naive_errors(y_train, m=m)),
    }
