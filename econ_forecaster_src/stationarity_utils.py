# econ_forecaster_src/stationarity_utils.py

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Union

import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import InterpolationWarning
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import adfuller, kpss

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KPSSResult:
    """Outcome of a KPSS level-stationarity test."""
    statistic: float
    p_value: float
    lags: int
    significance_level: float = 0.05

    @property
    def is_stationary(self) -> bool:
        """True when the null of stationarity is not rejected."""
        return self.p_value >= self.significance_level


def _clean(series: Union[pd.Series, np.ndarray]) -> pd.Series:
    return pd.Series(series).dropna()


def kpss_test(series: Union[pd.Series, np.ndarray], alpha: float = 0.05) -> KPSSResult:
    """
    Run the KPSS test for level stationarity.

    The null hypothesis is stationarity, so a p-value below ``alpha`` marks the
    series as non-stationary. The lag truncation is ``trunc(4 * (n / 100) ** 0.25)``.
    statsmodels interpolates p-values from a table and clips them to [0.01, 0.1];
    the interpolation warning for clipped values is suppressed.

    Parameters
    ----------
    series : Union[pd.Series, np.ndarray]
        Input series. NaNs are dropped prior to testing.
    alpha : float, default=0.05
        Significance level used by ``KPSSResult.is_stationary``

    Returns
    -------
    KPSSResult
    """
    s = _clean(series)
    if len(s) < 4:
        raise ValueError(f"KPSS test needs at least 4 observations, got {len(s)}")
    if np.allclose(s.to_numpy(), s.iloc[0]):
        # A constant series is trivially level-stationary
        return KPSSResult(statistic=0.0, p_value=0.1, lags=0, significance_level=alpha)

    nlags = int(4 * (len(s) / 100.0) ** 0.25)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", InterpolationWarning)
        stat, p_value, lags, _ = kpss(s.to_numpy(dtype=float), regression="c", nlags=nlags)
    return KPSSResult(statistic=float(stat), p_value=float(p_value), lags=int(lags),
                      significance_level=alpha)


def difference(series: pd.Series, d: int = 1, lag: int = 1) -> pd.Series:
    """
    Difference a series ``d`` times at ``lag``.

    The period index is kept, so the result starts ``d * lag`` periods after the
    input and residuals fitted on it align with the original periods.
    """
    out = pd.Series(series, dtype=float)
    for _ in range(d):
        out = out.diff(lag).dropna()
    return out


def nonseasonal_diff_order(series: Union[pd.Series, np.ndarray],
                           alpha: float = 0.05,
                           max_d: int = 2) -> int:
    """
    Choose the number of first differences needed for stationarity.

    The series is differenced and re-tested until the KPSS test no longer
    rejects stationarity, capped at ``max_d`` to avoid over-differencing.

    Returns
    -------
    int
        d in ``{0, ..., max_d}``
    """
    s = _clean(series)
    d = 0
    result = kpss_test(s, alpha=alpha)
    logger.debug("KPSS on d=0: stat=%.3f p=%.3f", result.statistic, result.p_value)
    while not result.is_stationary and d < max_d:
        s = difference(s, 1)
        d += 1
        if len(s) < 4:
            break
        result = kpss_test(s, alpha=alpha)
        logger.debug("KPSS on d=%d: stat=%.3f p=%.3f", d, result.statistic, result.p_value)
    logger.info("Selected non-seasonal differencing order d=%d", d)
    return d


def seasonal_strength(series: Union[pd.Series, np.ndarray], period: int = 4) -> float:
    """
    STL seasonal strength ``max(0, 1 - var(remainder) / var(seasonal + remainder))``.

    Returns 0.0 when the series is shorter than two full periods.
    """
    s = _clean(series)
    if len(s) < 2 * period + 1:
        return 0.0
    res = STL(s.to_numpy(dtype=float), period=period, robust=True).fit()
    denom = np.var(res.seasonal + res.resid)
    if denom <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(res.resid) / denom))


def seasonal_diff_order(series: Union[pd.Series, np.ndarray],
                        period: int = 4,
                        threshold: float = 0.64,
                        max_D: int = 1) -> int:
    """
    Choose the number of seasonal differences.

    One seasonal difference is taken while the STL seasonal strength exceeds
    ``threshold``, capped at ``max_D``.

    Returns
    -------
    int
        D in ``{0, ..., max_D}``
    """
    s = _clean(series)
    D = 0
    while D < max_D and seasonal_strength(s, period) > threshold:
        s = difference(s, 1, lag=period)
        D += 1
    logger.info("Selected seasonal differencing order D=%d", D)
    return D


def safe_adf_pval(series: pd.Series) -> float:
    """
    Safely compute ADF test p-value with error handling.

    Requires at least 12 observations; returns NaN otherwise or when the test
    cannot be computed.
    """
    s = _clean(series)
    if len(s) < 12:
        return float("nan")
    try:
        return float(adfuller(s)[1])
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("ADF test failed: %s", e)
        return float("nan")


def diagnose_stationarity(series: pd.Series,
                          alpha: float = 0.05,
                          max_d: int = 2,
                          period: int = 4,
                          max_D: int = 1,
                          seasonal_threshold: float = 0.64) -> Dict[str, float]:
    """
    Summarise stationarity of a series for reporting.

    Returns a dict with the KPSS and ADF p-values on levels and first
    differences, the seasonal strength and the selected ``d`` and ``D``.
    """
    s = _clean(series)
    level = kpss_test(s, alpha=alpha)
    diff1 = kpss_test(difference(s, 1), alpha=alpha)
    summary = {
        "kpss_p_level": level.p_value,
        "kpss_p_diff1": diff1.p_value,
        "adf_p_level": safe_adf_pval(s),
        "adf_p_diff1": safe_adf_pval(difference(s, 1)),
        "seasonal_strength": seasonal_strength(s, period),
        "D": seasonal_diff_order(s, period=period, threshold=seasonal_threshold, max_D=max_D),
        "d": nonseasonal_diff_order(s, alpha=alpha, max_d=max_d),
    }
    logger.info("Stationarity summary: %s", summary)
    return summary
