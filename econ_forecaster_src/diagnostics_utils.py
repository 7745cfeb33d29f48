# econ_forecaster_src/diagnostics_utils.py

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox, het_arch
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import acf

from .config_utils import get_config_value
from .model_types import ARIMASpec, ETSSpec, FittedModel

logger = logging.getLogger(__name__)


def decompose(series: pd.Series, period: int = 4, robust: bool = True) -> Dict[str, pd.Series]:
    """
    Seasonal-trend decomposition (STL) for exploratory diagnosis.

    Parameters
    ----------
    series : pd.Series
        Series to decompose (at least two full periods)
    period : int, default=4
        Seasonal period (4 for quarterly data)
    robust : bool, default=True
        Use robust LOESS weights

    Returns
    -------
    Dict[str, pd.Series]
        ``trend``, ``seasonal`` and ``irregular`` components on the series index
    """
    s = pd.Series(series, dtype=float).dropna()
    if len(s) < 2 * period + 1:
        raise ValueError(f"STL needs at least {2 * period + 1} observations, got {len(s)}")
    res = STL(s.to_numpy(), period=period, robust=robust).fit()
    return {
        "trend": pd.Series(res.trend, index=s.index, name="trend"),
        "seasonal": pd.Series(res.seasonal, index=s.index, name="seasonal"),
        "irregular": pd.Series(res.resid, index=s.index, name="irregular"),
    }


@dataclass
class WhiteNoiseResult:
    """Autocorrelation summary and Ljung-Box portmanteau test of a series."""
    acf: np.ndarray
    lb_stat: float
    lb_pvalue: float
    lags: int
    significance_level: float = 0.05
    significant_lags: List[int] = field(default_factory=list)

    @property
    def is_white_noise(self) -> bool:
        return bool(np.isfinite(self.lb_pvalue) and self.lb_pvalue > self.significance_level)


def white_noise_check(series: Union[pd.Series, np.ndarray],
                      lags: Optional[int] = None,
                      model_df: int = 0,
                      alpha: float = 0.05) -> WhiteNoiseResult:
    """
    Check a series (typically model innovations) for remaining autocorrelation.

    Computes the sample ACF and the Ljung-Box Q statistic at ``lags``.
    ``model_df`` degrees of freedom are subtracted for estimated parameters.

    Parameters
    ----------
    series : array-like
        Series to test
    lags : int, optional
        Number of lags (default ``diagnostics.ljung_box_lags``, capped at n - 1)
    model_df : int, default=0
        Number of estimated model parameters
    alpha : float, default=0.05
        Significance level for ``is_white_noise``

    Returns
    -------
    WhiteNoiseResult
    """
    resid = pd.Series(np.asarray(series, dtype=float)).dropna()
    n = len(resid)
    if n < 3:
        raise ValueError(f"White-noise check needs at least 3 observations, got {n}")

    lags = int(lags if lags is not None else get_config_value("diagnostics.ljung_box_lags", 8))
    lags = max(1, min(lags, n - 1))
    model_df = max(0, min(int(model_df), lags - 1))

    rho = acf(resid, nlags=lags, fft=False)
    df_lb = acorr_ljungbox(resid, lags=[lags], model_df=model_df, return_df=True)
    stat = float(df_lb["lb_stat"].iloc[-1])
    pval = float(df_lb["lb_pvalue"].iloc[-1])

    band = 1.96 / np.sqrt(n)
    result = WhiteNoiseResult(acf=rho, lb_stat=stat, lb_pvalue=pval, lags=lags, significance_level=alpha,
                              significant_lags=[k for k in range(1, len(rho)) if abs(rho[k]) > band])
    logger.debug("Ljung-Box Q(%d)=%.3f p=%.4f (model_df=%d)", lags, stat, pval, model_df)
    return result


def _model_df(spec) -> int:
    if isinstance(spec, ARIMASpec):
        return spec.p + spec.q
    if isinstance(spec, ETSSpec):
        return spec.n_smoothing_params
    raise TypeError(f"Unknown model specification: {spec!r}")


def residual_diagnostics(fitted: FittedModel, lags: Optional[int] = None) -> Dict[str, float]:
    """
    Residual adequacy checks for a fitted model.

    Runs the Ljung-Box test on the innovations with ``model_df`` equal to
    ``p + q`` for ARIMA or the number of smoothing parameters for ETS, and an
    ARCH LM test for remaining conditional heteroskedasticity.

    Returns
    -------
    Dict[str, float]
        ``lb_stat``, ``lb_pvalue``, ``lags``, ``arch_lm_pvalue``, ``resid_mean``, ``resid_sd``
    """
    resid = fitted.residuals.dropna()
    wn = white_noise_check(resid, lags=lags, model_df=_model_df(fitted.spec))

    arch_p = float("nan")
    nlags = int(min(12, max(2, len(resid) // 10)))
    if len(resid) > 2 * nlags + 2:
        try:
            _, arch_p, _, _ = het_arch(resid.to_numpy(), nlags=nlags)
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.debug("ARCH LM test skipped for %s: %s", fitted.model_id, e)

    out = {
        "lb_stat": wn.lb_stat,
        "lb_pvalue": wn.lb_pvalue,
        "lags": wn.lags,
        "arch_lm_pvalue": float(arch_p),
        "resid_mean": float(resid.mean()),
        "resid_sd": float(resid.std(ddof=1)),
    }
    if not wn.is_white_noise:
        logger.info("%s residuals fail the Ljung-Box test (p=%.4f at lag %d)",
                    fitted.model_id, wn.lb_pvalue, wn.lags)
    return out


def irregular_check(series: pd.Series,
                    period: int = 4,
                    lags: Optional[int] = None,
                    alpha: float = 0.05) -> Optional[Dict[str, float]]:
    """
    Sanity check before modelling: is the STL irregular component white noise?

    Remaining autocorrelation in the irregular component means the trend and
    seasonal components leave structure that the candidate models have to
    pick up.

    Returns
    -------
    Dict[str, float] or None
        ``lb_stat``, ``lb_pvalue``, ``lags``, ``white_noise`` (1.0 or 0.0) and
        ``irregular_sd``; None when the series is too short to decompose
    """
    try:
        components = decompose(series, period=period)
    except ValueError as e:
        logger.info("Skipping irregular-component check: %s", e)
        return None

    irregular = components["irregular"]
    wn = white_noise_check(irregular, lags=lags, alpha=alpha)
    if not wn.is_white_noise:
        logger.warning("Irregular component is not white noise (Ljung-Box p=%.4f at lag %d, significant lags %s)",
                       wn.lb_pvalue, wn.lags, wn.significant_lags)
    return {
        "lb_stat": wn.lb_stat,
        "lb_pvalue": wn.lb_pvalue,
        "lags": wn.lags,
        "white_noise": float(wn.is_white_noise),
        "irregular_sd": float(irregular.std(ddof=1)),
    }
