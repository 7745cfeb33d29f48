# econ_forecaster_src/arima_utils.py

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from scipy.signal import lfilter

from .config_utils import get_config_value
from .errors import NonConvergenceError, NumericInstabilityWarning
from .model_types import ARIMASpec, FittedModel, information_criteria
from .optim_utils import PENALTY, bounded_minimize
from .stationarity_utils import difference

logger = logging.getLogger(__name__)


@dataclass
class ARMAFit:
    """Estimates for an ARMA(p, q) model on an already differenced series."""
    ar: np.ndarray
    ma: np.ndarray
    mean: float
    residuals: np.ndarray
    sse: float
    log_likelihood: float
    n_obs: int
    n_iter: int = 0


def arma_residuals(w: np.ndarray, ar: np.ndarray, ma: np.ndarray, mean: float = 0.0) -> np.ndarray:
    """
    Back out ARMA innovations recursively.

    ``e_t = (w_t - mean) - sum(ar_i * (w_{t-i} - mean)) - sum(ma_j * e_{t-j})`` with
    pre-sample deviations and innovations set to zero.
    """
    x = np.asarray(w, dtype=float) - mean
    b = np.r_[1.0, -np.asarray(ar, dtype=float)]
    a = np.r_[1.0, np.asarray(ma, dtype=float)]
    return lfilter(b, a, x)


def _conditional_loglik(sse: float, n: int) -> float:
    return -0.5 * n * (np.log(2.0 * np.pi * sse / n) + 1.0)


def fit_arma(differenced: pd.Series,
             p: int,
             q: int,
             drift: bool = False,
             max_iter: Optional[int] = None,
             model_id: Optional[str] = None) -> ARMAFit:
    """
    Estimate ARMA(p, q) coefficients and an optional mean by conditional maximum likelihood.

    ``p = q = 0`` is handled in closed form: without drift the residuals are the
    series itself; with drift the mean is the sample mean. Otherwise the
    conditional sum of squares is minimised with BFGS under an iteration cap,
    which maximises the Gaussian likelihood with the variance concentrated out.

    Parameters
    ----------
    differenced : pd.Series
        Series after differencing ``d`` times
    p, q : int
        AR and MA orders
    drift : bool
        Estimate a non-zero mean of the differenced series
    max_iter : int, optional
        Optimizer budget (default ``arima.max_iter``)

    Returns
    -------
    ARMAFit

    Raises
    ------
    NonConvergenceError
        If the optimizer exhausts its budget or ends at a non-finite point
    """
    w = np.asarray(differenced, dtype=float)
    n = len(w)
    label = model_id or f"ARMA({p},{q})"
    if n <= p + q + int(drift) + 1:
        raise ValueError(f"{label}: {n} observations are too few for {p + q + int(drift)} coefficients")

    if p == 0 and q == 0:
        mean = float(np.mean(w)) if drift else 0.0
        resid = w - mean
        sse = float(np.sum(resid ** 2))
        if sse <= 0.0:
            raise NonConvergenceError(f"{label}: zero residual variance", model_id=label)
        return ARMAFit(ar=np.zeros(0), ma=np.zeros(0), mean=mean, residuals=resid, sse=sse,
                       log_likelihood=float(_conditional_loglik(sse, n)), n_obs=n)

    budget = int(max_iter if max_iter is not None else get_config_value("arima.max_iter", 500))

    def unpack(x: np.ndarray):
        ar = x[:p]
        ma = x[p:p + q]
        mean = x[p + q] if drift else 0.0
        return ar, ma, mean

    def objective(x: np.ndarray) -> float:
        ar, ma, mean = unpack(x)
        resid = arma_residuals(w, ar, ma, mean)
        sse = float(np.dot(resid, resid))
        if not np.isfinite(sse) or sse <= 0.0:
            return PENALTY
        return 0.5 * n * np.log(sse / n)

    x0 = np.zeros(p + q + int(drift))
    if drift:
        x0[-1] = float(np.mean(w))

    result = bounded_minimize(objective, x0, method="BFGS", max_iter=budget, model_id=label)
    ar, ma, mean = unpack(np.asarray(result.x, dtype=float))
    resid = arma_residuals(w, ar, ma, mean)
    sse = float(np.dot(resid, resid))
    return ARMAFit(ar=np.array(ar, dtype=float), ma=np.array(ma, dtype=float), mean=float(mean),
                   residuals=resid, sse=sse, log_likelihood=float(_conditional_loglik(sse, n)),
                   n_obs=n, n_iter=int(result.get("nit", 0)))


def min_root_modulus(coefs: np.ndarray, sign: float) -> float:
    """
    Smallest root modulus of ``1 + sign * (c_1 z + ... + c_k z^k)``.

    ``sign=-1`` gives the AR polynomial, ``sign=+1`` the MA polynomial. Returns
    ``inf`` when the polynomial is constant.
    """
    c = np.trim_zeros(np.asarray(coefs, dtype=float), trim="b")
    if c.size == 0:
        return float("inf")
    poly = np.r_[1.0, sign * c][::-1]
    return float(np.min(np.abs(np.roots(poly))))


def _arima_symptoms(spec: ARIMASpec, ar_root: float, ma_root: float,
                    coefs: np.ndarray, margin: float, max_abs_coef: float) -> List[str]:
    symptoms = []
    if 1.0 < ar_root < 1.0 + margin:
        symptoms.append(f"{spec.label}: near-unit AR root (min modulus {ar_root:.4f})")
    if 1.0 < ma_root < 1.0 + margin:
        symptoms.append(f"{spec.label}: MA polynomial close to non-invertible (min modulus {ma_root:.4f})")
    if coefs.size and float(np.max(np.abs(coefs))) > max_abs_coef:
        symptoms.append(f"{spec.label}: coefficient magnitude {np.max(np.abs(coefs)):.3f} exceeds {max_abs_coef}")
    return symptoms


def fit_arima(series: pd.Series, spec: ARIMASpec, config: Optional[Dict] = None) -> FittedModel:
    """
    Fit a non-seasonal ARIMA(p, d, q) model with optional drift.

    The series is differenced ``d`` times, the ARMA part is estimated with
    ``fit_arma`` and residuals/fitted values are aligned back to the original
    periods (they start ``d`` periods after the first observation).

    Parameters
    ----------
    series : pd.Series
        Training series on the transformed scale (undifferenced)
    spec : ARIMASpec
        Orders and drift flag; ``d`` must already be chosen
    config : dict, optional
        Overrides for ``max_iter``, ``unit_root_margin``, ``max_abs_coef``

    Returns
    -------
    FittedModel
        ``aicc`` uses ``k = p + q + drift + 1``; AR/MA root moduli are stored in ``state``

    Raises
    ------
    NonConvergenceError
        If the optimizer fails
    """
    if not isinstance(spec, ARIMASpec):
        raise TypeError(f"fit_arima expects an ARIMASpec, got {type(spec).__name__}")
    settings = {
        "max_iter": int(get_config_value("arima.max_iter", 500)),
        "unit_root_margin": float(get_config_value("arima.unit_root_margin", 0.02)),
        "max_abs_coef": float(get_config_value("arima.max_abs_coef", 5.0)),
    }
    if config:
        settings.update(config)

    s = pd.Series(series, dtype=float)
    w = difference(s, spec.d)
    arma = fit_arma(w, spec.p, spec.q, spec.drift, max_iter=settings["max_iter"], model_id=spec.label)

    k = spec.n_coefficients + 1
    n = arma.n_obs
    criteria = information_criteria(arma.log_likelihood, k, n)
    sigma2 = arma.sse / max(n - spec.n_coefficients, 1)

    params: Dict[str, float] = {}
    for i, value in enumerate(arma.ar, start=1):
        params[f"ar{i}"] = float(value)
    for j, value in enumerate(arma.ma, start=1):
        params[f"ma{j}"] = float(value)
    if spec.drift:
        params["drift"] = arma.mean

    ar_root = min_root_modulus(arma.ar, -1.0)
    ma_root = min_root_modulus(arma.ma, 1.0)
    coefs = np.r_[arma.ar, arma.ma]
    symptoms = _arima_symptoms(spec, ar_root, ma_root, coefs,
                               settings["unit_root_margin"], settings["max_abs_coef"])
    for msg in symptoms:
        warnings.warn(msg, NumericInstabilityWarning, stacklevel=2)

    residuals = pd.Series(arma.residuals, index=w.index, name="residuals")
    fitted = pd.Series(s.loc[w.index].to_numpy() - arma.residuals, index=w.index, name="fitted")

    logger.debug("%s fitted: AICc=%.3f params=%s", spec.label, criteria["aicc"], params)

    return FittedModel(
        spec=spec,
        params=params,
        fitted=fitted,
        residuals=residuals,
        sigma2=float(sigma2),
        log_likelihood=arma.log_likelihood,
        aic=criteria["aic"],
        aicc=criteria["aicc"],
        bic=criteria["bic"],
        n_obs=n,
        n_params=k,
        state={
            "ar": arma.ar,
            "ma": arma.ma,
            "mean": arma.mean,
            "differenced": w,
            "ar_min_root": ar_root,
            "ma_min_root": ma_root,
        },
        series=s,
        instability=tuple(symptoms),
        n_iter=arma.n_iter,
    )


def arima_admissibility(fitted: FittedModel) -> Optional[str]:
    """
    Reason to reject a fitted ARIMA model, or ``None`` if it is admissible.

    A fit is rejected when its AR polynomial has a root on or inside the unit
    circle (non-stationary/non-causal) or its MA polynomial does (non-invertible).
    """
    if not isinstance(fitted.spec, ARIMASpec):
        return None
    ar_root = fitted.state.get("ar_min_root", float("inf"))
    ma_root = fitted.state.get("ma_min_root", float("inf"))
    if ar_root <= 1.0:
        return f"non-stationary AR polynomial (min root modulus {ar_root:.4f})"
    if ma_root <= 1.0:
        return f"non-invertible MA polynomial (min root modulus {ma_root:.4f})"
    return None
