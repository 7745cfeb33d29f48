# econ_forecaster_src/ets_utils.py

import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .config_utils import get_config_value
from .errors import NonConvergenceError, NumericInstabilityWarning
from .model_types import ETSSpec, FittedModel, information_criteria
from .optim_utils import PENALTY, bounded_minimize

logger = logging.getLogger(__name__)

DEFAULT_ETS_SPECS: Tuple[ETSSpec, ...] = (
    ETSSpec("A", "N", "N"),
    ETSSpec("A", "A", "N"),
    ETSSpec("A", "Ad", "N"),
    ETSSpec("M", "A", "N"),
    ETSSpec("M", "Ad", "N"),
)

# Simple (no-trend) specifications added in auto mode
AUTO_EXTRA_SPECS: Tuple[ETSSpec, ...] = (
    ETSSpec("A", "N", "N"),
    ETSSpec("M", "N", "N"),
)


@dataclass
class ETSFilterResult:
    """Output of one pass of the innovations recursion."""
    mu: np.ndarray
    errors: np.ndarray
    level: float
    slope: float
    feasible: bool = True


def ets_filter(y: Union[np.ndarray, pd.Series, list],
               spec: ETSSpec,
               params: Dict[str, float]) -> ETSFilterResult:
    """
    Run the ETS innovations recursion for fixed parameters.

    One-step prediction ``mu_t = l_{t-1} + phi * b_{t-1}`` (``phi = 1`` for an
    undamped trend, ``b = 0`` without trend). Additive errors use
    ``e_t = y_t - mu_t``; multiplicative errors use ``e_t = (y_t - mu_t) / mu_t``.

    Parameters
    ----------
    y : array-like
        Observations on the transformed scale
    spec : ETSSpec
        Model specification
    params : Dict[str, float]
        ``alpha``, ``l0`` and, when a trend is present, ``beta``, ``b0``
        (and ``phi`` if damped)

    Returns
    -------
    ETSFilterResult
        One-step predictions, innovations and the final level/slope.
        ``feasible`` is False if a multiplicative prediction is not positive.
    """
    y = np.asarray(y, dtype=float)
    n = len(y)
    alpha = params["alpha"]
    beta = params.get("beta", 0.0) if spec.has_trend else 0.0
    phi = params.get("phi", 1.0) if spec.damped else 1.0
    level = params["l0"]
    slope = params.get("b0", 0.0) if spec.has_trend else 0.0
    multiplicative = spec.error == "M"

    mu = np.empty(n)
    errors = np.empty(n)
    for t in range(n):
        damped_slope = phi * slope
        pred = level + damped_slope
        mu[t] = pred
        if multiplicative:
            if pred <= 0.0:
                return ETSFilterResult(mu=mu, errors=errors, level=level, slope=slope, feasible=False)
            e = (y[t] - pred) / pred
            level = pred * (1.0 + alpha * e)
            slope = damped_slope + beta * pred * e
        else:
            e = y[t] - pred
            level = pred + alpha * e
            slope = damped_slope + beta * e
        errors[t] = e

    return ETSFilterResult(mu=mu, errors=errors, level=level, slope=slope)


def ets_log_likelihood(y: np.ndarray, spec: ETSSpec, filtered: ETSFilterResult) -> float:
    """Gaussian innovations log-likelihood with the variance concentrated out."""
    n = len(y)
    sse = float(np.sum(filtered.errors ** 2))
    if not filtered.feasible or not np.isfinite(sse) or sse <= 0.0:
        return -np.inf
    loglik = -0.5 * n * (np.log(2.0 * np.pi * sse / n) + 1.0)
    if spec.error == "M":
        loglik -= float(np.sum(np.log(np.abs(filtered.mu))))
    return float(loglik)


def _param_names(spec: ETSSpec) -> List[str]:
    names = ["alpha"]
    if spec.has_trend:
        names.append("beta")
    if spec.damped:
        names.append("phi")
    names.append("l0")
    if spec.has_trend:
        names.append("b0")
    return names


def _initial_states(y: np.ndarray, spec: ETSSpec) -> Tuple[float, float]:
    if not spec.has_trend:
        return float(y[0]), 0.0
    maxn = min(10, len(y))
    slope, intercept = np.polyfit(np.arange(1, maxn + 1), y[:maxn], 1)
    return float(intercept), float(slope)


def _ets_settings(config: Optional[Dict] = None) -> Dict:
    settings = {
        "alpha_bounds": tuple(get_config_value("ets.alpha_bounds", [0.0001, 0.9999])),
        "beta_lower": float(get_config_value("ets.beta_lower", 0.0001)),
        "phi_bounds": tuple(get_config_value("ets.phi_bounds", [0.8, 0.98])),
        "max_iter": int(get_config_value("ets.max_iter", 2000)),
        "boundary_tolerance": float(get_config_value("ets.boundary_tolerance", 1e-3)),
    }
    if config:
        settings.update(config)
    return settings


def _instability_symptoms(spec: ETSSpec, params: Dict[str, float], filtered: ETSFilterResult,
                          y: np.ndarray, settings: Dict) -> List[str]:
    tol = settings["boundary_tolerance"]
    symptoms = []
    if spec.has_trend and params["beta"] >= params["alpha"] - tol:
        symptoms.append(f"{spec.label}: beta={params['beta']:.4f} pressed against alpha={params['alpha']:.4f}")
    if spec.damped:
        lo, hi = settings["phi_bounds"]
        if params["phi"] <= lo + tol or params["phi"] >= hi - tol:
            symptoms.append(f"{spec.label}: phi={params['phi']:.4f} pinned at its bound [{lo}, {hi}]")
    if spec.error == "M":
        scale = float(np.median(np.abs(y))) or 1.0
        if float(np.min(np.abs(filtered.mu))) < 1e-2 * scale:
            symptoms.append(f"{spec.label}: one-step predictions close to zero under multiplicative errors")
    return symptoms


def fit_ets(series: pd.Series, spec: ETSSpec, config: Optional[Dict] = None) -> FittedModel:
    """
    Fit an ETS specification by maximum likelihood.

    Smoothing parameters and initial states are estimated jointly by
    maximising the Gaussian innovations log-likelihood with a bounded
    Nelder-Mead search. Constraints: ``alpha`` inside ``ets.alpha_bounds``,
    ``beta_lower < beta < alpha``, ``phi`` inside ``ets.phi_bounds``.

    Parameters
    ----------
    series : pd.Series
        Training series on the transformed scale
    spec : ETSSpec
        Error/trend specification
    config : dict, optional
        Overrides for ``alpha_bounds``, ``beta_lower``, ``phi_bounds``,
        ``max_iter``, ``boundary_tolerance``

    Returns
    -------
    FittedModel
        ``aicc`` uses ``k`` = estimated parameters + 1 (innovation variance)

    Raises
    ------
    NonConvergenceError
        If the optimizer exhausts its iteration budget or ends infeasible
    """
    if not isinstance(spec, ETSSpec):
        raise TypeError(f"fit_ets expects an ETSSpec, got {type(spec).__name__}")
    s = pd.Series(series, dtype=float)
    y = s.to_numpy()
    n = len(y)
    if n < 4:
        raise ValueError(f"{spec.label}: need at least 4 observations, got {n}")

    settings = _ets_settings(config)
    names = _param_names(spec)
    alpha_lo, alpha_hi = settings["alpha_bounds"]
    phi_lo, phi_hi = settings["phi_bounds"]
    beta_lo = settings["beta_lower"]

    l0, b0 = _initial_states(y, spec)
    start = {"alpha": alpha_lo + 0.2 * (alpha_hi - alpha_lo),
             "l0": l0, "b0": b0}
    start["beta"] = beta_lo + 0.1 * (start["alpha"] - beta_lo)
    start["phi"] = min(0.97, phi_hi)
    x0 = [start[name] for name in names]

    bounds_map = {
        "alpha": (alpha_lo, alpha_hi),
        "beta": (beta_lo, alpha_hi),
        "phi": (phi_lo, phi_hi),
        "l0": (None, None),
        "b0": (None, None),
    }
    bounds = [bounds_map[name] for name in names]

    def objective(x: np.ndarray) -> float:
        params = dict(zip(names, x))
        if spec.has_trend and params["beta"] > params["alpha"]:
            return PENALTY
        filtered = ets_filter(y, spec, params)
        loglik = ets_log_likelihood(y, spec, filtered)
        if not np.isfinite(loglik):
            return PENALTY
        return -loglik

    result = bounded_minimize(objective, x0, bounds=bounds, method="Nelder-Mead",
                              max_iter=settings["max_iter"], model_id=spec.label)

    params = {name: float(v) for name, v in zip(names, result.x)}
    filtered = ets_filter(y, spec, params)
    loglik = ets_log_likelihood(y, spec, filtered)
    if not np.isfinite(loglik):
        raise NonConvergenceError(f"{spec.label}: optimum has non-finite likelihood", model_id=spec.label)

    k = len(names) + 1
    criteria = information_criteria(loglik, k, n)
    sigma2 = float(np.sum(filtered.errors ** 2) / max(n - len(names), 1))

    if spec.error == "M":
        residuals = filtered.errors
    else:
        residuals = y - filtered.mu
    symptoms = _instability_symptoms(spec, params, filtered, y, settings)
    for msg in symptoms:
        warnings.warn(msg, NumericInstabilityWarning, stacklevel=2)

    logger.debug("%s fitted: AICc=%.3f params=%s (nit=%s)", spec.label, criteria["aicc"], params,
                 result.get("nit"))

    return FittedModel(
        spec=spec,
        params=params,
        fitted=pd.Series(filtered.mu, index=s.index, name="fitted"),
        residuals=pd.Series(residuals, index=s.index, name="residuals"),
        sigma2=sigma2,
        log_likelihood=loglik,
        aic=criteria["aic"],
        aicc=criteria["aicc"],
        bic=criteria["bic"],
        n_obs=n,
        n_params=k,
        state={"level": filtered.level, "slope": filtered.slope},
        series=s,
        instability=tuple(symptoms),
        n_iter=int(result.get("nit", 0)),
    )


@dataclass
class ETSSelection:
    """Result of ETS auto-selection."""
    best: FittedModel
    candidates: List[FittedModel]
    excluded: Dict[str, str] = field(default_factory=dict)

    @property
    def table(self) -> pd.DataFrame:
        rows = [m.summary() for m in self.candidates]
        rows += [{"model": label, "family": "ETS", "status": reason} for label, reason in self.excluded.items()]
        df = pd.DataFrame(rows)
        if "aicc" in df.columns:
            df = df.sort_values(by="aicc", ascending=True, na_position="last").reset_index(drop=True)
        return df


def _ets_grid(specs: Optional[Sequence[ETSSpec]], auto: bool) -> List[ETSSpec]:
    if specs is None:
        configured = get_config_value("ets.specs", None)
        if configured:
            specs = [ETSSpec(*entry) for entry in configured]
        else:
            specs = list(DEFAULT_ETS_SPECS)
    grid = list(dict.fromkeys(specs))
    if auto:
        for extra in AUTO_EXTRA_SPECS:
            if extra not in grid:
                grid.append(extra)
    return grid


def select_ets(series: pd.Series,
               specs: Optional[Sequence[ETSSpec]] = None,
               auto: bool = True,
               tie_epsilon: Optional[float] = None,
               config: Optional[Dict] = None) -> ETSSelection:
    """
    Fit a small grid of ETS specifications and keep the minimum-AICc model.

    Candidates that fail to converge are excluded and logged. When two AICc
    values differ by less than ``tie_epsilon`` the model with fewer parameters
    wins.

    Parameters
    ----------
    series : pd.Series
        Training series on the transformed scale
    specs : sequence of ETSSpec, optional
        Grid to search; defaults to ``ets.specs`` from configuration
    auto : bool, default=True
        Also consider the simple no-trend specifications
    tie_epsilon : float, optional
        AICc tie tolerance (default ``ets.tie_epsilon``)

    Returns
    -------
    ETSSelection

    Raises
    ------
    NonConvergenceError
        If no specification converges
    """
    eps = float(tie_epsilon if tie_epsilon is not None else get_config_value("ets.tie_epsilon", 1e-6))
    grid = _ets_grid(specs, auto)

    fitted: List[FittedModel] = []
    excluded: Dict[str, str] = {}
    for spec in grid:
        try:
            model = fit_ets(series, spec, config=config)
        except NonConvergenceError as e:
            logger.info("Excluding %s: %s", spec.label, e)
            excluded[spec.label] = f"non-convergence: {e}"
            continue
        fitted.append(model)
        logger.info("%s: AICc=%.3f", spec.label, model.aicc)

    if not fitted:
        raise NonConvergenceError("No ETS specification converged")

    best_aicc = min(m.aicc for m in fitted)
    tied = [m for m in fitted if m.aicc - best_aicc < eps]
    best = min(tied, key=lambda m: (m.n_params, m.aicc))
    logger.info("Selected %s (AICc=%.3f) among %d converged ETS models", best.model_id, best.aicc, len(fitted))
    return ETSSelection(best=best, candidates=fitted, excluded=excluded)
