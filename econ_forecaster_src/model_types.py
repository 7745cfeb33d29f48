# econ_forecaster_src/model_types.py

"""
Model specifications and fitted models shared by both model families.

``ModelSpec`` is a tagged union of ``ETSSpec`` and ``ARIMASpec``. Fitting and
forecasting dispatch on the concrete type with an ``isinstance`` chain and
raise ``TypeError`` for anything else; the two families share no fitting logic.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

ETS_ERRORS = ("A", "M")
ETS_TRENDS = ("N", "A", "Ad")


@dataclass(frozen=True)
class ETSSpec:
    """Exponential smoothing specification ETS(error, trend, season)."""
    error: str = "A"
    trend: str = "N"
    season: str = "N"

    def __post_init__(self):
        if self.error not in ETS_ERRORS:
            raise ValueError(f"ETS error must be one of {ETS_ERRORS}, got {self.error!r}")
        if self.trend not in ETS_TRENDS:
            raise ValueError(f"ETS trend must be one of {ETS_TRENDS}, got {self.trend!r}")
        if self.season != "N":
            raise ValueError("Only non-seasonal ETS models are supported (season='N')")

    @property
    def has_trend(self) -> bool:
        return self.trend != "N"

    @property
    def damped(self) -> bool:
        return self.trend == "Ad"

    @property
    def n_smoothing_params(self) -> int:
        """alpha, plus beta for a trend, plus phi when damped."""
        return 1 + int(self.has_trend) + int(self.damped)

    @property
    def n_states(self) -> int:
        return 1 + int(self.has_trend)

    @property
    def label(self) -> str:
        return f"ETS({self.error},{self.trend},{self.season})"


@dataclass(frozen=True)
class ARIMASpec:
    """Non-seasonal ARIMA(p, d, q) specification with an optional drift term."""
    p: int = 0
    d: int = 0
    q: int = 0
    drift: bool = False

    def __post_init__(self):
        for name in ("p", "d", "q"):
            value = getattr(self, name)
            if not isinstance(value, (int, np.integer)) or value < 0:
                raise ValueError(f"ARIMA order {name} must be a non-negative integer, got {value!r}")

    @property
    def n_coefficients(self) -> int:
        return self.p + self.q + int(self.drift)

    @property
    def label(self) -> str:
        base = f"ARIMA({self.p},{self.d},{self.q})"
        return f"{base} w/ drift" if self.drift else base


ModelSpec = Union[ETSSpec, ARIMASpec]


def aicc_from_loglik(log_likelihood: float, k: int, n: int) -> float:
    """``AICc = -2 logL + 2 k n / (n - k - 1)``; infinite when ``n <= k + 1``."""
    if n - k - 1 <= 0:
        return math.inf
    return -2.0 * log_likelihood + 2.0 * k * n / (n - k - 1)


def information_criteria(log_likelihood: float, k: int, n: int) -> Dict[str, float]:
    return {
        "aic": -2.0 * log_likelihood + 2.0 * k,
        "aicc": aicc_from_loglik(log_likelihood, k, n),
        "bic": -2.0 * log_likelihood + k * math.log(n),
    }


@dataclass(frozen=True)
class FittedModel:
    """
    A fitted model of either family. Immutable once created.

    Attributes
    ----------
    spec : ModelSpec
        The specification that was fitted
    params : Dict[str, float]
        Estimated parameters (alpha/beta/phi/l0/b0 for ETS; ar*/ma*/drift for ARIMA)
    fitted, residuals : pd.Series
        In-sample one-step fitted values and innovations on the transformed
        scale, indexed by the original periods (ARIMA starts at offset d)
    sigma2 : float
        Innovation variance used for prediction intervals
    log_likelihood, aic, aicc, bic : float
    n_obs : int
        Observations entering the likelihood
    n_params : int
        k, estimated parameters including the innovation variance
    state : Dict[str, Any]
        Family-specific forecasting memory (final ETS states; ARIMA tails)
    series : pd.Series
        Training data on the transformed scale
    instability : Tuple[str, ...]
        NumericInstabilityWarning messages recorded during the fit
    """
    spec: ModelSpec
    params: Dict[str, float]
    fitted: pd.Series
    residuals: pd.Series
    sigma2: float
    log_likelihood: float
    aic: float
    aicc: float
    bic: float
    n_obs: int
    n_params: int
    state: Dict[str, Any] = field(default_factory=dict)
    series: Optional[pd.Series] = None
    instability: Tuple[str, ...] = ()
    n_iter: int = 0

    @property
    def model_id(self) -> str:
        return self.spec.label

    @property
    def family(self) -> str:
        if isinstance(self.spec, ETSSpec):
            return "ETS"
        if isinstance(self.spec, ARIMASpec):
            return "ARIMA"
        raise TypeError(f"Unknown model specification: {self.spec!r}")

    @property
    def is_stable(self) -> bool:
        return not self.instability

    def summary(self) -> Dict[str, Any]:
        """Flat dict for logging and report rows."""
        row = {
            "model": self.model_id,
            "family": self.family,
            "aicc": self.aicc,
            "aic": self.aic,
            "bic": self.bic,
            "log_likelihood": self.log_likelihood,
            "sigma2": self.sigma2,
            "n_obs": self.n_obs,
            "k": self.n_params,
            "unstable": bool(self.instability),
        }
        row.update({f"param_{k}": v for k, v in self.params.items()})
        return row
