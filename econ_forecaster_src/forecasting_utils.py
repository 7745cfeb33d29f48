# econ_forecaster_src/forecasting_utils.py

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from numpy.polynomial import polynomial as P
from scipy.stats import norm
from statsmodels.tsa.arima_process import arma2ma

from helpers.temporal import future_periods

from .arima_utils import fit_arima
from .ets_utils import fit_ets
from .model_types import ARIMASpec, ETSSpec, FittedModel, ModelSpec
from .transform_utils import TransformSpec

logger = logging.getLogger(__name__)

IDENTITY = TransformSpec(lam=1.0)


@dataclass(frozen=True)
class Forecast:
    """
    Point forecasts and Gaussian forecast distributions for ``h`` steps.

    ``mean`` and ``se`` live on the transformed scale; ``point`` and
    ``interval`` return values back-transformed with ``transform``.
    """
    index: pd.Index
    mean: np.ndarray
    se: np.ndarray
    transform: Optional[TransformSpec] = None
    model_id: str = ""

    @property
    def h(self) -> int:
        return len(self.mean)

    def _invert(self, values: np.ndarray) -> np.ndarray:
        if self.transform is None:
            return np.asarray(values, dtype=float)
        return np.asarray(self.transform.invert(np.asarray(values, dtype=float)), dtype=float)

    def point(self) -> pd.Series:
        """Point forecasts on the original scale."""
        return pd.Series(self._invert(self.mean), index=self.index, name="forecast")

    def interval(self, level: float = 95) -> Tuple[pd.Series, pd.Series]:
        """
        Symmetric Gaussian interval at ``level`` percent, back-transformed.

        The inverse transform is monotonic, so ``lower <= upper`` holds on both scales.
        """
        if not 0 < level < 100:
            raise ValueError(f"Coverage level must be between 0 and 100, got {level}")
        z = norm.ppf(0.5 + level / 200.0)
        lower = self._invert(self.mean - z * self.se)
        upper = self._invert(self.mean + z * self.se)
        return (pd.Series(lower, index=self.index, name=f"lo_{level:g}"),
                pd.Series(upper, index=self.index, name=f"hi_{level:g}"))

    def width(self, level: float = 95) -> np.ndarray:
        lower, upper = self.interval(level)
        return (upper - lower).to_numpy()

    def to_frame(self, levels: Iterable[float] = (80, 95)) -> pd.DataFrame:
        frame = {"forecast": self.point(), "mean_transformed": pd.Series(self.mean, index=self.index),
                 "se_transformed": pd.Series(self.se, index=self.index)}
        for level in levels:
            lower, upper = self.interval(level)
            frame[lower.name] = lower
            frame[upper.name] = upper
        return pd.DataFrame(frame)


def _future_index(index: pd.Index, h: int) -> pd.Index:
    if isinstance(index, pd.PeriodIndex):
        return future_periods(index, h)
    if len(index) and pd.api.types.is_integer_dtype(index):
        start = int(index[-1]) + 1
        return pd.RangeIndex(start, start + h)
    return pd.RangeIndex(len(index), len(index) + h)


def _ets_matrices(fitted: FittedModel) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    spec = fitted.spec
    alpha = fitted.params["alpha"]
    if not spec.has_trend:
        return np.array([1.0]), np.array([[1.0]]), np.array([alpha])
    phi = fitted.params.get("phi", 1.0) if spec.damped else 1.0
    w = np.array([1.0, phi])
    F = np.array([[1.0, phi], [0.0, phi]])
    g = np.array([alpha, fitted.params["beta"]])
    return w, F, g


def _ets_moments(fitted: FittedModel, h: int) -> Tuple[np.ndarray, np.ndarray]:
    spec: ETSSpec = fitted.spec
    level = fitted.state["level"]
    slope = fitted.state["slope"]
    phi = fitted.params.get("phi", 1.0) if spec.damped else 1.0

    steps = np.arange(1, h + 1)
    if not spec.has_trend:
        mu = np.full(h, level)
    elif spec.damped:
        mu = level + np.cumsum(phi ** steps) * slope
    else:
        mu = level + steps * slope

    w, F, g = _ets_matrices(fitted)
    c = np.empty(max(h - 1, 0))
    F_power = np.eye(len(w))
    for j in range(h - 1):
        c[j] = float(w @ F_power @ g)
        F_power = F_power @ F

    sigma2 = fitted.sigma2
    if spec.error == "A":
        var = sigma2 * np.r_[1.0, 1.0 + np.cumsum(c ** 2)][:h]
    else:
        theta = np.empty(h)
        theta[0] = mu[0] ** 2
        for i in range(1, h):
            theta[i] = mu[i] ** 2 + sigma2 * np.sum(c[:i] ** 2 * theta[i - 1::-1][:i])
        var = (1.0 + sigma2) * theta - mu ** 2
    return mu, np.maximum(var, 0.0)


def _integrate(levels: List[np.ndarray], forecasts: np.ndarray) -> np.ndarray:
    out = forecasts
    for k in range(len(levels) - 1, -1, -1):
        out = levels[k][-1] + np.cumsum(out)
    return out


def _arima_moments(fitted: FittedModel, h: int) -> Tuple[np.ndarray, np.ndarray]:
    spec: ARIMASpec = fitted.spec
    ar = np.asarray(fitted.state["ar"], dtype=float)
    ma = np.asarray(fitted.state["ma"], dtype=float)
    mean = float(fitted.state["mean"])
    w = np.asarray(fitted.state["differenced"], dtype=float)
    resid = fitted.residuals.to_numpy(dtype=float)
    p, q = len(ar), len(ma)

    x = list(w - mean)
    e = list(resid)
    n = len(x)
    for i in range(h):
        t = n + i
        value = 0.0
        for k in range(1, p + 1):
            if t - k >= 0:
                value += ar[k - 1] * x[t - k]
        for j in range(1, q + 1):
            if n > t - j >= 0:
                value += ma[j - 1] * e[t - j]
        x.append(value)
    w_hat = np.asarray(x[n:]) + mean

    levels: List[np.ndarray] = []
    current = fitted.series.to_numpy(dtype=float)
    for _ in range(spec.d):
        levels.append(current)
        current = np.diff(current)
    mu = _integrate(levels, w_hat) if spec.d else w_hat

    ar_poly = np.r_[1.0, -ar]
    for _ in range(spec.d):
        ar_poly = P.polymul(ar_poly, [1.0, -1.0])
    psi = arma2ma(ar_poly, np.r_[1.0, ma], lags=h)
    var = fitted.sigma2 * np.cumsum(psi ** 2)
    return mu, var


def forecast(fitted: FittedModel, h: int, transform: Optional[TransformSpec] = None) -> Forecast:
    """
    Forecast ``h`` steps ahead from a fitted model of either family.

    ETS
        Point forecasts extrapolate the final level and (damped) slope. Additive
        errors use ``sigma2 * (1 + sum c_j^2)``; multiplicative errors use
        ``(1 + sigma2) * theta_h - mu_h^2`` with ``theta_h = mu_h^2 + sigma2 *
        sum c_j^2 theta_{h-j}``, where ``c_j = w F^{j-1} g``.
    ARIMA
        The ARMA recursion is iterated with future innovations at zero, then
        re-integrated ``d`` times; the variance is ``sigma2 * sum psi_j^2`` from
        the MA(infinity) weights of ``phi(B) (1 - B)^d``.

    Parameters
    ----------
    fitted : FittedModel
        Model fitted on the transformed scale
    h : int
        Horizon (>= 1)
    transform : TransformSpec, optional
        Transform used to fit; point forecasts and intervals are inverted
        through it. ``None`` leaves them on the fitted scale.

    Returns
    -------
    Forecast
    """
    if h < 1:
        raise ValueError("Forecast horizon h must be >= 1")
    spec = fitted.spec
    if isinstance(spec, ETSSpec):
        mu, var = _ets_moments(fitted, h)
    elif isinstance(spec, ARIMASpec):
        mu, var = _arima_moments(fitted, h)
    else:
        raise TypeError(f"Unknown model specification: {spec!r}")

    index = _future_index(fitted.series.index, h)
    return Forecast(index=index, mean=np.asarray(mu, dtype=float), se=np.sqrt(np.asarray(var, dtype=float)),
                    transform=transform, model_id=fitted.model_id)


def fit_model(series: pd.Series, spec: ModelSpec, transform: Optional[TransformSpec] = None,
              config: Optional[Dict] = None) -> FittedModel:
    """
    Transform an original-scale series and fit ``spec`` to it.

    This is the single dispatch point over the ``ModelSpec`` union.
    """
    y = transform.apply(series) if transform is not None else pd.Series(series, dtype=float)
    if isinstance(spec, ETSSpec):
        return fit_ets(y, spec, config=config)
    if isinstance(spec, ARIMASpec):
        return fit_arima(y, spec, config=config)
    raise TypeError(f"Unknown model specification: {spec!r}")


def hash_forecast(seq: Union[List[float], np.ndarray, pd.Series]) -> str:
    """
    Generate a hash fingerprint for a forecast sequence.

    Uses the first 16 characters of the SHA-1 hash of the float64 bytes, which
    is enough to spot duplicate runs in the report CSV.
    """
    arr = np.asarray(seq, dtype=np.float64)
    return hashlib.sha1(arr.tobytes()).hexdigest()[:16]
