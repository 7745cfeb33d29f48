# econ_forecaster_src/transform_utils.py

import logging
from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np
import pandas as pd
from scipy.optimize import minimize_scalar

from .errors import DomainError

logger = logging.getLogger(__name__)

ArrayLike = Union[pd.Series, np.ndarray, list, float]


def _check_domain(values: np.ndarray) -> None:
    if not np.all(np.isfinite(values)):
        raise DomainError("Box-Cox transform requires finite values")
    if np.any(values <= 0):
        n_bad = int(np.sum(values <= 0))
        raise DomainError(f"Box-Cox transform requires strictly positive values ({n_bad} non-positive)")


def _wrap_like(template: ArrayLike, values: np.ndarray):
    if isinstance(template, pd.Series):
        return pd.Series(values, index=template.index, name=template.name)
    if np.ndim(template) == 0:
        return float(values)
    return values


def box_cox(series: ArrayLike, lam: float):
    """
    Apply the Box-Cox power transform with a fixed lambda.

    ``y' = (y**lam - 1) / lam`` for ``lam != 0`` and ``y' = log(y)`` for ``lam == 0``.

    Parameters
    ----------
    series : pd.Series, np.ndarray, list or float
        Strictly positive values. A Series keeps its index.
    lam : float
        Transform parameter

    Returns
    -------
    Same container type as the input, on the transformed scale.

    Raises
    ------
    DomainError
        If any value is non-positive or non-finite. Values are never clamped.
    """
    y = np.asarray(series, dtype=float)
    _check_domain(y)
    if lam == 0:
        out = np.log(y)
    else:
        out = (np.power(y, lam) - 1.0) / lam
    return _wrap_like(series, out)


def inv_box_cox(values: ArrayLike, lam: float):
    """
    Invert the Box-Cox transform.

    For ``lam != 0`` the inverse is ``(lam * y' + 1) ** (1 / lam)``. Bounds whose
    base ``lam * y' + 1`` falls below zero (possible for interval limits far in
    the tail) map to the limiting value of the inverse, which keeps the map
    monotonic so interval bound ordering is preserved.
    """
    z = np.asarray(values, dtype=float)
    if lam == 0:
        out = np.exp(z)
    else:
        base = np.maximum(lam * z + 1.0, 0.0)
        with np.errstate(divide="ignore", over="ignore"):
            out = np.power(base, 1.0 / lam)
    return _wrap_like(values, out)


@dataclass(frozen=True)
class TransformSpec:
    """A Box-Cox transform with a fixed lambda, passed explicitly to every call site."""

    lam: float = 1.0

    def apply(self, series: ArrayLike):
        return box_cox(series, self.lam)

    def invert(self, values: ArrayLike):
        return inv_box_cox(values, self.lam)

    def describe(self) -> str:
        if self.lam == 0:
            return "log"
        return f"box_cox(lambda={self.lam:.4f})"


def _guerrero_coef_var(lam: float, x_mean: np.ndarray, x_sd: np.ndarray) -> float:
    ratio = x_sd / np.power(x_mean, 1.0 - lam)
    return float(np.std(ratio, ddof=1) / np.mean(ratio))


def estimate_lambda(series: ArrayLike,
                    period: int = 4,
                    bounds: Tuple[float, float] = (-1.0, 2.0)) -> float:
    """
    Estimate the Box-Cox lambda with Guerrero's coefficient-of-variation method.

    The series is cut into non-overlapping blocks of ``period`` observations
    (dropping the oldest observations that do not fill a block). Lambda is the
    value for which ``sd_i / mean_i ** (1 - lambda)`` is most constant across
    blocks, found with a bounded scalar minimisation.

    Parameters
    ----------
    series : array-like
        Strictly positive training values
    period : int, default=4
        Block length (the seasonal period for quarterly data)
    bounds : Tuple[float, float], default=(-1.0, 2.0)
        Search interval for lambda

    Returns
    -------
    float
        Estimated lambda; 1.0 for a constant series

    Raises
    ------
    DomainError
        If the series contains non-positive values
    ValueError
        If the series does not cover at least two blocks
    """
    x = np.asarray(series, dtype=float)
    _check_domain(x)
    if np.all(x == x[0]):
        return 1.0

    n_blocks = len(x) // period
    if n_blocks < 2:
        raise ValueError(f"Guerrero's method needs at least {2 * period} observations, got {len(x)}")

    x = x[len(x) - n_blocks * period:]
    blocks = x.reshape(n_blocks, period)
    x_mean = blocks.mean(axis=1)
    x_sd = blocks.std(axis=1, ddof=1)

    lower = max(bounds[0], -1.0)
    res = minimize_scalar(_guerrero_coef_var, bounds=(lower, bounds[1]),
                          args=(x_mean, x_sd), method="bounded")
    lam = float(res.x)
    logger.info("Guerrero lambda estimate: %.4f (coef. of variation %.4g)", lam, float(res.fun))
    return lam
