"""Rolling-origin cross-validation for ETS and ARIMA specifications.

Each fold refits a fixed model specification on a training window that ends
at the fold origin, forecasts ``h`` steps ahead and records the realized
error at the target period on the original scale. The transform is estimated
once by the caller and reused by every fold, so no fold sees data beyond its
own origin.

Features:
- Rolling (fixed-size) or expanding training windows
- Fold fitting failures wrapped in ``FoldFittingError`` with the window boundaries
- Fail-fast or record-and-count failure handling
- Independent folds fanned out on a process pool when ``n_jobs > 1``
- Integration with the configuration system
"""

import logging
import warnings
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from config import get_config
from econ_forecaster_src.arima_utils import arima_admissibility
from econ_forecaster_src.errors import (DomainError, FoldFittingError, NonConvergenceError,
                                        NumericInstabilityWarning)
from econ_forecaster_src.forecasting_utils import fit_model, forecast
from econ_forecaster_src.metrics_utils import mase, naive_errors
from econ_forecaster_src.model_types import ModelSpec
from econ_forecaster_src.transform_utils import TransformSpec

logger = logging.getLogger(__name__)

WINDOW_TYPES = ("rolling", "expanding")


@dataclass
class BacktestConfig:
    """Configuration for rolling-origin cross-validation."""

    min_train_size: int = 40            # Observations in the first training window
    step_size: int = 1                  # Steps between fold origins
    forecast_horizon: int = 1           # Steps ahead scored per fold
    window_type: str = "rolling"        # "rolling" or "expanding"
    fail_fast: bool = False             # Abort on the first fold failure
    n_jobs: int = 1                     # Worker processes for independent folds

    @classmethod
    def from_config_manager(cls, config_manager: Optional[Any] = None) -> 'BacktestConfig':
        """Create BacktestConfig from a ``ConfigurationManager``.

        Parameters
        ----------
        config_manager : ConfigurationManager, optional
            Configuration manager instance; defaults are kept when ``None``

        Returns
        -------
        BacktestConfig
        """
        config = cls()
        if config_manager is None:
            return config

        rolling_config = config_manager.get_backtesting_config().get('rolling_origin', {}) or {}
        config.min_train_size = int(rolling_config.get('min_train_size', config.min_train_size))
        config.step_size = int(rolling_config.get('step_size', config.step_size))
        config.forecast_horizon = int(rolling_config.get('forecast_horizon', config.forecast_horizon))
        config.window_type = rolling_config.get('window_type', config.window_type)
        config.fail_fast = bool(rolling_config.get('fail_fast', config.fail_fast))
        config.n_jobs = int(config_manager.get('search.n_jobs', config.n_jobs))
        logger.info("Loaded backtest configuration from config manager")
        return config


@dataclass
class CVFold:
    """Outcome of one successfully fitted fold."""

    fold_id: int
    train_start: Any
    train_end: Any
    origin: Any
    target: Any
    forecast: float
    actual: float
    instability: Tuple[str, ...] = ()

    @property
    def error(self) -> float:
        """Realized error on the original scale (actual minus forecast)."""
        return float(self.actual - self.forecast)


@dataclass
class CVResult:
    """Folds and recorded fitting failures of one cross-validated specification."""

    spec: ModelSpec
    folds: List[CVFold] = field(default_factory=list)
    failures: List[FoldFittingError] = field(default_factory=list)
    window_type: str = "rolling"
    horizon: int = 1

    @property
    def model_id(self) -> str:
        return self.spec.label

    @property
    def n_folds(self) -> int:
        """Number of attempted folds."""
        return len(self.folds) + len(self.failures)

    @property
    def failure_rate(self) -> float:
        if self.n_folds == 0:
            return 0.0
        return len(self.failures) / self.n_folds

    @property
    def errors(self) -> np.ndarray:
        return np.array([f.error for f in self.folds], dtype=float)

    @property
    def unstable_folds(self) -> List[int]:
        """Fold ids whose refit raised instability warnings."""
        return [f.fold_id for f in self.folds if f.instability]

    def mase(self, train: pd.Series, m: int = 1) -> float:
        """MASE of the fold errors, scaled by the naive in-sample errors of ``train``."""
        return mase(self.errors, naive_errors(train, m=m))

    def to_frame(self) -> pd.DataFrame:
        rows = [{
            "fold_id": f.fold_id,
            "train_start": f.train_start,
            "train_end": f.train_end,
            "origin": f.origin,
            "target": f.target,
            "forecast": f.forecast,
            "actual": f.actual,
            "error": f.error,
            "unstable": bool(f.instability),
        } for f in self.folds]
        return pd.DataFrame(rows, columns=["fold_id", "train_start", "train_end", "origin", "target",
                                           "forecast", "actual", "error", "unstable"])


def fold_boundaries(n_obs: int,
                    min_window: int,
                    step: int = 1,
                    h: int = 1,
                    window_type: str = "rolling") -> List[Tuple[int, int, int]]:
    """Positional fold boundaries ``(train_start, train_stop, target)``.

    Fold ``k`` trains on positions ``[train_start, train_stop)`` where
    ``train_stop = min_window + k * step``; the scored target is position
    ``train_stop + h - 1``. Generation stops once the target would fall past
    the end of the series.
    """
    if window_type not in WINDOW_TYPES:
        raise ValueError(f"window_type must be one of {WINDOW_TYPES}, got {window_type!r}")
    if min_window < 1 or step < 1 or h < 1:
        raise ValueError("min_window, step and h must all be >= 1")

    boundaries = []
    train_stop = min_window
    while train_stop + h <= n_obs:
        train_start = 0 if window_type == "expanding" else train_stop - min_window
        boundaries.append((train_start, train_stop, train_stop + h - 1))
        train_stop += step
    return boundaries


def _run_fold(series: pd.Series,
              spec: ModelSpec,
              transform: Optional[TransformSpec],
              fold_id: int,
              train_start: int,
              train_stop: int,
              target: int,
              h: int) -> Tuple[Optional[CVFold], Optional[str]]:
    """Fit and score one fold; returns ``(fold, None)`` or ``(None, failure message)``.

    Failures travel back as plain messages so that the parent can rebuild a
    ``FoldFittingError`` with its window attributes across process boundaries.
    """
    train = series.iloc[train_start:train_stop]
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericInstabilityWarning)
        try:
            fitted = fit_model(train, spec, transform=transform)
            reason = arima_admissibility(fitted)
            if reason:
                return None, f"{spec.label} refit is inadmissible: {reason}"
            fc = forecast(fitted, h, transform=transform)
        except (NonConvergenceError, DomainError) as e:
            return None, f"{spec.label}: {e}"
        except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
            return None, f"{spec.label}: numeric error: {e}"

    point = float(fc.point().iloc[h - 1])
    if not np.isfinite(point):
        return None, f"{spec.label}: non-finite forecast"

    fold = CVFold(
        fold_id=fold_id,
        train_start=series.index[train_start],
        train_end=series.index[train_stop - 1],
        origin=series.index[train_stop - 1],
        target=series.index[target],
        forecast=point,
        actual=float(series.iloc[target]),
        instability=tuple(fitted.instability),
    )
    return fold, None


def rolling_cv(series: pd.Series,
               spec: ModelSpec,
               transform: Optional[TransformSpec] = None,
               min_window: int = 40,
               step: int = 1,
               h: int = 1,
               window_type: str = "rolling",
               fail_fast: bool = True,
               n_jobs: int = 1,
               progress: bool = False) -> CVResult:
    """Rolling-origin cross-validation of one fixed specification.

    Parameters
    ----------
    series : pd.Series
        Series on the original scale (typically the training portion)
    spec : ETSSpec or ARIMASpec
        Specification refitted in every fold; orders are not re-searched
    transform : TransformSpec, optional
        Transform estimated once on the training data
    min_window : int
        Size of the first training window (and of every window when rolling)
    step : int, default=1
        Steps between fold origins
    h : int, default=1
        Forecast horizon scored in each fold
    window_type : str, default="rolling"
        "rolling" keeps the window size fixed; "expanding" grows it from the start
    fail_fast : bool, default=True
        Raise the first ``FoldFittingError`` instead of recording it
    n_jobs : int, default=1
        Worker processes; folds are independent and reduced after all finish

    Returns
    -------
    CVResult

    Raises
    ------
    FoldFittingError
        On the first failing fold when ``fail_fast`` is set
    ValueError
        If the series is too short for a single fold
    """
    s = pd.Series(series, dtype=float)
    bounds = fold_boundaries(len(s), min_window, step, h, window_type)
    if not bounds:
        raise ValueError(f"Insufficient data: {len(s)} observations, need at least {min_window + h} "
                         f"for one fold of {spec.label}")

    logger.info("Cross-validating %s over %d folds (%s window of %d, h=%d)",
                spec.label, len(bounds), window_type, min_window, h)

    def _failure(fold_id: int, message: str) -> FoldFittingError:
        start, stop, _ = bounds[fold_id - 1]
        return FoldFittingError(message, window_start=s.index[start], window_end=s.index[stop - 1],
                                fold_id=fold_id)

    outcomes: Dict[int, Tuple[Optional[CVFold], Optional[str]]] = {}
    if n_jobs > 1 and len(bounds) > 1:
        with ProcessPoolExecutor(max_workers=n_jobs) as pool:
            futures = {pool.submit(_run_fold, s, spec, transform, i, start, stop, target, h): i
                       for i, (start, stop, target) in enumerate(bounds, start=1)}
            for future in tqdm(as_completed(futures), total=len(futures), desc=spec.label, disable=not progress):
                fold_id = futures[future]
                outcomes[fold_id] = future.result()
                if fail_fast and outcomes[fold_id][1] is not None:
                    for other in futures:
                        other.cancel()
                    raise _failure(fold_id, outcomes[fold_id][1])
    else:
        for i, (start, stop, target) in enumerate(tqdm(bounds, desc=spec.label, disable=not progress), start=1):
            outcomes[i] = _run_fold(s, spec, transform, i, start, stop, target, h)
            if fail_fast and outcomes[i][1] is not None:
                raise _failure(i, outcomes[i][1])

    result = CVResult(spec=spec, window_type=window_type, horizon=h)
    for fold_id in sorted(outcomes):
        fold, message = outcomes[fold_id]
        if fold is not None:
            result.folds.append(fold)
        else:
            error = _failure(fold_id, message)
            logger.warning("Fold %d failed: %s", fold_id, error)
            result.failures.append(error)

    logger.info("%s: %d/%d folds fitted (failure rate %.1f%%)",
                spec.label, len(result.folds), result.n_folds, 100.0 * result.failure_rate)
    return result


class RollingOriginValidator:
    """Rolling-origin cross-validator for several candidate specifications."""

    def __init__(self, config: Optional[BacktestConfig] = None):
        """Initialize the validator.

        Parameters
        ----------
        config : BacktestConfig, optional
            Backtesting configuration. If None, it is read from the configuration manager.
        """
        self.config = config if config is not None else BacktestConfig.from_config_manager(get_config())

    def validate(self,
                 series: pd.Series,
                 specs: Sequence[ModelSpec],
                 transform: Optional[TransformSpec] = None,
                 progress: bool = False) -> Dict[str, CVResult]:
        """Cross-validate each specification with the configured fold layout.

        Parameters
        ----------
        series : pd.Series
            Training series on the original scale
        specs : sequence of ModelSpec
            Candidate specifications
        transform : TransformSpec, optional
            Transform shared by all candidates

        Returns
        -------
        Dict[str, CVResult]
            Keyed by model id
        """
        self._validate_inputs(series)
        results: Dict[str, CVResult] = {}
        for spec in specs:
            results[spec.label] = rolling_cv(
                series, spec, transform,
                min_window=self.config.min_train_size,
                step=self.config.step_size,
                h=self.config.forecast_horizon,
                window_type=self.config.window_type,
                fail_fast=self.config.fail_fast,
                n_jobs=self.config.n_jobs,
                progress=progress,
            )
        return results

    def _validate_inputs(self, series: pd.Series) -> None:
        if series.empty:
            raise ValueError("Series cannot be empty")
        min_required = self.config.min_train_size + self.config.forecast_horizon
        if len(series) < min_required:
            raise ValueError(f"Insufficient data: {len(series)} obs, need at least {min_required}")
