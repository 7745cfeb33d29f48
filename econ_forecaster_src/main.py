# econ_forecaster_src/main.py

"""
ETS versus ARIMA forecasting of a quarterly economic series.

This is the main entry point of the forecasting engine.

Purpose
-------
- Load a quarterly series from CSV and validate it (contiguous periods, finite positive values)
- Split into a training window and a held-out test window
- Estimate a Box-Cox lambda once on the training window (Guerrero) and transform
- ETS: fit a small grid of error/trend specifications, keep the minimum AICc
- ARIMA: choose d by repeated KPSS tests, then search (p, q, drift) stepwise and by full grid
- Cross-validate the candidates with rolling-origin folds
- Apply the selection policy (AICc optimality against fit stability) per family
- Score the candidates by MASE on the test window and append a comparison report to CSV

Configuration-Driven Workflow
-----------------------------
Search bounds, optimiser budgets, fold layout and the fold-failure threshold
live in ``config/defaults.yaml``. CLI arguments override configuration values
where applicable.
"""

import argparse
import logging
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from backtesting.rolling_origin import CVResult, rolling_cv
from evaluation.accuracy import AccuracyReport, accuracy_table, cv_accuracy
from evaluation.selection import (PolicyCandidate, SelectionDecision, apply_selection_policy,
                                  decision_table, reconcile_searches)
from validation.pipeline import validate_series

from .config_utils import get_config_value, initialize_config
from .data_utils import load_series_csv, split_train_test
from .diagnostics_utils import irregular_check, residual_diagnostics
from .errors import FoldFittingError
from .ets_utils import ETSSelection, select_ets
from .file_utils import REPORT_COLUMNS, append_report_frame, ensure_dir
from .forecasting_utils import Forecast, forecast, hash_forecast
from .model_types import FittedModel
from .parsing_utils import parse_intervals_arg, parse_order_bound, validate_log_level
from .search_utils import SearchResult, grid_search, stepwise_search
from .stationarity_utils import diagnose_stationarity
from .transform_utils import TransformSpec, estimate_lambda

logger = logging.getLogger(__name__)


@dataclass
class ComparisonReport:
    """
    Read-only outcome of one forecasting run.

    One row per candidate model (AICc, cross-validated MASE, test MASE) plus,
    per family, the statistically optimal and the policy-selected model.
    """
    series_name: str
    transform: TransformSpec
    d: int
    stationarity: Dict[str, float]
    ets: ETSSelection
    stepwise: SearchResult
    grid: SearchResult
    decisions: Dict[str, SelectionDecision]
    models: Dict[str, FittedModel] = field(default_factory=dict)
    cv_results: Dict[str, CVResult] = field(default_factory=dict)
    cv_accuracy: Optional[AccuracyReport] = None
    test_accuracy: Optional[AccuracyReport] = None
    forecasts: Dict[str, Forecast] = field(default_factory=dict)
    diagnostics: Dict[str, Dict[str, float]] = field(default_factory=dict)
    pre_model_check: Optional[Dict[str, float]] = None
    max_fold_failure_rate: float = 0.1

    @property
    def selected(self) -> Dict[str, FittedModel]:
        return {family: decision.selected for family, decision in self.decisions.items()}

    def _score(self, report: Optional[AccuracyReport], model_id: str) -> float:
        if report is None:
            return float("nan")
        return report.scores.get(model_id, float("nan"))

    def to_frame(self) -> pd.DataFrame:
        """One row per candidate with the columns of the report CSV."""
        rows = []
        for model_id, model in self.models.items():
            decision = self.decisions[model.family]
            cv = self.cv_results.get(model_id)
            fc = self.forecasts.get(model_id)
            rows.append({
                "series": self.series_name,
                "model": model_id,
                "family": model.family,
                "AICc": model.aicc,
                "cv_MASE": self._score(self.cv_accuracy, model_id),
                "test_MASE": self._score(self.test_accuracy, model_id),
                "fold_failure_rate": cv.failure_rate if cv is not None else float("nan"),
                "unstable": bool(PolicyCandidate(model=model, cv=cv).stability_issues(self.max_fold_failure_rate)),
                "optimal": model_id == decision.optimal_id,
                "selected": model_id == decision.selected_id,
                "aicc_gap": model.aicc - decision.optimal.aicc,
                "reason": decision.reason if model_id == decision.selected_id else "",
                "lambda": self.transform.lam,
                "hash_forecast": hash_forecast(fc.mean) if fc is not None else "",
            })
        df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
        return df.sort_values(by=["family", "AICc"]).reset_index(drop=True)

    def decision_frame(self) -> pd.DataFrame:
        return decision_table(self.decisions)

    def forecast_frame(self, levels: Iterable[float] = (80, 95)) -> pd.DataFrame:
        """Stacked point forecasts and intervals of the policy-selected models."""
        frames = []
        for family, model in self.selected.items():
            fc = self.forecasts.get(model.model_id)
            if fc is None:
                continue
            frame = fc.to_frame(levels)
            frame.insert(0, "model", model.model_id)
            frame.insert(0, "family", family)
            frames.append(frame)
        return pd.concat(frames) if frames else pd.DataFrame()


def _resolve_transform(train: pd.Series, lam: Optional[float]) -> TransformSpec:
    if lam is None:
        lam = get_config_value("transform.lambda", None)
    if lam is None:
        bounds = tuple(get_config_value("transform.lambda_bounds", [-1.0, 2.0]))
        period = int(get_config_value("transform.guerrero_period", 4))
        lam = estimate_lambda(train, period=period, bounds=bounds)
    transform = TransformSpec(lam=float(lam))
    logger.info("Transform: %s", transform.describe())
    return transform


def _cross_validate(train: pd.Series,
                    models: Sequence[FittedModel],
                    transform: TransformSpec,
                    min_window: int,
                    step: int,
                    h: int,
                    n_jobs: int) -> Dict[str, CVResult]:
    window_type = get_config_value("backtesting.rolling_origin.window_type", "rolling")
    fail_fast = bool(get_config_value("backtesting.rolling_origin.fail_fast", False))
    results: Dict[str, CVResult] = {}
    for model in models:
        try:
            results[model.model_id] = rolling_cv(train, model.spec, transform, min_window=min_window, step=step,
                                                 h=h, window_type=window_type, fail_fast=fail_fast, n_jobs=n_jobs)
        except FoldFittingError as e:
            # fail-fast stop: only the failing fold is recorded
            logger.warning("Cross-validation of %s aborted: %s", model.model_id, e)
            results[model.model_id] = CVResult(spec=model.spec, failures=[e], window_type=window_type, horizon=h)
    return results


def run_forecast_workflow(series: pd.Series,
                          train_end: Optional[str] = None,
                          test_length: Optional[int] = None,
                          horizon: Optional[int] = None,
                          p_max: Optional[int] = None,
                          q_max: Optional[int] = None,
                          max_models: Optional[int] = None,
                          lam: Optional[float] = None,
                          n_jobs: Optional[int] = None,
                          cv: bool = True,
                          cv_min_window: Optional[int] = None,
                          cv_step: Optional[int] = None,
                          series_name: str = "series") -> ComparisonReport:
    """
    Run the full ETS-versus-ARIMA comparison on one quarterly series.

    Parameters
    ----------
    series : pd.Series
        Observations on the original scale indexed by quarter
    train_end : str, optional
        Last training period (e.g. '2021Q1'); defaults to holding out ``data.test_length`` periods
    test_length : int, optional
        Number of trailing periods held out when ``train_end`` is not given
    horizon : int, optional
        Forecast horizon of the reported forecasts (default ``forecast.horizon``)
    p_max, q_max, max_models : int, optional
        ARIMA search bounds (defaults from ``search.*``)
    lam : float, optional
        Fixed Box-Cox lambda; estimated on the training window when None
    n_jobs : int, optional
        Worker processes for grid search and cross-validation
    cv : bool, default=True
        Run rolling-origin cross-validation of the candidates
    cv_min_window, cv_step : int, optional
        Fold layout (defaults from ``backtesting.rolling_origin.*``)
    series_name : str
        Label used in the report

    Returns
    -------
    ComparisonReport

    Raises
    ------
    DataValidationError
        If the series violates the input contract
    DomainError
        If the training window cannot be Box-Cox transformed
    NonConvergenceError
        If no candidate of a family converges
    """
    validation = validate_series(series, name=series_name)
    s = validation.series

    if train_end is None and test_length is None:
        test_length = int(get_config_value("data.test_length", 8))
    train, test = split_train_test(s, train_end=train_end, test_length=test_length)

    horizon = int(horizon if horizon is not None else get_config_value("forecast.horizon", 8))
    n_jobs = int(n_jobs if n_jobs is not None else get_config_value("search.n_jobs", 1))

    transform = _resolve_transform(train, lam)
    y = transform.apply(train)

    alpha = float(get_config_value("stationarity.significance_level", 0.05))
    period = int(get_config_value("stationarity.seasonal_period", 4))
    pre_model_check = irregular_check(y, period=period, alpha=alpha)

    stationarity = diagnose_stationarity(
        y, alpha=alpha,
        max_d=int(get_config_value("stationarity.max_d", 2)),
        period=period,
        max_D=int(get_config_value("stationarity.max_D", 1)),
        seasonal_threshold=float(get_config_value("stationarity.seasonal_strength_threshold", 0.64)),
    )
    if stationarity["D"] > 0:
        logger.warning("Seasonal strength %.2f suggests seasonal differencing; only non-seasonal orders are searched",
                       stationarity["seasonal_strength"])
    d = int(stationarity["d"])

    # ETS family
    ets = select_ets(y)

    # ARIMA family
    stepwise = stepwise_search(y, d, p_max=p_max, q_max=q_max, max_models=max_models, n_jobs=n_jobs)
    grid = grid_search(y, d, p_max=p_max, q_max=q_max, n_jobs=n_jobs)

    models: Dict[str, FittedModel] = {m.model_id: m for m in ets.candidates}
    models.setdefault(stepwise.best.model_id, stepwise.best)
    models.setdefault(grid.best.model_id, grid.best)
    # next-best admissible orders, cross-validated so the policy can fall back to them
    n_fallbacks = int(get_config_value("selection.arima_fallback_candidates", 3))
    arima_fallbacks = [m for m in grid.candidates if m.model_id not in models][:n_fallbacks]
    for m in arima_fallbacks:
        models[m.model_id] = m

    cv_results: Dict[str, CVResult] = {}
    if cv:
        min_window = int(cv_min_window if cv_min_window is not None
                         else get_config_value("backtesting.rolling_origin.min_train_size", 40))
        step = int(cv_step if cv_step is not None else get_config_value("backtesting.rolling_origin.step_size", 1))
        h_cv = int(get_config_value("backtesting.rolling_origin.forecast_horizon", 1))
        if len(train) < min_window + h_cv:
            min_window = max(len(train) // 2, 8)
            logger.info("Training window too short for the configured folds; using min_window=%d", min_window)
        cv_results = _cross_validate(train, list(models.values()), transform, min_window, step, h_cv, n_jobs)

    threshold = float(get_config_value("selection.max_fold_failure_rate", 0.1))

    def _candidate(model: FittedModel) -> PolicyCandidate:
        return PolicyCandidate(model=model, cv=cv_results.get(model.model_id))

    decisions = {
        "ETS": apply_selection_policy([_candidate(m) for m in ets.candidates], max_fold_failure_rate=threshold),
        "ARIMA": reconcile_searches(stepwise, grid,
                                    is_stable=lambda m: not _candidate(m).stability_issues(threshold),
                                    fallbacks=arima_fallbacks),
    }
    for family, decision in decisions.items():
        logger.info("%s: optimal %s, selected %s (%s)", family, decision.optimal_id,
                    decision.selected_id, decision.reason)

    report = ComparisonReport(
        series_name=series_name,
        transform=transform,
        d=d,
        stationarity=stationarity,
        ets=ets,
        stepwise=stepwise,
        grid=grid,
        decisions=decisions,
        models=models,
        cv_results=cv_results,
        pre_model_check=pre_model_check,
        max_fold_failure_rate=threshold,
    )
    if cv_results:
        report.cv_accuracy = cv_accuracy(cv_results, train)
    if len(test):
        report.test_accuracy = accuracy_table(models, train, test, transform)
    for model_id, model in models.items():
        report.forecasts[model_id] = forecast(model, horizon, transform=transform)
    for model in report.selected.values():
        report.diagnostics[model.model_id] = residual_diagnostics(model)
    return report


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Build the command-line parser.

    Returns
    -------
    argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Fit competing ETS and ARIMA models to a quarterly series and compare them by AICc and MASE."
    )
    parser.add_argument("--series-csv", type=str, required=True,
                        help="CSV with a date column and a value column.")
    parser.add_argument("--value-column", type=str, default=None,
                        help="Column holding the observations (default: data.value_column).")
    parser.add_argument("--date-column", type=str, default=None,
                        help="Column holding the quarter of each observation (default: data.date_column).")
    parser.add_argument("--train-end", type=str, default=None,
                        help="Last training quarter, e.g. '2021Q1'. Defaults to holding out data.test_length quarters.")
    parser.add_argument("--test-length", type=int, default=None,
                        help="Number of trailing quarters held out when --train-end is not given.")
    parser.add_argument("--horizon", type=int, default=None,
                        help="Forecast horizon in quarters (default: forecast.horizon).")
    parser.add_argument("--intervals", type=str, default=None,
                        help="Comma-separated predictive interval coverages, e.g. '80,95' (default: forecast.coverage_levels).")
    parser.add_argument("--p-max", type=str, default=None,
                        help="Upper bound for AR order p, as '5' or a range '0-5'. Uses config default if not specified.")
    parser.add_argument("--q-max", type=str, default=None,
                        help="Upper bound for MA order q. Uses config default if not specified.")
    parser.add_argument("--max-models", type=int, default=None,
                        help="Cap on stepwise ARIMA fits (default: search.max_models).")
    parser.add_argument("--lambda", dest="lam", type=float, default=None,
                        help="Fixed Box-Cox lambda; estimated with Guerrero's method when omitted.")
    parser.add_argument("--n-jobs", type=int, default=None,
                        help="Worker processes for grid search and cross-validation.")
    parser.add_argument("--no-cv", action="store_true", default=False,
                        help="Skip rolling-origin cross-validation.")
    parser.add_argument("--cv-step", type=int, default=None,
                        help="Steps between cross-validation fold origins.")
    parser.add_argument("--metrics-csv", type=str, default=None,
                        help="If provided, append comparison report rows to this CSV.")
    parser.add_argument("--forecast-csv", type=str, default=None,
                        help="If provided, write the selected models' forecasts and intervals to this CSV.")
    parser.add_argument("--config", type=str, default=None,
                        help="YAML file merged over the default configuration.")
    parser.add_argument("--log-level", type=str, default="INFO",
                        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).")
    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.captureWarnings(True)

    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the ETS/ARIMA forecasting application.

    Returns
    -------
    int
        Process exit code
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.config:
        os.environ["ECON_FORECASTER_CONFIG"] = str(Path(args.config).resolve())
        initialize_config(reload=True)
    else:
        initialize_config()

    value_column = get_config_value("data.value_column", "gdp", args, "value_column")
    date_column = get_config_value("data.date_column", "date", args, "date_column")
    series_path = Path(args.series_csv)
    series = load_series_csv(series_path, value_column=value_column, date_column=date_column)

    intervals = args.intervals
    if intervals is None:
        intervals = ",".join(str(int(v)) for v in get_config_value("forecast.coverage_levels", [80, 95]))
    levels = parse_intervals_arg(intervals)
    report = run_forecast_workflow(
        series,
        train_end=args.train_end,
        test_length=args.test_length,
        horizon=args.horizon,
        p_max=parse_order_bound(args.p_max, "search.p_max"),
        q_max=parse_order_bound(args.q_max, "search.q_max"),
        max_models=args.max_models,
        lam=args.lam,
        n_jobs=args.n_jobs,
        cv=not args.no_cv,
        cv_step=args.cv_step,
        series_name=series_path.stem,
    )

    summary = report.to_frame()
    logger.info("Comparison report:\n%s", summary[["model", "AICc", "cv_MASE", "test_MASE", "selected"]]
                .to_string(index=False))
    for _, row in report.decision_frame().iterrows():
        logger.info("%s selected %s (optimal %s, AICc gap %.3f): %s", row["family"], row["selected"],
                    row["optimal"], row["aicc_gap"], row["reason"])

    if args.metrics_csv:
        append_report_frame(Path(args.metrics_csv), summary)
    if args.forecast_csv:
        out = Path(args.forecast_csv)
        ensure_dir(out.parent)
        report.forecast_frame(levels).to_csv(out, index_label="period")
        logger.info("Wrote forecasts to %s", out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
