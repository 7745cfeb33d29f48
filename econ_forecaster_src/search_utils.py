# econ_forecaster_src/search_utils.py

"""
ARIMA order search.

Two strategies share one candidate evaluator so that their AICc values are
directly comparable:

- ``grid_search`` fits every (p, q, drift) combination inside the bounds.
- ``stepwise_search`` is the Hyndman-Khandakar greedy walk: it fits a few seed
  models and moves to the best neighbouring order while AICc improves. It is
  much cheaper but can stop at a local optimum, so its winner is a candidate,
  not a guarantee of the bounded-space minimum.

Candidates that fail to converge, or whose AR/MA polynomials are
non-stationary or non-invertible, are excluded from comparison. Candidates
that converge with instability symptoms stay in the comparison and are
re-surfaced as ``NumericInstabilityWarning``.
"""

import logging
import warnings
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd
from tqdm.auto import tqdm

from .arima_utils import arima_admissibility, fit_arima
from .config_utils import get_config_value
from .errors import NonConvergenceError, NumericInstabilityWarning
from .model_types import ARIMASpec, FittedModel

logger = logging.getLogger(__name__)


@dataclass
class CandidateOutcome:
    """Outcome of fitting one ARIMA candidate during a search."""
    spec: ARIMASpec
    model: Optional[FittedModel] = None
    reason: Optional[str] = None

    @property
    def admissible(self) -> bool:
        return self.model is not None and self.reason is None

    @property
    def aicc(self) -> float:
        return self.model.aicc if self.admissible else float("inf")


@dataclass
class SearchResult:
    """Outcome of an ARIMA order search."""
    method: str
    best: FittedModel
    outcomes: Dict[ARIMASpec, CandidateOutcome] = field(default_factory=dict)

    @property
    def best_spec(self) -> ARIMASpec:
        return self.best.spec

    @property
    def excluded(self) -> Dict[ARIMASpec, str]:
        return {spec: o.reason for spec, o in self.outcomes.items() if not o.admissible}

    @property
    def warned(self) -> Dict[ARIMASpec, tuple]:
        return {spec: o.model.instability for spec, o in self.outcomes.items()
                if o.admissible and o.model.instability}

    @property
    def candidates(self) -> List[FittedModel]:
        """Admissible fitted models sorted by AICc."""
        models = [o.model for o in self.outcomes.values() if o.admissible]
        return sorted(models, key=lambda m: m.aicc)

    @property
    def table(self) -> pd.DataFrame:
        rows = []
        for spec, o in self.outcomes.items():
            rows.append({
                "(p,d,q)": (spec.p, spec.d, spec.q),
                "drift": spec.drift,
                "model": spec.label,
                "AICc": o.aicc,
                "status": "ok" if o.admissible else o.reason,
                "unstable": bool(o.admissible and o.model.instability),
            })
        df = pd.DataFrame(rows, columns=["(p,d,q)", "drift", "model", "AICc", "status", "unstable"])
        return df.sort_values(by="AICc", ascending=True).reset_index(drop=True)


def evaluate_candidate(series: pd.Series, spec: ARIMASpec, config: Optional[Dict] = None) -> CandidateOutcome:
    """
    Fit one candidate and classify it.

    Non-convergence and inadmissible roots become an exclusion reason; numeric
    errors from degenerate data are contained to the candidate.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericInstabilityWarning)
        try:
            model = fit_arima(series, spec, config=config)
        except NonConvergenceError as e:
            return CandidateOutcome(spec=spec, reason=f"non-convergence: {e}")
        except (ValueError, ArithmeticError) as e:
            return CandidateOutcome(spec=spec, reason=f"fit error: {e}")
    reason = arima_admissibility(model)
    if reason:
        return CandidateOutcome(spec=spec, model=model, reason=reason)
    return CandidateOutcome(spec=spec, model=model)


def _evaluate_batch(series: pd.Series,
                    specs: Sequence[ARIMASpec],
                    n_jobs: int = 1,
                    config: Optional[Dict] = None,
                    progress: bool = False,
                    desc: str = "ARIMA candidates") -> List[CandidateOutcome]:
    specs = list(specs)
    if n_jobs > 1 and len(specs) > 1:
        with ProcessPoolExecutor(max_workers=n_jobs) as pool:
            futures = [pool.submit(evaluate_candidate, series, spec, config) for spec in specs]
            outcomes = [f.result() for f in tqdm(futures, desc=desc, disable=not progress)]
    else:
        outcomes = [evaluate_candidate(series, spec, config)
                    for spec in tqdm(specs, desc=desc, disable=not progress)]

    for o in outcomes:
        if not o.admissible:
            logger.info("Excluding %s: %s", o.spec.label, o.reason)
        elif o.model.instability:
            for msg in o.model.instability:
                warnings.warn(msg, NumericInstabilityWarning, stacklevel=3)
        else:
            logger.debug("%s: AICc=%.3f", o.spec.label, o.aicc)
    return outcomes


def _best(outcomes: Iterable[CandidateOutcome]) -> Optional[CandidateOutcome]:
    admissible = [o for o in outcomes if o.admissible]
    if not admissible:
        return None
    return min(admissible, key=lambda o: (o.aicc, o.spec.n_coefficients))


def _drift_options(d: int, drift: Optional[bool]) -> List[bool]:
    if drift is not None:
        return [bool(drift)] if d <= 1 or not drift else [False]
    return [False, True] if d <= 1 else [False]


def grid_search(series: pd.Series,
                d: int,
                p_max: Optional[int] = None,
                q_max: Optional[int] = None,
                drift: Optional[bool] = None,
                n_jobs: Optional[int] = None,
                progress: bool = False,
                config: Optional[Dict] = None) -> SearchResult:
    """
    Exhaustive ARIMA order search ranked by AICc.

    Fits every ``0 <= p <= p_max``, ``0 <= q <= q_max`` (with and without
    drift when ``d <= 1``). Fits are independent and run on a process pool when
    ``n_jobs > 1``; the minimum-AICc admissible candidate is picked once all
    fits are done.

    Parameters
    ----------
    series : pd.Series
        Training series on the transformed scale (undifferenced)
    d : int
        Differencing order, chosen beforehand
    p_max, q_max : int, optional
        Order bounds (default ``search.p_max`` / ``search.q_max``)
    drift : bool, optional
        Restrict to one drift setting; ``None`` tries both when allowed
    n_jobs : int, optional
        Worker processes (default ``search.n_jobs``)
    progress : bool
        Show a tqdm progress bar

    Returns
    -------
    SearchResult

    Raises
    ------
    NonConvergenceError
        If no candidate is admissible
    """
    p_max = int(p_max if p_max is not None else get_config_value("search.p_max", 5))
    q_max = int(q_max if q_max is not None else get_config_value("search.q_max", 5))
    n_jobs = int(n_jobs if n_jobs is not None else get_config_value("search.n_jobs", 1))

    specs = [ARIMASpec(p, d, q, dr)
             for p in range(p_max + 1)
             for q in range(q_max + 1)
             for dr in _drift_options(d, drift)]
    logger.info("Grid search over %d ARIMA candidates (d=%d, p<=%d, q<=%d)", len(specs), d, p_max, q_max)

    outcomes = _evaluate_batch(series, specs, n_jobs=n_jobs, config=config,
                               progress=progress, desc="Grid search ARIMA")
    best = _best(outcomes)
    if best is None:
        raise NonConvergenceError(f"Grid search found no admissible ARIMA candidate (d={d})")

    logger.info("Grid search selected %s (AICc=%.3f)", best.spec.label, best.aicc)
    return SearchResult(method="grid", best=best.model, outcomes={o.spec: o for o in outcomes})


def _neighbours(spec: ARIMASpec, p_max: int, q_max: int, allow_drift: bool) -> List[ARIMASpec]:
    moves = [(-1, 0), (1, 0), (0, -1), (0, 1), (-1, -1), (1, 1), (-1, 1), (1, -1)]
    out = []
    for dp, dq in moves:
        p, q = spec.p + dp, spec.q + dq
        if 0 <= p <= p_max and 0 <= q <= q_max:
            out.append(ARIMASpec(p, spec.d, q, spec.drift))
    if allow_drift:
        out.append(ARIMASpec(spec.p, spec.d, spec.q, not spec.drift))
    return out


def stepwise_search(series: pd.Series,
                    d: int,
                    p_max: Optional[int] = None,
                    q_max: Optional[int] = None,
                    max_models: Optional[int] = None,
                    n_jobs: Optional[int] = None,
                    config: Optional[Dict] = None) -> SearchResult:
    """
    Greedy stepwise ARIMA order search (Hyndman-Khandakar).

    Seeds ``(2,d,2)``, ``(0,d,0)``, ``(1,d,0)``, ``(0,d,1)`` (with drift when
    ``d <= 1``) plus ``(0,d,0)`` without drift are fitted first. The search
    then repeatedly fits the unexplored neighbours of the current best
    (``p +/- 1``, ``q +/- 1``, both, drift toggled) and moves to the best
    one while AICc improves. Neighbours within a step are independent and may
    be fitted concurrently; the steps themselves are sequential.

    The walk stops at a local optimum and may miss the global AICc minimum of
    the same bounded space that ``grid_search`` would return. Treat the
    result as a candidate.

    Parameters
    ----------
    series : pd.Series
        Training series on the transformed scale (undifferenced)
    d : int
        Differencing order, chosen beforehand
    p_max, q_max : int, optional
        Order bounds (default ``search.p_max`` / ``search.q_max``)
    max_models : int, optional
        Cap on the number of fitted candidates (default ``search.max_models``)
    n_jobs : int, optional
        Worker processes for the neighbours of one step

    Returns
    -------
    SearchResult
    """
    p_max = int(p_max if p_max is not None else get_config_value("search.p_max", 5))
    q_max = int(q_max if q_max is not None else get_config_value("search.q_max", 5))
    max_models = int(max_models if max_models is not None else get_config_value("search.max_models", 94))
    n_jobs = int(n_jobs if n_jobs is not None else get_config_value("search.n_jobs", 1))
    allow_drift = d <= 1

    seeds = [ARIMASpec(min(2, p_max), d, min(2, q_max), allow_drift),
             ARIMASpec(0, d, 0, allow_drift),
             ARIMASpec(min(1, p_max), d, 0, allow_drift),
             ARIMASpec(0, d, min(1, q_max), allow_drift)]
    if allow_drift:
        seeds.append(ARIMASpec(0, d, 0, False))
    seeds = list(dict.fromkeys(seeds))[:max_models]

    outcomes: Dict[ARIMASpec, CandidateOutcome] = {}
    for o in _evaluate_batch(series, seeds, n_jobs=n_jobs, config=config, desc="Stepwise seeds"):
        outcomes[o.spec] = o

    current = _best(outcomes.values())
    if current is None:
        raise NonConvergenceError(f"Stepwise search found no admissible seed model (d={d})")

    step = 0
    while len(outcomes) < max_models:
        step += 1
        frontier = [s for s in _neighbours(current.spec, p_max, q_max, allow_drift) if s not in outcomes]
        frontier = frontier[:max_models - len(outcomes)]
        if not frontier:
            break
        batch = _evaluate_batch(series, frontier, n_jobs=n_jobs, config=config, desc=f"Stepwise step {step}")
        for o in batch:
            outcomes[o.spec] = o
        challenger = _best(batch)
        if challenger is None or challenger.aicc >= current.aicc:
            break
        logger.debug("Stepwise step %d: %s -> %s (AICc %.3f -> %.3f)", step, current.spec.label,
                     challenger.spec.label, current.aicc, challenger.aicc)
        current = challenger

    logger.info("Stepwise search selected %s (AICc=%.3f) after %d fits",
                current.spec.label, current.aicc, len(outcomes))
    return SearchResult(method="stepwise", best=current.model, outcomes=outcomes)
