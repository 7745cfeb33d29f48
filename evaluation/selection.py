"""Model-selection policy trading statistical optimality for robustness.

AICc picks the statistically optimal candidate. A candidate whose fits are
fragile (instability warnings on the full fit or in any cross-validation
fold) or whose folds fail too often is treated as unstable, and the policy
prefers the lowest-AICc stable candidate instead. Both choices are reported
together with the AICc gap between them, so an override is always visible.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from backtesting.rolling_origin import CVResult
from econ_forecaster_src.config_utils import get_config_value
from econ_forecaster_src.model_types import FittedModel
from econ_forecaster_src.search_utils import SearchResult

logger = logging.getLogger(__name__)


@dataclass
class PolicyCandidate:
    """A converged candidate together with its cross-validation record."""

    model: FittedModel
    cv: Optional[CVResult] = None

    @property
    def model_id(self) -> str:
        return self.model.model_id

    @property
    def aicc(self) -> float:
        return self.model.aicc

    @property
    def failure_rate(self) -> float:
        return self.cv.failure_rate if self.cv is not None else 0.0

    def stability_issues(self, max_fold_failure_rate: float) -> List[str]:
        """Reasons this candidate counts as unstable; empty when stable."""
        issues = []
        if self.failure_rate > max_fold_failure_rate:
            issues.append(f"fold failure rate {self.failure_rate:.1%} exceeds {max_fold_failure_rate:.1%}")
        if self.model.instability:
            issues.append("instability warnings on the full fit")
        if self.cv is not None and self.cv.unstable_folds:
            issues.append(f"instability warnings in {len(self.cv.unstable_folds)} fold(s)")
        return issues


@dataclass
class SelectionDecision:
    """Statistically optimal and policy-selected models with the reason."""

    optimal: FittedModel
    selected: FittedModel
    reason: str
    unstable: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def optimal_id(self) -> str:
        return self.optimal.model_id

    @property
    def selected_id(self) -> str:
        return self.selected.model_id

    @property
    def aicc_gap(self) -> float:
        """AICc of the selected model minus AICc of the optimal one (>= 0)."""
        return float(self.selected.aicc - self.optimal.aicc)

    @property
    def overridden(self) -> bool:
        return self.selected is not self.optimal

    def to_dict(self) -> Dict[str, object]:
        return {
            "optimal": self.optimal_id,
            "optimal_aicc": self.optimal.aicc,
            "selected": self.selected_id,
            "selected_aicc": self.selected.aicc,
            "aicc_gap": self.aicc_gap,
            "reason": self.reason,
        }


def apply_selection_policy(candidates: Sequence[PolicyCandidate],
                           max_fold_failure_rate: Optional[float] = None) -> SelectionDecision:
    """Choose between the min-AICc candidate and the min-AICc stable candidate.

    Parameters
    ----------
    candidates : sequence of PolicyCandidate
        Converged candidates of one model family
    max_fold_failure_rate : float, optional
        Highest tolerated share of failed folds (default ``selection.max_fold_failure_rate``)

    Returns
    -------
    SelectionDecision
        When no candidate is stable the optimal model is kept and the reason says so.

    Raises
    ------
    ValueError
        If ``candidates`` is empty
    """
    if not candidates:
        raise ValueError("Selection policy needs at least one converged candidate")
    threshold = float(max_fold_failure_rate if max_fold_failure_rate is not None
                      else get_config_value("selection.max_fold_failure_rate", 0.1))

    ranked = sorted(candidates, key=lambda c: c.aicc)
    optimal = ranked[0]
    unstable = {c.model_id: c.stability_issues(threshold) for c in ranked}
    unstable = {k: v for k, v in unstable.items() if v}
    stable = [c for c in ranked if c.model_id not in unstable]

    if optimal.model_id not in unstable:
        reason = f"{optimal.model_id} has the lowest AICc and passed the stability check"
        selected = optimal
    elif stable:
        selected = stable[0]
        reason = (f"{optimal.model_id} has the lowest AICc but is unstable "
                  f"({'; '.join(unstable[optimal.model_id])}); "
                  f"{selected.model_id} is the lowest-AICc stable candidate")
    else:
        selected = optimal
        reason = (f"no candidate passed the stability check; keeping the lowest-AICc model "
                  f"{optimal.model_id} ({'; '.join(unstable[optimal.model_id])})")

    decision = SelectionDecision(optimal=optimal.model, selected=selected.model, reason=reason, unstable=unstable)
    if decision.overridden:
        logger.info("Selection policy overrides %s with %s (AICc gap %.3f)",
                    decision.optimal_id, decision.selected_id, decision.aicc_gap)
    else:
        logger.info("Selection policy keeps %s: %s", decision.selected_id, reason)
    return decision


def reconcile_searches(stepwise: SearchResult,
                       grid: SearchResult,
                       is_stable: Callable[[FittedModel], bool],
                       fallbacks: Sequence[FittedModel] = ()) -> SelectionDecision:
    """Decide between the stepwise and the grid-search ARIMA winners.

    The stepwise winner is kept unless the grid winner has a strictly lower
    AICc and passes ``is_stable``. A disagreement between the two searches is
    expected (stepwise may stop at a local optimum) and is reported, not
    treated as an error. When the model that would be kept is itself
    unstable, the lowest-AICc stable model among both winners and
    ``fallbacks`` is selected instead; if none is stable the stepwise winner
    is kept and flagged.
    """
    sw, gr = stepwise.best, grid.best
    optimal = gr if gr.aicc < sw.aicc else sw
    unstable: Dict[str, List[str]] = {}

    def _check(model: FittedModel) -> bool:
        if model.model_id in unstable:
            return False
        if is_stable(model):
            return True
        unstable[model.model_id] = ["failed stability check"]
        return False

    if sw.spec == gr.spec:
        agreement = f"stepwise and grid search agree on {sw.model_id}"
    elif gr.aicc >= sw.aicc:
        agreement = (f"searches disagree ({sw.model_id} vs {gr.model_id}) but the grid "
                     f"winner does not improve AICc")
    elif _check(gr):
        logger.info("Escalating from stepwise %s to grid %s (AICc %.3f -> %.3f)",
                    sw.model_id, gr.model_id, sw.aicc, gr.aicc)
        return SelectionDecision(optimal=optimal, selected=gr,
                                 reason=(f"grid winner {gr.model_id} improves AICc over stepwise winner "
                                         f"{sw.model_id} by {sw.aicc - gr.aicc:.3f} and is stable"),
                                 unstable=unstable)
    else:
        agreement = f"grid winner {gr.model_id} has lower AICc but failed the stability check"

    if _check(sw):
        return SelectionDecision(optimal=optimal, selected=sw,
                                 reason=f"{agreement}; keeping stepwise winner {sw.model_id}",
                                 unstable=unstable)

    pool: Dict[str, FittedModel] = {}
    for model in sorted([sw, gr, *fallbacks], key=lambda m: m.aicc):
        pool.setdefault(model.model_id, model)
    stable = [m for m in pool.values() if _check(m)]
    if stable:
        selected = stable[0]
        logger.info("Stepwise winner %s is unstable; falling back to %s (AICc gap %.3f)",
                    sw.model_id, selected.model_id, selected.aicc - optimal.aicc)
        return SelectionDecision(optimal=optimal, selected=selected,
                                 reason=(f"{agreement}; stepwise winner {sw.model_id} is unstable, "
                                         f"{selected.model_id} is the lowest-AICc stable candidate"),
                                 unstable=unstable)
    logger.warning("No stable ARIMA candidate; keeping unstable stepwise winner %s", sw.model_id)
    return SelectionDecision(optimal=optimal, selected=sw,
                             reason=(f"{agreement}; no candidate passed the stability check, keeping "
                                     f"unstable stepwise winner {sw.model_id}"),
                             unstable=unstable)


def decision_table(decisions: Dict[str, SelectionDecision]) -> pd.DataFrame:
    """One row per family with both choices, the AICc gap and the reason."""
    rows = []
    for family, decision in decisions.items():
        row = {"family": family}
        row.update(decision.to_dict())
        rows.append(row)
    return pd.DataFrame(rows, columns=["family", "optimal", "optimal_aicc", "selected",
                                       "selected_aicc", "aicc_gap", "reason"])
