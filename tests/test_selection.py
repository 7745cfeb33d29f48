import numpy as np
import pandas as pd
import pytest

from backtesting.rolling_origin import CVFold, CVResult
from econ_forecaster_src.errors import FoldFittingError
from econ_forecaster_src.model_types import ARIMASpec, ETSSpec, FittedModel
from econ_forecaster_src.search_utils import SearchResult
from evaluation.selection import PolicyCandidate, apply_selection_policy, decision_table, reconcile_searches


def make_model(spec, aicc, instability=()):
    """Minimal fitted model carrying only what the policy looks at."""
    idx = pd.period_range("2000Q1", periods=4, freq="Q")
    zeros = pd.Series(np.zeros(4), index=idx)
    return FittedModel(spec=spec, params={}, fitted=zeros, residuals=zeros, sigma2=1.0,
                       log_likelihood=-aicc / 2.0, aic=aicc, aicc=aicc, bic=aicc, n_obs=4, n_params=1,
                       series=zeros, instability=tuple(instability))


def make_cv(spec, n_ok, n_failed, unstable_ids=()):
    folds = [CVFold(fold_id=i, train_start=None, train_end=None, origin=None, target=None, forecast=1.0,
                    actual=1.5, instability=("warning",) if i in unstable_ids else ())
             for i in range(1, n_ok + 1)]
    failures = [FoldFittingError("failed", fold_id=n_ok + j) for j in range(1, n_failed + 1)]
    return CVResult(spec=spec, folds=folds, failures=failures)


ANN = ETSSpec("A", "N", "N")
AAN = ETSSpec("A", "A", "N")
AADN = ETSSpec("A", "Ad", "N")


def test_stable_optimum_is_kept():
    best = make_model(AAN, 100.0)
    decision = apply_selection_policy([PolicyCandidate(make_model(ANN, 105.0)), PolicyCandidate(best)])
    assert decision.selected is best
    assert decision.optimal is best
    assert not decision.overridden
    assert decision.aicc_gap == 0.0


def test_unstable_optimum_is_overridden():
    optimal = make_model(AADN, 90.0, instability=("phi pinned at its bound",))
    fallback = make_model(AAN, 92.5)
    decision = apply_selection_policy([PolicyCandidate(optimal), PolicyCandidate(fallback),
                                       PolicyCandidate(make_model(ANN, 99.0))])
    assert decision.optimal is optimal
    assert decision.selected is fallback
    assert decision.overridden
    assert np.isclose(decision.aicc_gap, 2.5)
    assert "ETS(A,Ad,N)" in decision.unstable
    assert "lowest-AICc stable" in decision.reason


def test_fold_failure_rate_above_threshold_is_unstable():
    optimal = make_model(AAN, 90.0)
    other = make_model(ANN, 95.0)
    candidates = [PolicyCandidate(optimal, make_cv(AAN, n_ok=8, n_failed=2)),
                  PolicyCandidate(other, make_cv(ANN, n_ok=10, n_failed=0))]
    decision = apply_selection_policy(candidates, max_fold_failure_rate=0.1)
    assert decision.selected is other
    # Exactly at the threshold is tolerated
    at_threshold = [PolicyCandidate(optimal, make_cv(AAN, n_ok=9, n_failed=1)), candidates[1]]
    assert apply_selection_policy(at_threshold, max_fold_failure_rate=0.1).selected is optimal


def test_unstable_fold_makes_candidate_unstable():
    optimal = make_model(AAN, 90.0)
    other = make_model(ANN, 95.0)
    candidates = [PolicyCandidate(optimal, make_cv(AAN, n_ok=10, n_failed=0, unstable_ids=(3,))),
                  PolicyCandidate(other)]
    assert apply_selection_policy(candidates, max_fold_failure_rate=0.1).selected is other


def test_no_stable_candidate_keeps_optimum():
    a = make_model(AAN, 90.0, instability=("x",))
    b = make_model(ANN, 91.0, instability=("y",))
    decision = apply_selection_policy([PolicyCandidate(b), PolicyCandidate(a)])
    assert decision.selected is a
    assert "no candidate passed" in decision.reason


def test_empty_candidates_rejected():
    with pytest.raises(ValueError):
        apply_selection_policy([])


def _search(method, model):
    return SearchResult(method=method, best=model)


def test_reconcile_agreeing_searches():
    m = make_model(ARIMASpec(1, 1, 0, True), 50.0)
    decision = reconcile_searches(_search("stepwise", m), _search("grid", m), is_stable=lambda _: True)
    assert decision.selected is m
    assert "agree" in decision.reason


def test_reconcile_escalates_to_stable_grid_winner():
    sw = make_model(ARIMASpec(1, 1, 0, True), 50.0)
    gr = make_model(ARIMASpec(2, 1, 2, True), 47.0)
    decision = reconcile_searches(_search("stepwise", sw), _search("grid", gr), is_stable=lambda _: True)
    assert decision.selected is gr
    assert decision.optimal is gr


def test_reconcile_keeps_stepwise_when_grid_winner_unstable():
    sw = make_model(ARIMASpec(1, 1, 0, True), 50.0)
    gr = make_model(ARIMASpec(2, 1, 2, True), 47.0)
    decision = reconcile_searches(_search("stepwise", sw), _search("grid", gr), is_stable=lambda _: False)
    assert decision.selected is sw
    assert decision.optimal is gr
    assert np.isclose(decision.aicc_gap, 3.0)


def test_decision_table_rows():
    m = make_model(ANN, 10.0)
    decision = apply_selection_policy([PolicyCandidate(m)])
    table = decision_table({"ETS": decision})
    assert table.loc[0, "family"] == "ETS"
    assert table.loc[0, "selected"] == "ETS(A,N,N)"


def test_reconcile_agreeing_searches_with_unstable_winner_falls_back():
    winner = make_model(ARIMASpec(2, 1, 2, True), 40.0)
    runner_up = make_model(ARIMASpec(1, 1, 0, True), 43.5)
    cv = {winner.model_id: make_cv(winner.spec, 0, 5), runner_up.model_id: make_cv(runner_up.spec, 5, 0)}

    def is_stable(model):
        return not PolicyCandidate(model, cv.get(model.model_id)).stability_issues(0.1)

    decision = reconcile_searches(_search("stepwise", winner), _search("grid", winner), is_stable,
                                  fallbacks=[runner_up])
    assert decision.optimal is winner
    assert decision.selected is runner_up
    assert decision.overridden
    assert np.isclose(decision.aicc_gap, 3.5)
    assert winner.model_id in decision.unstable
    assert "agree" in decision.reason and "unstable" in decision.reason


def test_reconcile_unstable_stepwise_when_grid_does_not_improve():
    sw = make_model(ARIMASpec(0, 1, 1, True), 50.0, instability=("near-unit MA root",))
    gr = make_model(ARIMASpec(1, 1, 0, True), 52.0)
    decision = reconcile_searches(_search("stepwise", sw), _search("grid", gr),
                                  is_stable=lambda m: not m.instability)
    assert decision.optimal is sw
    assert decision.selected is gr
    assert set(decision.unstable) == {sw.model_id}
    assert np.isclose(decision.aicc_gap, 2.0)


def test_reconcile_without_stable_candidate_flags_stepwise_winner():
    sw = make_model(ARIMASpec(2, 1, 2, True), 40.0)
    decision = reconcile_searches(_search("stepwise", sw), _search("grid", sw), is_stable=lambda _: False,
                                  fallbacks=[make_model(ARIMASpec(1, 1, 0, True), 45.0)])
    assert decision.selected is sw
    assert len(decision.unstable) == 2
    assert "no candidate passed the stability check" in decision.reason


def test_reconcile_stable_stepwise_winner_has_no_flags():
    m = make_model(ARIMASpec(1, 1, 0, True), 50.0)
    decision = reconcile_searches(_search("stepwise", m), _search("grid", m), is_stable=lambda _: True)
    assert decision.unstable == {}
    assert not decision.overridden
