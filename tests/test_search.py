import warnings

import numpy as np
import pandas as pd
import pytest

from econ_forecaster_src.errors import NonConvergenceError, NumericInstabilityWarning
from econ_forecaster_src.model_types import ARIMASpec
from econ_forecaster_src.search_utils import evaluate_candidate, grid_search, stepwise_search


def create_ar1(n=120, phi=0.7, seed=21):
    rng = np.random.default_rng(seed)
    e = rng.normal(0, 1, n)
    x = np.zeros(n)
    for t in range(1, n):
        x[t] = phi * x[t - 1] + e[t]
    return pd.Series(10.0 + x, index=pd.period_range("1980Q1", periods=n, freq="Q"))


@pytest.fixture(autouse=True)
def _quiet_instability():
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericInstabilityWarning)
        yield


def test_grid_covers_bounded_space():
    s = create_ar1()
    result = grid_search(s, d=0, p_max=2, q_max=1)
    # (p, q) pairs times drift on/off
    assert len(result.outcomes) == 3 * 2 * 2
    assert result.method == "grid"
    admissible = [m.aicc for m in result.candidates]
    assert result.best.aicc == min(admissible)
    assert list(result.table["AICc"]) == sorted(result.table["AICc"])


def test_grid_is_never_worse_than_stepwise():
    s = create_ar1()
    grid = grid_search(s, d=0, p_max=2, q_max=2)
    stepwise = stepwise_search(s, d=0, p_max=2, q_max=2)
    assert grid.best.aicc <= stepwise.best.aicc + 1e-9
    assert stepwise.method == "stepwise"
    assert len(stepwise.outcomes) <= len(grid.outcomes)


def test_stepwise_respects_bounds_and_budget():
    s = create_ar1()
    result = stepwise_search(s, d=0, p_max=1, q_max=1, max_models=5)
    assert len(result.outcomes) <= 5
    for spec in result.outcomes:
        assert spec.p <= 1 and spec.q <= 1


def test_stepwise_finds_ar_structure():
    s = create_ar1(n=300, phi=0.8)
    result = stepwise_search(s, d=0, p_max=3, q_max=3)
    assert result.best_spec.p >= 1


def test_no_drift_for_twice_differenced_series():
    s = pd.Series(np.cumsum(np.cumsum(np.random.default_rng(2).normal(0, 1, 60))) + 500.0)
    result = grid_search(s, d=2, p_max=1, q_max=1)
    assert all(not spec.drift for spec in result.outcomes)


def test_failed_candidate_is_excluded_not_raised():
    s = create_ar1(n=5)
    outcome = evaluate_candidate(s, ARIMASpec(3, 0, 3, True))
    assert not outcome.admissible
    assert outcome.aicc == float("inf")
    assert "fit error" in outcome.reason


def test_grid_raises_when_nothing_admissible():
    s = create_ar1(n=2)
    with pytest.raises(NonConvergenceError):
        grid_search(s, d=0, p_max=0, q_max=0, drift=True)


def test_grid_beats_every_stepwise_candidate():
    s = create_ar1(seed=5)
    stepwise = stepwise_search(s, d=0, p_max=2, q_max=2)
    grid = grid_search(s, d=0, p_max=2, q_max=2)
    for spec, outcome in stepwise.outcomes.items():
        if outcome.admissible:
            assert grid.best.aicc <= outcome.aicc + 1e-9
