"""Accuracy evaluation and model selection for the ETS/ARIMA forecasting engine.

Key Features:
- Scale-free MASE on a held-out test window or on cross-validation folds
- Supporting MAE/RMSE/mean error per model
- Selection policy weighing AICc optimality against fit stability
- Reconciliation of stepwise and grid-search ARIMA winners
"""

from .accuracy import (
    AccuracyReport,
    accuracy_table,
    cv_accuracy,
    evaluate,
)

from .selection import (
    PolicyCandidate,
    SelectionDecision,
    apply_selection_policy,
    decision_table,
    reconcile_searches,
)

__all__ = [
    # Accuracy
    'AccuracyReport',
    'accuracy_table',
    'cv_accuracy',
    'evaluate',

    # Selection policy
    'PolicyCandidate',
    'SelectionDecision',
    'apply_selection_policy',
    'decision_table',
    'reconcile_searches',
]

# Version info
__version__ = '1.0.0'
