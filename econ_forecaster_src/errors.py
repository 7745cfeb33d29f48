# econ_forecaster_src/errors.py

"""
Error taxonomy for model fitting, search and validation.

- DomainError: non-positive or non-finite values entering a power transform.
- NonConvergenceError: an optimizer hit its iteration cap or ended infeasible;
  the candidate is dropped from its search space.
- NumericInstabilityWarning: a fit converged but looks fragile (near-unit
  roots, parameters pinned at a bound). Recorded on the fitted model and
  consulted by the selection policy, never used to drop a candidate.
- FoldFittingError: a cross-validation fold could not be fitted; carries the
  failing training window.
"""

from typing import Optional


class ForecasterError(Exception):
    """Base class for errors raised by the forecasting engine."""


class DomainError(ForecasterError, ValueError):
    """Raised when a transform receives values outside its domain."""


class NonConvergenceError(ForecasterError):
    """Raised when a numerical optimizer fails to reach a feasible optimum."""

    def __init__(self, message: str, model_id: Optional[str] = None, n_iter: Optional[int] = None):
        super().__init__(message)
        self.model_id = model_id
        self.n_iter = n_iter


class NumericInstabilityWarning(UserWarning):
    """Issued when a converged fit shows symptoms of ill-conditioning."""


class FoldFittingError(ForecasterError):
    """Raised when a rolling-origin fold fails to fit or forecast."""

    def __init__(self, message: str, window_start=None, window_end=None, fold_id: Optional[int] = None):
        super().__init__(message)
        self.window_start = window_start
        self.window_end = window_end
        self.fold_id = fold_id

    def __str__(self) -> str:
        base = super().__str__()
        if self.window_start is not None and self.window_end is not None:
            return f"{base} [window {self.window_start}..{self.window_end}]"
        return base
