# econ_forecaster_src/optim_utils.py

import logging
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import OptimizeResult, minimize

from .errors import NonConvergenceError

logger = logging.getLogger(__name__)

# Objective value returned for infeasible parameter vectors
PENALTY = 1e10

# scipy status codes that mean "iteration budget exhausted" per method
_BUDGET_STATUS = {
    "Nelder-Mead": {1, 2},
    "BFGS": {1},
    "L-BFGS-B": {1},
}


def bounded_minimize(objective: Callable[[np.ndarray], float],
                     x0: Sequence[float],
                     bounds: Optional[Sequence[Tuple[Optional[float], Optional[float]]]] = None,
                     method: str = "Nelder-Mead",
                     max_iter: int = 1000,
                     model_id: Optional[str] = None,
                     tol: float = 1e-6) -> OptimizeResult:
    """
    Minimise ``objective`` with a hard iteration cap.

    This is the single optimisation entry point for both model families: a
    synchronous loop that stops at a fixed point or at ``max_iter``.

    Parameters
    ----------
    objective : callable
        Maps a parameter vector to a scalar; infeasible vectors should return ``PENALTY``
    x0 : sequence of float
        Starting point (clipped into ``bounds``)
    bounds : sequence of (low, high), optional
        Box constraints; ``None`` entries are unbounded
    method : str, default="Nelder-Mead"
        scipy method name ("Nelder-Mead", "BFGS" or "L-BFGS-B")
    max_iter : int
        Iteration budget
    model_id : str, optional
        Label used in error messages

    Returns
    -------
    OptimizeResult

    Raises
    ------
    NonConvergenceError
        If the budget is exhausted, or the optimum is non-finite or infeasible
    """
    x0 = np.asarray(x0, dtype=float)
    if bounds is not None:
        lo = np.array([-np.inf if b[0] is None else b[0] for b in bounds])
        hi = np.array([np.inf if b[1] is None else b[1] for b in bounds])
        x0 = np.clip(x0, lo, hi)

    if method == "Nelder-Mead":
        options = {"maxiter": max_iter, "maxfev": max_iter * max(2, len(x0)), "xatol": tol, "fatol": tol}
    else:
        options = {"maxiter": max_iter}

    with np.errstate(all="ignore"):
        if method == "BFGS":
            result = minimize(objective, x0, method=method, options=options)
        else:
            result = minimize(objective, x0, method=method, bounds=bounds, options=options)

    label = model_id or "model"
    fun = float(result.fun)
    if not np.isfinite(fun) or fun >= PENALTY or not np.all(np.isfinite(result.x)):
        raise NonConvergenceError(f"{label}: optimizer ended at an infeasible point",
                                  model_id=model_id, n_iter=int(result.get("nit", 0)))
    if result.status in _BUDGET_STATUS.get(method, set()):
        raise NonConvergenceError(f"{label}: iteration budget of {max_iter} exhausted ({result.message})",
                                  model_id=model_id, n_iter=int(result.get("nit", 0)))
    if not result.success:
        logger.debug("%s: optimizer stopped with status %s (%s); accepting finite optimum",
                     label, result.status, result.message)
    return result
