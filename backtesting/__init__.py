"""Rolling-origin cross-validation for the ETS/ARIMA forecasting engine.

This package provides:
- Rolling or expanding training windows with a fixed refitted specification
- Strict out-of-sample, original-scale fold errors
- Fold fitting failures tagged with their training window
- Integration with configuration system
"""

from .rolling_origin import (
    BacktestConfig,
    CVFold,
    CVResult,
    RollingOriginValidator,
    fold_boundaries,
    rolling_cv,
)

__all__ = [
    'BacktestConfig',
    'CVFold',
    'CVResult',
    'RollingOriginValidator',
    'fold_boundaries',
    'rolling_cv',
]

# Version info
__version__ = '1.0.0'
