"""Input validation for the ETS/ARIMA forecasting engine.

This package checks that a series satisfies the engine's structural contract
before any transform or model fitting runs:
- Quarterly, strictly increasing, gap-free period index
- Finite, positive values (required by the Box-Cox transform)
- Structured validation issues and a plain-text report
"""

from .pipeline import (
    ValidationSeverity,
    ValidationIssue,
    ValidationResult,
    DataValidationError,
    SeriesValidator,
    validate_series,
    create_validation_report
)

__all__ = [
    'ValidationSeverity',
    'ValidationIssue',
    'ValidationResult',
    'DataValidationError',
    'SeriesValidator',
    'validate_series',
    'create_validation_report'
]

# Version info
__version__ = '1.0.0'
