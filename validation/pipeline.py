"""Structural validation of input series for the forecasting engine.

A series entering the engine must be a quarterly, strictly increasing,
gap-free sequence of finite positive values. Violations are structural: they
abort the whole pipeline with ``DataValidationError`` instead of being
contained to one candidate model.

Features:
- Structured validation issues with severity levels
- Quarterly index normalisation (DatetimeIndex / labels -> PeriodIndex)
- Minimum-length checks driven by configuration
- Human-readable validation report
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from helpers.temporal import is_contiguous, to_quarterly_period_index

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    """Validation issue severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ValidationIssue:
    """Individual validation issue."""
    severity: ValidationSeverity
    message: str
    component: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class ValidationResult:
    """Complete validation result with all issues and metrics."""
    is_valid: bool
    issues: List[ValidationIssue]
    metrics: Dict[str, Any] = field(default_factory=dict)
    series: Optional[pd.Series] = None

    @property
    def has_errors(self) -> bool:
        """Check if result has any errors or critical issues."""
        return any(issue.severity in [ValidationSeverity.ERROR, ValidationSeverity.CRITICAL]
                   for issue in self.issues)

    @property
    def has_warnings(self) -> bool:
        """Check if result has any warnings."""
        return any(issue.severity == ValidationSeverity.WARNING for issue in self.issues)

    def get_issues_by_severity(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        """Get all issues of a specific severity."""
        return [issue for issue in self.issues if issue.severity == severity]

    def summary(self) -> str:
        """Get a summary string of the validation result."""
        total_issues = len(self.issues)
        errors = len(self.get_issues_by_severity(ValidationSeverity.ERROR))
        criticals = len(self.get_issues_by_severity(ValidationSeverity.CRITICAL))
        warnings = len(self.get_issues_by_severity(ValidationSeverity.WARNING))

        status = "PASS" if self.is_valid and not self.has_errors else "FAIL"
        return f"Validation {status}: {total_issues} issues ({criticals} critical, {errors} error, {warnings} warning)"


class DataValidationError(Exception):
    """Exception raised for critical data validation failures."""

    def __init__(self, message: str, validation_result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.validation_result = validation_result


class SeriesValidator:
    """Checks that a series satisfies the engine's input contract."""

    def __init__(self, min_observations: int = 16, require_positive: bool = True):
        self.min_observations = min_observations
        self.require_positive = require_positive
        self.issues: List[ValidationIssue] = []
        self.metrics: Dict[str, Any] = {}

    def validate(self, series: pd.Series, name: str = "series") -> ValidationResult:
        """Validate ``series`` and return the result with a normalised copy attached."""
        self.issues = []
        self.metrics = {}

        if series is None or len(series) == 0:
            self._add(ValidationSeverity.CRITICAL, f"Series '{name}' is empty", "basic_properties")
            return self._result(None)

        try:
            normalised = to_quarterly_period_index(series).astype(float)
        except (TypeError, ValueError) as e:
            self._add(ValidationSeverity.CRITICAL,
                      f"Series '{name}' index cannot be read as quarterly periods: {e}",
                      "temporal_properties")
            return self._result(None)

        self._validate_temporal(normalised, name)
        self._validate_values(normalised, name)
        return self._result(normalised)

    def _validate_temporal(self, s: pd.Series, name: str) -> None:
        idx = s.index
        if idx.has_duplicates:
            self._add(ValidationSeverity.CRITICAL, f"Series '{name}' has duplicate periods",
                      "temporal_properties")
        elif not idx.is_monotonic_increasing:
            self._add(ValidationSeverity.CRITICAL, f"Series '{name}' periods are not increasing",
                      "temporal_properties")
        elif not is_contiguous(idx):
            expected = pd.period_range(idx[0], idx[-1], freq=idx.freq)
            missing = expected.difference(idx)
            self._add(ValidationSeverity.CRITICAL,
                      f"Series '{name}' has {len(missing)} missing periods",
                      "temporal_properties",
                      details={"missing": [str(p) for p in missing[:10]]})

        self.metrics["start"] = str(idx[0])
        self.metrics["end"] = str(idx[-1])
        self.metrics["observations"] = len(s)

        if len(s) < self.min_observations:
            self._add(ValidationSeverity.WARNING,
                      f"Series '{name}' has only {len(s)} observations (minimum recommended: {self.min_observations})",
                      "basic_properties",
                      details={"observations": len(s), "minimum": self.min_observations})

    def _validate_values(self, s: pd.Series, name: str) -> None:
        values = s.to_numpy(dtype=float)
        non_finite = int(np.sum(~np.isfinite(values)))
        if non_finite:
            self._add(ValidationSeverity.CRITICAL,
                      f"Series '{name}' has {non_finite} missing or non-finite values",
                      "data_quality", details={"non_finite": non_finite})
        if self.require_positive:
            non_positive = int(np.sum(values[np.isfinite(values)] <= 0))
            if non_positive:
                self._add(ValidationSeverity.CRITICAL,
                          f"Series '{name}' has {non_positive} non-positive values",
                          "data_quality", details={"non_positive": non_positive})

    def _add(self, severity: ValidationSeverity, message: str, component: str,
             details: Optional[Dict[str, Any]] = None) -> None:
        self.issues.append(ValidationIssue(severity=severity, message=message,
                                           component=component, details=details))

    def _result(self, series: Optional[pd.Series]) -> ValidationResult:
        is_valid = not any(issue.severity in [ValidationSeverity.ERROR, ValidationSeverity.CRITICAL]
                           for issue in self.issues)
        return ValidationResult(is_valid=is_valid, issues=list(self.issues),
                                metrics=dict(self.metrics), series=series)


def validate_series(series: pd.Series,
                    name: str = "series",
                    min_observations: int = 16,
                    require_positive: bool = True,
                    raise_on_error: bool = True) -> ValidationResult:
    """Validate a series against the engine's input contract.

    Parameters
    ----------
    series : pd.Series
        Input series indexed by quarter (PeriodIndex, quarter-end timestamps or labels)
    name : str
        Name used in messages
    min_observations : int
        Length below which a warning is recorded
    require_positive : bool
        Whether non-positive values are critical (they are for Box-Cox inputs)
    raise_on_error : bool, default True
        Raise ``DataValidationError`` when any error or critical issue is found

    Returns
    -------
    ValidationResult
        Result with ``series`` set to the PeriodIndex-normalised copy when valid
    """
    validator = SeriesValidator(min_observations=min_observations, require_positive=require_positive)
    result = validator.validate(series, name=name)

    for issue in result.issues:
        if issue.severity == ValidationSeverity.CRITICAL:
            logger.critical("CRITICAL [%s]: %s", issue.component, issue.message)
        elif issue.severity == ValidationSeverity.ERROR:
            logger.error("ERROR [%s]: %s", issue.component, issue.message)
        elif issue.severity == ValidationSeverity.WARNING:
            logger.warning("WARNING [%s]: %s", issue.component, issue.message)
        else:
            logger.info("INFO [%s]: %s", issue.component, issue.message)

    if raise_on_error and result.has_errors:
        raise DataValidationError(f"Data validation failed: {result.summary()}", result)
    return result


def create_validation_report(result: ValidationResult, output_path: Optional[Path] = None) -> str:
    """Create a plain-text validation report, optionally written to ``output_path``."""
    lines = []
    lines.append("=" * 60)
    lines.append("Series Validation Report")
    lines.append("=" * 60)
    lines.append(f"Overall Status: {'PASS' if result.is_valid and not result.has_errors else 'FAIL'}")
    lines.append(f"Total Issues: {len(result.issues)}")
    lines.append("")

    lines.append("Validation Metrics:")
    for key, value in result.metrics.items():
        lines.append(f"  {key}: {value}")

    lines.append("")
    lines.append("Detailed Issues:")
    lines.append("-" * 40)
    for issue in result.issues:
        lines.append(f"[{issue.severity.value.upper()}] {issue.component}: {issue.message}")
        if issue.details:
            for key, value in issue.details.items():
                lines.append(f"    {key}: {value}")

    report_content = "\n".join(lines)

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report_content, encoding="utf-8")
        logger.info("Validation report saved to: %s", output_path)

    return report_content
