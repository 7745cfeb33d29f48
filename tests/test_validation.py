"""Tests for structural validation of input series."""

import numpy as np
import pandas as pd
import pytest

from validation import (DataValidationError, SeriesValidator, ValidationSeverity, create_validation_report,
                        validate_series)


def create_test_data(n=24):
    """Quarterly GDP-like series with quarter-end timestamps."""
    dates = pd.date_range(start="2010-03-31", periods=n, freq="QE")
    return pd.Series(100 * (1.01 ** np.arange(n)), index=dates, name="US_GDP")


def test_valid_series_is_normalised():
    result = validate_series(create_test_data())
    assert result.is_valid
    assert isinstance(result.series.index, pd.PeriodIndex)
    assert str(result.series.index[0]) == "2010Q1"
    assert result.metrics["observations"] == 24


def test_gap_is_critical():
    s = create_test_data().drop(create_test_data().index[5])
    with pytest.raises(DataValidationError) as excinfo:
        validate_series(s)
    issues = excinfo.value.validation_result.get_issues_by_severity(ValidationSeverity.CRITICAL)
    assert any("missing periods" in i.message for i in issues)


def test_duplicate_periods_are_critical():
    s = create_test_data(8)
    s = pd.concat([s, s.iloc[[-1]]])
    result = validate_series(s, raise_on_error=False)
    assert result.has_errors
    assert "duplicate" in result.issues[0].message


def test_non_positive_values_are_critical():
    s = create_test_data()
    s.iloc[3] = 0.0
    result = validate_series(s, raise_on_error=False)
    assert not result.is_valid
    # Allowed when the caller does not transform
    assert validate_series(s, require_positive=False).is_valid


def test_missing_values_are_critical():
    s = create_test_data()
    s.iloc[2] = np.nan
    assert validate_series(s, raise_on_error=False).has_errors


def test_short_series_warns_only():
    result = SeriesValidator(min_observations=16).validate(create_test_data(10))
    assert result.is_valid
    assert result.has_warnings


def test_empty_series_is_critical():
    result = validate_series(pd.Series([], dtype=float), raise_on_error=False)
    assert not result.is_valid
    assert result.series is None


def test_validation_report(tmp_path):
    s = create_test_data()
    s.iloc[3] = -5.0
    result = validate_series(s, raise_on_error=False)
    out = tmp_path / "reports" / "validation.txt"
    text = create_validation_report(result, out)
    assert "Overall Status: FAIL" in text
    assert out.read_text(encoding="utf-8") == text
