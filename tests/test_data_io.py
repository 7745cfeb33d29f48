import numpy as np
import pandas as pd
import pytest

from econ_forecaster_src.data_utils import load_series_csv, split_train_test
from econ_forecaster_src.file_utils import (REPORT_COLUMNS, append_report_frame, safe_read_csv,
                                            validate_report_df)


def _write_csv(path, dates, values, value_column="gdp"):
    pd.DataFrame({"date": dates, value_column: values}).to_csv(path, index=False)
    return path


def test_load_series_from_quarter_end_dates(tmp_path):
    dates = pd.date_range("2015-03-31", periods=6, freq="QE")
    path = _write_csv(tmp_path / "gdp_US.csv", dates, np.arange(1.0, 7.0))
    s = load_series_csv(path)
    assert isinstance(s.index, pd.PeriodIndex)
    assert str(s.index[0]) == "2015Q1"
    assert s.name == "gdp"
    assert s.iloc[-1] == 6.0


def test_load_series_from_quarter_labels_sorted(tmp_path):
    path = _write_csv(tmp_path / "s.csv", ["2001Q2", "2001Q1", "2001Q3"], [2.0, 1.0, 3.0], "value")
    s = load_series_csv(path, value_column="value")
    assert list(s.to_numpy()) == [1.0, 2.0, 3.0]


def test_load_series_errors(tmp_path):
    with pytest.raises(SystemExit):
        load_series_csv(tmp_path / "missing.csv")
    path = _write_csv(tmp_path / "s.csv", ["2001Q1"], [1.0], "other")
    with pytest.raises(SystemExit):
        load_series_csv(path)


def test_split_by_train_end_and_length():
    s = pd.Series(np.arange(12.0), index=pd.period_range("2000Q1", periods=12, freq="Q"))
    train, test = split_train_test(s, train_end="2001Q4")
    assert len(train) == 8 and len(test) == 4
    assert train.index[-1] + 1 == test.index[0]

    train, test = split_train_test(s, test_length=3)
    assert len(train) == 9 and len(test) == 3

    train, test = split_train_test(s, test_length=0)
    assert len(test) == 0


def test_split_rejects_bad_points():
    s = pd.Series(np.arange(4.0), index=pd.period_range("2000Q1", periods=4, freq="Q"))
    with pytest.raises(ValueError):
        split_train_test(s, train_end="1999Q4")
    with pytest.raises(ValueError):
        split_train_test(s, test_length=4)
    with pytest.raises(ValueError):
        split_train_test(s)


def test_report_rows_appended_with_single_header(tmp_path):
    out = tmp_path / "reports" / "metrics.csv"
    row = {c: "" for c in REPORT_COLUMNS}
    row.update({"series": "gdp_US", "model": "ETS(A,N,N)", "AICc": 1.0, "cv_MASE": 0.9, "test_MASE": 1.1})
    df = pd.DataFrame([row])
    assert append_report_frame(out, df) == 1
    assert append_report_frame(out, df) == 1
    back = safe_read_csv(out)
    assert list(back.columns) == REPORT_COLUMNS
    assert len(back) == 2
    # Repeated rows are reported but the schema still passes
    assert validate_report_df(back)


def test_validate_report_df_missing_columns():
    assert not validate_report_df(pd.DataFrame({"series": ["a"]}))


def test_safe_read_csv_missing(tmp_path):
    assert safe_read_csv(tmp_path / "nope.csv") is None
