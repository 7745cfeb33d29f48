import pandas as pd
import pytest

from helpers.temporal import future_periods, is_contiguous, to_quarterly_period_index


def test_quarter_end_timestamps_map_to_quarters():
    idx = pd.date_range("2020-03-31", periods=3, freq="QE")
    out = to_quarterly_period_index(pd.Series([1.0, 2.0, 3.0], index=idx))
    assert [str(p) for p in out.index] == ["2020Q1", "2020Q2", "2020Q3"]


def test_quarter_labels_are_parsed():
    s = pd.Series([1.0, 2.0], index=["2003 Q1", "2003Q2"])
    out = to_quarterly_period_index(s)
    assert list(out.index) == [pd.Period("2003Q1", freq="Q"), pd.Period("2003Q2", freq="Q")]


def test_quarterly_period_index_is_kept():
    s = pd.Series([1.0], index=pd.period_range("1999Q4", periods=1, freq="Q"))
    assert to_quarterly_period_index(s).index.equals(s.index)


def test_non_series_rejected():
    with pytest.raises(TypeError):
        to_quarterly_period_index([1.0, 2.0])


def test_future_periods():
    idx = pd.period_range("2020Q3", periods=2, freq="Q")
    out = future_periods(idx, 3)
    assert [str(p) for p in out] == ["2021Q1", "2021Q2", "2021Q3"]
    with pytest.raises(ValueError):
        future_periods(idx, 0)


def test_is_contiguous():
    idx = pd.period_range("2020Q1", periods=4, freq="Q")
    assert is_contiguous(idx)
    assert not is_contiguous(idx.delete(2))
    assert not is_contiguous(idx[::-1])
