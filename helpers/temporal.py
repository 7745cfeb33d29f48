# -*- coding: utf-8 -*-
"""
Temporal utilities for quarterly period indexes.

Functions
---------
- to_quarterly_period_index(series): Return the series indexed by a quarterly
  PeriodIndex (freq 'Q'), converting quarter-end timestamps or quarter labels
  such as '2003 Q1' / '2003Q1'.
- future_periods(index, h): The h periods following the last period of index.
- is_contiguous(index): True when a PeriodIndex has no gaps and no repeats.
"""

from __future__ import annotations

import pandas as pd


def _parse_labels(index: pd.Index) -> pd.PeriodIndex:
    labels = [str(x).replace(" ", "") for x in index]
    return pd.PeriodIndex(labels, freq="Q")


def to_quarterly_period_index(series: pd.Series) -> pd.Series:
    """
    Return a copy of the series indexed by a quarterly PeriodIndex.

    - PeriodIndex at another frequency is converted with asfreq.
    - DatetimeIndex is mapped to the quarter containing each timestamp.
    - Any other index is parsed as quarter labels.
    """
    if not isinstance(series, pd.Series):
        raise TypeError("series must be a pandas Series")

    s = series.copy()
    idx = s.index
    if isinstance(idx, pd.PeriodIndex):
        if (idx.freqstr or "").upper().startswith("Q"):
            return s
        s.index = idx.asfreq("Q")
    elif isinstance(idx, pd.DatetimeIndex):
        s.index = idx.to_period("Q")
    else:
        s.index = _parse_labels(idx)
    return s


def future_periods(index: pd.PeriodIndex, h: int) -> pd.PeriodIndex:
    """The ``h`` periods following the last period of ``index``."""
    if h < 1:
        raise ValueError("h must be a positive integer")
    if len(index) == 0:
        raise ValueError("Cannot extend an empty index")
    return pd.period_range(start=index[-1] + 1, periods=h, freq=index.freq)


def is_contiguous(index: pd.PeriodIndex) -> bool:
    """True when ``index`` is strictly increasing with exactly one period between neighbours."""
    if len(index) < 2:
        return True
    expected = pd.period_range(start=index[0], periods=len(index), freq=index.freq)
    return bool(index.equals(expected))
