# econ_forecaster_src/data_utils.py

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import pandas as pd

from helpers.temporal import to_quarterly_period_index

logger = logging.getLogger(__name__)


def load_series_csv(series_path: Path,
                    value_column: str = "gdp",
                    date_column: str = "date") -> pd.Series:
    """
    Load a quarterly series from a CSV file with a date and a value column.

    Dates may be quarter-end timestamps or quarter labels ('2003Q1', '2003 Q1').
    Rows with an unparseable value are dropped; the remaining rows are sorted by
    period. Gaps and duplicates are left in place for the validator to report.

    Parameters
    ----------
    series_path : Path
        Path to the CSV file
    value_column : str, default="gdp"
        Column holding the observations
    date_column : str, default="date"
        Column holding the period of each observation

    Returns
    -------
    pd.Series
        Float series indexed by a quarterly PeriodIndex, named after ``value_column``

    Raises
    ------
    SystemExit
        If the file doesn't exist, lacks required columns, or contains no valid data.
    """
    series_path = Path(series_path)
    if not series_path.exists():
        raise SystemExit(f"Series CSV not found: {series_path}")

    logger.info("Loading series from: %s", series_path)
    df_series = pd.read_csv(series_path)

    missing = [c for c in (date_column, value_column) if c not in df_series.columns]
    if missing:
        raise SystemExit(f"Series CSV must contain '{date_column}' and '{value_column}' columns "
                         f"(missing: {', '.join(missing)}).")

    df_series[value_column] = pd.to_numeric(df_series[value_column], errors="coerce")
    df_series = df_series.dropna(subset=[date_column, value_column])
    if df_series.empty:
        raise SystemExit("No valid rows found in series CSV after parsing.")

    raw_dates = df_series[date_column].astype(str)
    parsed = pd.to_datetime(raw_dates, errors="coerce")
    if parsed.isna().any():
        index = pd.Index(raw_dates)
    else:
        index = pd.DatetimeIndex(parsed)
    series = pd.Series(df_series[value_column].to_numpy(dtype=float), index=index, name=value_column)
    series = to_quarterly_period_index(series).sort_index()
    logger.info("Loaded %d observations (%s to %s)", len(series), series.index[0], series.index[-1])
    return series


def split_train_test(series: pd.Series,
                     train_end: Optional[Union[str, pd.Period]] = None,
                     test_length: Optional[int] = None) -> Tuple[pd.Series, pd.Series]:
    """
    Split a series into a contiguous training prefix and test suffix.

    Parameters
    ----------
    series : pd.Series
        Series indexed by a quarterly PeriodIndex
    train_end : str or pd.Period, optional
        Last training period (inclusive), e.g. '2021Q1'
    test_length : int, optional
        Number of trailing observations held out; used when ``train_end`` is None

    Returns
    -------
    Tuple[pd.Series, pd.Series]
        ``(train, test)``; ``test`` is empty when ``train_end`` is the last period

    Raises
    ------
    ValueError
        If the split point lies outside the series or leaves an empty training set
    """
    if train_end is None and test_length is None:
        raise ValueError("Provide either train_end or test_length")

    if train_end is not None:
        end = pd.Period(train_end, freq="Q") if not isinstance(train_end, pd.Period) else train_end
        if end not in series.index:
            raise ValueError(f"train_end {end} is not a period of the series "
                             f"({series.index[0]} to {series.index[-1]})")
        n_train = int(series.index.get_loc(end)) + 1
    else:
        if test_length < 0 or test_length >= len(series):
            raise ValueError(f"test_length must be in [0, {len(series) - 1}], got {test_length}")
        n_train = len(series) - int(test_length)

    train, test = series.iloc[:n_train], series.iloc[n_train:]
    logger.info("Split: %d training observations (to %s), %d test observations",
                len(train), train.index[-1], len(test))
    return train, test
