# econ_forecaster_src/file_utils.py

import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

# Column order of the comparison report CSV
REPORT_COLUMNS = [
    "series", "model", "family", "AICc", "cv_MASE", "test_MASE", "fold_failure_rate",
    "unstable", "optimal", "selected", "aicc_gap", "reason", "lambda", "hash_forecast",
]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def append_metrics_csv_row(csv_path: Optional[Path],
                           row: Dict[str, Any],
                           header: List[str]) -> None:
    """
    Append a single report row to CSV, creating header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to the CSV file (None to skip writing)
    row : Dict[str, Any]
        Values keyed by column name; keys outside ``header`` are ignored
    header : List[str]
        List of column names for the CSV
    """
    if csv_path is None:
        return

    csv_path = Path(csv_path)
    try:
        ensure_dir(csv_path.parent)
        exists = csv_path.exists() and csv_path.stat().st_size > 0
        with csv_path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
            if not exists:
                writer.writeheader()
            writer.writerow(row)
    except OSError as e:
        logger.error("Failed to append metrics to %s: %s", csv_path, e)


def append_report_frame(csv_path: Optional[Path], df: pd.DataFrame,
                        header: Optional[List[str]] = None) -> int:
    """
    Append every row of a report DataFrame to ``csv_path``.

    Returns
    -------
    int
        Number of rows written
    """
    if csv_path is None or df.empty:
        return 0
    header = header or REPORT_COLUMNS
    for row in df.to_dict(orient="records"):
        append_metrics_csv_row(Path(csv_path), row, header)
    logger.info("Appended %d report rows to %s", len(df), csv_path)
    return len(df)


def validate_report_df(df: pd.DataFrame) -> bool:
    """
    Validate the comparison report schema and warn about duplicate rows.

    Returns
    -------
    bool
        True if the key columns are present (even with duplicates)
    """
    required = ["series", "model", "AICc", "cv_MASE", "test_MASE"]
    missing = [c for c in required if c not in df.columns]
    if missing:
        logger.warning("Report CSV missing required columns: %s", missing)
        return False

    n_dup = int(df.duplicated(subset=["series", "model"]).sum())
    if n_dup > 0:
        logger.warning("Report CSV has %d repeated (series, model) rows; the latest row wins in summaries.", n_dup)
    if "hash_forecast" in df.columns:
        n_hash = int(df.duplicated(subset=["series", "model", "hash_forecast"]).sum())
        if n_hash > 0:
            logger.warning("Report CSV has %d rows with identical forecasts for the same (series, model).", n_hash)
    return True


def safe_read_csv(csv_path: Path, **kwargs) -> Optional[pd.DataFrame]:
    """
    Read a CSV file, returning None when it is missing, empty or unparseable.
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        logger.warning("CSV file not found: %s", csv_path)
        return None
    if csv_path.stat().st_size == 0:
        logger.warning("CSV file is empty: %s", csv_path)
        return None
    try:
        df = pd.read_csv(csv_path, **kwargs)
    except pd.errors.EmptyDataError:
        logger.warning("CSV file contains no data: %s", csv_path)
        return None
    except pd.errors.ParserError as e:
        logger.error("Failed to parse CSV file %s: %s", csv_path, e)
        return None
    return None if df.empty else df
