# econ_forecaster_src/parsing_utils.py

import logging
from typing import List, Optional

logger = logging.getLogger(__name__)


def parse_range_arg(s: Optional[str], default: str = "0-5") -> List[int]:
    """
    Parse a CLI range argument like '0-3' or '0,1,2,3' into a list of integers.

    Accepted formats for order ranges:
    - Range format: "0-3" becomes [0, 1, 2, 3]
    - List format: "0,1,2,3" becomes [0, 1, 2, 3]
    - Single bound: "3" becomes [3]

    Parameters
    ----------
    s : str, optional
        CLI range argument string to parse
    default : str, default="0-5"
        Range used when ``s`` is None

    Returns
    -------
    List[int]
        Parsed range as sorted list of unique integers

    Raises
    ------
    ValueError
        If the text cannot be parsed

    Examples
    --------
    >>> parse_range_arg("0-3")
    [0, 1, 2, 3]
    >>> parse_range_arg("0,2,4")
    [0, 2, 4]
    """
    txt = (s or default).strip()
    try:
        if "-" in txt and "," not in txt:
            a, b = txt.split("-", 1)
            out = list(range(int(a.strip()), int(b.strip()) + 1))
        else:
            out = [int(x.strip()) for x in txt.split(",") if x.strip() != ""]
    except ValueError as e:
        raise ValueError(f"Invalid range argument '{txt}': {e}") from e

    if not out:
        raise ValueError(f"Range argument '{txt}' is empty")
    return sorted(set(out))


def parse_order_bound(s: Optional[str], config_key: str, default: int = 5) -> int:
    """
    Resolve an AR/MA order bound from a CLI value or the configuration.

    Accepts a plain integer ('5') or a range ('0-5'), in which case the upper
    end of the range is the bound.
    """
    from .config_utils import get_config_value

    if s is None:
        return int(get_config_value(config_key, default))
    values = parse_range_arg(s)
    if min(values) < 0:
        raise ValueError(f"Order bounds must be non-negative, got '{s}'")
    return max(values)


def parse_intervals_arg(s: Optional[str], default: str = "80,95") -> List[int]:
    """
    Parse a CLI intervals argument like '80,95' into sorted unique integer coverage levels.

    Values outside 1..99 are dropped; if nothing valid remains the default
    levels are used.

    Examples
    --------
    >>> parse_intervals_arg("80,95")
    [80, 95]
    >>> parse_intervals_arg("90")
    [90]
    """
    txt = (s or default).strip()
    try:
        vals = sorted({int(x.strip()) for x in txt.split(",") if x.strip() != ""})
    except ValueError:
        logger.warning("Could not parse intervals '%s'; using %s", txt, default)
        return [80, 95]
    vals = [v for v in vals if 1 <= v < 100]
    return vals or [80, 95]


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
