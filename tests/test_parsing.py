import pytest

from econ_forecaster_src.parsing_utils import (parse_intervals_arg, parse_order_bound, parse_range_arg,
                                               validate_log_level)


def test_parse_range_arg_formats():
    assert parse_range_arg("0-3") == [0, 1, 2, 3]
    assert parse_range_arg("2,0,2") == [0, 2]
    assert parse_range_arg("4") == [4]
    with pytest.raises(ValueError):
        parse_range_arg("a-b")


def test_parse_order_bound():
    assert parse_order_bound("0-3", "search.p_max") == 3
    assert parse_order_bound("2", "search.p_max") == 2
    assert parse_order_bound(None, "search.p_max") == 5


def test_parse_intervals_arg():
    assert parse_intervals_arg("95,80") == [80, 95]
    assert parse_intervals_arg("150") == [80, 95]
    assert parse_intervals_arg("x") == [80, 95]


def test_validate_log_level():
    assert validate_log_level("debug") == "DEBUG"
    with pytest.raises(ValueError):
        validate_log_level("verbose")
