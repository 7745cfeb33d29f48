"""Tests for the YAML configuration layer."""

import argparse

import pytest

from config import ConfigurationError, ConfigurationManager
from econ_forecaster_src.config_utils import get_config_value


def test_defaults_are_loaded():
    manager = ConfigurationManager()
    assert manager.get("search.p_max") == 5
    assert manager.get("selection.max_fold_failure_rate") == 0.1
    assert manager.get("ets.phi_bounds") == [0.8, 0.98]
    assert manager.get("no.such.key", "fallback") == "fallback"
    assert manager.validate_configuration() == {}


def test_user_file_is_merged_over_defaults(tmp_path):
    user = tmp_path / "user.yaml"
    user.write_text("search:\n  p_max: 2\nselection:\n  max_fold_failure_rate: 1.5\n", encoding="utf-8")
    manager = ConfigurationManager(config_path=user)
    assert manager.get("search.p_max") == 2
    # Untouched keys of the same section survive the merge
    assert manager.get("search.q_max") == 5
    assert "selection" in manager.validate_configuration()
    assert str(user) in manager.get_configuration_summary()["loaded_configs"]


def test_unreadable_file_raises(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigurationManager(config_path=bad)


def test_section_is_a_copy():
    manager = ConfigurationManager()
    section = manager.section("search")
    section["p_max"] = 99
    assert manager.get("search.p_max") == 5


def test_cli_value_takes_precedence():
    args = argparse.Namespace(horizon=3, value_column=None)
    assert get_config_value("forecast.horizon", 8, args, "horizon") == 3
    assert get_config_value("data.value_column", "x", args, "value_column") == "gdp"
    assert get_config_value("missing.key", 7) == 7
