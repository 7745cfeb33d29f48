"""Configuration management for the ETS/ARIMA forecasting engine.

Defaults are shipped in ``config/defaults.yaml``. A user file can be layered on
top by setting the ``ECON_FORECASTER_CONFIG`` environment variable; its keys
are deep-merged over the defaults.

Usage
-----
    from config import get_config

    cfg = get_config()
    p_max = cfg.get("search.p_max", 5)
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "ECON_FORECASTER_CONFIG"

_config_manager: Optional["ConfigurationManager"] = None


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot load configuration file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return raw


class ConfigurationManager:
    """Dot-notation access to the merged YAML configuration."""

    def __init__(self, config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None):
        self._data = _load_yaml(DEFAULTS_PATH)
        self.loaded_files: List[str] = [str(DEFAULTS_PATH)]

        user_path = config_path or os.environ.get(CONFIG_ENV_VAR)
        if user_path:
            user_path = Path(user_path)
            self._data = _deep_merge(self._data, _load_yaml(user_path))
            self.loaded_files.append(str(user_path))
            logger.info("Loaded user configuration from %s", user_path)

        if overrides:
            self._data = _deep_merge(self._data, overrides)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Return the value at a dotted key path such as ``search.p_max``."""
        node: Any = self._data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def section(self, name: str) -> Dict[str, Any]:
        value = self.get(name, {})
        return copy.deepcopy(value) if isinstance(value, dict) else {}

    def get_backtesting_config(self) -> Dict[str, Any]:
        return self.section("backtesting")

    def validate_configuration(self) -> Dict[str, List[str]]:
        """Check value ranges; returns ``{section: [messages]}`` for anything suspicious."""
        errors: Dict[str, List[str]] = {}

        def _add(section: str, message: str) -> None:
            errors.setdefault(section, []).append(message)

        alpha_lo, alpha_hi = self.get("ets.alpha_bounds", [0.0001, 0.9999])
        if not 0.0 < alpha_lo < alpha_hi < 1.0:
            _add("ets", f"alpha_bounds must lie inside (0, 1), got {[alpha_lo, alpha_hi]}")
        phi_lo, phi_hi = self.get("ets.phi_bounds", [0.8, 0.98])
        if not 0.0 < phi_lo < phi_hi < 1.0:
            _add("ets", f"phi_bounds must lie inside (0, 1), got {[phi_lo, phi_hi]}")

        for key in ("search.p_max", "search.q_max"):
            if int(self.get(key, 0)) < 0:
                _add("search", f"{key} must be non-negative")

        rate = float(self.get("selection.max_fold_failure_rate", 0.1))
        if not 0.0 <= rate <= 1.0:
            _add("selection", f"max_fold_failure_rate must be in [0, 1], got {rate}")

        window = self.get("backtesting.rolling_origin.window_type", "rolling")
        if window not in ("rolling", "expanding"):
            _add("backtesting", f"window_type must be 'rolling' or 'expanding', got {window!r}")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {"loaded_configs": list(self.loaded_files), "sections": sorted(self._data)}


def get_config(reload: bool = False) -> ConfigurationManager:
    """Return the process-wide configuration manager, loading it on first use."""
    global _config_manager
    if _config_manager is None or reload:
        _config_manager = ConfigurationManager()
    return _config_manager


__all__ = [
    "ConfigurationError",
    "ConfigurationManager",
    "get_config",
]
