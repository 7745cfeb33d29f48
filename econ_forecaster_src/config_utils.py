# econ_forecaster_src/config_utils.py

import logging

from config import ConfigurationError, get_config

logger = logging.getLogger(__name__)

# Process-wide configuration manager, loaded lazily
config_manager = None


def initialize_config(reload: bool = False):
    """
    Load (or reload) the configuration manager and log validation warnings.

    A configuration file that cannot be read is logged and ignored; callers
    then fall back to the defaults they pass to ``get_config_value``.
    """
    global config_manager
    if config_manager is None or reload:
        try:
            config_manager = get_config(reload=reload)
            validation_errors = config_manager.validate_configuration()
            if validation_errors:
                logger.warning("Configuration validation warnings: %s", validation_errors)
        except ConfigurationError as e:
            logger.error("Failed to initialize configuration: %s. Using defaults.", e)
            config_manager = None
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Resolve a setting by precedence: CLI argument, configuration file, default.

    Parameters
    ----------
    key_path : str
        Dotted configuration key, e.g. ``search.p_max``
    default : Any
        Returned when neither the CLI nor the configuration provides a value
    args : argparse.Namespace, optional
        Parsed CLI arguments
    cli_param : str, optional
        Attribute of ``args`` that overrides the configuration when not None
    """
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    manager = config_manager or initialize_config()
    if manager:
        config_value = manager.get(key_path, default)
        if config_value is not None:
            return config_value

    return default
