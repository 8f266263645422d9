"""Configuration loading and validation."""

from pixelpipe.config.loader import (
    ConfigError,
    ConfigErrorCode,
    EnvOverrides,
    format_validation_error,
    load_config,
    load_config_from_dict,
    load_config_from_env,
    resolve_env_var,
)
from pixelpipe.config.validation import (
    validate_config,
    validate_plugin_configs,
    validate_plugin_names,
)

__all__ = [
    "ConfigError",
    "ConfigErrorCode",
    "EnvOverrides",
    "format_validation_error",
    "load_config",
    "load_config_from_dict",
    "load_config_from_env",
    "resolve_env_var",
    "validate_config",
    "validate_plugin_configs",
    "validate_plugin_names",
]
