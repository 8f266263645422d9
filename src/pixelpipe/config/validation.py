"""Registry-backed checks run once a Config has parsed."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from pixelpipe.config.loader import ConfigError, ConfigErrorCode
from pixelpipe.models.config import Config
from pixelpipe.plugins.registry import PluginType, get_plugin_names, validate_plugin


def _plugin_sections(config: Config) -> list[tuple[PluginType, str, dict[str, Any] | BaseModel]]:
    return [
        (PluginType.STORAGE, config.storage.backend, config.storage.config),
        (PluginType.IDENTITY, config.identity.backend, config.identity.config),
    ]


def validate_plugin_names(config: Config) -> None:
    """Every selected backend must be a registered plugin.

    Raises:
        ConfigError: With code PLUGIN_NAMES_INVALID.
    """
    unknown: list[str] = []
    for plugin_type, backend, _ in _plugin_sections(config):
        available = get_plugin_names(plugin_type)
        if backend not in available:
            unknown.append(
                f"{plugin_type}.backend {backend!r} (available: {', '.join(available) or 'none'})"
            )
    if unknown:
        raise ConfigError(
            "Unknown plugin backends:\n  " + "\n  ".join(unknown),
            code=ConfigErrorCode.PLUGIN_NAMES_INVALID,
        )


def validate_plugin_configs(config: Config) -> None:
    """Validate each plugin's `config` mapping against its registered model.

    Raises:
        ConfigError: With code PLUGIN_CONFIG_INVALID.
    """
    problems: list[str] = []
    for plugin_type, backend, plugin_config in _plugin_sections(config):
        try:
            validate_plugin(plugin_type, backend, plugin_config)
        except ValueError as exc:
            problems.append(f"{plugin_type}.config [{backend}]: {exc}")
    if problems:
        raise ConfigError(
            "Invalid plugin config:\n  " + "\n  ".join(problems),
            code=ConfigErrorCode.PLUGIN_CONFIG_INVALID,
        )


def validate_config(config: Config) -> None:
    """Run all registry-dependent checks. Plugins must already be discovered."""
    validate_plugin_names(config)
    validate_plugin_configs(config)
