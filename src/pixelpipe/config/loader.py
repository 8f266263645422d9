"""Configuration loading and validation."""

from __future__ import annotations

import copy
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from pixelpipe.models.config import Config

logger = logging.getLogger(__name__)


class ConfigErrorCode(str, Enum):
    """Stable config error codes for runtime and API mapping."""

    FILE_NOT_FOUND = "CONFIG_FILE_NOT_FOUND"
    YAML_INVALID = "CONFIG_YAML_INVALID"
    EMPTY_FILE = "CONFIG_EMPTY_FILE"
    ROOT_NOT_MAPPING = "CONFIG_ROOT_NOT_MAPPING"
    VALIDATION_FAILED = "CONFIG_VALIDATION_FAILED"
    ENV_INVALID = "CONFIG_ENV_INVALID"
    PLUGIN_NAMES_INVALID = "CONFIG_PLUGIN_NAMES_INVALID"
    PLUGIN_CONFIG_INVALID = "CONFIG_PLUGIN_CONFIG_INVALID"
    ENV_VAR_MISSING = "CONFIG_ENV_VAR_MISSING"
    UNKNOWN = "CONFIG_UNKNOWN"


class ConfigError(Exception):
    """Configuration loading or validation error."""

    def __init__(
        self,
        message: str,
        *,
        code: ConfigErrorCode = ConfigErrorCode.UNKNOWN,
        path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.path = path
        self.__cause__ = cause


class EnvOverrides(BaseSettings):
    """Deployment settings read from `PIXELPIPE_*` environment variables.

    Set values win over the config file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PIXELPIPE_",
        case_sensitive=False,
        extra="ignore",
    )

    origin_bucket: str | None = None
    derived_bucket: str | None = None
    max_upload_bytes: int | None = None
    thumbnail_quality: int | None = None
    alternate_quality: int | None = None
    credential_expiry_s: int | None = None

    def apply(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of `raw` with every set override merged in."""
        merged = copy.deepcopy(raw)
        targets = {
            ("buckets", "origin"): self.origin_bucket,
            ("buckets", "derived"): self.derived_bucket,
            ("processing", "max_upload_bytes"): self.max_upload_bytes,
            ("processing", "thumbnail_quality"): self.thumbnail_quality,
            ("processing", "alternate_quality"): self.alternate_quality,
            ("upload", "credential_expiry_s"): self.credential_expiry_s,
        }
        for (section, field), value in targets.items():
            if value is None:
                continue
            section_dict = merged.get(section)
            if not isinstance(section_dict, dict):
                section_dict = {}
                merged[section] = section_dict
            section_dict[field] = value
        return merged


def load_config(path: Path, *, apply_env: bool = True) -> Config:
    """Load a YAML config file, apply environment overrides, and validate it.

    Args:
        path: Path to YAML config file
        apply_env: Merge `PIXELPIPE_*` environment overrides over the file

    Raises:
        ConfigError: If the file is missing, unreadable as YAML, or invalid
    """
    raw = _read_yaml(path)
    if apply_env:
        raw = _read_env_overrides().apply(raw)
    return _validate(raw, path)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text()
    except FileNotFoundError as e:
        raise ConfigError(
            f"Config file not found: {path}",
            code=ConfigErrorCode.FILE_NOT_FOUND,
            path=path,
            cause=e,
        ) from e

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"{path} is not valid YAML: {e}",
            code=ConfigErrorCode.YAML_INVALID,
            path=path,
            cause=e,
        ) from e

    match raw:
        case None:
            raise ConfigError(
                f"{path} is empty", code=ConfigErrorCode.EMPTY_FILE, path=path
            )
        case dict():
            return raw
        case _:
            raise ConfigError(
                f"{path} must contain a YAML mapping, got {type(raw).__name__}",
                code=ConfigErrorCode.ROOT_NOT_MAPPING,
                path=path,
            )


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load and validate configuration from a dict (useful for testing).

    Raises:
        ConfigError: If validation fails
    """
    return _validate(data, path=None)


def load_config_from_env() -> Config:
    """Build configuration from `PIXELPIPE_*` environment variables and defaults.

    Raises:
        ConfigError: If required settings (the bucket names) are missing
    """
    return _validate(_read_env_overrides().apply({}), path=None)


def resolve_env_var(env_var_name: str, required: bool = True) -> str | None:
    """Resolve environment variable by name.

    Raises:
        ConfigError: If required and not found
    """
    value = os.environ.get(env_var_name)
    if value is None and required:
        raise ConfigError(
            f"Required environment variable not set: {env_var_name}",
            code=ConfigErrorCode.ENV_VAR_MISSING,
        )
    return value


def format_validation_error(e: ValidationError, path: Path | None = None) -> str:
    """Format Pydantic validation error for human readability."""
    prefix = f"Config validation failed ({path}):" if path else "Config validation failed:"
    errors = []
    for err in e.errors():
        loc = " -> ".join(str(x) for x in err["loc"])
        msg = err["msg"]
        errors.append(f"  {loc}: {msg}")
    return prefix + "\n" + "\n".join(errors)


def _read_env_overrides() -> EnvOverrides:
    try:
        return EnvOverrides()
    except ValidationError as e:
        raise ConfigError(
            "Invalid PIXELPIPE_* environment overrides:\n"
            + format_validation_error(e).split("\n", 1)[1],
            code=ConfigErrorCode.ENV_INVALID,
            cause=e,
        ) from e


def _validate(raw: dict[str, Any], path: Path | None) -> Config:
    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(
            format_validation_error(e, path),
            code=ConfigErrorCode.VALIDATION_FAILED,
            path=path,
            cause=e,
        ) from e

    # Discover plugins and validate plugin-specific config
    from pixelpipe.config.validation import validate_config
    from pixelpipe.plugins import discover_all_plugins

    discover_all_plugins()
    validate_config(config)
    logger.debug(
        "Loaded config: origin=%s derived=%s", config.buckets.origin, config.buckets.derived
    )
    return config
