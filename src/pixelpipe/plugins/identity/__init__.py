"""Identity verifier plugins."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pixelpipe.interfaces import IdentityVerifier
from pixelpipe.models.config import IdentityConfig
from pixelpipe.plugins.registry import PluginType, load_plugin


def header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup that also works on plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def load_identity_plugin(config: IdentityConfig) -> IdentityVerifier:
    """Load and instantiate the configured identity verifier.

    Raises:
        ValueError: If the backend is unknown or config validation fails
    """
    return cast(IdentityVerifier, load_plugin(PluginType.IDENTITY, config.backend, config.config))


__all__ = ["header_value", "load_identity_plugin"]
