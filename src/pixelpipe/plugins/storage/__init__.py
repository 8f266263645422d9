"""Object store plugins."""

from __future__ import annotations

from typing import cast

from pixelpipe.interfaces import ObjectStore
from pixelpipe.models.config import StorageConfig
from pixelpipe.plugins.registry import PluginType, load_plugin


def load_storage_plugin(config: StorageConfig) -> ObjectStore:
    """Load and instantiate the configured object store.

    Raises:
        ValueError: If the backend is unknown or config validation fails
    """
    return cast(ObjectStore, load_plugin(PluginType.STORAGE, config.backend, config.config))


__all__ = ["load_storage_plugin"]
