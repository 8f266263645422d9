"""Named registries for object store and identity plugins.

Plugin classes register themselves with `@plugin` at import time. A config
section names a backend; its `config` mapping is validated against that
plugin's `config_cls` before `create` is called.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PluginType(StrEnum):
    STORAGE = "storage"
    IDENTITY = "identity"


ConfigT = TypeVar("ConfigT", bound=BaseModel)
InstanceT = TypeVar("InstanceT", covariant=True)


class PluginFactory(Protocol[ConfigT, InstanceT]):
    """Shape every registered plugin class must have."""

    config_cls: type[ConfigT]

    @classmethod
    def create(cls, config: ConfigT) -> InstanceT: ...


class PluginRegistry(Generic[ConfigT, InstanceT]):
    """Plugin classes of one type, keyed by backend name."""

    def __init__(self, plugin_type: PluginType) -> None:
        self.plugin_type = plugin_type
        self._factories: dict[str, type[PluginFactory[ConfigT, InstanceT]]] = {}

    def register(self, name: str, factory: type[PluginFactory[ConfigT, InstanceT]]) -> None:
        existing = self._factories.get(name)
        if existing is not None:
            raise ValueError(
                f"{self.plugin_type} plugin {name!r} is already registered "
                f"by {existing.__qualname__}"
            )
        self._factories[name] = factory
        logger.debug("Registered %s plugin %r -> %s", self.plugin_type, name, factory.__qualname__)

    def factory(self, name: str) -> type[PluginFactory[ConfigT, InstanceT]]:
        try:
            return self._factories[name]
        except KeyError:
            available = ", ".join(sorted(self._factories)) or "none"
            raise ValueError(
                f"Unknown {self.plugin_type} plugin: {name!r}. Available: {available}"
            ) from None

    def validate(self, name: str, config: Mapping[str, Any]) -> ConfigT:
        """Validate `config` for `name` without creating the plugin.

        Raises:
            ValueError: Unknown plugin name.
            pydantic.ValidationError: Config does not match `config_cls`.
        """
        return self.factory(name).config_cls.model_validate(dict(config))

    def load(self, name: str, config: Mapping[str, Any]) -> InstanceT:
        """Validate `config` and create the plugin instance."""
        return self.factory(name).create(self.validate(name, config))

    def get_all(self) -> dict[str, type[PluginFactory[ConfigT, InstanceT]]]:
        return dict(self._factories)


_REGISTRIES: dict[PluginType, PluginRegistry[Any, Any]] = {
    plugin_type: PluginRegistry(plugin_type) for plugin_type in PluginType
}


def plugin(plugin_type: PluginType, name: str) -> Callable[[type], type]:
    """Class decorator registering a plugin under `name` (e.g. "s3", "signed_token")."""

    def register(cls: type) -> type:
        for required in ("config_cls", "create"):
            if not hasattr(cls, required):
                raise TypeError(f"Plugin class {cls.__name__} must define {required!r}")
        _REGISTRIES[plugin_type].register(name, cls)
        return cls

    return register


def _config_mapping(config: Mapping[str, Any] | BaseModel) -> Mapping[str, Any]:
    # Built-in backends arrive already validated (see StorageConfig).
    if isinstance(config, BaseModel):
        return config.model_dump()
    return config


def load_plugin(
    plugin_type: PluginType, name: str, config: Mapping[str, Any] | BaseModel
) -> Any:
    return _REGISTRIES[plugin_type].load(name, _config_mapping(config))


def validate_plugin(
    plugin_type: PluginType, name: str, config: Mapping[str, Any] | BaseModel
) -> BaseModel:
    return _REGISTRIES[plugin_type].validate(name, _config_mapping(config))


def get_plugin_names(plugin_type: PluginType) -> list[str]:
    return sorted(_REGISTRIES[plugin_type].get_all())
