"""Plugin discovery for built-in backends and `pixelpipe.plugins` entry points."""

from __future__ import annotations

import importlib
import logging
import pkgutil
from collections.abc import Iterator
from importlib import metadata

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "pixelpipe.plugins"

_BUILTIN_PACKAGES = ("pixelpipe.plugins.storage", "pixelpipe.plugins.identity")


def discover_all_plugins() -> None:
    """Import every plugin module so its `@plugin` decorator registers it.

    Safe to call repeatedly: modules are imported (and register) only once.
    A module that fails to import is logged and skipped, so configs naming it
    fail later with an "Unknown plugin" error that lists what is available.
    """
    for module_name in _builtin_plugin_modules():
        _import_plugin_module(module_name, origin="built-in")

    for point in metadata.entry_points(group=ENTRY_POINT_GROUP):
        _import_plugin_module(point.module, origin=f"entry point {point.name!r}")


def _builtin_plugin_modules() -> Iterator[str]:
    for package_name in _BUILTIN_PACKAGES:
        package = importlib.import_module(package_name)
        for module in pkgutil.iter_modules(package.__path__):
            if not module.name.startswith("_"):
                yield f"{package_name}.{module.name}"


def _import_plugin_module(module_name: str, *, origin: str) -> None:
    try:
        importlib.import_module(module_name)
    except Exception as exc:
        logger.error(
            "Failed to import %s plugin module %s: %s",
            origin,
            module_name,
            exc,
            exc_info=True,
        )


__all__ = ["ENTRY_POINT_GROUP", "discover_all_plugins"]
