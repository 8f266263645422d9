"""Gateway-header identity plugin."""

from __future__ import annotations

from collections.abc import Mapping

from pixelpipe.interfaces import IdentityVerifier
from pixelpipe.models.config import TrustedHeaderIdentityConfig
from pixelpipe.plugins.identity import header_value
from pixelpipe.plugins.registry import PluginType, plugin


@plugin(plugin_type=PluginType.IDENTITY, name="trusted_header")
class TrustedHeaderIdentity(IdentityVerifier):
    """Reads the owner id from a header set by an authenticating gateway.

    Only safe when the API is reachable exclusively through that gateway.
    """

    config_cls = TrustedHeaderIdentityConfig

    @classmethod
    def create(cls, config: TrustedHeaderIdentityConfig) -> IdentityVerifier:
        return cls(config)

    def __init__(self, config: TrustedHeaderIdentityConfig) -> None:
        self._header_name = config.header_name

    async def resolve_owner(self, headers: Mapping[str, str]) -> str | None:
        value = header_value(headers, self._header_name)
        if value is None:
            return None
        return value.strip() or None
