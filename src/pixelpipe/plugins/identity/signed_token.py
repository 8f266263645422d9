"""Bearer-token identity plugin.

The identity service issues `Authorization: Bearer v1.<payload>.<sig>`
tokens whose `sub` claim is the owner id, signed with a shared secret.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta

from pixelpipe.credentials import TokenError, issue_token, verify_token
from pixelpipe.interfaces import IdentityVerifier
from pixelpipe.models.config import SignedTokenIdentityConfig
from pixelpipe.plugins.identity import header_value
from pixelpipe.plugins.registry import PluginType, plugin

logger = logging.getLogger(__name__)

IDENTITY_CONTEXT = b"pixelpipe-identity:v1"


def issue_owner_token(
    *,
    secret: str,
    owner_id: str,
    scope: str = "uploads",
    ttl_s: int = 3600,
    now: datetime | None = None,
) -> str:
    """Issue a bearer token for `owner_id` (identity service side)."""
    issued_at = now or datetime.now(UTC)
    return issue_token(
        secret=secret,
        context=IDENTITY_CONTEXT,
        scope=scope,
        expires_at=issued_at + timedelta(seconds=ttl_s),
        claims={"sub": owner_id},
    )


@plugin(plugin_type=PluginType.IDENTITY, name="signed_token")
class SignedTokenIdentity(IdentityVerifier):
    """Verifies HMAC-signed bearer tokens and returns their subject."""

    config_cls = SignedTokenIdentityConfig

    @classmethod
    def create(cls, config: SignedTokenIdentityConfig) -> IdentityVerifier:
        return cls(config)

    def __init__(self, config: SignedTokenIdentityConfig, *, secret: str | None = None) -> None:
        resolved = secret or os.getenv(config.secret_env)
        if not resolved:
            raise ValueError(f"Missing identity secret. Set {config.secret_env}.")
        self._secret = resolved
        self._scope = config.scope

    async def resolve_owner(self, headers: Mapping[str, str]) -> str | None:
        authorization = header_value(headers, "Authorization")
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None

        try:
            claims = verify_token(
                secret=self._secret,
                context=IDENTITY_CONTEXT,
                token=token.strip(),
                scope=self._scope,
            )
        except TokenError as exc:
            logger.info("Rejected identity token: %s (%s)", exc, exc.code)
            return None

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            return None
        return subject
