"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from typing import TYPE_CHECKING, cast

from fastapi import Depends, Request, status

from pixelpipe.api.errors import APIError, APIErrorCode

if TYPE_CHECKING:
    from pixelpipe.app import Application


async def get_pixelpipe_app(request: Request) -> Application:
    app = getattr(request.app.state, "pixelpipe", None)
    if app is None:
        raise APIError(
            "Application not initialized",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code=APIErrorCode.APP_NOT_INITIALIZED,
        )
    return cast("Application", app)


def bearer_token(headers: Mapping[str, str]) -> str | None:
    """Token of an `Authorization: Bearer <token>` header, if present."""
    scheme, _, token = headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


async def verify_api_key(request: Request, app: Application = Depends(get_pixelpipe_app)) -> None:
    """Guard for service-to-service routes; a no-op unless `server.api_key_env` is set."""
    server_config = app.config.server
    if not server_config.auth_enabled:
        return

    expected = server_config.get_api_key()
    if not expected:
        raise APIError(
            f"API key env var {server_config.api_key_env} is not set",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=APIErrorCode.API_KEY_NOT_CONFIGURED,
        )

    supplied = bearer_token(request.headers)
    if supplied is None or not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise APIError(
            "Invalid or missing API key",
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=APIErrorCode.UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


async def resolve_owner(
    request: Request, app: Application = Depends(get_pixelpipe_app)
) -> str | None:
    """Owner id verified by the configured identity plugin, or None."""
    return await app.identity.resolve_owner(request.headers)
