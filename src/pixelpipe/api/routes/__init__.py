"""API route registration."""

from __future__ import annotations

from fastapi import Depends, FastAPI

from pixelpipe.api.dependencies import verify_api_key
from pixelpipe.api.routes import events, health, objects, uploads


def register_routes(app: FastAPI) -> None:
    """Register all API routers."""
    app.include_router(health.router)
    app.include_router(uploads.router)
    app.include_router(events.router, dependencies=[Depends(verify_api_key)])
    app.include_router(objects.router)
