"""Health endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pixelpipe.api.dependencies import get_pixelpipe_app

if TYPE_CHECKING:
    from pixelpipe.app import Application

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    storage: str
    queue: str
    batches_in_flight: int


@router.get("/health", response_model=HealthResponse)
async def get_health(
    app: Application = Depends(get_pixelpipe_app),
) -> HealthResponse | JSONResponse:
    """Liveness/readiness check for ops probes."""
    storage_ok = await app.store.ping()
    source = app.queue_source
    if source is None:
        queue = "disabled"
    else:
        queue = "polling" if source.is_healthy() else "stopped"

    healthy = storage_ok and queue != "stopped"
    response = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        storage="reachable" if storage_ok else "unavailable",
        queue=queue,
        batches_in_flight=app.dispatcher.in_flight,
    )
    if not healthy:
        return JSONResponse(status_code=503, content=response.model_dump(mode="json"))
    return response
