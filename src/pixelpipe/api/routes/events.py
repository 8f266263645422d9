"""Object event webhook (S3/MinIO-style notifications)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Request, status

from pixelpipe.api.dependencies import get_pixelpipe_app
from pixelpipe.api.errors import APIError, APIErrorCode
from pixelpipe.models.events import EventPayloadError, parse_event_payload

if TYPE_CHECKING:
    from pixelpipe.app import Application

router = APIRouter(tags=["events"])
logger = logging.getLogger(__name__)


@router.post("/api/v1/events")
async def receive_events(
    request: Request,
    app: Application = Depends(get_pixelpipe_app),
) -> dict[str, Any]:
    """Process every object-created record of the posted event document.

    Responds only after the batch settles; a 503 tells the sender to redeliver.
    """
    body = await request.body()
    try:
        notifications = parse_event_payload(body)
    except EventPayloadError as exc:
        raise APIError(
            str(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=APIErrorCode.EVENT_PAYLOAD_INVALID,
        ) from exc

    result = await app.dispatcher.handle_batch(notifications)
    summary = result.summary()
    if not result.all_succeeded:
        raise APIError(
            f"{len(result.failed)} of {len(result.outcomes)} notifications failed",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code=APIErrorCode.PROCESSING_FAILED,
            extra=summary,
        )
    return summary
