"""Upload grant endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, status

from pixelpipe.api.dependencies import get_pixelpipe_app, resolve_owner
from pixelpipe.api.errors import APIError, APIErrorCode
from pixelpipe.errors import UnauthenticatedError, UnsupportedContentTypeError
from pixelpipe.models.upload import UploadRequest, UploadResponse

if TYPE_CHECKING:
    from pixelpipe.app import Application

router = APIRouter(tags=["uploads"])
logger = logging.getLogger(__name__)


@router.post("/api/v1/uploads", response_model=UploadResponse)
async def request_upload(
    payload: UploadRequest,
    owner_id: str | None = Depends(resolve_owner),
    app: Application = Depends(get_pixelpipe_app),
) -> UploadResponse:
    """Grant a direct write for one new original image."""
    try:
        grant = app.authorizer.request_upload(owner_id, payload.content_type)
    except UnauthenticatedError as exc:
        raise APIError(
            str(exc),
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=APIErrorCode.UNAUTHENTICATED,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except UnsupportedContentTypeError as exc:
        raise APIError(
            str(exc),
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            error_code=APIErrorCode.UNSUPPORTED_CONTENT_TYPE,
            extra={"supported_content_types": exc.supported},
        ) from exc
    return app.authorizer.to_response(grant)
