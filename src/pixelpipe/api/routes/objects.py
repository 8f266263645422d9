"""Direct upload and read routes backing the local object store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import FileResponse

from pixelpipe.api.dependencies import get_pixelpipe_app
from pixelpipe.api.errors import APIError, APIErrorCode
from pixelpipe.credentials import TokenError
from pixelpipe.models.events import ProcessingNotification
from pixelpipe.models.storage import StoredObject
from pixelpipe.plugins.storage.local import LocalObjectStore

if TYPE_CHECKING:
    from pixelpipe.app import Application

router = APIRouter(tags=["objects"])
logger = logging.getLogger(__name__)

LOCAL_CREATED_EVENT = "ObjectCreated:Put"


def _require_local_store(app: Application) -> LocalObjectStore:
    store = app.store
    if not isinstance(store, LocalObjectStore):
        raise APIError(
            "Not Found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=APIErrorCode.NOT_FOUND,
        )
    return store


@router.put("/api/v1/objects/{bucket}/{key:path}", response_model=StoredObject)
async def put_object(
    bucket: str,
    key: str,
    request: Request,
    credential: str = Query(...),
    app: Application = Depends(get_pixelpipe_app),
) -> StoredObject:
    """Accept a credentialed direct write, then announce the new object."""
    store = _require_local_store(app)
    content_type = request.headers.get("Content-Type", "")
    try:
        store.verify_write_credential(
            credential,
            bucket=bucket,
            key=key,
            content_type=content_type,
        )
    except TokenError as exc:
        logger.info("Rejected write credential for %s/%s reason=%s", bucket, key, exc.code.value)
        raise APIError(
            "Write credential rejected",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=APIErrorCode.CREDENTIAL_REJECTED,
        ) from exc

    limit = app.config.processing.max_upload_bytes
    data = bytearray()
    async for chunk in request.stream():
        data.extend(chunk)
        if len(data) > limit:
            raise APIError(
                f"Object exceeds {limit} bytes",
                status_code=413,
                error_code=APIErrorCode.OBJECT_TOO_LARGE,
            )

    try:
        stored = await store.put_bytes(bucket, key, bytes(data), content_type)
    except (OSError, ValueError) as exc:
        logger.error("Direct write failed for %s/%s: %s", bucket, key, exc, exc_info=True)
        raise APIError(
            "Object write failed",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=APIErrorCode.OBJECT_WRITE_FAILED,
        ) from exc

    # The filesystem has no event feed of its own.
    app.dispatcher.submit(
        [ProcessingNotification(bucket=bucket, key=key, event_kind=LOCAL_CREATED_EVENT)]
    )
    return stored


@router.get("/media/{bucket}/{key:path}")
async def get_object(
    bucket: str,
    key: str,
    app: Application = Depends(get_pixelpipe_app),
) -> FileResponse:
    """Serve a stored object (the local store's public URL)."""
    store = _require_local_store(app)
    try:
        path = store.object_path(bucket, key)
    except ValueError:
        path = None
    if path is None or not path.is_file():
        raise APIError(
            "Object not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=APIErrorCode.OBJECT_NOT_FOUND,
        )
    return FileResponse(path)
