"""Writes derived artifacts to the read-optimized store."""

from __future__ import annotations

import logging

from pixelpipe.errors import StorageWriteError
from pixelpipe.interfaces import ObjectStore
from pixelpipe.models.storage import StoredObject

logger = logging.getLogger(__name__)


class ArtifactWriter:
    """Puts artifact bytes under deterministic keys.

    Returns StoredObject | StorageWriteError instead of raising, so one
    artifact's failure never interrupts its siblings.
    """

    def __init__(self, store: ObjectStore, *, cache_control: str | None = None) -> None:
        self._store = store
        self._cache_control = cache_control

    async def put(
        self, bucket: str, key: str, data: bytes, content_type: str
    ) -> StoredObject | StorageWriteError:
        try:
            stored = await self._store.put_bytes(
                bucket,
                key,
                data,
                content_type,
                cache_control=self._cache_control,
            )
        except Exception as exc:
            return StorageWriteError(key, bucket=bucket, cause=exc)
        logger.debug("Wrote %s/%s (%d bytes)", bucket, key, stored.byte_length)
        return stored
