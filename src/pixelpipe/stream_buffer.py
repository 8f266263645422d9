"""Bounded materialization of object read streams."""

from __future__ import annotations

import logging
from typing import Protocol

from pixelpipe.errors import SizeExceededError, StorageReadError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_BYTES = 64 * 1024


class ReadableStream(Protocol):
    def read(self, size: int = -1, /) -> bytes: ...


def materialize(
    stream: ReadableStream,
    max_bytes: int,
    *,
    object_key: str = "-",
    bucket: str | None = None,
    declared_length: int | None = None,
    chunk_bytes: int = DEFAULT_CHUNK_BYTES,
) -> bytes | SizeExceededError | StorageReadError:
    """Read `stream` fully into memory, refusing anything above `max_bytes`.

    Reads at most `max_bytes + 1` bytes, so an oversized stream is detected
    without being consumed. A failing read is returned as StorageReadError,
    never as a truncated buffer.
    """
    if declared_length is not None and declared_length > max_bytes:
        return SizeExceededError(object_key, limit_bytes=max_bytes, observed_bytes=declared_length)

    buffer = bytearray()
    while True:
        # One byte past the limit is enough to prove the limit is exceeded.
        want = min(chunk_bytes, max_bytes + 1 - len(buffer))
        try:
            chunk = stream.read(want)
        except Exception as exc:
            return StorageReadError(object_key, bucket=bucket, cause=exc)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            return SizeExceededError(object_key, limit_bytes=max_bytes, observed_bytes=len(buffer))

    if declared_length is not None and len(buffer) != declared_length:
        return StorageReadError(
            object_key,
            bucket=bucket,
            cause=OSError(
                f"stream ended after {len(buffer)} of {declared_length} declared bytes"
            ),
        )
    logger.debug("Materialized %d bytes for %s", len(buffer), object_key)
    return bytes(buffer)
