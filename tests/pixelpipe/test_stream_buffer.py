"""Tests for bounded stream materialization."""

from __future__ import annotations

import io

from pixelpipe.errors import SizeExceededError, StorageReadError
from pixelpipe.models.enums import ErrorKind
from pixelpipe.stream_buffer import materialize


class _TrackingStream(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.consumed = 0

    def read(self, size: int | None = -1, /) -> bytes:
        chunk = super().read(size)
        self.consumed += len(chunk)
        return chunk


class _BrokenStream:
    def __init__(self, good_bytes: bytes) -> None:
        self._good = io.BytesIO(good_bytes)

    def read(self, size: int = -1, /) -> bytes:
        chunk = self._good.read(size)
        if chunk:
            return chunk
        raise ConnectionResetError("peer reset")


def test_reads_stream_within_limit() -> None:
    """Stream at exactly the limit is returned whole."""
    # Given: A stream of exactly max_bytes
    data = b"x" * 1000

    # When: Materializing with small chunks
    result = materialize(io.BytesIO(data), 1000, chunk_bytes=64)

    # Then: Bytes are returned unchanged
    assert result == data


def test_oversized_stream_is_rejected_after_limit_plus_one() -> None:
    """Oversized stream fails having read at most max_bytes + 1 bytes."""
    # Given: A stream much larger than the limit
    stream = _TrackingStream(b"x" * 10_000)

    # When: Materializing with a 1000 byte limit
    result = materialize(stream, 1000, object_key="u1/big.jpg", chunk_bytes=256)

    # Then: SizeExceeded and the stream was not consumed further
    assert isinstance(result, SizeExceededError)
    assert result.kind == ErrorKind.SIZE_EXCEEDED
    assert result.object_key == "u1/big.jpg"
    assert stream.consumed == 1001


def test_declared_length_over_limit_rejects_without_reading() -> None:
    """Declared length above the limit fails before any read."""
    # Given: A stream whose declared length exceeds the limit
    stream = _TrackingStream(b"x" * 10)

    # When: Materializing
    result = materialize(stream, 5, declared_length=5000)

    # Then: Nothing was read
    assert isinstance(result, SizeExceededError)
    assert result.observed_bytes == 5000
    assert stream.consumed == 0


def test_read_failure_is_returned_not_truncated() -> None:
    """Mid-stream failure returns StorageReadError instead of partial bytes."""
    # When: Stream breaks after some good bytes
    result = materialize(_BrokenStream(b"abc"), 1000, object_key="k", bucket="origin")

    # Then: Read error with the cause preserved
    assert isinstance(result, StorageReadError)
    assert result.bucket == "origin"
    assert isinstance(result.cause, ConnectionResetError)


def test_short_stream_against_declared_length_is_read_error() -> None:
    """Stream ending before its declared length is treated as a failed read."""
    # When: Declared 100 bytes but only 10 arrive
    result = materialize(io.BytesIO(b"x" * 10), 1000, declared_length=100)

    # Then: Read error
    assert isinstance(result, StorageReadError)
    assert "10 of 100" in str(result.cause)


def test_empty_stream_returns_empty_bytes() -> None:
    """Empty stream materializes as empty bytes; decoding decides validity."""
    assert materialize(io.BytesIO(b""), 10) == b""
