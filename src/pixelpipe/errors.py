"""Error hierarchy for upload authorization and the derivation pipeline."""

from __future__ import annotations

from pixelpipe.models.enums import ErrorKind


class UploadRequestError(Exception):
    """Base exception for synchronous upload-grant failures."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)


class UnauthenticatedError(UploadRequestError):
    """Caller identity is missing or unusable."""

    kind = ErrorKind.UNAUTHENTICATED


class UnsupportedContentTypeError(UploadRequestError):
    """Declared content type is not an accepted image type."""

    kind = ErrorKind.UNSUPPORTED_CONTENT_TYPE

    def __init__(self, content_type: str | None, supported: list[str]) -> None:
        super().__init__(
            f"Unsupported content type {content_type!r}; expected one of {', '.join(supported)}"
        )
        self.content_type = content_type
        self.supported = supported


class PipelineError(Exception):
    """Base exception for all pipeline errors.

    Compatible with error-as-value pattern: instances can be returned as values
    instead of raised. Preserves stack traces via exception chaining.
    """

    kind: ErrorKind

    def __init__(
        self, message: str, stage: str, object_key: str, cause: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.object_key = object_key
        self.cause = cause
        self.__cause__ = cause


class StorageReadError(PipelineError):
    """Reading the original object failed."""

    kind = ErrorKind.STORAGE_READ_ERROR

    def __init__(self, object_key: str, bucket: str | None, cause: Exception) -> None:
        super().__init__(
            f"Read failed for {object_key}", stage="fetch", object_key=object_key, cause=cause
        )
        self.bucket = bucket


class SizeExceededError(PipelineError):
    """Original object is larger than the configured maximum."""

    kind = ErrorKind.SIZE_EXCEEDED

    def __init__(self, object_key: str, limit_bytes: int, observed_bytes: int) -> None:
        super().__init__(
            f"Object {object_key} exceeds {limit_bytes} bytes (saw at least {observed_bytes})",
            stage="fetch",
            object_key=object_key,
        )
        self.limit_bytes = limit_bytes
        self.observed_bytes = observed_bytes


class CorruptInputError(PipelineError):
    """Bytes could not be decoded as a supported image."""

    kind = ErrorKind.CORRUPT_INPUT

    def __init__(self, object_key: str, cause: Exception) -> None:
        super().__init__(
            f"Decode failed for {object_key}", stage="decode", object_key=object_key, cause=cause
        )


class EncodeError(PipelineError):
    """A single derived artifact could not be rendered."""

    kind = ErrorKind.ENCODE_ERROR

    def __init__(self, object_key: str, variant: str, cause: Exception) -> None:
        super().__init__(
            f"Encode failed for {object_key} (variant: {variant})",
            stage="encode",
            object_key=object_key,
            cause=cause,
        )
        self.variant = variant


class StorageWriteError(PipelineError):
    """Writing a derived artifact failed."""

    kind = ErrorKind.STORAGE_WRITE_ERROR

    def __init__(self, object_key: str, bucket: str | None, cause: Exception) -> None:
        super().__init__(
            f"Write failed for {object_key}", stage="write", object_key=object_key, cause=cause
        )
        self.bucket = bucket


class ProcessingTimeoutError(PipelineError):
    """Processing one original exceeded its wall-clock budget."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, object_key: str, timeout_s: float) -> None:
        super().__init__(
            f"Processing {object_key} exceeded {timeout_s:g}s",
            stage="process",
            object_key=object_key,
        )
        self.timeout_s = timeout_s
