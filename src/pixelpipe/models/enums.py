"""Centralized enums for type safety and IDE support."""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable error kinds reported in logs, results and API responses."""

    UNAUTHENTICATED = "Unauthenticated"
    UNSUPPORTED_CONTENT_TYPE = "UnsupportedContentType"
    SIZE_EXCEEDED = "SizeExceeded"
    CORRUPT_INPUT = "CorruptInput"
    STORAGE_READ_ERROR = "StorageReadError"
    STORAGE_WRITE_ERROR = "StorageWriteError"
    TIMEOUT = "Timeout"
    ENCODE_ERROR = "EncodeError"


class ImageFormat(StrEnum):
    """Encodings the pipeline can produce."""

    JPEG = "JPEG"
    PNG = "PNG"
    WEBP = "WEBP"

    @property
    def extension(self) -> str:
        return _FORMAT_EXTENSIONS[self]

    @property
    def content_type(self) -> str:
        return _FORMAT_CONTENT_TYPES[self]


_FORMAT_EXTENSIONS: dict[ImageFormat, str] = {
    ImageFormat.JPEG: ".jpg",
    ImageFormat.PNG: ".png",
    ImageFormat.WEBP: ".webp",
}

_FORMAT_CONTENT_TYPES: dict[ImageFormat, str] = {
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.WEBP: "image/webp",
}


class FitMode(StrEnum):
    """How a source image is mapped onto a target box."""

    # Scale to cover the box, then crop symmetrically around the center.
    COVER = "cover"


class ArtifactRole(StrEnum):
    """Why a derived artifact exists."""

    THUMBNAIL = "thumbnail"
    ALTERNATE_FORMAT = "alternate_format"


class ProcessingStatus(StrEnum):
    """Overall outcome of processing one original object."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class NotificationDisposition(StrEnum):
    """What the dispatcher did with one notification."""

    HANDLED = "handled"
    IGNORED = "ignored"
    FAILED = "failed"
