"""pixelpipe data models."""

from pixelpipe.models.artifact import (
    ArtifactOutcome,
    DerivedArtifact,
    OriginalObject,
    ProcessingResult,
)
from pixelpipe.models.config import (
    BucketsConfig,
    ConcurrencyConfig,
    Config,
    FastAPIServerConfig,
    IdentityConfig,
    LocalStorageConfig,
    ProcessingConfig,
    QueueConfig,
    S3StorageConfig,
    SignedTokenIdentityConfig,
    StorageConfig,
    TrustedHeaderIdentityConfig,
    UploadConfig,
    VariantSpec,
)
from pixelpipe.models.enums import (
    ArtifactRole,
    ErrorKind,
    FitMode,
    ImageFormat,
    NotificationDisposition,
    ProcessingStatus,
)
from pixelpipe.models.events import (
    BatchResult,
    EventPayloadError,
    NotificationOutcome,
    ProcessingNotification,
    S3EventRecord,
    parse_event_payload,
)
from pixelpipe.models.storage import ObjectStream, StoredObject
from pixelpipe.models.upload import (
    PredictedArtifact,
    UploadGrant,
    UploadRequest,
    UploadResponse,
    WriteCredential,
)

__all__ = [
    "ArtifactOutcome",
    "ArtifactRole",
    "BatchResult",
    "BucketsConfig",
    "ConcurrencyConfig",
    "Config",
    "DerivedArtifact",
    "ErrorKind",
    "EventPayloadError",
    "FastAPIServerConfig",
    "FitMode",
    "IdentityConfig",
    "ImageFormat",
    "LocalStorageConfig",
    "NotificationDisposition",
    "NotificationOutcome",
    "ObjectStream",
    "OriginalObject",
    "PredictedArtifact",
    "ProcessingConfig",
    "ProcessingNotification",
    "ProcessingResult",
    "ProcessingStatus",
    "QueueConfig",
    "S3EventRecord",
    "S3StorageConfig",
    "SignedTokenIdentityConfig",
    "StorageConfig",
    "StoredObject",
    "TrustedHeaderIdentityConfig",
    "UploadConfig",
    "UploadGrant",
    "UploadRequest",
    "UploadResponse",
    "VariantSpec",
    "WriteCredential",
    "parse_event_payload",
]
