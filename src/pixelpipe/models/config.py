"""Configuration models."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from pixelpipe.models.enums import FitMode, ImageFormat

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_QUALITY = 85
DEFAULT_MAX_PIXELS = 40_000_000
DEFAULT_CREDENTIAL_EXPIRY_S = 3600
DEFAULT_SUPPORTED_CONTENT_TYPES = ["image/jpeg", "image/png", "image/webp", "image/gif"]


class BucketsConfig(BaseModel):
    """Origin (client writes) and derived (pipeline writes) bucket names."""

    origin: str = Field(min_length=1)
    derived: str = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_distinct(self) -> BucketsConfig:
        # Writing artifacts into the origin bucket would re-trigger processing.
        if self.origin == self.derived:
            raise ValueError("buckets.origin and buckets.derived must differ")
        return self


class S3StorageConfig(BaseModel):
    """S3 (or S3-compatible) object store configuration."""

    region: str | None = None
    endpoint_url: str | None = None
    public_url_template: str | None = None
    access_key_id_env: str | None = None
    secret_access_key_env: str | None = None
    max_attempts: int = Field(default=5, ge=1)
    artifact_cache_control: str | None = "public, max-age=31536000, immutable"


class LocalStorageConfig(BaseModel):
    """Filesystem object store for development and tests."""

    root: str = "./storage"
    public_base_url: str = "http://localhost:8080"
    signing_secret_env: str = "PIXELPIPE_LOCAL_SIGNING_SECRET"


class StorageConfig(BaseModel):
    """Object store plugin configuration.

    Note: Backend names are validated against the registry at runtime via
    validate_plugin_names(). This allows third-party storage plugins via entry points.
    """

    backend: str = "s3"
    config: dict[str, Any] | BaseModel = Field(default_factory=dict)

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @model_validator(mode="after")
    def _validate_builtin_backends(self) -> StorageConfig:
        """Validate built-in backend configs early.

        Third-party backends are validated later when the plugin is loaded.
        """
        if not isinstance(self.config, dict):
            return self
        match self.backend:
            case "s3":
                object.__setattr__(self, "config", S3StorageConfig.model_validate(self.config))
            case "local":
                object.__setattr__(self, "config", LocalStorageConfig.model_validate(self.config))
            case _:
                pass
        return self


class SignedTokenIdentityConfig(BaseModel):
    """Bearer tokens signed by an identity service sharing an HMAC secret."""

    secret_env: str = "PIXELPIPE_IDENTITY_SECRET"
    scope: str = "uploads"


class TrustedHeaderIdentityConfig(BaseModel):
    """Owner id injected by an upstream gateway that already authenticated the caller."""

    header_name: str = "X-Owner-Id"


class IdentityConfig(BaseModel):
    """Identity verifier plugin configuration."""

    backend: str = "signed_token"
    config: dict[str, Any] | BaseModel = Field(default_factory=dict)

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @model_validator(mode="after")
    def _validate_builtin_backends(self) -> IdentityConfig:
        if not isinstance(self.config, dict):
            return self
        match self.backend:
            case "signed_token":
                validated: BaseModel = SignedTokenIdentityConfig.model_validate(self.config)
                object.__setattr__(self, "config", validated)
            case "trusted_header":
                validated = TrustedHeaderIdentityConfig.model_validate(self.config)
                object.__setattr__(self, "config", validated)
            case _:
                pass
        return self


class VariantSpec(BaseModel):
    """One resized derivative of every original."""

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    fit: FitMode = FitMode.COVER
    format: ImageFormat = ImageFormat.JPEG
    quality: int | None = Field(default=None, ge=1, le=100)
    suffix: str | None = None

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("suffix")
    @classmethod
    def _validate_suffix(cls, value: str | None) -> str | None:
        if value is not None and (not value or "/" in value or "." in value):
            raise ValueError("variant suffix must be non-empty without '/' or '.'")
        return value

    @property
    def key_suffix(self) -> str:
        return self.suffix or f"_thumb_{self.width}"

    @property
    def name(self) -> str:
        return self.key_suffix.lstrip("_")


def _default_variants() -> list[VariantSpec]:
    return [
        VariantSpec(width=150, height=150),
        VariantSpec(width=300, height=300),
        VariantSpec(width=600, height=400),
    ]


class ProcessingConfig(BaseModel):
    """Settings for deriving artifacts from one original."""

    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    # Decoded width x height; checked from the header before pixels are loaded.
    max_pixels: int = Field(default=DEFAULT_MAX_PIXELS, gt=0)
    thumbnail_quality: int = Field(default=DEFAULT_QUALITY, ge=1, le=100)
    alternate_quality: int = Field(default=DEFAULT_QUALITY, ge=1, le=100)
    alternate_format: ImageFormat = ImageFormat.WEBP
    variants: list[VariantSpec] = Field(default_factory=_default_variants, min_length=1)
    encode_workers: int = Field(default=2, ge=1)
    timeout_s: float = Field(default=60.0, gt=0)
    read_chunk_bytes: int = Field(default=64 * 1024, gt=0)

    @field_validator("alternate_format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @model_validator(mode="after")
    def _validate_unique_suffixes(self) -> ProcessingConfig:
        suffixes = [variant.key_suffix for variant in self.variants]
        duplicates = sorted({s for s in suffixes if suffixes.count(s) > 1})
        if duplicates:
            raise ValueError(f"variant key suffixes must be unique, duplicated: {duplicates}")
        alternate_name = self.alternate_variant_name
        if any(variant.name == alternate_name for variant in self.variants):
            raise ValueError(
                f"variant name {alternate_name!r} is reserved for the alternate format artifact"
            )
        return self

    @property
    def alternate_variant_name(self) -> str:
        return self.alternate_format.value.lower()

    def quality_for(self, variant: VariantSpec) -> int:
        return variant.quality if variant.quality is not None else self.thumbnail_quality


class UploadConfig(BaseModel):
    """Settings for issuing direct-write credentials."""

    credential_expiry_s: int = Field(default=DEFAULT_CREDENTIAL_EXPIRY_S, gt=0)
    supported_content_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_CONTENT_TYPES), min_length=1
    )
    preview_variant: str = "thumb_300"

    @field_validator("supported_content_types")
    @classmethod
    def _normalize_content_types(cls, value: list[str]) -> list[str]:
        return [item.strip().lower() for item in value]


class ConcurrencyConfig(BaseModel):
    """Concurrency limits for notification batches."""

    max_objects_in_flight: int = Field(default=4, ge=1)


class FastAPIServerConfig(BaseModel):
    """HTTP API configuration."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    api_key_env: str | None = None

    @property
    def auth_enabled(self) -> bool:
        """The event webhook is guarded once a key env var is named."""
        return bool(self.api_key_env)

    def get_api_key(self) -> str | None:
        """Resolve the key guarding the event webhook, if configured."""
        if not self.api_key_env:
            return None
        return os.environ.get(self.api_key_env)


class QueueConfig(BaseModel):
    """SQS queue carrying origin-bucket event notifications."""

    enabled: bool = False
    queue_url: str | None = None
    region: str | None = None
    endpoint_url: str | None = None
    wait_time_s: int = Field(default=20, ge=0, le=20)
    max_messages: int = Field(default=10, ge=1, le=10)
    idle_sleep_s: float = Field(default=1.0, ge=0.0)

    @model_validator(mode="after")
    def _validate_queue_url(self) -> QueueConfig:
        if self.enabled and not self.queue_url:
            raise ValueError("queue.queue_url is required when queue.enabled is true")
        return self


class Config(BaseModel):
    """Main configuration, built once at process start and passed to components."""

    version: int = 1
    buckets: BucketsConfig
    storage: StorageConfig = Field(default_factory=StorageConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    server: FastAPIServerConfig = Field(default_factory=FastAPIServerConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)

    @model_validator(mode="after")
    def _validate_preview_variant(self) -> Config:
        names = [variant.name for variant in self.processing.variants]
        if self.upload.preview_variant not in names:
            raise ValueError(
                f"upload.preview_variant '{self.upload.preview_variant}' "
                f"must name a configured variant: {names}"
            )
        return self
