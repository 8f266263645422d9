"""Original/derived object models and processing results."""

from __future__ import annotations

from pydantic import BaseModel, Field

from pixelpipe.models.enums import ArtifactRole, ErrorKind, ImageFormat, ProcessingStatus


class OriginalObject(BaseModel):
    """An uploaded original, as seen by the pipeline (read-only)."""

    bucket: str
    key: str
    owner_id: str
    content_type: str | None = None
    byte_length: int


class DerivedArtifact(BaseModel):
    """Planned derivative of an original.

    `key` depends only on `source_key` and the variant, so reprocessing
    overwrites the same objects.
    """

    model_config = {"frozen": True}

    source_key: str
    variant: str
    role: ArtifactRole
    key: str
    width: int | None
    height: int | None
    format: ImageFormat
    quality: int

    @property
    def content_type(self) -> str:
        return self.format.content_type


class ArtifactOutcome(BaseModel):
    """Result of rendering and writing one artifact."""

    artifact: DerivedArtifact
    succeeded: bool
    width: int | None = None
    height: int | None = None
    byte_length: int | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None


class ProcessingResult(BaseModel):
    """Aggregated result of processing one original."""

    bucket: str
    key: str
    status: ProcessingStatus
    original: OriginalObject | None = None
    artifacts: list[ArtifactOutcome] = Field(default_factory=list)
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == ProcessingStatus.SUCCEEDED

    @property
    def failed_artifacts(self) -> list[ArtifactOutcome]:
        return [outcome for outcome in self.artifacts if not outcome.succeeded]
