"""Upload grant models and the upload request/response API contract."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pixelpipe.models.artifact import DerivedArtifact


class WriteCredential(BaseModel):
    """Everything a client needs to perform one direct write."""

    url: str
    method: str = "PUT"
    headers: dict[str, str] = Field(default_factory=dict)
    expires_at: datetime


class PredictedArtifact(BaseModel):
    """Derived artifact with the URL it will be readable at once processed."""

    artifact: DerivedArtifact
    url: str


class UploadGrant(BaseModel):
    """Capability to upload one original. Never persisted."""

    owner_id: str
    upload_id: str
    object_key: str
    content_type: str
    write_credential: WriteCredential
    read_url: str
    predicted_artifacts: list[PredictedArtifact]
    issued_at: datetime
    expiry: datetime

    @property
    def predicted_artifact_urls(self) -> list[str]:
        return [item.url for item in self.predicted_artifacts]

    def predicted_url(self, variant: str) -> str | None:
        for item in self.predicted_artifacts:
            if item.artifact.variant == variant:
                return item.url
        return None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadRequest(_CamelModel):
    content_type: str


class Dimensions(_CamelModel):
    width: int = 0
    height: int = 0


class UploadMetadata(_CamelModel):
    """Placeholders; nothing has been measured when the grant is issued."""

    size: int = 0
    dimensions: Dimensions = Field(default_factory=Dimensions)
    format: str = "JPEG"


class UploadResponse(_CamelModel):
    upload_id: str
    upload_url: str
    url: str
    thumbnail: str
    metadata: UploadMetadata = Field(default_factory=UploadMetadata)
    key: str
    expires_at: datetime
    upload_method: str = "PUT"
    upload_headers: dict[str, str] = Field(default_factory=dict)
    variants: dict[str, str] = Field(default_factory=dict)
