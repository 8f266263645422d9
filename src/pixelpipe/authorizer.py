"""UploadAuthorizer - issues direct-write credentials for new originals."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from pixelpipe.errors import UnauthenticatedError, UnsupportedContentTypeError
from pixelpipe.interfaces import ObjectStore
from pixelpipe.models.config import Config
from pixelpipe.models.upload import (
    PredictedArtifact,
    UploadGrant,
    UploadMetadata,
    UploadResponse,
)
from pixelpipe.naming import (
    generate_object_key,
    is_valid_owner_id,
    normalize_content_type,
    plan_artifacts,
)

logger = logging.getLogger(__name__)


class UploadAuthorizer:
    """Validates the caller and content type, then grants one direct write.

    Has no persisted side effect: the grant only names a fresh key, signs a
    credential for it, and predicts where the derived artifacts will appear.
    """

    def __init__(self, config: Config, store: ObjectStore) -> None:
        self._config = config
        self._store = store
        self._supported = list(config.upload.supported_content_types)

    def request_upload(
        self,
        owner_id: str | None,
        declared_content_type: str | None,
        *,
        now: datetime | None = None,
    ) -> UploadGrant:
        """Issue an UploadGrant for `owner_id`.

        Raises:
            UnauthenticatedError: Owner id is missing or cannot form a key segment.
            UnsupportedContentTypeError: Content type is not an accepted image type.
        """
        if not owner_id:
            raise UnauthenticatedError("Authentication required")
        if not is_valid_owner_id(owner_id):
            raise UnauthenticatedError("Owner id is not usable")

        content_type = normalize_content_type(declared_content_type or "")
        if content_type not in self._supported:
            raise UnsupportedContentTypeError(declared_content_type, self._supported)

        issued_at = now or datetime.now(UTC)
        expires_in_s = self._config.upload.credential_expiry_s
        object_key = generate_object_key(owner_id, content_type, now=issued_at)

        origin = self._config.buckets.origin
        derived = self._config.buckets.derived
        credential = self._store.issue_write_credential(
            origin,
            object_key.key,
            content_type,
            expires_in_s,
            now=issued_at,
        )
        predicted = [
            PredictedArtifact(artifact=artifact, url=self._store.public_url(derived, artifact.key))
            for artifact in plan_artifacts(object_key.key, self._config.processing)
        ]

        logger.info(
            "Issued upload grant: owner=%s key=%s type=%s",
            owner_id,
            object_key.key,
            content_type,
        )
        return UploadGrant(
            owner_id=owner_id,
            upload_id=object_key.upload_id,
            object_key=object_key.key,
            content_type=content_type,
            write_credential=credential,
            read_url=self._store.public_url(origin, object_key.key),
            predicted_artifacts=predicted,
            issued_at=issued_at,
            expiry=issued_at + timedelta(seconds=expires_in_s),
        )

    def to_response(self, grant: UploadGrant) -> UploadResponse:
        """Render a grant as the client-facing upload response."""
        preview = self._config.upload.preview_variant
        preview_url = grant.predicted_url(preview)
        if preview_url is None:
            raise ValueError(f"Preview variant {preview!r} was not predicted")
        preview_format = next(
            item.artifact.format
            for item in grant.predicted_artifacts
            if item.artifact.variant == preview
        )
        return UploadResponse(
            upload_id=grant.upload_id,
            upload_url=grant.write_credential.url,
            url=grant.read_url,
            thumbnail=preview_url,
            metadata=UploadMetadata(format=preview_format.value),
            key=grant.object_key,
            expires_at=grant.expiry,
            upload_method=grant.write_credential.method,
            upload_headers=dict(grant.write_credential.headers),
            variants={item.artifact.variant: item.url for item in grant.predicted_artifacts},
        )
