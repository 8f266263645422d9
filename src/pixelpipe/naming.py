"""Deterministic object key naming.

Both the upload authorizer (predicting URLs) and the image processor
(writing artifacts) plan derived keys through `plan_artifacts`, so a
predicted key and a produced key can never disagree.
"""

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath

from pixelpipe.models.artifact import DerivedArtifact
from pixelpipe.models.config import ProcessingConfig, VariantSpec
from pixelpipe.models.enums import ArtifactRole, ImageFormat

SUFFIX_LENGTH = 9
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_OWNER_ID_RE = re.compile(r"^[^\s/\\\x00-\x1f\x7f]{1,128}$")

_CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


@dataclass(frozen=True)
class ObjectKey:
    upload_id: str
    key: str


def normalize_content_type(content_type: str) -> str:
    """Lowercase a MIME type and drop parameters such as `; charset=`."""
    return content_type.split(";", 1)[0].strip().lower()


def extension_for_content_type(content_type: str) -> str:
    return _CONTENT_TYPE_EXTENSIONS.get(normalize_content_type(content_type), "")


def is_valid_owner_id(owner_id: str) -> bool:
    """Owner ids become the first key segment and must stay a single segment."""
    return bool(_OWNER_ID_RE.match(owner_id)) and owner_id not in (".", "..")


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def generate_object_key(
    owner_id: str,
    content_type: str,
    *,
    now: datetime,
    suffix: str | None = None,
) -> ObjectKey:
    """Build `<owner>/<epoch-ms>-<suffix><ext>` for a new upload.

    No uniqueness check: the random suffix makes collisions negligible and
    every downstream write is an idempotent overwrite.
    """
    if not is_valid_owner_id(owner_id):
        raise ValueError(f"owner id cannot form a key segment: {owner_id!r}")
    millis = int(now.timestamp() * 1000)
    upload_id = f"{millis}-{suffix or random_suffix()}"
    key = f"{owner_id}/{upload_id}{extension_for_content_type(content_type)}"
    return ObjectKey(upload_id=upload_id, key=key)


def owner_from_key(key: str) -> str:
    return key.split("/", 1)[0] if "/" in key else ""


def strip_extension(key: str) -> str:
    """Drop the extension of the final path segment only."""
    path = PurePosixPath(key)
    if not path.suffix:
        return key
    return key[: -len(path.suffix)]


def variant_key(source_key: str, variant: VariantSpec) -> str:
    return f"{strip_extension(source_key)}{variant.key_suffix}{variant.format.extension}"


def alternate_key(source_key: str, image_format: ImageFormat) -> str:
    return f"{strip_extension(source_key)}{image_format.extension}"


def plan_artifacts(source_key: str, processing: ProcessingConfig) -> list[DerivedArtifact]:
    """Every artifact derived from `source_key`, resized variants first."""
    planned = [
        DerivedArtifact(
            source_key=source_key,
            variant=variant.name,
            role=ArtifactRole.THUMBNAIL,
            key=variant_key(source_key, variant),
            width=variant.width,
            height=variant.height,
            format=variant.format,
            quality=processing.quality_for(variant),
        )
        for variant in processing.variants
    ]
    alt_format = processing.alternate_format
    planned.append(
        DerivedArtifact(
            source_key=source_key,
            variant=processing.alternate_variant_name,
            role=ArtifactRole.ALTERNATE_FORMAT,
            key=alternate_key(source_key, alt_format),
            # Full resolution: dimensions are those of the original.
            width=None,
            height=None,
            format=alt_format,
            quality=processing.alternate_quality,
        )
    )
    return planned
