"""ImageProcessor - derives every configured artifact from one original."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from PIL import Image

from pixelpipe import imaging
from pixelpipe.errors import (
    CorruptInputError,
    EncodeError,
    PipelineError,
    ProcessingTimeoutError,
    SizeExceededError,
    StorageReadError,
    StorageWriteError,
)
from pixelpipe.logging_setup import reset_object_key, set_object_key
from pixelpipe.models.artifact import (
    ArtifactOutcome,
    DerivedArtifact,
    OriginalObject,
    ProcessingResult,
)
from pixelpipe.models.enums import ArtifactRole, ProcessingStatus
from pixelpipe.models.storage import StoredObject
from pixelpipe.naming import owner_from_key, plan_artifacts
from pixelpipe.stream_buffer import materialize

if TYPE_CHECKING:
    from pixelpipe.artifact_writer import ArtifactWriter
    from pixelpipe.interfaces import ObjectStore
    from pixelpipe.models.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Fetched:
    data: bytes
    original: OriginalObject


class ImageProcessor:
    """Fetches, decodes and fans out one original into its derived artifacts.

    Implements error-as-value pattern: stage methods return Result | Error
    instead of raising. Artifact jobs are independent, so one failed encode
    or write never prevents the others from completing.
    """

    def __init__(self, config: Config, store: ObjectStore, writer: ArtifactWriter) -> None:
        self._config = config
        self._processing = config.processing
        self._derived_bucket = config.buckets.derived
        self._store = store
        self._writer = writer

    def plan(self, key: str) -> list[DerivedArtifact]:
        """Artifacts `process` will write for `key`."""
        return plan_artifacts(key, self._processing)

    async def process(self, bucket: str, key: str) -> ProcessingResult:
        """Derive all artifacts for `bucket/key`. Never raises for pipeline errors.

        The whole call is bounded by `processing.timeout_s`; on expiry the
        outstanding jobs are cancelled and the result reports Timeout.
        """
        started = time.monotonic()
        token = set_object_key(key)
        try:
            logger.info("Processing original: %s/%s", bucket, key)
            try:
                result = await asyncio.wait_for(
                    self._process(bucket, key),
                    timeout=self._processing.timeout_s,
                )
            except asyncio.TimeoutError:
                timeout_err = ProcessingTimeoutError(key, self._processing.timeout_s)
                logger.error("Processing timed out for %s: %s", key, timeout_err)
                result = self._failed(bucket, key, timeout_err)

            result.duration_ms = int((time.monotonic() - started) * 1000)
            if result.ok:
                logger.info(
                    "Processing complete for %s: %d artifacts in %dms",
                    key,
                    len(result.artifacts),
                    result.duration_ms,
                )
            return result
        finally:
            reset_object_key(token)

    async def _process(self, bucket: str, key: str) -> ProcessingResult:
        # Stage 1: fetch + bounded materialization
        fetch_result = await self._fetch_stage(bucket, key)
        match fetch_result:
            case SizeExceededError() as size_err:
                logger.warning("Original too large for %s: %s", key, size_err)
                return self._failed(bucket, key, size_err)
            case StorageReadError() as read_err:
                logger.error(
                    "Read failed for %s: %s",
                    key,
                    read_err.cause,
                    exc_info=read_err.cause,
                )
                return self._failed(bucket, key, read_err)
            case _Fetched() as fetched:
                pass
            case _:
                raise TypeError(f"Unexpected fetch result type: {type(fetch_result).__name__}")

        # Stage 2: decode (nothing is written if this fails)
        decode_result = await self._decode_stage(key, fetched.data)
        match decode_result:
            case CorruptInputError() as decode_err:
                logger.warning("Corrupt input for %s: %s", key, decode_err.cause)
                return self._failed(bucket, key, decode_err, original=fetched.original)
            case Image.Image() as image:
                pass
            case _:
                raise TypeError(
                    f"Unexpected decode result type: {type(decode_result).__name__}"
                )
        logger.info("Decoded %s: %dx%d %s", key, image.width, image.height, image.mode)

        # Stage 3: render + write every artifact concurrently, join on all
        try:
            encode_slots = asyncio.Semaphore(self._processing.encode_workers)
            outcomes = await asyncio.gather(
                *(
                    self._artifact_job(image, artifact, encode_slots)
                    for artifact in self.plan(key)
                )
            )
        finally:
            image.close()

        failures = [outcome for outcome in outcomes if not outcome.succeeded]
        if not failures:
            return ProcessingResult(
                bucket=bucket,
                key=key,
                status=ProcessingStatus.SUCCEEDED,
                original=fetched.original,
                artifacts=list(outcomes),
            )

        # Any failed artifact fails the unit so the notification is redelivered;
        # reprocessing rewrites the same keys.
        first = failures[0]
        logger.warning(
            "%d of %d artifacts failed for %s (first: %s)",
            len(failures),
            len(outcomes),
            key,
            first.error_kind,
        )
        return ProcessingResult(
            bucket=bucket,
            key=key,
            status=ProcessingStatus.FAILED,
            original=fetched.original,
            artifacts=list(outcomes),
            error_kind=first.error_kind,
            error_message=(
                f"{len(failures)} of {len(outcomes)} artifacts failed: {first.error_message}"
            ),
        )

    async def _fetch_stage(
        self, bucket: str, key: str
    ) -> _Fetched | SizeExceededError | StorageReadError:
        """Open and materialize the original. Returns _Fetched or an error."""
        try:
            stream = await self._store.open_read(bucket, key)
        except Exception as exc:
            return StorageReadError(key, bucket=bucket, cause=exc)

        try:
            data = await asyncio.to_thread(
                materialize,
                stream.body,
                self._processing.max_upload_bytes,
                object_key=key,
                bucket=bucket,
                declared_length=stream.content_length,
                chunk_bytes=self._processing.read_chunk_bytes,
            )
        finally:
            try:
                stream.close()
            except Exception as exc:
                logger.debug("Closing read stream for %s failed: %s", key, exc)

        if isinstance(data, PipelineError):
            return data
        original = OriginalObject(
            bucket=bucket,
            key=key,
            owner_id=owner_from_key(key),
            content_type=stream.content_type,
            byte_length=len(data),
        )
        return _Fetched(data=data, original=original)

    async def _decode_stage(self, key: str, data: bytes) -> Image.Image | CorruptInputError:
        """Decode the buffer. Returns an image or CorruptInputError."""
        try:
            return await asyncio.to_thread(
                imaging.decode, data, max_pixels=self._processing.max_pixels
            )
        except Exception as exc:
            return CorruptInputError(key, cause=exc)

    async def _artifact_job(
        self,
        image: Image.Image,
        artifact: DerivedArtifact,
        encode_slots: asyncio.Semaphore,
    ) -> ArtifactOutcome:
        """Render one artifact, then hand it to the writer."""
        async with encode_slots:
            try:
                rendered = await asyncio.to_thread(self._render, image, artifact)
            except Exception as exc:
                encode_err = EncodeError(artifact.source_key, variant=artifact.variant, cause=exc)
                logger.error(
                    "Encode failed for %s: %s",
                    artifact.key,
                    exc,
                    exc_info=exc,
                )
                return self._artifact_failed(artifact, encode_err)

        write_result = await self._writer.put(
            self._derived_bucket,
            artifact.key,
            rendered.data,
            artifact.content_type,
        )
        match write_result:
            case StorageWriteError() as write_err:
                logger.error(
                    "Write failed for %s: %s",
                    artifact.key,
                    write_err.cause,
                    exc_info=write_err.cause,
                )
                return self._artifact_failed(artifact, write_err)
            case StoredObject() as stored:
                return ArtifactOutcome(
                    artifact=artifact,
                    succeeded=True,
                    width=rendered.width,
                    height=rendered.height,
                    byte_length=stored.byte_length,
                )
            case _:
                raise TypeError(f"Unexpected write result type: {type(write_result).__name__}")

    @staticmethod
    def _render(image: Image.Image, artifact: DerivedArtifact) -> imaging.RenderedImage:
        if artifact.role == ArtifactRole.ALTERNATE_FORMAT:
            return imaging.render_full_resolution(image, artifact.format, artifact.quality)
        if artifact.width is None or artifact.height is None:
            raise ValueError(f"variant {artifact.variant} has no target size")
        return imaging.render_variant(
            image, artifact.width, artifact.height, artifact.format, artifact.quality
        )

    @staticmethod
    def _artifact_failed(artifact: DerivedArtifact, err: PipelineError) -> ArtifactOutcome:
        return ArtifactOutcome(
            artifact=artifact,
            succeeded=False,
            error_kind=err.kind,
            error_message=_format_error_message(err),
        )

    @staticmethod
    def _failed(
        bucket: str,
        key: str,
        err: PipelineError,
        *,
        original: OriginalObject | None = None,
    ) -> ProcessingResult:
        return ProcessingResult(
            bucket=bucket,
            key=key,
            status=ProcessingStatus.FAILED,
            original=original,
            error_kind=err.kind,
            error_message=_format_error_message(err),
        )


def _format_error_message(err: PipelineError) -> str:
    if err.cause is not None:
        return f"{err}: {err.cause}"
    return str(err)
