"""Object-created notifications and dispatcher batch results.

Storage services deliver S3-style event documents::

    {"Records": [{"eventName": "ObjectCreated:Put",
                  "s3": {"bucket": {"name": "origin"},
                         "object": {"key": "u1/170000-abcde.jpg", "sequencer": "0A1B"}}}]}

The same document may arrive raw (webhook, MinIO), as an SQS message body, or
wrapped in an SNS envelope whose `Message` is the JSON-encoded document.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote_plus

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pixelpipe.models.artifact import ProcessingResult
from pixelpipe.models.enums import ErrorKind, NotificationDisposition

logger = logging.getLogger(__name__)

_CREATION_PREFIXES = ("ObjectCreated:", "s3:ObjectCreated:")
_TEST_EVENT = "s3:TestEvent"


class EventPayloadError(ValueError):
    """Raised when an event document is not a mapping of records at all."""


class ProcessingNotification(BaseModel):
    """A single object event, reduced to what the pipeline needs."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str
    event_kind: str
    sequence_token: str | None = None

    @property
    def is_creation(self) -> bool:
        return self.event_kind.startswith(_CREATION_PREFIXES)

    @property
    def item_identifier(self) -> str:
        return self.sequence_token or f"{self.bucket}/{self.key}"


class _S3Bucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)


class _S3Object(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str = Field(min_length=1)
    size: int | None = None
    sequencer: str | None = None


class _S3Entity(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    bucket: _S3Bucket
    object_: _S3Object = Field(alias="object")


class S3EventRecord(BaseModel):
    """Schema for one entry of an S3 event document's `Records` list."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    event_name: str = Field(alias="eventName", min_length=1)
    s3: _S3Entity

    def to_notification(self, sequence_token: str | None = None) -> ProcessingNotification:
        return ProcessingNotification(
            bucket=self.s3.bucket.name,
            # S3 URL-encodes keys in notifications (spaces arrive as '+').
            key=unquote_plus(self.s3.object_.key),
            event_kind=self.event_name,
            sequence_token=sequence_token or self.s3.object_.sequencer,
        )


def parse_event_payload(
    payload: Mapping[str, Any] | str | bytes,
    *,
    sequence_token: str | None = None,
) -> list[ProcessingNotification]:
    """Parse an event document into notifications.

    Records failing schema validation are logged and skipped. When
    `sequence_token` is given (e.g. an SQS message id) every notification
    carries it instead of the per-object sequencer.

    Raises:
        EventPayloadError: If the document is not JSON or not a mapping.
    """
    document = _load_document(payload)

    # SNS envelope: the S3 document is JSON-encoded in "Message".
    message = document.get("Message")
    if document.get("Type") == "Notification" and isinstance(message, str):
        document = _load_document(message)

    if document.get("Event") == _TEST_EVENT:
        logger.debug("Ignoring storage test event")
        return []

    records = document.get("Records")
    if records is None:
        return []
    if not isinstance(records, list):
        raise EventPayloadError("Event document 'Records' must be a list")

    notifications: list[ProcessingNotification] = []
    for index, raw in enumerate(records):
        try:
            record = S3EventRecord.model_validate(raw)
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid event record %d: %s",
                index,
                exc.errors(include_url=False),
            )
            continue
        notifications.append(record.to_notification(sequence_token))
    return notifications


def _load_document(payload: Mapping[str, Any] | str | bytes) -> Mapping[str, Any]:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise EventPayloadError("Event document is not valid JSON") from exc
    if not isinstance(payload, Mapping):
        raise EventPayloadError(
            f"Event document must be a mapping, got {type(payload).__name__}"
        )
    return payload


class NotificationOutcome(BaseModel):
    """What happened to one notification of a batch."""

    notification: ProcessingNotification
    disposition: NotificationDisposition
    result: ProcessingResult | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None


class BatchResult(BaseModel):
    """Per-notification outcomes, in input order."""

    outcomes: list[NotificationOutcome] = Field(default_factory=list)

    def _with(self, disposition: NotificationDisposition) -> list[NotificationOutcome]:
        return [outcome for outcome in self.outcomes if outcome.disposition == disposition]

    @property
    def handled(self) -> list[NotificationOutcome]:
        return self._with(NotificationDisposition.HANDLED)

    @property
    def ignored(self) -> list[NotificationOutcome]:
        return self._with(NotificationDisposition.IGNORED)

    @property
    def failed(self) -> list[NotificationOutcome]:
        return self._with(NotificationDisposition.FAILED)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def batch_item_failures(self) -> list[dict[str, str]]:
        """Failed items in the shape queue consumers use for partial redelivery."""
        seen: set[str] = set()
        failures: list[dict[str, str]] = []
        for outcome in self.failed:
            identifier = outcome.notification.item_identifier
            if identifier in seen:
                continue
            seen.add(identifier)
            failures.append({"itemIdentifier": identifier})
        return failures

    def summary(self) -> dict[str, Any]:
        return {
            "handled": len(self.handled),
            "ignored": len(self.ignored),
            "failed": len(self.failed),
            "batchItemFailures": self.batch_item_failures(),
        }
