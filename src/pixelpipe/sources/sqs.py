"""SQS notification source: long-polls a queue of origin-bucket events."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig

from pixelpipe.interfaces import Shutdownable
from pixelpipe.models.config import QueueConfig
from pixelpipe.models.enums import NotificationDisposition
from pixelpipe.models.events import EventPayloadError, ProcessingNotification, parse_event_payload

if TYPE_CHECKING:
    from pixelpipe.pipeline.dispatcher import EventDispatcher

logger = logging.getLogger(__name__)


class SQSNotificationSource(Shutdownable):
    """Feeds queued S3 event notifications to the dispatcher.

    Every receive call becomes one dispatcher batch. A message is deleted
    only when all of its notifications were handled or ignored; otherwise it
    reappears after the queue's visibility timeout.
    """

    def __init__(
        self,
        config: QueueConfig,
        dispatcher: EventDispatcher,
        *,
        client: Any | None = None,
    ) -> None:
        if not config.queue_url:
            raise ValueError("queue.queue_url is required")
        self._queue_url = config.queue_url
        self._wait_time_s = config.wait_time_s
        self._max_messages = config.max_messages
        self._idle_sleep_s = config.idle_sleep_s
        self._dispatcher = dispatcher
        self._client = client if client is not None else self._create_client(config)
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._last_heartbeat = time.monotonic()

    @staticmethod
    def _create_client(config: QueueConfig) -> Any:
        boto_config = BotoConfig(
            retries={"max_attempts": 5, "mode": "standard"},
            region_name=config.region,
        )
        kwargs: dict[str, Any] = {"config": boto_config}
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url
        return boto3.client("sqs", **kwargs)

    async def start(self) -> None:
        if self._task is not None:
            logger.warning("SQSNotificationSource already started")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("Polling %s", self._queue_url)

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                received = await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Queue poll failed: %s", exc, exc_info=True)
                received = 0
            self._last_heartbeat = time.monotonic()
            if received == 0 and self._idle_sleep_s > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._idle_sleep_s)
                except asyncio.TimeoutError:
                    pass

    async def poll_once(self) -> int:
        """Receive, dispatch and acknowledge one batch. Returns messages received."""
        response = await asyncio.to_thread(
            self._client.receive_message,
            QueueUrl=self._queue_url,
            MaxNumberOfMessages=self._max_messages,
            WaitTimeSeconds=self._wait_time_s,
        )
        messages: list[dict[str, Any]] = response.get("Messages", [])
        if not messages:
            return 0

        batch: list[ProcessingNotification] = []
        spans: list[tuple[dict[str, Any], int, int]] = []
        to_delete: list[dict[str, Any]] = []
        for message in messages:
            message_id = str(message.get("MessageId", ""))
            try:
                notifications = parse_event_payload(
                    message.get("Body", ""),
                    sequence_token=message_id or None,
                )
            except EventPayloadError as exc:
                # Redelivery cannot fix an unparseable body.
                logger.error("Dropping unparseable message %s: %s", message_id, exc)
                to_delete.append(message)
                continue
            spans.append((message, len(batch), len(batch) + len(notifications)))
            batch.extend(notifications)

        failed_positions: set[int] = set()
        if batch:
            result = await self._dispatcher.handle_batch(batch)
            failed_positions = {
                index
                for index, outcome in enumerate(result.outcomes)
                if outcome.disposition == NotificationDisposition.FAILED
            }

        for message, start, end in spans:
            if any(index in failed_positions for index in range(start, end)):
                logger.info(
                    "Leaving message %s for redelivery", message.get("MessageId", "")
                )
                continue
            to_delete.append(message)

        await self._delete(to_delete)
        return len(messages)

    async def _delete(self, messages: list[dict[str, Any]]) -> None:
        if not messages:
            return
        entries = [
            {"Id": str(index), "ReceiptHandle": message["ReceiptHandle"]}
            for index, message in enumerate(messages)
        ]
        try:
            response = await asyncio.to_thread(
                self._client.delete_message_batch,
                QueueUrl=self._queue_url,
                Entries=entries,
            )
        except Exception as exc:
            logger.error("Failed to delete %d messages: %s", len(entries), exc)
            return
        for failure in response.get("Failed", []):
            logger.warning(
                "Failed to delete message entry %s: %s",
                failure.get("Id"),
                failure.get("Message"),
            )

    def is_healthy(self) -> bool:
        return self._task is None or not self._task.done()

    def last_heartbeat(self) -> float:
        return self._last_heartbeat

    async def shutdown(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        task = self._task
        if task is None:
            return
        try:
            await asyncio.wait_for(task, timeout=timeout or self._wait_time_s + 5)
        except asyncio.TimeoutError:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
