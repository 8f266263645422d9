"""EventDispatcher - fans a notification batch out to the image processor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pixelpipe.models.enums import NotificationDisposition
from pixelpipe.models.events import BatchResult, NotificationOutcome, ProcessingNotification

if TYPE_CHECKING:
    from pixelpipe.models.config import Config
    from pixelpipe.pipeline.processor import ImageProcessor

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Runs one independent processing unit per object-created notification.

    No internal retry: a failed unit is reported in the BatchResult so the
    delivery collaborator redelivers it. Redelivery is safe because the
    processor always rewrites the same keys.
    """

    def __init__(self, config: Config, processor: ImageProcessor) -> None:
        self._origin_bucket = config.buckets.origin
        self._max_in_flight = config.concurrency.max_objects_in_flight
        self._processor = processor

        # Track fire-and-forget batches submitted via submit()
        self._tasks: set[asyncio.Task[BatchResult]] = set()

    def accepts(self, notification: ProcessingNotification) -> bool:
        """True for object creation on the origin bucket."""
        return notification.is_creation and notification.bucket == self._origin_bucket

    async def handle_batch(self, notifications: Sequence[ProcessingNotification]) -> BatchResult:
        """Process a batch with bounded concurrency and per-notification isolation.

        Outcomes are returned in input order once every unit has settled.
        """
        slots = asyncio.Semaphore(self._max_in_flight)
        outcomes = await asyncio.gather(
            *(self._handle_one(notification, slots) for notification in notifications)
        )
        result = BatchResult(outcomes=list(outcomes))
        logger.info(
            "Batch complete: handled=%d ignored=%d failed=%d",
            len(result.handled),
            len(result.ignored),
            len(result.failed),
        )
        return result

    async def _handle_one(
        self,
        notification: ProcessingNotification,
        slots: asyncio.Semaphore,
    ) -> NotificationOutcome:
        if not self.accepts(notification):
            logger.debug(
                "Ignoring %s event for %s/%s",
                notification.event_kind,
                notification.bucket,
                notification.key,
            )
            return NotificationOutcome(
                notification=notification,
                disposition=NotificationDisposition.IGNORED,
            )

        async with slots:
            try:
                result = await self._processor.process(notification.bucket, notification.key)
            except Exception as exc:
                logger.error(
                    "Processing crashed for %s: %s",
                    notification.key,
                    exc,
                    exc_info=True,
                )
                return NotificationOutcome(
                    notification=notification,
                    disposition=NotificationDisposition.FAILED,
                    error_message=f"{type(exc).__name__}: {exc}",
                )

        if result.ok:
            return NotificationOutcome(
                notification=notification,
                disposition=NotificationDisposition.HANDLED,
                result=result,
            )

        logger.warning(
            "Processing failed for %s (kind=%s), leaving for redelivery: %s",
            notification.key,
            result.error_kind,
            result.error_message,
        )
        return NotificationOutcome(
            notification=notification,
            disposition=NotificationDisposition.FAILED,
            result=result,
            error_kind=result.error_kind,
            error_message=result.error_message,
        )

    def submit(self, notifications: Sequence[ProcessingNotification]) -> None:
        """Schedule a batch in the background on the running loop."""
        task = asyncio.get_running_loop().create_task(self.handle_batch(list(notifications)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(self._log_task_exception)

    def _log_task_exception(self, task: asyncio.Task[BatchResult]) -> None:
        """Log unexpected task exceptions."""
        try:
            exc = task.exception()
        except asyncio.CancelledError:
            return
        if exc is not None:
            logger.error("Background batch failed: %s", exc, exc_info=exc)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Wait for submitted batches to finish, cancelling after `timeout`."""
        if not self._tasks:
            return
        logger.info("Waiting for %d in-flight batches...", len(self._tasks))
        try:
            await asyncio.wait_for(
                asyncio.gather(*self._tasks, return_exceptions=True),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Timeout waiting for batches, cancelling...")
            for task in self._tasks:
                task.cancel()
