"""Acknowledge verified webhooks and hand them off for background processing.

YaYa Wallet expects a quick response, so processing never runs before the
acknowledgement is sent. ``dispatch`` is meant to be scheduled as a response
background task; it only starts the work and returns. Failures are logged
with the transaction id and never reach the caller or get retried.
"""

import asyncio
import logging
import time
from typing import Optional

from yaya_webhook.utils.metrics import (
    webhook_processing,
    webhook_processing_duration,
    webhook_processing_in_flight,
)
from yaya_webhook.webhooks.payload import TransactionPayload
from yaya_webhook.webhooks.processor import TransactionProcessor

logger = logging.getLogger(__name__)

PROCESS_TASK_NAME = "yaya_worker.process_transaction"


class WebhookDispatcher:
    """Fire-and-forget dispatch with an optional drain for graceful shutdown."""

    def __init__(self, processor: TransactionProcessor, backend: str = "inline"):
        """Initialize dispatcher. ``backend`` is ``inline`` or ``celery``."""
        self.processor = processor
        self.backend = backend
        self._tasks: set[asyncio.Task] = set()

    def acknowledge(self, payload: TransactionPayload) -> dict:
        """Build the response body sent before any processing happens."""
        return {
            "success": True,
            "message": "Webhook received successfully",
            "transactionId": payload.id,
        }

    @property
    def pending(self) -> int:
        """Number of in-process tasks not yet finished."""
        return len(self._tasks)

    async def dispatch(self, payload: TransactionPayload) -> None:
        """Start processing without waiting for it to finish."""
        if self.backend == "celery":
            await self._enqueue(payload)
            return

        task = asyncio.create_task(self._run(payload), name=f"process-{payload.id}")
        self._tasks.add(task)
        webhook_processing_in_flight.inc()
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        webhook_processing_in_flight.dec()

    async def _run(self, payload: TransactionPayload) -> None:
        start = time.perf_counter()
        try:
            result = await self.processor.process(payload)
        except Exception as e:
            logger.error(
                f"Async webhook processing error: {e}",
                exc_info=True,
                extra={"transaction_id": payload.id},
            )
            webhook_processing.labels(status="error").inc()
            return
        finally:
            webhook_processing_duration.observe(time.perf_counter() - start)

        if not result.success:
            logger.error(
                "Webhook processing failed",
                extra={"transaction_id": payload.id, "error": result.message},
            )
            webhook_processing.labels(status="failed").inc()
        else:
            webhook_processing.labels(status="success").inc()

    async def _enqueue(self, payload: TransactionPayload) -> None:
        """Send the payload to the Celery worker (does not process locally)."""
        try:
            from yaya_webhook.celery_client import get_celery_app

            celery_app = get_celery_app()
            await asyncio.to_thread(
                celery_app.send_task,
                PROCESS_TASK_NAME,
                args=[payload.model_dump()],
            )
            webhook_processing.labels(status="enqueued").inc()
        except Exception as e:
            logger.error(
                f"Failed to enqueue webhook processing: {e}",
                exc_info=True,
                extra={"transaction_id": payload.id},
            )
            webhook_processing.labels(status="enqueue_failed").inc()

    async def drain(self, timeout: Optional[float] = None) -> int:
        """Wait for in-flight processing to finish.

        Returns the number of tasks still running when ``timeout`` expired.
        """
        if not self._tasks:
            return 0

        logger.info(f"Draining {len(self._tasks)} in-flight webhook processing task(s)")
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning(
                f"{len(still_running)} webhook processing task(s) did not finish "
                f"within {timeout}s"
            )
        return len(still_running)
