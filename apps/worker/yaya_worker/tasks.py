"""Celery tasks for background webhook processing."""

import asyncio
import logging

from yaya_worker.celery_app import celery_app
from yaya_worker.settings import get_settings

logger = logging.getLogger(__name__)


@celery_app.task(name="yaya_worker.process_transaction", max_retries=0)
def process_transaction(payload_data: dict) -> dict:
    """Process a verified transaction enqueued by the API.

    Processing failures are logged and reported in the returned dict; the task
    itself is never retried.
    """
    from yaya_webhook.webhooks.payload import TransactionPayload
    from yaya_webhook.webhooks.processor import TransactionProcessor

    payload = TransactionPayload.model_validate(payload_data)
    processor = TransactionProcessor(delay_seconds=get_settings().processing_delay_ms / 1000)
    result = asyncio.run(processor.process(payload))

    if not result.success:
        logger.error(
            "Webhook processing failed",
            extra={"task": "process_transaction", "transaction_id": payload.id},
        )

    return result.to_log_dict()
