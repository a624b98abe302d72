"""Downstream processing of verified transactions.

The business steps are pass-through stubs that only log; they mark where
status updates, customer notifications and accounting would plug in.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from yaya_webhook.webhooks.payload import TransactionPayload

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Outcome of processing one transaction. Logged, never sent to the caller."""

    success: bool
    message: str
    transaction_id: Optional[str] = None
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_log_dict(self) -> dict:
        # "message" is reserved on LogRecord
        data = asdict(self)
        data["detail"] = data.pop("message")
        data["processed_at"] = self.processed_at.isoformat()
        return data


class TransactionProcessor:
    """Run the processing pipeline for a verified payload."""

    def __init__(self, delay_seconds: float = 0.1):
        """Initialize processor with the simulated processing latency."""
        self.delay_seconds = delay_seconds

    async def process(self, payload: TransactionPayload) -> ProcessingResult:
        """Process a verified webhook payload."""
        try:
            logger.info(
                "Processing webhook",
                extra={
                    "transaction_id": payload.id,
                    "amount": payload.amount,
                    "currency": payload.currency,
                    "account_name": payload.account_name,
                },
            )

            await self._simulate_processing()
            await self._update_transaction_status(payload)
            await self._send_customer_notification(payload)
            await self._update_accounting_system(payload)

            result = ProcessingResult(
                success=True,
                message="Webhook processed successfully",
                transaction_id=payload.id,
            )
            logger.info("Webhook processing completed", extra=result.to_log_dict())
            return result

        except Exception as e:
            logger.error(
                f"Webhook processing failed: {e}",
                exc_info=True,
                extra={"transaction_id": payload.id},
            )
            return ProcessingResult(
                success=False,
                message="Webhook processing failed",
                transaction_id=payload.id,
            )

    async def _simulate_processing(self) -> None:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

    async def _update_transaction_status(self, payload: TransactionPayload) -> None:
        logger.info("Transaction status updated", extra={"transaction_id": payload.id})

    async def _send_customer_notification(self, payload: TransactionPayload) -> None:
        logger.info(
            "Customer notification sent",
            extra={"customer": payload.full_name, "amount": payload.amount},
        )

    async def _update_accounting_system(self, payload: TransactionPayload) -> None:
        logger.info(
            "Accounting system updated",
            extra={"transaction_id": payload.id, "amount": payload.amount},
        )
