"""Tests for acknowledgement and background dispatch of verified webhooks."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from yaya_webhook.webhooks.dispatcher import PROCESS_TASK_NAME, WebhookDispatcher
from yaya_webhook.webhooks.processor import ProcessingResult, TransactionProcessor


class TestAcknowledge:
    def test_acknowledge_body(self, dispatcher, payload):
        assert dispatcher.acknowledge(payload) == {
            "success": True,
            "message": "Webhook received successfully",
            "transactionId": "1dd2854e-3a79-4548-ae36-97e4a18ebf81",
        }

    def test_acknowledge_does_not_process(self, dispatcher, processor, payload):
        dispatcher.acknowledge(payload)
        processor.process.assert_not_called()


class TestDispatch:
    """Test fire-and-forget processing."""

    def test_dispatch_returns_before_processing_finishes(self, payload):
        """Test dispatch only schedules work."""
        release = None
        finished = []

        class SlowProcessor:
            async def process(self, payload):
                await release.wait()
                finished.append(payload.id)
                return ProcessingResult(success=True, message="ok", transaction_id=payload.id)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            dispatcher = WebhookDispatcher(SlowProcessor())

            await dispatcher.dispatch(payload)
            assert dispatcher.pending == 1
            assert finished == []

            release.set()
            assert await dispatcher.drain(timeout=1) == 0
            return dispatcher

        dispatcher = asyncio.run(scenario())

        assert finished == [payload.id]
        assert dispatcher.pending == 0

    def test_processing_exception_is_swallowed_and_logged(self, payload, caplog):
        processor = AsyncMock()
        processor.process.side_effect = RuntimeError("accounting offline")
        dispatcher = WebhookDispatcher(processor)

        async def scenario():
            await dispatcher.dispatch(payload)
            return await dispatcher.drain(timeout=1)

        with caplog.at_level("ERROR"):
            assert asyncio.run(scenario()) == 0

        assert "Async webhook processing error" in caplog.text
        assert any(
            getattr(record, "transaction_id", None) == payload.id for record in caplog.records
        )

    def test_failed_result_is_logged(self, payload, caplog):
        processor = AsyncMock()
        processor.process.return_value = ProcessingResult(
            success=False, message="Webhook processing failed", transaction_id=payload.id
        )
        dispatcher = WebhookDispatcher(processor)

        async def scenario():
            await dispatcher.dispatch(payload)
            await dispatcher.drain(timeout=1)

        with caplog.at_level("ERROR"):
            asyncio.run(scenario())

        assert "Webhook processing failed" in caplog.text

    def test_drain_with_nothing_pending(self, dispatcher):
        assert asyncio.run(dispatcher.drain(timeout=0.1)) == 0

    def test_drain_reports_unfinished_tasks(self, payload):
        class StuckProcessor:
            async def process(self, payload):
                await asyncio.sleep(10)

        async def scenario():
            dispatcher = WebhookDispatcher(StuckProcessor())
            await dispatcher.dispatch(payload)
            still_running = await dispatcher.drain(timeout=0.01)
            for task in list(dispatcher._tasks):
                task.cancel()
            return still_running

        assert asyncio.run(scenario()) == 1


class TestCeleryBackend:
    """Test enqueueing to the worker instead of processing in-process."""

    @patch("yaya_webhook.celery_client.get_celery_app")
    def test_dispatch_enqueues_payload(self, mock_get_celery_app, processor, payload):
        mock_app = MagicMock()
        mock_get_celery_app.return_value = mock_app
        dispatcher = WebhookDispatcher(processor, backend="celery")

        asyncio.run(dispatcher.dispatch(payload))

        mock_app.send_task.assert_called_once_with(
            PROCESS_TASK_NAME, args=[payload.model_dump()]
        )
        processor.process.assert_not_called()
        assert dispatcher.pending == 0

    @patch("yaya_webhook.celery_client.get_celery_app")
    def test_broker_failure_is_logged_not_raised(
        self, mock_get_celery_app, processor, payload, caplog
    ):
        mock_app = MagicMock()
        mock_app.send_task.side_effect = ConnectionError("Broker unavailable")
        mock_get_celery_app.return_value = mock_app
        dispatcher = WebhookDispatcher(processor, backend="celery")

        with caplog.at_level("ERROR"):
            asyncio.run(dispatcher.dispatch(payload))

        assert "Failed to enqueue webhook processing" in caplog.text


class TestTransactionProcessor:
    """Test the stubbed processing pipeline."""

    def test_process_succeeds(self, payload):
        result = asyncio.run(TransactionProcessor(delay_seconds=0).process(payload))

        assert result.success is True
        assert result.message == "Webhook processed successfully"
        assert result.transaction_id == payload.id
        assert result.processed_at.tzinfo is not None

    def test_step_failure_returns_failed_result(self, payload):
        processor = TransactionProcessor(delay_seconds=0)

        with patch.object(
            processor, "_update_accounting_system", side_effect=RuntimeError("ledger down")
        ):
            result = asyncio.run(processor.process(payload))

        assert result.success is False
        assert result.message == "Webhook processing failed"
        assert result.transaction_id == payload.id

    def test_log_dict_avoids_reserved_keys(self, payload):
        result = ProcessingResult(success=True, message="done", transaction_id=payload.id)
        data = result.to_log_dict()

        assert "message" not in data
        assert data["detail"] == "done"
        assert isinstance(data["processed_at"], str)
