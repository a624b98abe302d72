"""Inbound YaYa Wallet webhook routes."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status
from fastapi.responses import JSONResponse

from yaya_webhook.utils.client_ip import resolve_client_ip
from yaya_webhook.utils.metrics import webhook_verifications
from yaya_webhook.webhooks.dispatcher import WebhookDispatcher
from yaya_webhook.webhooks.payload import TransactionPayload
from yaya_webhook.webhooks.verifier import WebhookVerifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["webhooks"])


def get_verifier(request: Request) -> WebhookVerifier:
    return request.app.state.verifier


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def receive_webhook(
    payload: TransactionPayload,
    request: Request,
    background_tasks: BackgroundTasks,
    yaya_signature: Optional[str] = Header(None),
    verifier: WebhookVerifier = Depends(get_verifier),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """Verify a transaction notification and acknowledge it.

    Processing is scheduled to run after the response has been sent.
    """
    client_ip = resolve_client_ip(request, request.app.state.settings.trusted_proxy_list)
    correlation_id = getattr(request.state, "correlation_id", None)

    verdict = verifier.verify(payload, yaya_signature, client_ip)

    if not verdict.is_valid:
        webhook_verifications.labels(outcome=verdict.error.value).inc()
        logger.warning(
            "Webhook verification failed",
            extra={
                "error": verdict.error.value,
                "transaction_id": payload.id,
                "client_ip": client_ip,
                "correlation_id": correlation_id,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Webhook verification failed", "message": verdict.message},
        )

    webhook_verifications.labels(outcome="valid").inc()
    background_tasks.add_task(dispatcher.dispatch, payload)

    return dispatcher.acknowledge(payload)
