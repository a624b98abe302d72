"""Pytest configuration and shared fixtures."""

import hashlib
import hmac
from unittest.mock import AsyncMock

import pytest

from yaya_webhook.settings import Settings
from yaya_webhook.webhooks.dispatcher import WebhookDispatcher
from yaya_webhook.webhooks.payload import TransactionPayload
from yaya_webhook.webhooks.processor import ProcessingResult
from yaya_webhook.webhooks.verifier import VerificationConfig, WebhookVerifier

SECRET = "s3cr3t"
TRUSTED_IP = "196.188.0.10"
UNTRUSTED_IP = "198.51.100.7"
FIXED_NOW = 1_700_000_000


def make_payload_data(timestamp: int = FIXED_NOW, **overrides) -> dict:
    """Sample transaction notification as YaYa Wallet sends it."""
    data = {
        "id": "1dd2854e-3a79-4548-ae36-97e4a18ebf81",
        "amount": 100,
        "currency": "ETB",
        "created_at_time": 1673381836,
        "timestamp": timestamp,
        "cause": "Testing",
        "full_name": "Abebe Kebede",
        "account_name": "abebekebede1",
        "invoice_url": "https://yayawallet.com/en/invoice/xxxx",
    }
    data.update(overrides)
    return data


def sign_data(data: dict, secret: str = SECRET) -> str:
    """Sign a payload dict the way the provider does, independent of the app code."""
    canonical = "".join(
        str(data[name])
        for name in (
            "id",
            "amount",
            "currency",
            "created_at_time",
            "timestamp",
            "cause",
            "full_name",
            "account_name",
            "invoice_url",
        )
    )
    return hmac.new(secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256).hexdigest()


@pytest.fixture
def payload_data() -> dict:
    return make_payload_data()


@pytest.fixture
def payload(payload_data) -> TransactionPayload:
    return TransactionPayload.model_validate(payload_data)


@pytest.fixture
def verification_config() -> VerificationConfig:
    return VerificationConfig(
        secret=SECRET,
        timestamp_tolerance_ms=300_000,
        trusted_ips=frozenset({TRUSTED_IP}),
    )


@pytest.fixture
def verifier(verification_config) -> WebhookVerifier:
    return WebhookVerifier(verification_config, clock=lambda: FIXED_NOW)


@pytest.fixture
def settings() -> Settings:
    """Settings for app tests. The TestClient peer address is 'testclient'."""
    return Settings(
        _env_file=None,
        webhook_secret=SECRET,
        trusted_ips=f"testclient,{TRUSTED_IP}",
        environment="test",
        rate_limit_enabled=False,
        processing_delay_ms=0,
        log_format="text",
    )


@pytest.fixture
def processor() -> AsyncMock:
    mock = AsyncMock()
    mock.process.return_value = ProcessingResult(
        success=True, message="Webhook processed successfully", transaction_id="test"
    )
    return mock


@pytest.fixture
def dispatcher(processor) -> WebhookDispatcher:
    return WebhookDispatcher(processor)
