"""Celery producer used by the ``celery`` dispatch backend.

The API only publishes ``yaya_worker.process_transaction`` messages; the worker
builds its own app from the same ``build_celery_config`` so both sides agree
on broker and serialization.
"""

import logging
from typing import Optional

from celery import Celery

from yaya_webhook.settings import get_settings

logger = logging.getLogger(__name__)

_celery_app: Optional[Celery] = None


def build_celery_config(redis_url: str) -> dict:
    """Broker and serialization settings shared by the producer and the worker."""
    return {
        "broker_url": redis_url,
        "result_backend": redis_url,
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
        # Outcomes are logged by the worker; nobody reads results
        "task_ignore_result": True,
    }


def get_celery_app() -> Celery:
    """Return the process-wide producer, creating it on first use."""
    global _celery_app

    if _celery_app is None:
        settings = get_settings()
        _celery_app = Celery("yaya_webhook")
        _celery_app.conf.update(build_celery_config(settings.redis_url))
        logger.info("Celery producer ready", extra={"broker": settings.redis_url.split("@")[-1]})

    return _celery_app
