"""Celery application configuration."""

from celery import Celery

from yaya_webhook.celery_client import build_celery_config
from yaya_worker.settings import get_settings

settings = get_settings()

celery_app = Celery("yaya_worker")
celery_app.conf.update(build_celery_config(settings.redis_url))
celery_app.conf.update(
    task_time_limit=5 * 60,  # 5 minutes
    task_soft_time_limit=4 * 60,  # 4 minutes
)

# Import tasks to register them with Celery
# This must be done after celery_app is created
from yaya_worker import tasks  # noqa: F401, E402
