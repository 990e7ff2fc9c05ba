"""
Celery application configuration.

Only notification delivery runs here; request handlers queue work via
``app.tasks.notification_tasks.dispatch`` and never wait on it. Email
and push go to a dedicated ``notifications`` queue so a slow provider
cannot starve other workers.
"""

from celery import Celery

from app.config import settings

NOTIFICATIONS_QUEUE = "notifications"

celery_app = Celery(
    "paydesk",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_retry_delay=30,
    task_routes={
        "app.tasks.notification_tasks.*": {"queue": NOTIFICATIONS_QUEUE},
    },
    # Delivery results are logged, nobody reads them back
    task_ignore_result=True,
)

celery_app.autodiscover_tasks(["app.tasks"])
