"""
Notification Celery tasks — async delivery of email and push messages.

Offloads notification delivery to background workers to avoid
blocking API responses. ``dispatch`` is the only way request code
queues a task: a broker failure is logged and swallowed so the
primary operation still succeeds.
"""

import asyncio
import logging

import httpx

from app.tasks.celery_app import celery_app
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)

# Provider outages (5xx, timeouts) are retried with exponential backoff
MAX_RETRIES = 3


@celery_app.task(
    name="app.tasks.notification_tasks.send_email",
    autoretry_for=(httpx.HTTPError,),
    retry_backoff=True,
    max_retries=MAX_RETRIES,
)
def send_email(to: str, subject: str, html: str):
    """Send one email in the background."""
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(notification_service.send_email(to, subject, html))
        logger.info("Email task done for %s: %s", to, result.get("status"))
        return result
    finally:
        loop.close()


@celery_app.task(
    name="app.tasks.notification_tasks.send_push",
    autoretry_for=(httpx.HTTPError,),
    retry_backoff=True,
    max_retries=MAX_RETRIES,
)
def send_push(token: str, title: str, body: str, data: dict | None = None):
    """Send one push notification in the background."""
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(
            notification_service.send_push(token, title, body, data)
        )
        logger.info("Push task done for %s: %s", token, result.get("status"))
        return result
    finally:
        loop.close()


def dispatch(task, *args) -> bool:
    """Queue *task* with *args*; never raises."""
    try:
        task.delay(*args)
    except Exception:
        logger.error("Failed to queue %s", task.name, exc_info=True)
        return False
    return True
