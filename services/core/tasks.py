"""
Celery tasks for the notification sink.

The core only enqueues; delivery happens here, in the worker.
"""
import httpx

import settings
from celery_config import celery_app
from logging_config import get_logger, log_error

logger = get_logger(__name__)


@celery_app.task(name="tasks.deliver_notification")
def deliver_notification(notification: dict) -> bool:
    """POST one notification to the notification service"""
    if not settings.NOTIFICATION_URL:
        logger.info("notification_skipped", reason="NOTIFICATION_URL not set", kind=notification.get("type"))
        return False

    try:
        response = httpx.post(
            f"{settings.NOTIFICATION_URL}/notify",
            json=notification,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        log_error(
            e,
            event="notification_failed",
            kind=notification.get("type"),
            user_id=notification.get("user_id"),
        )
        return False

    logger.info("notification_delivered", kind=notification.get("type"), user_id=notification.get("user_id"))
    return True
