"""
Grant Portal Notification Tasks
Celery task delivering notification intents emitted by workflow transitions.
"""
import asyncio
import logging

from backend.celery_app import celery_app
from backend.services.email import EmailNotificationSender
from backend.services.notification_service import NotificationIntent

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """Raised when an intent could not be delivered to every recipient."""


@celery_app.task(bind=True, queue="notifications", max_retries=3)
def deliver_notification_intent(self, intent_data: dict) -> dict:
    """
    Deliver a serialized ``NotificationIntent``.

    On a partial failure the task is retried with only the recipients that
    failed, so nobody already reached gets the email twice. Decision
    releases do not go through this task; they report their own per-record
    email outcome and are never retried.

    Returns:
        Dictionary with the intent kind and delivery result.
    """
    intent = NotificationIntent.model_validate(intent_data)
    failed = asyncio.run(_deliver_async(intent))

    if failed:
        logger.warning(
            f"Notification {intent.kind.value} for {intent.record_id} not delivered to "
            f"{len(failed)} of {len(intent.recipients)} recipients"
        )
        remaining = intent.model_copy(update={"recipients": failed})
        raise self.retry(
            args=(remaining.model_dump(mode="json"),),
            exc=NotificationDeliveryError(f"{intent.kind.value} for {intent.record_id}"),
        )

    return {"kind": intent.kind.value, "record_id": str(intent.record_id), "sent": True}


async def _deliver_async(intent: NotificationIntent) -> list[str]:
    """Async implementation of intent delivery; returns failed recipients."""
    return await EmailNotificationSender().deliver(intent)
