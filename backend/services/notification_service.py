"""
Notification dispatch boundary.

Workflow services describe what should be communicated as a
``NotificationIntent``; a ``NotificationSender`` turns an intent into
deliveries. Dispatchers run after the transition has committed and never
propagate delivery failures back into the workflow.
"""

import enum
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from backend.core.config import settings


logger = structlog.get_logger(__name__)


class NotificationKind(str, enum.Enum):
    """Kinds of notification the workflow can emit."""

    LOI_SUBMITTED = "loi_submitted"
    LOI_APPROVED = "loi_approved"
    LOI_DECLINED = "loi_declined"
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_STATUS_CHANGED = "application_status_changed"
    INFO_REQUESTED = "info_requested"


class NotificationIntent(BaseModel):
    """Structured description of a message to deliver."""

    kind: NotificationKind
    recipients: list[str] = Field(default_factory=list)
    loi_id: Optional[uuid.UUID] = None
    application_id: Optional[uuid.UUID] = None
    organization_id: Optional[uuid.UUID] = None
    # Template variables (titles, names, reasons, deadlines)
    context: dict[str, Any] = Field(default_factory=dict)

    @property
    def record_id(self) -> Optional[uuid.UUID]:
        return self.application_id or self.loi_id


class NotificationSender(ABC):
    """Delivers a notification intent to its recipients."""

    @abstractmethod
    async def send(self, intent: NotificationIntent) -> bool:
        """
        Deliver ``intent``.

        Returns:
            True when every recipient was sent to, False otherwise.
        """


class NotificationDispatcher(ABC):
    """Fire-and-forget emission of intents after a committed transition."""

    @abstractmethod
    async def dispatch(self, intent: NotificationIntent) -> None:
        """Emit ``intent``. Must not raise."""


class InlineNotificationDispatcher(NotificationDispatcher):
    """Awaits the sender in-process; failures are logged and dropped."""

    def __init__(self, sender: NotificationSender):
        self.sender = sender

    async def dispatch(self, intent: NotificationIntent) -> None:
        if not intent.recipients:
            logger.info(
                "notification_skipped_no_recipients",
                kind=intent.kind.value,
                record_id=str(intent.record_id),
            )
            return

        try:
            sent = await self.sender.send(intent)
        except Exception as e:
            logger.error(
                "notification_send_failed",
                kind=intent.kind.value,
                record_id=str(intent.record_id),
                error=str(e),
            )
            return

        if not sent:
            logger.warning(
                "notification_not_delivered",
                kind=intent.kind.value,
                record_id=str(intent.record_id),
            )


class CeleryNotificationDispatcher(NotificationDispatcher):
    """Enqueues intents for the notification worker."""

    async def dispatch(self, intent: NotificationIntent) -> None:
        from backend.tasks.notifications import deliver_notification_intent

        if not intent.recipients:
            logger.info(
                "notification_skipped_no_recipients",
                kind=intent.kind.value,
                record_id=str(intent.record_id),
            )
            return

        try:
            deliver_notification_intent.delay(intent.model_dump(mode="json"))
        except Exception as e:
            logger.error(
                "notification_enqueue_failed",
                kind=intent.kind.value,
                record_id=str(intent.record_id),
                error=str(e),
            )
            return

        logger.debug(
            "notification_enqueued",
            kind=intent.kind.value,
            record_id=str(intent.record_id),
        )


def get_notification_sender() -> NotificationSender:
    """FastAPI dependency returning the email notification sender."""
    from backend.services.email import EmailNotificationSender

    return EmailNotificationSender()


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency returning the configured dispatcher."""
    if settings.notifications_async:
        return CeleryNotificationDispatcher()
    return InlineNotificationDispatcher(get_notification_sender())
