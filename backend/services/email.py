"""
Grant Portal Email Service
Jinja2-based rendering of notification intents and delivery via SendGrid.
"""
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog
from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from agents.delivery.channels import BaseChannel, get_sendgrid_channel
from agents.delivery.models import EmailContent
from backend.core.config import settings
from backend.services.notification_service import (
    NotificationIntent,
    NotificationKind,
    NotificationSender,
)


logger = structlog.get_logger(__name__)


TEMPLATES_DIR = Path(__file__).parent.parent / "templates" / "email"

SUBJECTS: dict[NotificationKind, str] = {
    NotificationKind.LOI_SUBMITTED: "New Letter of Interest: {organization_name}",
    NotificationKind.LOI_APPROVED: "Your Letter of Interest has been approved",
    NotificationKind.LOI_DECLINED: "Update on your Letter of Interest",
    NotificationKind.APPLICATION_SUBMITTED: "New Application Submitted: {organization_name}",
    NotificationKind.APPLICATION_STATUS_CHANGED: "Application status update: {new_status_label}",
    NotificationKind.INFO_REQUESTED: "Additional information requested for your application",
}


class EmailNotificationSender(NotificationSender):
    """
    Renders an intent's template and emails every recipient.

    Templates live in ``backend/templates/email`` and are named after the
    intent kind (``loi_approved.html`` / ``loi_approved.txt``).
    """

    def __init__(self, channel: Optional[BaseChannel] = None):
        self._env: Optional[Environment] = None
        self._channel = channel or get_sendgrid_channel()

    @property
    def env(self) -> Environment:
        """Lazy-loaded Jinja2 environment."""
        if self._env is None:
            self._env = Environment(
                loader=FileSystemLoader(str(TEMPLATES_DIR)),
                autoescape=True,
                trim_blocks=True,
                lstrip_blocks=True,
            )
        return self._env

    def _get_base_context(self) -> dict[str, Any]:
        return {
            "app_name": settings.app_name,
            "frontend_url": settings.frontend_url,
            "current_year": datetime.now().year,
        }

    def render_email(self, intent: NotificationIntent) -> tuple[str, str, str]:
        """
        Render subject, HTML and plain-text bodies for an intent.

        Returns:
            Tuple of (subject, html_content, text_content).
        """
        context = {**self._get_base_context(), **intent.context}
        context.setdefault("loi_id", str(intent.loi_id) if intent.loi_id else None)
        context.setdefault(
            "application_id", str(intent.application_id) if intent.application_id else None
        )

        subject = SUBJECTS[intent.kind].format_map(_DefaultDict(context))
        template_name = intent.kind.value
        html_content = self.env.get_template(f"{template_name}.html").render(**context)

        try:
            text_content = self.env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            logger.warning("plain_text_template_not_found", template=f"{template_name}.txt")
            text_content = ""

        return subject, html_content, text_content

    async def deliver(self, intent: NotificationIntent) -> list[str]:
        """
        Email every recipient of an intent.

        Returns:
            Recipients whose delivery failed, in intent order.
        """
        if not intent.recipients:
            return []

        subject, html_content, text_content = self.render_email(intent)
        tracking_id = str(intent.record_id) if intent.record_id else None

        failed: list[str] = []
        for recipient in intent.recipients:
            status = await self._channel.send(
                EmailContent(
                    subject=subject,
                    body_html=html_content,
                    body_text=text_content,
                    from_email=settings.from_email,
                    from_name=settings.from_name,
                    to_email=recipient,
                    category=intent.kind.value,
                    tracking_id=tracking_id,
                )
            )
            if not status.succeeded:
                failed.append(recipient)

            logger.info(
                "notification_email_result",
                kind=intent.kind.value,
                to_email=recipient,
                status=status.status,
                record_id=tracking_id,
            )

        return failed

    async def send(self, intent: NotificationIntent) -> bool:
        if not intent.recipients:
            return False
        return not await self.deliver(intent)


class _DefaultDict(dict):
    def __missing__(self, key: str) -> str:
        return ""
