"""
Grant Portal Delivery Channels
SendGrid email channel used by the notification sender.
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Category,
    Content,
    CustomArg,
    Email,
    Mail,
    To,
)

from backend.core.config import settings
from agents.delivery.models import DeliveryChannel, DeliveryStatus, EmailContent


logger = structlog.get_logger(__name__)


class BaseChannel(ABC):
    """Abstract base class for delivery channels."""

    @abstractmethod
    async def send(self, content: Any) -> DeliveryStatus:
        """Send content through this channel."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if this channel is properly configured."""
        pass


class SendGridChannel(BaseChannel):
    """
    SendGrid email delivery channel.

    The SendGrid client is synchronous, so each call runs in a worker
    thread. Transient failures (timeouts, 429, 5xx) are retried with
    exponential backoff; anything else fails immediately.
    """

    MAX_RETRIES: int = 3
    RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or settings.sendgrid_api_key
        self._client: Optional[SendGridAPIClient] = None
        self.logger = logger.bind(channel="sendgrid")

    @property
    def client(self) -> SendGridAPIClient:
        """Lazy-loaded SendGrid client."""
        if self._client is None:
            if not self._api_key:
                raise ValueError("SendGrid API key not configured")
            self._client = SendGridAPIClient(api_key=self._api_key)
        return self._client

    def is_configured(self) -> bool:
        """Check if SendGrid is configured."""
        return bool(self._api_key)

    def _build_message(self, content: EmailContent) -> Mail:
        message = Mail()
        message.from_email = Email(content.from_email, content.from_name)
        message.subject = content.subject
        message.add_to(To(content.to_email, content.to_name))

        # Plain text first for proper fallback
        message.add_content(Content("text/plain", content.body_text))
        message.add_content(Content("text/html", content.body_html))

        message.category = Category(content.category)

        if content.reply_to:
            message.reply_to = Email(content.reply_to)

        if content.tracking_id:
            message.add_custom_arg(CustomArg(key="record_id", value=content.tracking_id))

        return message

    def _send_sync(self, message: Mail) -> Any:
        return self.client.send(message)

    @staticmethod
    def _is_retryable_error(exception: Exception) -> bool:
        error_str = str(exception).lower()
        retryable_patterns = (
            "timeout",
            "connection",
            "rate limit",
            "429",
            "500",
            "502",
            "503",
            "504",
        )
        return any(pattern in error_str for pattern in retryable_patterns)

    async def send(self, content: EmailContent) -> DeliveryStatus:
        """
        Send email via SendGrid with retry logic.

        Never raises for provider errors; the returned status carries the
        outcome.
        """
        status = DeliveryStatus(
            channel=DeliveryChannel.EMAIL,
            recipient=content.to_email,
        )

        if not self.is_configured():
            status.status = "skipped"
            status.error_message = "SendGrid not configured"
            self.logger.warning("sendgrid_not_configured", to=content.to_email)
            return status

        try:
            message = self._build_message(content)
        except Exception as e:
            status.status = "failed"
            status.error_message = f"Failed to build message: {e}"
            self.logger.error("email_build_failed", to=content.to_email, error=str(e))
            return status

        last_exception: Optional[Exception] = None

        for attempt in range(self.MAX_RETRIES):
            try:
                response = await asyncio.to_thread(self._send_sync, message)

                status.status = "sent"
                status.sent_at = datetime.now(timezone.utc)
                status.provider_message_id = response.headers.get("X-Message-Id")
                status.retry_count = attempt

                self.logger.info(
                    "email_sent",
                    to=content.to_email,
                    subject=content.subject[:50],
                    message_id=status.provider_message_id,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                )
                return status

            except Exception as e:
                last_exception = e
                status.retry_count = attempt + 1

                self.logger.warning(
                    "email_send_attempt_failed",
                    to=content.to_email,
                    error=str(e),
                    attempt=attempt + 1,
                    max_retries=self.MAX_RETRIES,
                )

                if attempt < self.MAX_RETRIES - 1 and self._is_retryable_error(e):
                    await asyncio.sleep(self.RETRY_DELAYS[attempt])
                else:
                    break

        status.status = "failed"
        status.error_message = str(last_exception) if last_exception else "Unknown error"
        self.logger.error(
            "email_send_failed",
            to=content.to_email,
            error=status.error_message,
            total_attempts=status.retry_count,
        )
        return status


_sendgrid_channel: Optional[SendGridChannel] = None


def get_sendgrid_channel() -> SendGridChannel:
    """Get or create SendGrid channel instance."""
    global _sendgrid_channel
    if _sendgrid_channel is None:
        _sendgrid_channel = SendGridChannel()
    return _sendgrid_channel
