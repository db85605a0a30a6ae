"""
Tests for notification intents, email rendering and delivery.
"""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from celery.exceptions import Retry

from agents.delivery.channels import BaseChannel, SendGridChannel
from agents.delivery.models import DeliveryStatus, EmailContent
from backend.services.email import EmailNotificationSender
from backend.services.notification_service import (
    CeleryNotificationDispatcher,
    InlineNotificationDispatcher,
    NotificationIntent,
    NotificationKind,
)
from backend.tasks.notifications import NotificationDeliveryError, deliver_notification_intent

pytestmark = pytest.mark.asyncio


class RecordingChannel(BaseChannel):
    """Channel double that records every email it is asked to send."""

    def __init__(self, failing: tuple[str, ...] = ()):
        self.sent: list[EmailContent] = []
        self.failing = set(failing)

    async def send(self, content: EmailContent) -> DeliveryStatus:
        self.sent.append(content)
        status = "failed" if content.to_email in self.failing else "sent"
        return DeliveryStatus(recipient=content.to_email, status=status)

    def is_configured(self) -> bool:
        return True


def _approved_intent(**overrides) -> NotificationIntent:
    application_id = uuid.uuid4()
    data = {
        "kind": NotificationKind.LOI_APPROVED,
        "recipients": ["contact@foodbank.org"],
        "loi_id": uuid.uuid4(),
        "application_id": application_id,
        "context": {
            "project_title": "Mobile Pantry",
            "organization_name": "Community Food Bank",
            "contact_name": "Dana",
            "application_id": str(application_id),
            "full_app_deadline": "March 01, 2027",
        },
    }
    data.update(overrides)
    return NotificationIntent(**data)


class TestRendering:
    """Tests for EmailNotificationSender.render_email."""

    def test_approval_email(self):
        sender = EmailNotificationSender(channel=RecordingChannel())
        intent = _approved_intent()

        subject, html, text = sender.render_email(intent)

        assert subject == "Your Letter of Interest has been approved"
        assert "Mobile Pantry" in html
        assert "March 01, 2027" in text
        assert f"/applications/{intent.application_id}" in text
        assert "Dear Dana" in text

    def test_subject_interpolates_context(self):
        sender = EmailNotificationSender(channel=RecordingChannel())
        intent = NotificationIntent(
            kind=NotificationKind.LOI_SUBMITTED,
            recipients=["staff@foundation.org"],
            context={"organization_name": "Youth Arts League", "project_title": "Mural"},
        )

        subject, _, _ = sender.render_email(intent)

        assert subject == "New Letter of Interest: Youth Arts League"

    def test_html_is_escaped(self):
        sender = EmailNotificationSender(channel=RecordingChannel())
        intent = _approved_intent(
            context={"project_title": "<script>alert(1)</script>", "organization_name": "Org"}
        )

        _, html, _ = sender.render_email(intent)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    @pytest.mark.parametrize("kind", list(NotificationKind))
    def test_every_kind_has_templates(self, kind):
        sender = EmailNotificationSender(channel=RecordingChannel())
        intent = NotificationIntent(kind=kind, recipients=["x@y.org"], context={"new_status_label": "Approved"})

        subject, html, text = sender.render_email(intent)

        assert subject
        assert html
        assert text


class TestEmailSender:
    """Tests for EmailNotificationSender.send."""

    async def test_sends_to_every_recipient(self):
        channel = RecordingChannel()
        sender = EmailNotificationSender(channel=channel)
        intent = _approved_intent(recipients=["a@x.org", "b@x.org"])

        assert await sender.send(intent) is True
        assert [email.to_email for email in channel.sent] == ["a@x.org", "b@x.org"]
        assert channel.sent[0].category == "loi_approved"
        assert channel.sent[0].tracking_id == str(intent.application_id)

    async def test_partial_failure_reports_false(self):
        channel = RecordingChannel(failing=("b@x.org",))
        sender = EmailNotificationSender(channel=channel)

        assert await sender.send(_approved_intent(recipients=["a@x.org", "b@x.org"])) is False

    async def test_no_recipients(self):
        channel = RecordingChannel()
        sender = EmailNotificationSender(channel=channel)

        assert await sender.send(_approved_intent(recipients=[])) is False
        assert channel.sent == []


class TestDispatchers:
    """Dispatchers never propagate delivery failures."""

    async def test_inline_swallows_sender_errors(self):
        sender = MagicMock()
        sender.send = AsyncMock(side_effect=ConnectionError("boom"))
        dispatcher = InlineNotificationDispatcher(sender)

        await dispatcher.dispatch(_approved_intent())

        sender.send.assert_awaited_once()

    async def test_inline_skips_empty_recipients(self):
        sender = MagicMock()
        sender.send = AsyncMock(return_value=True)

        await InlineNotificationDispatcher(sender).dispatch(_approved_intent(recipients=[]))

        sender.send.assert_not_awaited()

    async def test_celery_enqueues_serialized_intent(self):
        intent = _approved_intent()

        with patch("backend.tasks.notifications.deliver_notification_intent.delay") as mock_delay:
            await CeleryNotificationDispatcher().dispatch(intent)

        payload = mock_delay.call_args.args[0]
        assert payload["kind"] == "loi_approved"
        assert payload["application_id"] == str(intent.application_id)

    async def test_celery_swallows_broker_errors(self):
        with patch(
            "backend.tasks.notifications.deliver_notification_intent.delay",
            side_effect=ConnectionError("broker down"),
        ):
            await CeleryNotificationDispatcher().dispatch(_approved_intent())


class TestDeliveryTask:
    """Tests for the Celery delivery task."""

    def test_delivers_intent(self):
        intent = _approved_intent()

        with patch.object(EmailNotificationSender, "deliver", AsyncMock(return_value=[])):
            with patch("backend.services.email.get_sendgrid_channel"):
                result = deliver_notification_intent.run(intent.model_dump(mode="json"))

        assert result == {"kind": "loi_approved", "record_id": str(intent.application_id), "sent": True}

    def test_failed_delivery_raises_for_retry(self):
        with patch.object(
            EmailNotificationSender, "deliver", AsyncMock(return_value=["contact@foodbank.org"])
        ):
            with patch("backend.services.email.get_sendgrid_channel"):
                with pytest.raises(NotificationDeliveryError):
                    deliver_notification_intent.run(_approved_intent().model_dump(mode="json"))

    def test_retry_targets_only_failed_recipients(self):
        intent = _approved_intent(recipients=["a@x.org", "b@x.org", "c@x.org"])
        channel = RecordingChannel(failing=("b@x.org",))

        with patch("backend.services.email.get_sendgrid_channel", return_value=channel):
            with patch.object(
                deliver_notification_intent, "retry", side_effect=Retry()
            ) as mock_retry:
                with pytest.raises(Retry):
                    deliver_notification_intent.run(intent.model_dump(mode="json"))

        assert [email.to_email for email in channel.sent] == ["a@x.org", "b@x.org", "c@x.org"]
        retried = mock_retry.call_args.kwargs["args"][0]
        assert retried["recipients"] == ["b@x.org"]
        assert retried["kind"] == "loi_approved"
        assert isinstance(mock_retry.call_args.kwargs["exc"], NotificationDeliveryError)


class TestSendGridChannel:
    """Tests for the SendGrid channel without network access."""

    async def test_unconfigured_channel_skips(self):
        with patch("agents.delivery.channels.settings") as mock_settings:
            mock_settings.sendgrid_api_key = None
            channel = SendGridChannel()

        status = await channel.send(
            EmailContent(
                subject="Hello",
                body_html="<p>Hi</p>",
                body_text="Hi",
                from_email="grants@foundation.org",
                from_name="Foundation",
                to_email="a@x.org",
            )
        )

        assert status.status == "skipped"
        assert not status.succeeded

    async def test_sends_through_client(self):
        channel = SendGridChannel(api_key="SG.test")
        response = MagicMock(status_code=202, headers={"X-Message-Id": "msg-1"})
        channel._client = MagicMock()
        channel._client.send.return_value = response

        status = await channel.send(
            EmailContent(
                subject="Hello",
                body_html="<p>Hi</p>",
                body_text="Hi",
                from_email="grants@foundation.org",
                from_name="Foundation",
                to_email="a@x.org",
                tracking_id="rec-1",
            )
        )

        assert status.succeeded
        assert status.provider_message_id == "msg-1"
        channel._client.send.assert_called_once()
