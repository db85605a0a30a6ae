"""
Grant Portal Delivery
Outbound message channels used by the notification sender.
"""
from agents.delivery.channels import (
    BaseChannel,
    SendGridChannel,
    get_sendgrid_channel,
)
from agents.delivery.models import (
    DeliveryChannel,
    DeliveryStatus,
    EmailContent,
)

__all__ = [
    # Channels
    "BaseChannel",
    "SendGridChannel",
    "get_sendgrid_channel",
    # Models
    "DeliveryChannel",
    "DeliveryStatus",
    "EmailContent",
]
