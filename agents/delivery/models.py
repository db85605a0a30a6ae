"""
Grant Portal Delivery Models
Pydantic models for outbound message payloads and delivery tracking.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class DeliveryChannel(str, Enum):
    """Available delivery channels."""

    EMAIL = "email"


class EmailContent(BaseModel):
    """Rendered email ready for a delivery channel."""

    subject: str = Field(..., max_length=150)
    body_html: str
    body_text: str
    from_email: str
    from_name: str
    to_email: str
    to_name: Optional[str] = None
    reply_to: Optional[str] = None
    category: str = "grant_portal"
    # Record id the message is about, echoed back by provider webhooks
    tracking_id: Optional[str] = None


class DeliveryStatus(BaseModel):
    """Outcome of a single delivery attempt sequence."""

    delivery_id: UUID = Field(default_factory=uuid4)
    channel: DeliveryChannel = DeliveryChannel.EMAIL
    recipient: str
    status: str = "pending"  # pending, sent, failed, skipped
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None
    retry_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == "sent"
