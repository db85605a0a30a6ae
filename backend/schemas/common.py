"""
Common schemas shared by the LOI and Application endpoints.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StatusHistoryResponse(BaseModel):
    """One realized status transition, LOI or Application."""
    id: UUID
    previous_status: Optional[str] = Field(None, description="Status before the transition")
    new_status: str = Field(..., description="Status after the transition")
    changed_by_id: str = Field(..., description="Identity provider id of the actor")
    changed_by_name: str = Field(..., description="Actor display name at the time")
    reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    message: str


__all__ = [
    "StatusHistoryResponse",
    "MessageResponse",
]
