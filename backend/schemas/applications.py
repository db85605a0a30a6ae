"""
Application schemas for request/response models.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from backend.models import ApplicationStatus


class ApplicationUpdate(BaseModel):
    """Draft edits. Only fields present in the request are applied."""
    project_title: Optional[str] = Field(None, max_length=500)
    project_description: Optional[str] = None
    focus_area: Optional[str] = Field(None, max_length=100)
    project_category: Optional[str] = Field(None, max_length=100)
    amount_requested: Optional[Decimal] = Field(None, ge=0)
    total_project_budget: Optional[Decimal] = Field(None, ge=0)
    percentage_requested: Optional[Decimal] = Field(None, ge=0, le=100)
    mission_statement: Optional[str] = None
    payload: Optional[dict[str, Any]] = Field(None, description="Opaque application content")


class InfoRequestCreate(BaseModel):
    """Manager request for more information from the applicant."""
    message: str = Field(..., min_length=1, max_length=10000)
    response_deadline: Optional[datetime] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message is required")
        return v


class InfoResponseCreate(BaseModel):
    """Applicant answer to a pending information request."""
    communication_id: UUID
    response: str = Field(..., min_length=1, max_length=20000)


class ApplicationDecision(BaseModel):
    """Final admin decision."""
    decision: Literal["APPROVED", "DECLINED"]
    reason: Optional[str] = Field(None, max_length=5000)


class ApplicationStatusChange(BaseModel):
    """Admin status route over the transition table."""
    status: ApplicationStatus
    reason: Optional[str] = Field(None, max_length=5000)


class ApplicationResponse(BaseModel):
    """Application as stored."""
    id: UUID
    organization_id: UUID
    cycle_config_id: UUID
    loi_id: Optional[UUID] = None
    status: str
    project_title: Optional[str] = None
    project_description: Optional[str] = None
    focus_area: Optional[str] = None
    project_category: Optional[str] = None
    amount_requested: Optional[Decimal] = None
    total_project_budget: Optional[Decimal] = None
    percentage_requested: Optional[Decimal] = None
    mission_statement: Optional[str] = None
    payload: Optional[dict[str, Any]] = None
    submitted_at: Optional[datetime] = None
    submitted_by_name: Optional[str] = None
    decided_at: Optional[datetime] = None
    decided_by_name: Optional[str] = None
    decision_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommunicationResponse(BaseModel):
    """Info-request message and the applicant's answer."""
    id: UUID
    application_id: UUID
    direction: str
    type: str
    subject: Optional[str] = None
    content: str
    sent_by_name: Optional[str] = None
    response_required: bool
    response_content: Optional[str] = None
    response_deadline: Optional[datetime] = None
    response_received_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
