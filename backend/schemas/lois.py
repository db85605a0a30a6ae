"""
Letter of Interest schemas for request/response models.
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LOICreate(BaseModel):
    """Start a draft LOI; the active cycle accepting LOIs is used when omitted."""
    cycle_id: Optional[UUID] = Field(None, description="Grant cycle to apply in")


class LOIUpdate(BaseModel):
    """Draft edits. Only fields present in the request are applied."""
    project_title: Optional[str] = Field(None, max_length=500)
    project_description: Optional[str] = None
    project_goals: Optional[str] = None
    focus_area: Optional[str] = Field(None, max_length=100)
    expenditure_type: Optional[str] = Field(None, max_length=100)
    total_project_amount: Optional[Decimal] = Field(None, ge=0)
    grant_request_amount: Optional[Decimal] = Field(None, ge=0)
    percent_of_project: Optional[Decimal] = Field(None, ge=0, le=100)
    budget_outline: Optional[str] = None
    primary_contact_name: Optional[str] = Field(None, max_length=255)
    primary_contact_email: Optional[EmailStr] = None


class LOIDecision(BaseModel):
    """Reviewer decision on a submitted LOI."""
    decision: Literal["APPROVED", "DECLINED"]
    reason: Optional[str] = Field(None, max_length=5000, description="Decision reason shared with the applicant")
    notes: Optional[str] = Field(None, max_length=5000, description="Internal review notes")


class LOIResponse(BaseModel):
    """Letter of Interest as stored."""
    id: UUID
    organization_id: UUID
    cycle_config_id: UUID
    status: str
    project_title: Optional[str] = None
    project_description: Optional[str] = None
    project_goals: Optional[str] = None
    focus_area: Optional[str] = None
    expenditure_type: Optional[str] = None
    total_project_amount: Optional[Decimal] = None
    grant_request_amount: Optional[Decimal] = None
    percent_of_project: Optional[Decimal] = None
    budget_outline: Optional[str] = None
    primary_contact_name: Optional[str] = None
    primary_contact_email: Optional[str] = None
    submitted_at: Optional[datetime] = None
    submitted_by_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by_name: Optional[str] = None
    decision_reason: Optional[str] = None
    notification_sent: bool
    notification_sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LOIStaffResponse(LOIResponse):
    """Staff view including internal review notes."""
    reviewed_by_id: Optional[str] = None
    review_notes: Optional[str] = None


class LOIDecisionResponse(BaseModel):
    """Decision outcome; ``application_id`` is set when an approval derived one."""
    loi: LOIStaffResponse
    application_id: Optional[UUID] = None
