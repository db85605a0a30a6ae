"""
Reviewer input schemas for votes, budget assessments and notes.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from backend.models import VoteValue


class VoteCreate(BaseModel):
    """Create or replace the caller's vote."""
    vote: VoteValue = Field(..., description="APPROVE, DECLINE or ABSTAIN")
    comments: Optional[str] = Field(None, max_length=5000)


class VoteResponse(BaseModel):
    id: UUID
    application_id: UUID
    reviewer_id: str
    reviewer_name: str
    vote: str
    comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BudgetAssessmentCreate(BaseModel):
    """
    Create or replace the caller's budget assessment.

    Each sub-score is optional; the composite is only computed once all four
    are present.
    """
    budget_reasonableness_score: Optional[int] = Field(None, ge=1, le=5)
    cost_efficiency_score: Optional[int] = Field(None, ge=1, le=5)
    budget_detail_score: Optional[int] = Field(None, ge=1, le=5)
    sustainability_score: Optional[int] = Field(None, ge=1, le=5)
    comments: Optional[str] = Field(None, max_length=5000)


class BudgetAssessmentResponse(BaseModel):
    id: UUID
    application_id: UUID
    reviewer_id: str
    reviewer_name: str
    budget_reasonableness_score: Optional[int] = None
    cost_efficiency_score: Optional[int] = None
    budget_detail_score: Optional[int] = None
    sustainability_score: Optional[int] = None
    composite_score: Optional[Decimal] = None
    comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReviewNoteCreate(BaseModel):
    """Private reviewer note."""
    content: str = Field(..., max_length=10000)


class ReviewNoteResponse(BaseModel):
    id: UUID
    application_id: UUID
    author_id: str
    author_name: str
    content: str
    is_private: bool
    created_at: datetime

    class Config:
        from_attributes = True
