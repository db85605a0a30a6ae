"""
Admin schemas: decision releases, grant cycles and deletions.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


# ============================================================================
# Decision Releases
# ============================================================================

class PendingReleaseResponse(BaseModel):
    """A decided LOI not yet released to the applicant."""
    loi_id: UUID
    status: str
    project_title: Optional[str] = None
    organization_name: str
    contact_email: Optional[str] = Field(None, description="Address the release email would go to")
    application_id: Optional[UUID] = Field(None, description="Application derived from an approval")
    reviewed_at: Optional[datetime] = None
    reviewed_by_name: Optional[str] = None


class ReleaseRequest(BaseModel):
    """Release an explicit set of LOIs, or everything pending."""
    loi_ids: Optional[List[UUID]] = None
    release_all: bool = False

    @model_validator(mode="after")
    def check_selection(self) -> "ReleaseRequest":
        if not self.release_all and not self.loi_ids:
            raise ValueError("Provide loi_ids or set release_all to true")
        return self


class ReleaseResult(BaseModel):
    loi_id: UUID
    status: str
    released: bool
    email_sent: bool
    error: Optional[str] = None


class ReleaseResponse(BaseModel):
    message: str
    results: List[ReleaseResult]
    released_count: int
    emails_sent_count: int


# ============================================================================
# Grant Cycles
# ============================================================================

class GrantCycleCreate(BaseModel):
    cycle: str = Field(..., min_length=1, max_length=50, description="Cycle label, e.g. SPRING")
    year: int = Field(..., ge=2000, le=2100)
    loi_open_date: Optional[datetime] = None
    loi_deadline: datetime
    full_app_open_date: Optional[datetime] = None
    full_app_deadline: Optional[datetime] = None
    max_request_amount: Optional[Decimal] = Field(None, ge=0)
    accepting_lois: bool = False
    accepting_applications: bool = False


class GrantCycleUpdate(BaseModel):
    """Flag toggles. Setting ``is_active`` deactivates every other cycle."""
    is_active: Optional[bool] = None
    accepting_lois: Optional[bool] = None
    accepting_applications: Optional[bool] = None


class GrantCycleResponse(BaseModel):
    id: UUID
    cycle: str
    year: int
    loi_open_date: Optional[datetime] = None
    loi_deadline: datetime
    full_app_open_date: Optional[datetime] = None
    full_app_deadline: Optional[datetime] = None
    max_request_amount: Optional[Decimal] = None
    is_active: bool
    accepting_lois: bool
    accepting_applications: bool

    class Config:
        from_attributes = True


# ============================================================================
# Deletions
# ============================================================================

class DeletionResponse(BaseModel):
    """Row counts removed per table."""
    deleted: dict[str, int]
