"""
Grant Portal Models Package
Provides SQLAlchemy ORM models for the grant-record lifecycle.

This package contains:
- Organizations and applicant portal users
- Grant cycle configuration
- Letters of Interest and their status history
- Applications, status history and info-request communications
- Reviewer votes and budget assessments
- Administrative audit log

Base classes and shared column types are defined here and imported by the
submodules, so they must stay above the submodule imports at the bottom.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Uuid
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


# Native UUID on PostgreSQL, CHAR(32) elsewhere (SQLite in tests)
GUID = Uuid

# JSONB on PostgreSQL, plain JSON elsewhere
JSONB = JSON().with_variant(postgresql.JSONB(), "postgresql")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a datetime read back from the store to aware UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LOIStatus(str, enum.Enum):
    """Lifecycle states of a Letter of Interest."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    WITHDRAWN = "WITHDRAWN"


class ApplicationStatus(str, enum.Enum):
    """Lifecycle states of a full grant Application."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    INFO_REQUESTED = "INFO_REQUESTED"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    WITHDRAWN = "WITHDRAWN"


class CommunicationDirection(str, enum.Enum):
    """Direction of an application communication."""

    OUTBOUND = "outbound"
    INBOUND = "inbound"


class VoteValue(str, enum.Enum):
    """Reviewer vote values."""

    APPROVE = "APPROVE"
    DECLINE = "DECLINE"
    ABSTAIN = "ABSTAIN"


# Import models from submodules
from backend.models.organizations import Organization, User  # noqa: E402
from backend.models.cycles import GrantCycleConfig  # noqa: E402
from backend.models.lois import LetterOfInterest, LOIStatusHistory  # noqa: E402
from backend.models.applications import Application, Communication, StatusHistory  # noqa: E402
from backend.models.reviews import BudgetAssessment, ReviewNote, Vote  # noqa: E402
from backend.models.audit import AuditLog  # noqa: E402

__all__ = [
    # Base classes and types
    "Base",
    "GUID",
    "JSONB",
    "utcnow",
    "as_utc",
    # Enums
    "LOIStatus",
    "ApplicationStatus",
    "CommunicationDirection",
    "VoteValue",
    # Models
    "Organization",
    "User",
    "GrantCycleConfig",
    "LetterOfInterest",
    "LOIStatusHistory",
    "Application",
    "StatusHistory",
    "Communication",
    "Vote",
    "BudgetAssessment",
    "ReviewNote",
    "AuditLog",
]
