"""
Letter of Interest Models
SQLAlchemy ORM models for LOIs and their append-only status history.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    ColumnElement,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    or_,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.models import GUID, Base, LOIStatus, utcnow


DECIDED_STATUSES = (LOIStatus.APPROVED.value, LOIStatus.DECLINED.value)


class LetterOfInterest(Base):
    """
    Lightweight first-stage proposal for a grant cycle.

    One LOI per (organization, cycle). ``version`` is the optimistic
    concurrency counter: a flush against a row that changed since it was
    read raises ``StaleDataError``.
    """

    __tablename__ = "letters_of_interest"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the LOI",
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owning organization",
    )
    cycle_config_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("grant_cycle_configs.id"),
        nullable=False,
        doc="Grant cycle the LOI belongs to",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        default=LOIStatus.DRAFT.value,
        nullable=False,
        doc="DRAFT, SUBMITTED, UNDER_REVIEW, APPROVED, DECLINED, WITHDRAWN",
    )

    # Business payload
    project_title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    project_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    project_goals: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    focus_area: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expenditure_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    total_project_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    grant_request_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    percent_of_project: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    budget_outline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    primary_contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    primary_contact_email: Mapped[Optional[str]] = mapped_column(
        String(320),
        nullable=True,
        doc="Explicit contact for decision notices; falls back to the org's first user",
    )

    # Submission
    submitted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    submitted_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    submitted_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Review
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    reviewed_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reviewed_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decision_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Release
    notification_sent: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether the decision has been released to the applicant",
    )
    notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def visible_to_applicant(self) -> bool:
        """A decision stays hidden from the applicant until it is released."""
        return self.status not in DECIDED_STATUSES or self.notification_sent

    @classmethod
    def visible_to_applicant_clause(cls) -> ColumnElement[bool]:
        return or_(cls.status.notin_(DECIDED_STATUSES), cls.notification_sent.is_(True))

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "cycle_config_id",
            name="uq_letters_of_interest_org_cycle",
        ),
        Index("ix_letters_of_interest_status", "status"),
        Index("ix_letters_of_interest_release", "status", "notification_sent"),
    )

    def __repr__(self) -> str:
        return f"<LetterOfInterest(id={self.id}, status='{self.status}')>"


class LOIStatusHistory(Base):
    """Append-only audit row for a realized LOI transition."""

    __tablename__ = "loi_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    loi_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("letters_of_interest.id", ondelete="CASCADE"),
        nullable=False,
    )
    previous_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    new_status: Mapped[str] = mapped_column(String(32), nullable=False)
    changed_by_id: Mapped[str] = mapped_column(String(255), nullable=False)
    changed_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_loi_status_history_loi_id_created_at", "loi_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<LOIStatusHistory(loi_id={self.loi_id}, {self.previous_status}->{self.new_status})>"
