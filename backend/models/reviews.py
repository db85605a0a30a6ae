"""
Reviewer Input Models
SQLAlchemy ORM models for reviewer votes, budget assessments and notes.

Votes and assessments hold at most one row per (application, reviewer); a repeated
submission replaces the reviewer's earlier row.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.models import GUID, Base, VoteValue, utcnow


class Vote(Base):
    """A reviewer's recommendation on an application."""

    __tablename__ = "votes"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the vote",
    )
    application_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        doc="Application being voted on",
    )
    reviewer_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Identity provider id of the reviewer",
    )
    reviewer_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Reviewer display name at the time of voting",
    )
    vote: Mapped[str] = mapped_column(
        String(16),
        default=VoteValue.ABSTAIN.value,
        nullable=False,
        doc="APPROVE, DECLINE or ABSTAIN",
    )
    comments: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Free-form reviewer comments",
    )
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

    __table_args__ = (
        UniqueConstraint("application_id", "reviewer_id", name="uq_votes_application_reviewer"),
        Index("ix_votes_application_id", "application_id"),
    )

    def __repr__(self) -> str:
        return f"<Vote(application_id={self.application_id}, reviewer='{self.reviewer_id}', vote='{self.vote}')>"


class BudgetAssessment(Base):
    """
    A reviewer's scored assessment of an application budget.

    Sub-scores are integers in 1..5. ``composite_score`` is the weighted
    sum of all four and stays null until every sub-score is present.
    """

    __tablename__ = "budget_assessments"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the assessment",
    )
    application_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        doc="Application being assessed",
    )
    reviewer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    reviewer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    budget_reasonableness_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Reasonableness of the budget (weight 0.30)",
    )
    cost_efficiency_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Cost efficiency (weight 0.25)",
    )
    budget_detail_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Level of budget detail (weight 0.25)",
    )
    sustainability_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Sustainability beyond the grant period (weight 0.20)",
    )
    composite_score: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(4, 2),
        nullable=True,
        doc="Weighted composite, null unless all sub-scores are present",
    )
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
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

    __table_args__ = (
        UniqueConstraint(
            "application_id",
            "reviewer_id",
            name="uq_budget_assessments_application_reviewer",
        ),
        Index("ix_budget_assessments_application_id", "application_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<BudgetAssessment(application_id={self.application_id}, "
            f"reviewer='{self.reviewer_id}', composite={self.composite_score})>"
        )


class ReviewNote(Base):
    """Private reviewer note on an application; never shown to applicants."""

    __tablename__ = "review_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    application_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[str] = mapped_column(String(255), nullable=False)
    author_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_review_notes_application_id_created_at", "application_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ReviewNote(application_id={self.application_id}, author='{self.author_id}')>"
