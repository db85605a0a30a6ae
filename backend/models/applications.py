"""
Application Models
SQLAlchemy ORM models for full grant applications, their status history
and the info-request communication sub-cycle.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.models import GUID, JSONB, ApplicationStatus, Base, utcnow


class Application(Base):
    """
    Full grant application.

    Created either directly (one per organization and cycle) or derived
    from an approved LOI, in which case ``loi_id`` back-references it.
    """

    __tablename__ = "applications"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the application",
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
        doc="Grant cycle the application belongs to",
    )
    loi_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        ForeignKey("letters_of_interest.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        doc="Originating LOI for derived applications",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        default=ApplicationStatus.DRAFT.value,
        nullable=False,
        doc="DRAFT, SUBMITTED, UNDER_REVIEW, INFO_REQUESTED, APPROVED, DECLINED, WITHDRAWN",
    )

    # Fields pre-populated from the LOI / organization
    project_title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    project_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    focus_area: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    project_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    amount_requested: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    total_project_budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    percentage_requested: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    mission_statement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payload: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=True,
        doc="Opaque business payload, not inspected by the workflow",
    )

    submitted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    submitted_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    submitted_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    decided_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    decided_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    decision_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    __table_args__ = (
        Index("ix_applications_org_cycle", "organization_id", "cycle_config_id"),
        # One direct-path application per organization and cycle
        Index(
            "uq_applications_direct_org_cycle",
            "organization_id",
            "cycle_config_id",
            unique=True,
            postgresql_where=text("loi_id IS NULL"),
            sqlite_where=text("loi_id IS NULL"),
        ),
        Index("ix_applications_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Application(id={self.id}, status='{self.status}')>"


class StatusHistory(Base):
    """Append-only audit row for a realized Application transition."""

    __tablename__ = "status_history"

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
        Index("ix_status_history_application_id_created_at", "application_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<StatusHistory(application_id={self.application_id}, {self.previous_status}->{self.new_status})>"


class Communication(Base):
    """
    Message exchanged with an applicant about an application.

    An outbound row with ``response_required`` set and no
    ``response_received_at`` is the application's pending info request.
    """

    __tablename__ = "communications"

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
    direction: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        doc="outbound (request) or inbound (response)",
    )
    type: Mapped[str] = mapped_column(String(32), default="portal_message", nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sent_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sent_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    response_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    response_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response_deadline: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    response_received_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_communications_application_id", "application_id"),
    )

    @property
    def is_pending(self) -> bool:
        return self.response_required and self.response_received_at is None

    def __repr__(self) -> str:
        return f"<Communication(id={self.id}, direction='{self.direction}', pending={self.is_pending})>"
