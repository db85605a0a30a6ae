"""
Organization Models
Applicant organizations and their portal users.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import TIMESTAMP, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models import GUID, Base, utcnow


class Organization(Base):
    """
    An applicant organization.

    Owns Letters of Interest and Applications; its users are the
    applicant-side actors of the workflow.
    """

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the organization",
    )
    legal_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Legal name of the organization",
    )
    ein: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Employer identification number",
    )
    mission_statement: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Mission statement, copied into derived applications",
    )
    profile_complete: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether the organization profile is complete enough to apply",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        nullable=False,
        doc="Record creation timestamp",
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        doc="Record last update timestamp",
    )

    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="organization",
        order_by="User.created_at",
    )

    @property
    def organization_id(self) -> uuid.UUID:
        """Ownership key evaluated by the access policy."""
        return self.id

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, legal_name='{self.legal_name}')>"


class User(Base):
    """
    Applicant portal user.

    Identity is managed by the external identity provider; ``external_id``
    holds the provider's stable subject id.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the user",
    )
    external_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        doc="Identity provider subject id",
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        doc="Primary email address",
    )
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        doc="Organization the user applies on behalf of",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utcnow,
        nullable=False,
        doc="Record creation timestamp",
    )

    organization: Mapped[Optional["Organization"]] = relationship(
        "Organization",
        back_populates="users",
    )

    __table_args__ = (
        Index("ix_users_organization_id", "organization_id"),
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
