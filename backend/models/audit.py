"""
Administrative Audit Logging Model
Records destructive and configuration actions taken by staff.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Index, String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from backend.models import Base, GUID, JSONB, utcnow


class AuditAction(enum.Enum):
    """Enum for audit action types."""

    DELETE = "DELETE"
    UPDATE = "UPDATE"
    RELEASE = "RELEASE"
    SYSTEM_CONFIG = "SYSTEM_CONFIG"


class AuditResourceType(enum.Enum):
    """Enum for audit resource types."""

    ORGANIZATION = "organization"
    USER = "user"
    LOI = "loi"
    APPLICATION = "application"
    GRANT_CYCLE = "grant_cycle"


class AuditLog(Base):
    """
    Audit log entry for an administrative action.

    Workflow transitions are recorded in the per-record status history
    tables; this log covers actions that have no such home, such as
    record deletion and cycle configuration changes.
    """

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the audit log entry",
    )
    timestamp: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        doc="Timestamp when the action occurred",
    )
    actor_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Identity provider id of the staff member",
    )
    actor_email: Mapped[Optional[str]] = mapped_column(
        String(320),
        nullable=True,
        doc="Email of the staff member at the time of the action",
    )
    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="Type of action performed (DELETE, UPDATE, RELEASE, ...)",
    )
    resource_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="Type of resource affected (organization, loi, application, ...)",
    )
    resource_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        nullable=True,
        doc="ID of the resource affected",
    )
    details: Mapped[Optional[dict]] = mapped_column(
        JSONB,
        nullable=True,
        doc="Action details, e.g. counts of removed dependents",
    )

    __table_args__ = (
        Index("ix_audit_logs_resource_type_resource_id", "resource_type", "resource_id"),
        Index("ix_audit_logs_action_timestamp", "action", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action='{self.action}', "
            f"resource_type='{self.resource_type}', resource_id={self.resource_id})>"
        )
