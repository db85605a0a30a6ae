"""
Grant Cycle Model
Funding period configuration scoping deadlines and record uniqueness.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.models import GUID, Base, utcnow


class GrantCycleConfig(Base):
    """
    A named funding cycle (e.g. SPRING 2026).

    At most one cycle is active system-wide; the partial unique index on
    ``is_active`` makes the store reject a second active row.
    """

    __tablename__ = "grant_cycle_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the cycle",
    )
    cycle: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        doc="Cycle label, e.g. SPRING or FALL",
    )
    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Cycle year",
    )
    loi_open_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    loi_deadline: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        doc="Last moment an LOI may be created or submitted",
    )
    full_app_open_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    full_app_deadline: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        doc="Full application deadline, quoted in LOI approval notices",
    )
    max_request_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether this is the current cycle",
    )
    accepting_lois: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    accepting_applications: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
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
        UniqueConstraint("cycle", "year", name="uq_grant_cycle_configs_cycle_year"),
        Index(
            "uq_grant_cycle_configs_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    @property
    def label(self) -> str:
        return f"{self.cycle} {self.year}"

    def __repr__(self) -> str:
        return f"<GrantCycleConfig(id={self.id}, cycle='{self.cycle}', year={self.year}, active={self.is_active})>"
