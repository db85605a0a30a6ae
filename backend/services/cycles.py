"""Grant cycle configuration service."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError, PreconditionFailedError
from backend.database import atomic
from backend.models import Application, GrantCycleConfig, LetterOfInterest
from backend.models.audit import AuditAction, AuditResourceType
from backend.services.access_policy import AccessPolicy, Actor, Role, build_default_policy
from backend.services.audit import AuditService

logger = structlog.get_logger(__name__)


class GrantCycleService:
    """
    Admin management of grant cycles.

    At most one cycle is active system-wide. Activation deactivates every
    other cycle in the same unit of work, and the partial unique index on
    ``is_active`` backs the invariant at the store level.
    """

    def __init__(self, db: AsyncSession, policy: Optional[AccessPolicy] = None):
        self.db = db
        self.policy = policy or build_default_policy()
        self.audit = AuditService(db)

    async def _load(self, cycle_id: uuid.UUID, for_update: bool = False) -> GrantCycleConfig:
        query = select(GrantCycleConfig).where(GrantCycleConfig.id == cycle_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        cycle = result.scalar_one_or_none()
        if not cycle:
            raise NotFoundError("Grant cycle", cycle_id)
        return cycle

    async def list_cycles(self, actor: Actor) -> list[GrantCycleConfig]:
        self.policy.require(actor, Role.ADMIN, action="view grant cycles")
        result = await self.db.execute(
            select(GrantCycleConfig).order_by(GrantCycleConfig.year.desc(), GrantCycleConfig.cycle.asc())
        )
        return list(result.scalars().all())

    async def list_open_cycles(self) -> list[GrantCycleConfig]:
        """Active cycles accepting LOIs; safe to show applicants."""
        result = await self.db.execute(
            select(GrantCycleConfig)
            .where(
                GrantCycleConfig.is_active.is_(True),
                GrantCycleConfig.accepting_lois.is_(True),
            )
            .order_by(GrantCycleConfig.year.desc(), GrantCycleConfig.cycle.asc())
        )
        return list(result.scalars().all())

    async def get_active_cycle(self) -> Optional[GrantCycleConfig]:
        result = await self.db.execute(
            select(GrantCycleConfig).where(GrantCycleConfig.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def create_cycle(
        self,
        actor: Actor,
        cycle: str,
        year: int,
        loi_deadline: datetime,
        loi_open_date: Optional[datetime] = None,
        full_app_open_date: Optional[datetime] = None,
        full_app_deadline: Optional[datetime] = None,
        max_request_amount: Optional[Decimal] = None,
        accepting_lois: bool = False,
        accepting_applications: bool = False,
    ) -> GrantCycleConfig:
        """Create an inactive cycle; (cycle, year) must be unique."""
        self.policy.require(actor, Role.ADMIN, action="create grant cycles")

        async with atomic(self.db):
            existing = await self.db.execute(
                select(GrantCycleConfig.id).where(
                    GrantCycleConfig.cycle == cycle,
                    GrantCycleConfig.year == year,
                )
            )
            if existing.first():
                raise PreconditionFailedError(
                    f"A {cycle} {year} cycle already exists",
                    reason="duplicate",
                )

            config = GrantCycleConfig(
                cycle=cycle,
                year=year,
                loi_open_date=loi_open_date,
                loi_deadline=loi_deadline,
                full_app_open_date=full_app_open_date,
                full_app_deadline=full_app_deadline,
                max_request_amount=max_request_amount,
                is_active=False,
                accepting_lois=accepting_lois,
                accepting_applications=accepting_applications,
            )
            self.db.add(config)
            await self.db.flush()

            await self.audit.log_action(
                actor,
                AuditAction.SYSTEM_CONFIG,
                AuditResourceType.GRANT_CYCLE,
                resource_id=config.id,
                details={"operation": "create", "label": config.label},
            )

        logger.info("grant_cycle_created", cycle_id=str(config.id), label=config.label, actor_id=actor.id)
        return config

    async def activate_cycle(self, actor: Actor, cycle_id: uuid.UUID) -> GrantCycleConfig:
        """Make ``cycle_id`` the only active cycle."""
        self.policy.require(actor, Role.ADMIN, action="activate grant cycles")

        async with atomic(self.db):
            cycle = await self._load(cycle_id, for_update=True)
            deactivated = await self._activate(cycle)
            await self.audit.log_action(
                actor,
                AuditAction.SYSTEM_CONFIG,
                AuditResourceType.GRANT_CYCLE,
                resource_id=cycle.id,
                details={
                    "operation": "activate",
                    "deactivated": [str(other_id) for other_id in deactivated],
                },
            )

        logger.info("grant_cycle_activated", cycle_id=str(cycle.id), actor_id=actor.id)
        return cycle

    async def _activate(self, cycle: GrantCycleConfig) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(GrantCycleConfig.id).where(
                GrantCycleConfig.id != cycle.id,
                GrantCycleConfig.is_active.is_(True),
            )
        )
        deactivated = list(result.scalars().all())
        await self.db.execute(
            update(GrantCycleConfig)
            .where(GrantCycleConfig.id != cycle.id)
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        cycle.is_active = True
        await self.db.flush()
        return deactivated

    async def update_cycle_flags(
        self,
        actor: Actor,
        cycle_id: uuid.UUID,
        is_active: Optional[bool] = None,
        accepting_lois: Optional[bool] = None,
        accepting_applications: Optional[bool] = None,
    ) -> GrantCycleConfig:
        """Toggle cycle flags; activating routes through the single-active path."""
        self.policy.require(actor, Role.ADMIN, action="modify grant cycles")

        changes: dict[str, Any] = {}
        async with atomic(self.db):
            cycle = await self._load(cycle_id, for_update=True)

            if is_active is True and not cycle.is_active:
                await self._activate(cycle)
                changes["is_active"] = True
            elif is_active is False and cycle.is_active:
                cycle.is_active = False
                changes["is_active"] = False
            if accepting_lois is not None:
                cycle.accepting_lois = accepting_lois
                changes["accepting_lois"] = accepting_lois
            if accepting_applications is not None:
                cycle.accepting_applications = accepting_applications
                changes["accepting_applications"] = accepting_applications
            await self.db.flush()

            if changes:
                await self.audit.log_action(
                    actor,
                    AuditAction.SYSTEM_CONFIG,
                    AuditResourceType.GRANT_CYCLE,
                    resource_id=cycle.id,
                    details={"operation": "update", **changes},
                )

        logger.info("grant_cycle_updated", cycle_id=str(cycle.id), changes=changes, actor_id=actor.id)
        return cycle

    async def delete_cycle(self, actor: Actor, cycle_id: uuid.UUID) -> None:
        """Delete a cycle that owns no LOIs or Applications."""
        self.policy.require(actor, Role.ADMIN, action="delete grant cycles")

        async with atomic(self.db):
            cycle = await self._load(cycle_id, for_update=True)

            loi_count = await self.db.scalar(
                select(func.count()).select_from(LetterOfInterest).where(
                    LetterOfInterest.cycle_config_id == cycle.id
                )
            )
            application_count = await self.db.scalar(
                select(func.count()).select_from(Application).where(
                    Application.cycle_config_id == cycle.id
                )
            )
            if loi_count or application_count:
                raise PreconditionFailedError(
                    "Cannot delete a cycle that has Letters of Interest or Applications",
                    reason="cycle_in_use",
                    fields={"lois": loi_count, "applications": application_count},
                )

            label = cycle.label
            await self.db.delete(cycle)
            await self.audit.log_action(
                actor,
                AuditAction.DELETE,
                AuditResourceType.GRANT_CYCLE,
                resource_id=cycle_id,
                details={"label": label},
            )

        logger.info("grant_cycle_deleted", cycle_id=str(cycle_id), actor_id=actor.id)
