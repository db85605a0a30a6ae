"""
Administrative deletion of grant records.

Every admin delete goes through one closure function that enumerates a
record's dependents once and removes them child-first in a single unit of
work, followed by an audit log entry.
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError, PreconditionFailedError
from backend.database import atomic
from backend.models import (
    Application,
    BudgetAssessment,
    Communication,
    LetterOfInterest,
    LOIStatusHistory,
    Organization,
    ReviewNote,
    StatusHistory,
    User,
    Vote,
)
from backend.models.audit import AuditAction, AuditResourceType
from backend.services.access_policy import AccessPolicy, Actor, Role, build_default_policy
from backend.services.audit import AuditService

logger = structlog.get_logger(__name__)


# Application dependents, removed before the applications themselves
APPLICATION_DEPENDENTS = (StatusHistory, Communication, Vote, BudgetAssessment, ReviewNote)


@dataclass
class DeletionClosure:
    """The full set of rows one admin delete removes."""

    application_ids: list[uuid.UUID] = field(default_factory=list)
    loi_ids: list[uuid.UUID] = field(default_factory=list)
    organization_id: Optional[uuid.UUID] = None


class RecordDeletionService:
    """Admin-only delete closures for applications, LOIs and organizations."""

    def __init__(self, db: AsyncSession, policy: Optional[AccessPolicy] = None):
        self.db = db
        self.policy = policy or build_default_policy()
        self.audit = AuditService(db)

    async def _delete_closure(self, closure: DeletionClosure) -> dict[str, int]:
        """
        Delete a closure child-first and return per-table row counts.

        Order: application dependents, LOI history, applications, LOIs,
        organization users, organization.
        """
        counts: dict[str, int] = {}

        async def _run(model: Any, *criteria: Any) -> None:
            result = await self.db.execute(
                delete(model).where(*criteria).execution_options(synchronize_session=False)
            )
            counts[model.__tablename__] = counts.get(model.__tablename__, 0) + (result.rowcount or 0)

        if closure.application_ids:
            for model in APPLICATION_DEPENDENTS:
                await _run(model, model.application_id.in_(closure.application_ids))
        if closure.loi_ids:
            await _run(LOIStatusHistory, LOIStatusHistory.loi_id.in_(closure.loi_ids))
        if closure.application_ids:
            await _run(Application, Application.id.in_(closure.application_ids))
        if closure.loi_ids:
            await _run(LetterOfInterest, LetterOfInterest.id.in_(closure.loi_ids))
        if closure.organization_id is not None:
            await _run(User, User.organization_id == closure.organization_id)
            await _run(Organization, Organization.id == closure.organization_id)

        # Bulk deletes bypass the identity map
        self.db.expunge_all()
        return counts

    async def delete_application(self, actor: Actor, application_id: uuid.UUID) -> dict[str, int]:
        """
        Delete a direct-path application with its history, communications
        and reviewer input.

        LOI-derived applications go through ``delete_loi`` so an APPROVED LOI
        never loses its derived application.
        """
        self.policy.require(actor, Role.ADMIN, action="delete applications")

        async with atomic(self.db):
            application = await self.db.get(Application, application_id)
            if not application:
                raise NotFoundError("Application", application_id)
            if application.loi_id is not None:
                raise PreconditionFailedError(
                    "This application was derived from an approved LOI; delete the LOI instead",
                    reason="derived_application",
                    fields={"loi_id": str(application.loi_id)},
                )
            details = {"project_title": application.project_title, "status": application.status}

            counts = await self._delete_closure(DeletionClosure(application_ids=[application_id]))
            await self.audit.log_action(
                actor,
                AuditAction.DELETE,
                AuditResourceType.APPLICATION,
                resource_id=application_id,
                details={**details, "deleted": counts},
            )

        logger.info("application_deleted", application_id=str(application_id), actor_id=actor.id)
        return counts

    async def delete_loi(self, actor: Actor, loi_id: uuid.UUID) -> dict[str, int]:
        """Delete an LOI, its history and any application derived from it."""
        self.policy.require(actor, Role.ADMIN, action="delete LOIs")

        async with atomic(self.db):
            loi = await self.db.get(LetterOfInterest, loi_id)
            if not loi:
                raise NotFoundError("Letter of Interest", loi_id)
            details = {"project_title": loi.project_title, "status": loi.status}

            result = await self.db.execute(select(Application.id).where(Application.loi_id == loi_id))
            closure = DeletionClosure(
                application_ids=list(result.scalars().all()),
                loi_ids=[loi_id],
            )
            counts = await self._delete_closure(closure)
            await self.audit.log_action(
                actor,
                AuditAction.DELETE,
                AuditResourceType.LOI,
                resource_id=loi_id,
                details={**details, "deleted": counts},
            )

        logger.info("loi_deleted", loi_id=str(loi_id), actor_id=actor.id)
        return counts

    async def delete_organization(self, actor: Actor, organization_id: uuid.UUID) -> dict[str, int]:
        """Delete an organization with every user, LOI and application it owns."""
        self.policy.require(actor, Role.ADMIN, action="delete organizations")

        async with atomic(self.db):
            organization = await self.db.get(Organization, organization_id)
            if not organization:
                raise NotFoundError("Organization", organization_id)
            details = {"legal_name": organization.legal_name, "ein": organization.ein}

            applications = await self.db.execute(
                select(Application.id).where(Application.organization_id == organization_id)
            )
            lois = await self.db.execute(
                select(LetterOfInterest.id).where(LetterOfInterest.organization_id == organization_id)
            )
            closure = DeletionClosure(
                application_ids=list(applications.scalars().all()),
                loi_ids=list(lois.scalars().all()),
                organization_id=organization_id,
            )
            counts = await self._delete_closure(closure)
            await self.audit.log_action(
                actor,
                AuditAction.DELETE,
                AuditResourceType.ORGANIZATION,
                resource_id=organization_id,
                details={**details, "deleted": counts},
            )

        logger.info("organization_deleted", organization_id=str(organization_id), actor_id=actor.id)
        return counts
