"""
Letter of Interest workflow service.

Every status change runs as one unit of work: the LOI row is re-read under a
row lock, the edge and role are validated, the mutation and its history row
are flushed, and only then is the transaction committed. Notification intents
are dispatched after the commit.
"""
import uuid
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import NotFoundError, PreconditionFailedError
from backend.database import atomic
from backend.models import (
    Application,
    ApplicationStatus,
    GrantCycleConfig,
    LetterOfInterest,
    LOIStatus,
    Organization,
    User,
    as_utc,
    utcnow,
)
from backend.services.access_policy import AccessPolicy, Actor, Role, build_default_policy
from backend.services.notification_service import (
    NotificationDispatcher,
    NotificationIntent,
    NotificationKind,
)
from backend.services.status_history import HistoryEntry, StatusHistoryRecorder
from backend.services.transitions import EntityType, ensure_transition

logger = structlog.get_logger(__name__)


REQUIRED_FIELDS: dict[str, str] = {
    "expenditure_type": "Expenditure Type",
    "project_title": "Project Title",
    "project_description": "Project Description",
    "total_project_amount": "Total Project Amount",
    "grant_request_amount": "Grant Request Amount",
    "budget_outline": "Budget Outline",
}

# Fields an applicant may edit while the LOI is a draft
EDITABLE_FIELDS = frozenset(
    {
        "project_title",
        "project_description",
        "project_goals",
        "focus_area",
        "expenditure_type",
        "total_project_amount",
        "grant_request_amount",
        "percent_of_project",
        "budget_outline",
        "primary_contact_name",
        "primary_contact_email",
    }
)

DECISIONS = (LOIStatus.APPROVED.value, LOIStatus.DECLINED.value)


def count_words(text: Optional[str]) -> int:
    """Whitespace-delimited word count."""
    if not text:
        return 0
    return len(text.split())


def word_limits() -> dict[str, tuple[str, int]]:
    return {
        "project_description": ("Project description", settings.loi_description_word_limit),
        "project_goals": ("Project goals", settings.loi_goals_word_limit),
        "budget_outline": ("Budget outline", settings.loi_budget_outline_word_limit),
    }


def format_currency(amount: Optional[Decimal]) -> Optional[str]:
    if amount is None:
        return None
    return f"{amount:,.2f}"


class LOIWorkflowService:
    """Service for the Letter of Interest lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        policy: Optional[AccessPolicy] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.policy = policy or build_default_policy()
        self.dispatcher = dispatcher
        self.history = StatusHistoryRecorder(db)

    # =========================================================================
    # Loading
    # =========================================================================

    async def _load(self, loi_id: uuid.UUID, for_update: bool = False) -> LetterOfInterest:
        query = select(LetterOfInterest).where(LetterOfInterest.id == loi_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        loi = result.scalar_one_or_none()
        if not loi:
            raise NotFoundError("Letter of Interest", loi_id)
        return loi

    async def _load_cycle(self, cycle_id: uuid.UUID) -> GrantCycleConfig:
        cycle = await self.db.get(GrantCycleConfig, cycle_id)
        if not cycle:
            raise NotFoundError("Grant cycle", cycle_id)
        return cycle

    async def get_application_id(self, loi_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Id of the Application derived from an LOI, if any."""
        result = await self.db.execute(
            select(Application.id).where(Application.loi_id == loi_id)
        )
        return result.scalar_one_or_none()

    def _conceal_unreleased(self, actor: Actor, loi: LetterOfInterest) -> None:
        """Applicants cannot see a decided LOI until the decision is released."""
        if self.policy.resolve_role(actor) == Role.NONE and not loi.visible_to_applicant:
            raise NotFoundError("Letter of Interest", loi.id)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_loi(self, actor: Actor, loi_id: uuid.UUID) -> LetterOfInterest:
        """Owner or any staff member may read an LOI."""
        loi = await self._load(loi_id)
        self.policy.require_access(actor, loi, action="view this LOI")
        self._conceal_unreleased(actor, loi)
        return loi

    async def list_lois(
        self,
        actor: Actor,
        status: Optional[LOIStatus] = None,
        cycle_id: Optional[uuid.UUID] = None,
    ) -> list[LetterOfInterest]:
        """
        Staff see every LOI. Applicants see their organization's, minus
        decisions that have not been released.
        """
        query = select(LetterOfInterest)

        if self.policy.resolve_role(actor) == Role.NONE:
            if actor.organization_id is None:
                return []
            query = query.where(
                LetterOfInterest.organization_id == actor.organization_id,
                LetterOfInterest.visible_to_applicant_clause(),
            )

        if status:
            query = query.where(LetterOfInterest.status == LOIStatus(status).value)
        if cycle_id:
            query = query.where(LetterOfInterest.cycle_config_id == cycle_id)

        result = await self.db.execute(query.order_by(LetterOfInterest.updated_at.desc()))
        return list(result.scalars().all())

    async def list_status_history(self, actor: Actor, loi_id: uuid.UUID) -> list[HistoryEntry]:
        """Canonical newest-first history read."""
        loi = await self._load(loi_id)
        self.policy.require_access(actor, loi, action="view this LOI")
        self._conceal_unreleased(actor, loi)
        return await self.history.list(EntityType.LOI, loi_id)

    # =========================================================================
    # Draft management
    # =========================================================================

    async def create_loi(
        self,
        actor: Actor,
        cycle_id: Optional[uuid.UUID] = None,
    ) -> LetterOfInterest:
        """Create a DRAFT LOI for the actor's organization."""
        if actor.organization_id is None:
            raise PreconditionFailedError(
                "Please create your organization profile first",
                reason="organization_required",
            )

        async with atomic(self.db):
            organization = await self.db.get(Organization, actor.organization_id)
            if not organization:
                raise NotFoundError("Organization", actor.organization_id)
            self.policy.require(actor, Role.APPLICANT_OWNER, organization, action="create an LOI")

            if not organization.profile_complete:
                raise PreconditionFailedError(
                    "Please complete your organization profile before submitting an LOI",
                    reason="profile_incomplete",
                )

            if cycle_id:
                cycle = await self._load_cycle(cycle_id)
            else:
                result = await self.db.execute(
                    select(GrantCycleConfig).where(
                        GrantCycleConfig.is_active.is_(True),
                        GrantCycleConfig.accepting_lois.is_(True),
                    )
                )
                cycle = result.scalar_one_or_none()
                if not cycle:
                    raise PreconditionFailedError(
                        "No grant cycle is currently accepting Letters of Interest",
                        reason="no_open_cycle",
                    )

            if utcnow() > as_utc(cycle.loi_deadline):
                raise PreconditionFailedError(
                    "The LOI deadline for this cycle has passed",
                    reason="deadline_passed",
                )

            existing = await self.db.execute(
                select(LetterOfInterest.id).where(
                    LetterOfInterest.organization_id == organization.id,
                    LetterOfInterest.cycle_config_id == cycle.id,
                )
            )
            existing_id = existing.scalar_one_or_none()
            if existing_id:
                raise PreconditionFailedError(
                    "Your organization already has a Letter of Interest for this cycle",
                    reason="duplicate",
                    fields={"existing_id": str(existing_id)},
                )

            contact = await self._first_user(organization.id, prefer_external_id=actor.id)
            loi = LetterOfInterest(
                organization_id=organization.id,
                cycle_config_id=cycle.id,
                status=LOIStatus.DRAFT.value,
                primary_contact_name=contact.display_name if contact else None,
                primary_contact_email=contact.email if contact else actor.email,
            )
            self.db.add(loi)
            await self.db.flush()

        logger.info(
            "loi_created",
            loi_id=str(loi.id),
            organization_id=str(organization.id),
            cycle_id=str(cycle.id),
            actor_id=actor.id,
        )
        return loi

    async def update_draft(
        self,
        actor: Actor,
        loi_id: uuid.UUID,
        changes: dict[str, Any],
    ) -> LetterOfInterest:
        """Apply business-field edits to the actor's DRAFT LOI."""
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise PreconditionFailedError(
                "These fields cannot be edited",
                reason="not_editable",
                fields=unknown,
            )

        async with atomic(self.db):
            loi = await self._load(loi_id, for_update=True)
            self.policy.require(actor, Role.APPLICANT_OWNER, loi, action="edit this LOI")
            self._conceal_unreleased(actor, loi)
            if loi.status != LOIStatus.DRAFT.value:
                raise PreconditionFailedError(
                    "Cannot edit a submitted Letter of Interest",
                    reason="not_draft",
                )
            for key, value in changes.items():
                setattr(loi, key, value)
            await self.db.flush()

        return loi

    async def delete_draft(self, actor: Actor, loi_id: uuid.UUID) -> None:
        """Owner deletes a DRAFT LOI."""
        async with atomic(self.db):
            loi = await self._load(loi_id, for_update=True)
            self.policy.require(actor, Role.APPLICANT_OWNER, loi, action="delete this LOI")
            self._conceal_unreleased(actor, loi)
            if loi.status != LOIStatus.DRAFT.value:
                raise PreconditionFailedError(
                    "Cannot delete a submitted Letter of Interest",
                    reason="not_draft",
                )
            await self.db.delete(loi)

        logger.info("loi_draft_deleted", loi_id=str(loi_id), actor_id=actor.id)

    # =========================================================================
    # Transitions
    # =========================================================================

    async def submit(self, actor: Actor, loi_id: uuid.UUID) -> LetterOfInterest:
        """DRAFT -> SUBMITTED, enforcing deadline, required fields and word limits."""
        target = LOIStatus.SUBMITTED.value

        async with atomic(self.db):
            loi = await self._load(loi_id, for_update=True)
            role = self.policy.require(actor, Role.APPLICANT_OWNER, loi, action="submit this LOI")
            self._conceal_unreleased(actor, loi)
            required = ensure_transition(EntityType.LOI, loi.status, target)
            self.policy.ensure_role(actor, role, required, action="submit this LOI")

            cycle = await self._load_cycle(loi.cycle_config_id)
            if utcnow() > as_utc(cycle.loi_deadline):
                raise PreconditionFailedError(
                    "The LOI deadline for this cycle has passed",
                    reason="deadline_passed",
                )

            self._validate_for_submission(loi)

            previous = loi.status
            loi.status = target
            loi.submitted_at = utcnow()
            loi.submitted_by_id = actor.id
            loi.submitted_by_name = actor.display_name
            await self.db.flush()
            await self.history.record(
                EntityType.LOI, loi.id, previous, target, actor, "LOI submitted by applicant"
            )
            organization = await self.db.get(Organization, loi.organization_id)

        logger.info("loi_submitted", loi_id=str(loi.id), actor_id=actor.id)

        await self._dispatch(
            NotificationIntent(
                kind=NotificationKind.LOI_SUBMITTED,
                recipients=settings.admin_notification_email_list,
                loi_id=loi.id,
                organization_id=loi.organization_id,
                context={
                    "organization_name": organization.legal_name if organization else "",
                    "project_title": loi.project_title or "Untitled Project",
                    "grant_request_amount": format_currency(loi.grant_request_amount),
                    "submitted_by_name": actor.display_name,
                    "contact_email": loi.primary_contact_email or actor.email,
                },
            )
        )
        return loi

    def _validate_for_submission(self, loi: LetterOfInterest) -> None:
        missing = [label for field, label in REQUIRED_FIELDS.items() if not getattr(loi, field)]
        if missing:
            raise PreconditionFailedError(
                "Please complete all required fields before submitting",
                reason="missing_fields",
                fields=missing,
            )

        exceeded = {}
        for field, (label, limit) in word_limits().items():
            words = count_words(getattr(loi, field))
            if words > limit:
                exceeded[field] = {"label": label, "words": words, "limit": limit}
        if exceeded:
            first = next(iter(exceeded.values()))
            raise PreconditionFailedError(
                f"{first['label']} exceeds {first['limit']} word limit ({first['words']} words)",
                reason="word_limit_exceeded",
                fields=exceeded,
            )

    async def begin_review(self, actor: Actor, loi_id: uuid.UUID) -> LetterOfInterest:
        """SUBMITTED -> UNDER_REVIEW."""
        target = LOIStatus.UNDER_REVIEW.value

        async with atomic(self.db):
            loi = await self._load(loi_id, for_update=True)
            role = self.policy.require(actor, Role.MEMBER, loi, action="review LOIs")
            required = ensure_transition(EntityType.LOI, loi.status, target)
            self.policy.ensure_role(actor, role, required, action="review LOIs")

            previous = loi.status
            loi.status = target
            await self.db.flush()
            await self.history.record(
                EntityType.LOI, loi.id, previous, target, actor, "LOI review started"
            )

        logger.info("loi_review_started", loi_id=str(loi.id), actor_id=actor.id)
        return loi

    async def decide(
        self,
        actor: Actor,
        loi_id: uuid.UUID,
        decision: str,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> tuple[LetterOfInterest, Optional[Application]]:
        """
        Record an APPROVED or DECLINED decision.

        Approval creates the derived DRAFT Application in the same unit of
        work as the status change and its history row. The applicant is not
        notified here; see ``DecisionReleaseService``.
        """
        decision = getattr(decision, "value", decision)
        if decision not in DECISIONS:
            raise PreconditionFailedError(
                "Decision must be APPROVED or DECLINED",
                reason="invalid_decision",
            )

        application: Optional[Application] = None

        async with atomic(self.db):
            loi = await self._load(loi_id, for_update=True)
            role = self.policy.require(actor, Role.MEMBER, loi, action="decide LOIs")
            required = ensure_transition(EntityType.LOI, loi.status, decision)
            self.policy.ensure_role(actor, role, required, action="decide LOIs")

            previous = loi.status
            loi.status = decision
            loi.reviewed_by_id = actor.id
            loi.reviewed_by_name = actor.display_name
            loi.reviewed_at = utcnow()
            loi.review_notes = notes
            loi.decision_reason = reason
            await self.db.flush()

            if decision == LOIStatus.APPROVED.value:
                application = await self._derive_application(loi)
                default_reason = "LOI approved by reviewer"
            else:
                default_reason = "LOI declined by reviewer"

            await self.history.record(
                EntityType.LOI, loi.id, previous, decision, actor, reason or default_reason
            )

        logger.info(
            "loi_decided",
            loi_id=str(loi.id),
            decision=decision,
            application_id=str(application.id) if application else None,
            actor_id=actor.id,
        )
        return loi, application

    async def _derive_application(self, loi: LetterOfInterest) -> Application:
        result = await self.db.execute(
            select(Organization)
            .where(Organization.id == loi.organization_id)
            .with_for_update()
        )
        organization = result.scalar_one_or_none()
        application = Application(
            organization_id=loi.organization_id,
            cycle_config_id=loi.cycle_config_id,
            loi_id=loi.id,
            status=ApplicationStatus.DRAFT.value,
            project_title=loi.project_title,
            project_description=loi.project_description,
            focus_area=loi.focus_area,
            project_category=loi.expenditure_type,
            amount_requested=loi.grant_request_amount,
            total_project_budget=loi.total_project_amount,
            percentage_requested=loi.percent_of_project,
            mission_statement=organization.mission_statement if organization else None,
        )
        self.db.add(application)
        await self.db.flush()
        return application

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _first_user(
        self,
        organization_id: uuid.UUID,
        prefer_external_id: Optional[str] = None,
    ) -> Optional[User]:
        if prefer_external_id:
            result = await self.db.execute(
                select(User).where(
                    User.organization_id == organization_id,
                    User.external_id == prefer_external_id,
                )
            )
            user = result.scalar_one_or_none()
            if user:
                return user
        result = await self.db.execute(
            select(User)
            .where(User.organization_id == organization_id)
            .order_by(User.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _dispatch(self, intent: NotificationIntent) -> None:
        if self.dispatcher is None:
            return
        await self.dispatcher.dispatch(intent)

