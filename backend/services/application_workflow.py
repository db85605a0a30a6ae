"""
Application workflow service.

Covers the full Application lifecycle including the info-request / response
sub-cycle. Each operation validates role and edge against the transition
table inside the same unit of work that mutates the row and appends its
history entry.
"""
import uuid
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import NotFoundError, PreconditionFailedError
from backend.database import atomic
from backend.models import (
    Application,
    ApplicationStatus,
    Communication,
    CommunicationDirection,
    GrantCycleConfig,
    LetterOfInterest,
    Organization,
    User,
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


DECISIONS = (ApplicationStatus.APPROVED.value, ApplicationStatus.DECLINED.value)

# New statuses the applicant is told about
APPLICANT_VISIBLE_STATUSES = frozenset(
    {
        ApplicationStatus.APPROVED.value,
        ApplicationStatus.DECLINED.value,
        ApplicationStatus.INFO_REQUESTED.value,
        ApplicationStatus.UNDER_REVIEW.value,
    }
)

STATUS_LABELS = {
    ApplicationStatus.DRAFT.value: "Draft",
    ApplicationStatus.SUBMITTED.value: "Submitted",
    ApplicationStatus.UNDER_REVIEW.value: "Under Review",
    ApplicationStatus.INFO_REQUESTED.value: "Information Requested",
    ApplicationStatus.APPROVED.value: "Approved",
    ApplicationStatus.DECLINED.value: "Declined",
    ApplicationStatus.WITHDRAWN.value: "Withdrawn",
}

EDITABLE_FIELDS = frozenset(
    {
        "project_title",
        "project_description",
        "focus_area",
        "project_category",
        "amount_requested",
        "total_project_budget",
        "percentage_requested",
        "mission_statement",
        "payload",
    }
)


class ApplicationWorkflowService:
    """Service for the full Application lifecycle."""

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

    async def _load(self, application_id: uuid.UUID, for_update: bool = False) -> Application:
        query = select(Application).where(Application.id == application_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        application = result.scalar_one_or_none()
        if not application:
            raise NotFoundError("Application", application_id)
        return application

    async def _pending_request(self, application_id: uuid.UUID) -> Optional[Communication]:
        result = await self.db.execute(
            select(Communication)
            .where(
                Communication.application_id == application_id,
                Communication.direction == CommunicationDirection.OUTBOUND.value,
                Communication.response_required.is_(True),
                Communication.response_received_at.is_(None),
            )
            .order_by(Communication.created_at.desc())
        )
        return result.scalars().first()

    async def _conceal_unreleased(self, actor: Actor, application: Application) -> None:
        """
        An application derived from an LOI stays hidden from the applicant
        until the LOI decision is released.
        """
        if application.loi_id is None or self.policy.resolve_role(actor) != Role.NONE:
            return
        loi = await self.db.get(LetterOfInterest, application.loi_id)
        if loi is not None and not loi.visible_to_applicant:
            raise NotFoundError("Application", application.id)

    async def _load_visible(self, actor: Actor, application_id: uuid.UUID) -> Application:
        application = await self._load(application_id)
        self.policy.require_access(actor, application, action="view this application")
        await self._conceal_unreleased(actor, application)
        return application

    async def _authorize_edge(
        self,
        actor: Actor,
        application: Application,
        target: str,
        operation_role: Role,
        action: str,
    ) -> None:
        role = self.policy.require(actor, operation_role, application, action=action)
        required = ensure_transition(EntityType.APPLICATION, application.status, target)
        self.policy.ensure_role(actor, role, required, action=action)

    async def _set_status(
        self,
        application: Application,
        target: str,
        actor: Actor,
        reason: Optional[str],
    ) -> str:
        previous = application.status
        application.status = target
        await self.db.flush()
        await self.history.record(
            EntityType.APPLICATION, application.id, previous, target, actor, reason
        )
        return previous

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_application(self, actor: Actor, application_id: uuid.UUID) -> Application:
        """Owner or any staff member may read an application."""
        return await self._load_visible(actor, application_id)

    async def list_applications(
        self,
        actor: Actor,
        status: Optional[ApplicationStatus] = None,
        cycle_id: Optional[uuid.UUID] = None,
    ) -> list[Application]:
        """
        Staff see every application. Applicants see their organization's,
        except those derived from an LOI whose decision is not yet released.
        """
        query = select(Application)

        if self.policy.resolve_role(actor) == Role.NONE:
            if actor.organization_id is None:
                return []
            query = query.outerjoin(
                LetterOfInterest, Application.loi_id == LetterOfInterest.id
            ).where(
                Application.organization_id == actor.organization_id,
                or_(
                    Application.loi_id.is_(None),
                    LetterOfInterest.visible_to_applicant_clause(),
                ),
            )

        if status:
            query = query.where(Application.status == ApplicationStatus(status).value)
        if cycle_id:
            query = query.where(Application.cycle_config_id == cycle_id)

        result = await self.db.execute(query.order_by(Application.updated_at.desc()))
        return list(result.scalars().all())

    async def list_status_history(
        self,
        actor: Actor,
        application_id: uuid.UUID,
    ) -> list[HistoryEntry]:
        """Canonical newest-first history read."""
        await self._load_visible(actor, application_id)
        return await self.history.list(EntityType.APPLICATION, application_id)

    async def get_pending_info_request(
        self,
        actor: Actor,
        application_id: uuid.UUID,
    ) -> Optional[Communication]:
        """The application's open info request, if any."""
        application = await self._load_visible(actor, application_id)
        return await self._pending_request(application_id)

    async def list_communications(
        self,
        actor: Actor,
        application_id: uuid.UUID,
    ) -> list[Communication]:
        application = await self._load_visible(actor, application_id)
        result = await self.db.execute(
            select(Communication)
            .where(Communication.application_id == application_id)
            .order_by(Communication.created_at.desc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # Draft management
    # =========================================================================

    async def create_application(self, actor: Actor) -> Application:
        """
        Create a DRAFT application on the direct path.

        Uses the active cycle accepting applications and allows one
        application per (organization, cycle). The check runs under a lock on
        the organization row, and the direct-path unique index backs it.
        """
        if actor.organization_id is None:
            raise PreconditionFailedError(
                "Please create your organization profile first",
                reason="organization_required",
            )

        async with atomic(self.db):
            result = await self.db.execute(
                select(Organization)
                .where(Organization.id == actor.organization_id)
                .with_for_update()
            )
            organization = result.scalar_one_or_none()
            if not organization:
                raise NotFoundError("Organization", actor.organization_id)
            self.policy.require(
                actor, Role.APPLICANT_OWNER, organization, action="create an application"
            )

            if not organization.profile_complete:
                raise PreconditionFailedError(
                    "Please complete your organization profile before creating applications",
                    reason="profile_incomplete",
                )

            result = await self.db.execute(
                select(GrantCycleConfig).where(
                    GrantCycleConfig.is_active.is_(True),
                    GrantCycleConfig.accepting_applications.is_(True),
                )
            )
            cycle = result.scalar_one_or_none()
            if not cycle:
                raise PreconditionFailedError(
                    "No active grant cycle available",
                    reason="no_open_cycle",
                )

            existing = await self.db.execute(
                select(Application.id).where(
                    Application.organization_id == organization.id,
                    Application.cycle_config_id == cycle.id,
                )
            )
            if existing.first():
                raise PreconditionFailedError(
                    f"Your organization already has an application for the {cycle.label} cycle. "
                    "Only one application per cycle is allowed.",
                    reason="duplicate",
                )

            application = Application(
                organization_id=organization.id,
                cycle_config_id=cycle.id,
                status=ApplicationStatus.DRAFT.value,
                mission_statement=organization.mission_statement,
            )
            self.db.add(application)
            await self.db.flush()

        logger.info(
            "application_created",
            application_id=str(application.id),
            organization_id=str(organization.id),
            actor_id=actor.id,
        )
        return application

    async def update_draft(
        self,
        actor: Actor,
        application_id: uuid.UUID,
        changes: dict[str, Any],
    ) -> Application:
        """Apply business-field edits to the actor's DRAFT application."""
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise PreconditionFailedError(
                "These fields cannot be edited",
                reason="not_editable",
                fields=unknown,
            )

        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            self.policy.require(actor, Role.APPLICANT_OWNER, application, action="edit this application")
            await self._conceal_unreleased(actor, application)
            if application.status != ApplicationStatus.DRAFT.value:
                raise PreconditionFailedError(
                    "Cannot edit a submitted application",
                    reason="not_draft",
                )
            for key, value in changes.items():
                setattr(application, key, value)
            await self.db.flush()

        return application

    async def delete_draft(self, actor: Actor, application_id: uuid.UUID) -> None:
        """Owner deletes a DRAFT application."""
        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            self.policy.require(
                actor, Role.APPLICANT_OWNER, application, action="delete this application"
            )
            await self._conceal_unreleased(actor, application)
            if application.status != ApplicationStatus.DRAFT.value:
                raise PreconditionFailedError(
                    "Cannot delete a submitted application",
                    reason="not_draft",
                )
            await self.db.delete(application)

        logger.info("application_draft_deleted", application_id=str(application_id), actor_id=actor.id)

    # =========================================================================
    # Transitions
    # =========================================================================

    async def submit(self, actor: Actor, application_id: uuid.UUID) -> Application:
        """DRAFT -> SUBMITTED by the owning organization."""
        target = ApplicationStatus.SUBMITTED.value

        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            await self._authorize_edge(
                actor, application, target, Role.APPLICANT_OWNER, "submit this application"
            )
            await self._conceal_unreleased(actor, application)
            application.submitted_at = utcnow()
            application.submitted_by_id = actor.id
            application.submitted_by_name = actor.display_name
            await self._set_status(application, target, actor, "Application submitted by applicant")
            organization = await self.db.get(Organization, application.organization_id)

        logger.info("application_submitted", application_id=str(application.id), actor_id=actor.id)

        await self._dispatch(
            NotificationIntent(
                kind=NotificationKind.APPLICATION_SUBMITTED,
                recipients=settings.admin_notification_email_list,
                application_id=application.id,
                organization_id=application.organization_id,
                context={
                    "organization_name": organization.legal_name if organization else "",
                    "project_title": application.project_title or "Untitled Project",
                    "amount_requested": (
                        f"{application.amount_requested:,.2f}"
                        if application.amount_requested is not None
                        else None
                    ),
                    "submitted_by_name": actor.display_name,
                },
            )
        )
        return application

    async def begin_review(self, actor: Actor, application_id: uuid.UUID) -> Application:
        """SUBMITTED -> UNDER_REVIEW."""
        target = ApplicationStatus.UNDER_REVIEW.value

        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            await self._authorize_edge(
                actor, application, target, Role.MANAGER, "start reviewing applications"
            )
            await self._set_status(application, target, actor, "Application review started")

        logger.info("application_review_started", application_id=str(application.id), actor_id=actor.id)
        await self._notify_status_change(application, reason=None)
        return application

    async def request_info(
        self,
        actor: Actor,
        application_id: uuid.UUID,
        message: str,
        response_deadline: Optional[datetime] = None,
    ) -> Communication:
        """
        UNDER_REVIEW -> INFO_REQUESTED with an outbound Communication.

        Rejected while an earlier request is still unanswered, so at most one
        pending request exists per application.
        """
        if not message or not message.strip():
            raise PreconditionFailedError("Message is required", reason="message_required")

        target = ApplicationStatus.INFO_REQUESTED.value

        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            self.policy.require(actor, Role.MANAGER, application, action="request information")

            pending = await self._pending_request(application.id)
            if pending is not None:
                raise PreconditionFailedError(
                    "An information request is already awaiting the applicant's response",
                    reason="info_request_pending",
                    fields={"communication_id": str(pending.id)},
                )

            await self._authorize_edge(
                actor, application, target, Role.MANAGER, "request information"
            )

            communication = Communication(
                application_id=application.id,
                direction=CommunicationDirection.OUTBOUND.value,
                type="portal_message",
                subject="Additional Information Requested",
                content=message,
                sent_by_id=actor.id,
                sent_by_name=actor.display_name,
                response_required=True,
                response_deadline=response_deadline,
            )
            self.db.add(communication)
            await self._set_status(application, target, actor, "Information requested from applicant")

        logger.info(
            "application_info_requested",
            application_id=str(application.id),
            communication_id=str(communication.id),
            actor_id=actor.id,
        )

        contact = await self._contact_email(application.organization_id)
        await self._dispatch(
            NotificationIntent(
                kind=NotificationKind.INFO_REQUESTED,
                recipients=[contact] if contact else [],
                application_id=application.id,
                organization_id=application.organization_id,
                context={
                    "project_title": application.project_title or "Your Project",
                    "message": message,
                    "response_deadline": (
                        response_deadline.strftime("%B %d, %Y") if response_deadline else None
                    ),
                },
            )
        )
        return communication

    async def respond_to_info(
        self,
        actor: Actor,
        application_id: uuid.UUID,
        communication_id: uuid.UUID,
        response: str,
    ) -> Communication:
        """Answer the pending request and return to UNDER_REVIEW."""
        if not response or not response.strip():
            raise PreconditionFailedError("Response is required", reason="response_required")

        target = ApplicationStatus.UNDER_REVIEW.value

        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            await self._authorize_edge(
                actor, application, target, Role.APPLICANT_OWNER, "respond to this request"
            )
            await self._conceal_unreleased(actor, application)

            communication = await self.db.get(Communication, communication_id)
            if not communication or communication.application_id != application.id:
                raise NotFoundError("Communication", communication_id)
            if not communication.is_pending:
                raise PreconditionFailedError(
                    "This request has already been answered",
                    reason="already_answered",
                )

            communication.response_content = response
            communication.response_received_at = utcnow()
            await self._set_status(
                application, target, actor, "Applicant provided requested information"
            )

        logger.info(
            "application_info_provided",
            application_id=str(application.id),
            communication_id=str(communication.id),
            actor_id=actor.id,
        )
        return communication

    async def decide(
        self,
        actor: Actor,
        application_id: uuid.UUID,
        decision: str,
        reason: Optional[str] = None,
    ) -> Application:
        """Final APPROVED / DECLINED decision; admin only."""
        decision = getattr(decision, "value", decision)
        if decision not in DECISIONS:
            raise PreconditionFailedError(
                "Decision must be APPROVED or DECLINED",
                reason="invalid_decision",
            )

        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            await self._authorize_edge(
                actor, application, decision, Role.ADMIN, "decide applications"
            )
            self._stamp_decision(application, actor, reason)
            await self._set_status(application, decision, actor, reason)

        logger.info(
            "application_decided",
            application_id=str(application.id),
            decision=decision,
            actor_id=actor.id,
        )
        await self._notify_status_change(application, reason)
        return application

    async def change_status(
        self,
        actor: Actor,
        application_id: uuid.UUID,
        new_status: str,
        reason: Optional[str] = None,
    ) -> Application:
        """
        Admin status route over the transition table.

        Moving into INFO_REQUESTED must go through ``request_info`` so a
        Communication is always created; leaving it belongs to the applicant.
        """
        new_status = getattr(new_status, "value", new_status)

        async with atomic(self.db):
            application = await self._load(application_id, for_update=True)
            role = self.policy.require(actor, Role.ADMIN, application, action="change application status")
            required = ensure_transition(EntityType.APPLICATION, application.status, new_status)
            if new_status == ApplicationStatus.INFO_REQUESTED.value:
                raise PreconditionFailedError(
                    "Use the request-information action to ask the applicant for details",
                    reason="use_request_info",
                )
            self.policy.ensure_role(actor, role, required, action="change application status")

            if new_status in DECISIONS:
                self._stamp_decision(application, actor, reason)
            await self._set_status(application, new_status, actor, reason)

        logger.info(
            "application_status_changed",
            application_id=str(application.id),
            new_status=new_status,
            actor_id=actor.id,
        )
        await self._notify_status_change(application, reason)
        return application

    @staticmethod
    def _stamp_decision(application: Application, actor: Actor, reason: Optional[str]) -> None:
        application.decided_at = utcnow()
        application.decided_by_id = actor.id
        application.decided_by_name = actor.display_name
        application.decision_reason = reason

    # =========================================================================
    # Notifications
    # =========================================================================

    async def _contact_email(self, organization_id: uuid.UUID) -> Optional[str]:
        result = await self.db.execute(
            select(User.email)
            .where(User.organization_id == organization_id)
            .order_by(User.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _notify_status_change(self, application: Application, reason: Optional[str]) -> None:
        if application.status not in APPLICANT_VISIBLE_STATUSES:
            return
        contact = await self._contact_email(application.organization_id)
        if not contact:
            logger.info("application_notification_skipped_no_contact", application_id=str(application.id))
            return
        await self._dispatch(
            NotificationIntent(
                kind=NotificationKind.APPLICATION_STATUS_CHANGED,
                recipients=[contact],
                application_id=application.id,
                organization_id=application.organization_id,
                context={
                    "project_title": application.project_title or "Your Project",
                    "new_status": application.status,
                    "new_status_label": STATUS_LABELS[application.status],
                    "reason": reason,
                },
            )
        )

    async def _dispatch(self, intent: NotificationIntent) -> None:
        if self.dispatcher is None:
            return
        await self.dispatcher.dispatch(intent)
