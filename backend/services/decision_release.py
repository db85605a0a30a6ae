"""
Decision release batcher.

Decouples "decided" from "released": an LOI decision stays invisible to the
applicant until staff release it. Each record is released in its own unit of
work; the email that follows is best-effort and never retried.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import PreconditionFailedError
from backend.database import atomic
from backend.models import (
    Application,
    GrantCycleConfig,
    LetterOfInterest,
    LOIStatus,
    Organization,
    User,
    utcnow,
)
from backend.models.audit import AuditAction, AuditResourceType
from backend.services.access_policy import AccessPolicy, Actor, Role, build_default_policy
from backend.services.audit import AuditService
from backend.services.notification_service import (
    NotificationIntent,
    NotificationKind,
    NotificationSender,
    get_notification_sender,
)

logger = structlog.get_logger(__name__)


DECIDED_STATUSES = (LOIStatus.APPROVED.value, LOIStatus.DECLINED.value)


@dataclass
class PendingRelease:
    """A decided LOI awaiting release, with what the release would use."""

    loi: LetterOfInterest
    organization_name: str
    contact_email: Optional[str]
    application_id: Optional[uuid.UUID]


@dataclass
class ReleaseOutcome:
    """Per-record result of a release call."""

    loi_id: uuid.UUID
    status: str
    released: bool
    email_sent: bool
    error: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "loi_id": self.loi_id,
            "status": self.status,
            "released": self.released,
            "email_sent": self.email_sent,
            "error": self.error,
        }


class DecisionReleaseService:
    """Queries and releases decided LOIs."""

    def __init__(
        self,
        db: AsyncSession,
        policy: Optional[AccessPolicy] = None,
        sender: Optional[NotificationSender] = None,
    ):
        self.db = db
        self.policy = policy or build_default_policy()
        self.sender = sender or get_notification_sender()
        self.audit = AuditService(db)

    def _pending_query(self, loi_ids: Optional[Iterable[uuid.UUID]] = None):
        query = select(LetterOfInterest).where(
            LetterOfInterest.status.in_(DECIDED_STATUSES),
            LetterOfInterest.notification_sent.is_(False),
        )
        if loi_ids is not None:
            query = query.where(LetterOfInterest.id.in_(list(loi_ids)))
        return query

    async def _contact_email(self, loi: LetterOfInterest) -> Optional[str]:
        """Explicit LOI contact, else the organization's earliest user."""
        if loi.primary_contact_email:
            return loi.primary_contact_email
        result = await self.db.execute(
            select(User.email)
            .where(User.organization_id == loi.organization_id)
            .order_by(User.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _application_id(self, loi_id: uuid.UUID) -> Optional[uuid.UUID]:
        result = await self.db.execute(select(Application.id).where(Application.loi_id == loi_id))
        return result.scalar_one_or_none()

    async def query_pending_releases(self, actor: Actor) -> list[PendingRelease]:
        """All decided LOIs not yet released, most recently reviewed first."""
        self.policy.require(actor, Role.ADMIN, action="view pending releases")

        result = await self.db.execute(
            self._pending_query().order_by(LetterOfInterest.reviewed_at.desc())
        )
        pending = []
        for loi in result.scalars().all():
            organization = await self.db.get(Organization, loi.organization_id)
            pending.append(
                PendingRelease(
                    loi=loi,
                    organization_name=organization.legal_name if organization else "",
                    contact_email=await self._contact_email(loi),
                    application_id=await self._application_id(loi.id),
                )
            )
        return pending

    async def release_decisions(
        self,
        actor: Actor,
        loi_ids: Optional[list[uuid.UUID]] = None,
        release_all: bool = False,
    ) -> dict[str, Any]:
        """
        Release an explicit id set, or every pending decision.

        Ids that are not pending are ignored. A record that fails to release
        does not roll back records already released in the same call.

        Returns:
            Dictionary with per-record ``results``, ``released_count`` and
            ``emails_sent_count``.
        """
        self.policy.require(actor, Role.ADMIN, action="release decisions")

        if not release_all and not loi_ids:
            raise PreconditionFailedError(
                "Provide loi_ids or set release_all to true",
                reason="nothing_selected",
            )

        result = await self.db.execute(
            self._pending_query(None if release_all else loi_ids).order_by(
                LetterOfInterest.reviewed_at.asc()
            )
        )
        candidate_ids = [loi.id for loi in result.scalars().all()]
        if not candidate_ids:
            raise PreconditionFailedError(
                "No pending LOI decisions found to release",
                reason="nothing_to_release",
            )

        outcomes = [await self._release_one(actor, loi_id) for loi_id in candidate_ids]

        released_count = sum(1 for outcome in outcomes if outcome.released)
        emails_sent_count = sum(1 for outcome in outcomes if outcome.email_sent)

        logger.info(
            "decisions_released",
            actor_id=actor.id,
            released_count=released_count,
            emails_sent_count=emails_sent_count,
            failed_count=len(outcomes) - released_count,
        )

        return {
            "message": f"Released {released_count} decision(s). {emails_sent_count} email(s) sent.",
            "results": [outcome.as_dict() for outcome in outcomes],
            "released_count": released_count,
            "emails_sent_count": emails_sent_count,
        }

    async def _release_one(self, actor: Actor, loi_id: uuid.UUID) -> ReleaseOutcome:
        """Mark one decision released, then attempt its email."""
        try:
            async with atomic(self.db):
                result = await self.db.execute(
                    select(LetterOfInterest)
                    .where(LetterOfInterest.id == loi_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                loi = result.scalar_one_or_none()
                if loi is None or loi.notification_sent or loi.status not in DECIDED_STATUSES:
                    return ReleaseOutcome(
                        loi_id=loi_id,
                        status=loi.status if loi else "",
                        released=False,
                        email_sent=False,
                        error="not_pending",
                    )

                contact = await self._contact_email(loi)
                intent = await self._build_intent(loi, contact)

                loi.notification_sent = True
                loi.notification_sent_at = utcnow()
                await self.db.flush()

                await self.audit.log_action(
                    actor,
                    AuditAction.RELEASE,
                    AuditResourceType.LOI,
                    resource_id=loi.id,
                    details={"status": loi.status, "contact_resolved": contact is not None},
                )
        except HTTPException as e:
            error = e.detail["message"] if isinstance(e.detail, dict) else str(e.detail)
            logger.error("decision_release_failed", loi_id=str(loi_id), error=error)
            return ReleaseOutcome(
                loi_id=loi_id,
                status="",
                released=False,
                email_sent=False,
                error=error,
            )

        email_sent = False
        if intent is None:
            logger.info("decision_released_without_contact", loi_id=str(loi.id))
        else:
            try:
                email_sent = await self.sender.send(intent)
            except Exception as e:
                logger.error(
                    "notification_send_failed",
                    loi_id=str(loi.id),
                    kind=intent.kind.value,
                    error=str(e),
                )

        logger.info(
            "decision_released",
            loi_id=str(loi.id),
            status=loi.status,
            email_sent=email_sent,
            actor_id=actor.id,
        )
        return ReleaseOutcome(loi_id=loi.id, status=loi.status, released=True, email_sent=email_sent)

    async def _build_intent(
        self,
        loi: LetterOfInterest,
        contact: Optional[str],
    ) -> Optional[NotificationIntent]:
        if not contact:
            return None

        organization = await self.db.get(Organization, loi.organization_id)
        context: dict[str, Any] = {
            "project_title": loi.project_title or "Your Project",
            "organization_name": organization.legal_name if organization else "",
            "contact_name": loi.primary_contact_name,
        }

        if loi.status == LOIStatus.APPROVED.value:
            application_id = await self._application_id(loi.id)
            cycle = await self.db.get(GrantCycleConfig, loi.cycle_config_id)
            deadline = cycle.full_app_deadline if cycle else None
            context["application_id"] = str(application_id) if application_id else None
            context["full_app_deadline"] = deadline.strftime("%B %d, %Y") if deadline else None
            return NotificationIntent(
                kind=NotificationKind.LOI_APPROVED,
                recipients=[contact],
                loi_id=loi.id,
                application_id=application_id,
                organization_id=loi.organization_id,
                context=context,
            )

        context["decision_reason"] = loi.decision_reason
        return NotificationIntent(
            kind=NotificationKind.LOI_DECLINED,
            recipients=[contact],
            loi_id=loi.id,
            organization_id=loi.organization_id,
            context=context,
        )
