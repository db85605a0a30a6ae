"""
Administrative Audit Logging Service
Records and queries staff actions that fall outside status history.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.audit import AuditAction, AuditLog, AuditResourceType
from backend.services.access_policy import Actor

logger = logging.getLogger(__name__)


class AuditService:
    """Service for the administrative audit log."""

    def __init__(self, db: AsyncSession):
        """Initialize audit service with database session."""
        self.db = db

    async def log_action(
        self,
        actor: Actor,
        action: AuditAction,
        resource_type: AuditResourceType,
        resource_id: Optional[uuid.UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditLog:
        """
        Log an action to the audit log.

        Only adds and flushes; the caller's unit of work decides whether the
        entry commits alongside the action it describes.

        Args:
            actor: Staff member performing the action
            action: Type of action
            resource_type: Type of resource affected
            resource_id: ID of the affected resource
            details: Additional context (counts, flags, previous values)

        Returns:
            Created AuditLog entry
        """
        audit_log = AuditLog(
            actor_id=actor.id,
            actor_email=actor.email,
            action=action.value,
            resource_type=resource_type.value,
            resource_id=resource_id,
            details=details,
            timestamp=datetime.now(timezone.utc),
        )

        self.db.add(audit_log)
        await self.db.flush()

        logger.debug(
            f"Audit log created: {action.value} on {resource_type.value} "
            f"(id={resource_id}, actor={actor.id})"
        )

        return audit_log

    async def get_resource_history(
        self,
        resource_type: AuditResourceType,
        resource_id: uuid.UUID,
        limit: int = 100,
    ) -> list[AuditLog]:
        """Audit entries for one resource, newest first."""
        result = await self.db.execute(
            select(AuditLog)
            .where(
                AuditLog.resource_type == resource_type.value,
                AuditLog.resource_id == resource_id,
            )
            .order_by(desc(AuditLog.timestamp))
            .limit(limit)
        )
        return list(result.scalars().all())
