"""Status history recording for LOIs and Applications."""

import uuid
from typing import List, Optional, Union

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models import LOIStatusHistory, StatusHistory
from backend.services.access_policy import Actor
from backend.services.transitions import EntityType

logger = structlog.get_logger(__name__)

HistoryEntry = Union[LOIStatusHistory, StatusHistory]


class StatusHistoryRecorder:
    """
    Appends immutable history rows.

    ``record`` only adds and flushes; it is always called inside the caller's
    unit of work so a status change and its history row commit or roll back
    together. History rows are never updated or deleted here.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        entity: EntityType,
        entity_id: uuid.UUID,
        previous_status: Optional[str],
        new_status: str,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> HistoryEntry:
        """Append one history row for a realized transition."""
        if EntityType(entity) == EntityType.LOI:
            entry = LOIStatusHistory(loi_id=entity_id)
        else:
            entry = StatusHistory(application_id=entity_id)

        entry.previous_status = previous_status
        entry.new_status = new_status
        entry.changed_by_id = actor.id
        entry.changed_by_name = actor.display_name
        entry.reason = reason

        self.db.add(entry)
        await self.db.flush()

        logger.debug(
            "status_history_recorded",
            entity=EntityType(entity).value,
            entity_id=str(entity_id),
            previous_status=previous_status,
            new_status=new_status,
            actor_id=actor.id,
        )
        return entry

    async def list(self, entity: EntityType, entity_id: uuid.UUID) -> List[HistoryEntry]:
        """History for one record, newest first."""
        if EntityType(entity) == EntityType.LOI:
            query = (
                select(LOIStatusHistory)
                .where(LOIStatusHistory.loi_id == entity_id)
                .order_by(LOIStatusHistory.created_at.desc(), LOIStatusHistory.id.desc())
            )
        else:
            query = (
                select(StatusHistory)
                .where(StatusHistory.application_id == entity_id)
                .order_by(StatusHistory.created_at.desc(), StatusHistory.id.desc())
            )
        result = await self.db.execute(query)
        return list(result.scalars().all())
