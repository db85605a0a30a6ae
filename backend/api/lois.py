"""Letter of Interest API router."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from backend.api.deps import CurrentActor, LOIServiceDep
from backend.models import LOIStatus
from backend.schemas.common import StatusHistoryResponse
from backend.schemas.lois import (
    LOICreate,
    LOIDecision,
    LOIDecisionResponse,
    LOIStaffResponse,
    LOIUpdate,
)
from backend.services.access_policy import Role


router = APIRouter(prefix="/api/lois", tags=["lois"])


def _serialize(service, actor, loi) -> LOIStaffResponse:
    """Staff see review notes; applicants get them stripped."""
    response = LOIStaffResponse.model_validate(loi)
    if service.policy.resolve_role(actor) == Role.NONE:
        response.review_notes = None
        response.reviewed_by_id = None
    return response


@router.get("", response_model=List[LOIStaffResponse])
async def list_lois(
    actor: CurrentActor,
    service: LOIServiceDep,
    status_filter: Optional[LOIStatus] = Query(None, alias="status"),
    cycle_id: Optional[UUID] = None,
):
    """
    List Letters of Interest.

    Staff see every LOI; applicants see only their organization's.
    """
    lois = await service.list_lois(actor, status=status_filter, cycle_id=cycle_id)
    return [_serialize(service, actor, loi) for loi in lois]


@router.post("", response_model=LOIStaffResponse, status_code=status.HTTP_201_CREATED)
async def create_loi(
    data: LOICreate,
    actor: CurrentActor,
    service: LOIServiceDep,
):
    """Start a draft LOI for the caller's organization."""
    loi = await service.create_loi(actor, cycle_id=data.cycle_id)
    return _serialize(service, actor, loi)


@router.get("/{loi_id}", response_model=LOIStaffResponse)
async def get_loi(loi_id: UUID, actor: CurrentActor, service: LOIServiceDep):
    loi = await service.get_loi(actor, loi_id)
    return _serialize(service, actor, loi)


@router.patch("/{loi_id}", response_model=LOIStaffResponse)
async def update_loi(
    loi_id: UUID,
    data: LOIUpdate,
    actor: CurrentActor,
    service: LOIServiceDep,
):
    """Edit a draft LOI."""
    loi = await service.update_draft(actor, loi_id, data.model_dump(exclude_unset=True))
    return _serialize(service, actor, loi)


@router.delete("/{loi_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_loi(loi_id: UUID, actor: CurrentActor, service: LOIServiceDep):
    """Delete a draft LOI."""
    await service.delete_draft(actor, loi_id)


@router.post("/{loi_id}/submit", response_model=LOIStaffResponse)
async def submit_loi(loi_id: UUID, actor: CurrentActor, service: LOIServiceDep):
    """
    Submit a draft LOI.

    Rejected after the cycle's LOI deadline, with missing required fields,
    or when a free-text field exceeds its word limit.
    """
    loi = await service.submit(actor, loi_id)
    return _serialize(service, actor, loi)


@router.post("/{loi_id}/review", response_model=LOIStaffResponse)
async def begin_loi_review(loi_id: UUID, actor: CurrentActor, service: LOIServiceDep):
    loi = await service.begin_review(actor, loi_id)
    return _serialize(service, actor, loi)


@router.post("/{loi_id}/decision", response_model=LOIDecisionResponse)
async def decide_loi(
    loi_id: UUID,
    data: LOIDecision,
    actor: CurrentActor,
    service: LOIServiceDep,
):
    """
    Approve or decline an LOI.

    Approval creates the applicant's draft Application. The applicant is
    not told until the decision is released.
    """
    loi, application = await service.decide(
        actor,
        loi_id,
        data.decision,
        reason=data.reason,
        notes=data.notes,
    )
    return LOIDecisionResponse(
        loi=LOIStaffResponse.model_validate(loi),
        application_id=application.id if application else None,
    )


@router.get("/{loi_id}/history", response_model=List[StatusHistoryResponse])
async def get_loi_history(loi_id: UUID, actor: CurrentActor, service: LOIServiceDep):
    """Status history, newest first."""
    return await service.list_status_history(actor, loi_id)
