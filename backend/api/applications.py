"""Application API router."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from backend.api.deps import ApplicationServiceDep, CurrentActor
from backend.models import ApplicationStatus
from backend.schemas.applications import (
    ApplicationDecision,
    ApplicationResponse,
    ApplicationStatusChange,
    ApplicationUpdate,
    CommunicationResponse,
    InfoRequestCreate,
    InfoResponseCreate,
)
from backend.schemas.common import StatusHistoryResponse


router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.get("", response_model=List[ApplicationResponse])
async def list_applications(
    actor: CurrentActor,
    service: ApplicationServiceDep,
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    cycle_id: Optional[UUID] = None,
):
    """
    List applications, most recently updated first.

    Staff see every application; applicants see only their organization's.
    """
    return await service.list_applications(actor, status=status_filter, cycle_id=cycle_id)


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(actor: CurrentActor, service: ApplicationServiceDep):
    """Start a draft application in the active cycle."""
    return await service.create_application(actor)


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(application_id: UUID, actor: CurrentActor, service: ApplicationServiceDep):
    return await service.get_application(actor, application_id)


@router.patch("/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: UUID,
    data: ApplicationUpdate,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    """Edit a draft application."""
    return await service.update_draft(actor, application_id, data.model_dump(exclude_unset=True))


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(application_id: UUID, actor: CurrentActor, service: ApplicationServiceDep):
    """Delete a draft application."""
    await service.delete_draft(actor, application_id)


@router.post("/{application_id}/submit", response_model=ApplicationResponse)
async def submit_application(application_id: UUID, actor: CurrentActor, service: ApplicationServiceDep):
    return await service.submit(actor, application_id)


@router.post("/{application_id}/review", response_model=ApplicationResponse)
async def begin_application_review(
    application_id: UUID,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    return await service.begin_review(actor, application_id)


@router.post(
    "/{application_id}/request-info",
    response_model=CommunicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_info(
    application_id: UUID,
    data: InfoRequestCreate,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    """
    Ask the applicant for more information.

    Rejected while an earlier request is still unanswered.
    """
    return await service.request_info(
        actor,
        application_id,
        data.message,
        response_deadline=data.response_deadline,
    )


@router.get("/{application_id}/request-info", response_model=Optional[CommunicationResponse])
async def get_pending_info_request(
    application_id: UUID,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    """The open information request, or null."""
    return await service.get_pending_info_request(actor, application_id)


@router.post("/{application_id}/respond", response_model=CommunicationResponse)
async def respond_to_info(
    application_id: UUID,
    data: InfoResponseCreate,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    """Answer the pending information request."""
    return await service.respond_to_info(
        actor,
        application_id,
        data.communication_id,
        data.response,
    )


@router.get("/{application_id}/communications", response_model=List[CommunicationResponse])
async def list_communications(
    application_id: UUID,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    return await service.list_communications(actor, application_id)


@router.post("/{application_id}/decision", response_model=ApplicationResponse)
async def decide_application(
    application_id: UUID,
    data: ApplicationDecision,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    """Final decision. Admins only."""
    return await service.decide(actor, application_id, data.decision, reason=data.reason)


@router.put("/{application_id}/status", response_model=ApplicationResponse)
async def change_application_status(
    application_id: UUID,
    data: ApplicationStatusChange,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    """Admin status route; only edges in the transition table are accepted."""
    return await service.change_status(actor, application_id, data.status, reason=data.reason)


@router.get("/{application_id}/history", response_model=List[StatusHistoryResponse])
async def get_application_history(
    application_id: UUID,
    actor: CurrentActor,
    service: ApplicationServiceDep,
):
    """Status history, newest first."""
    return await service.list_status_history(actor, application_id)
