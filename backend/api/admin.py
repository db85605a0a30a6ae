"""
Admin API router.

Decision releases, grant cycle configuration and record deletion. Every
endpoint here requires the ADMIN role except the applicant-facing list of
open cycles.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, status

from backend.api.deps import (
    CurrentActor,
    CycleServiceDep,
    DeletionServiceDep,
    ReleaseServiceDep,
)
from backend.schemas.admin import (
    DeletionResponse,
    GrantCycleCreate,
    GrantCycleResponse,
    GrantCycleUpdate,
    PendingReleaseResponse,
    ReleaseRequest,
    ReleaseResponse,
)


router = APIRouter(prefix="/api", tags=["admin"])


# ============================================================================
# Decision Releases
# ============================================================================

@router.get("/admin/releases", response_model=List[PendingReleaseResponse])
async def list_pending_releases(actor: CurrentActor, service: ReleaseServiceDep):
    """Decided LOIs that applicants have not been told about yet."""
    pending = await service.query_pending_releases(actor)
    return [
        PendingReleaseResponse(
            loi_id=item.loi.id,
            status=item.loi.status,
            project_title=item.loi.project_title,
            organization_name=item.organization_name,
            contact_email=item.contact_email,
            application_id=item.application_id,
            reviewed_at=item.loi.reviewed_at,
            reviewed_by_name=item.loi.reviewed_by_name,
        )
        for item in pending
    ]


@router.post("/admin/releases", response_model=ReleaseResponse)
async def release_decisions(
    data: ReleaseRequest,
    actor: CurrentActor,
    service: ReleaseServiceDep,
):
    """
    Release decisions to applicants.

    Each record is marked released whether or not its email goes out; the
    response lists which ones had an email sent.
    """
    return await service.release_decisions(
        actor,
        loi_ids=data.loi_ids,
        release_all=data.release_all,
    )


# ============================================================================
# Grant Cycles
# ============================================================================

@router.get("/cycles", response_model=List[GrantCycleResponse])
async def list_open_cycles(actor: CurrentActor, service: CycleServiceDep):
    """Active cycles currently accepting LOIs."""
    return await service.list_open_cycles()


@router.get("/admin/cycles", response_model=List[GrantCycleResponse])
async def list_cycles(actor: CurrentActor, service: CycleServiceDep):
    return await service.list_cycles(actor)


@router.post("/admin/cycles", response_model=GrantCycleResponse, status_code=status.HTTP_201_CREATED)
async def create_cycle(data: GrantCycleCreate, actor: CurrentActor, service: CycleServiceDep):
    return await service.create_cycle(actor, **data.model_dump())


@router.post("/admin/cycles/{cycle_id}/activate", response_model=GrantCycleResponse)
async def activate_cycle(cycle_id: UUID, actor: CurrentActor, service: CycleServiceDep):
    """Make this the only active cycle."""
    return await service.activate_cycle(actor, cycle_id)


@router.patch("/admin/cycles/{cycle_id}", response_model=GrantCycleResponse)
async def update_cycle(
    cycle_id: UUID,
    data: GrantCycleUpdate,
    actor: CurrentActor,
    service: CycleServiceDep,
):
    return await service.update_cycle_flags(actor, cycle_id, **data.model_dump())


@router.delete("/admin/cycles/{cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cycle(cycle_id: UUID, actor: CurrentActor, service: CycleServiceDep):
    """Refused while any LOI or application belongs to the cycle."""
    await service.delete_cycle(actor, cycle_id)


# ============================================================================
# Record Deletion
# ============================================================================

@router.delete("/admin/applications/{application_id}", response_model=DeletionResponse)
async def delete_application(
    application_id: UUID,
    actor: CurrentActor,
    service: DeletionServiceDep,
):
    return DeletionResponse(deleted=await service.delete_application(actor, application_id))


@router.delete("/admin/lois/{loi_id}", response_model=DeletionResponse)
async def delete_loi(loi_id: UUID, actor: CurrentActor, service: DeletionServiceDep):
    """Also deletes the application derived from the LOI, if any."""
    return DeletionResponse(deleted=await service.delete_loi(actor, loi_id))


@router.delete("/admin/organizations/{organization_id}", response_model=DeletionResponse)
async def delete_organization(
    organization_id: UUID,
    actor: CurrentActor,
    service: DeletionServiceDep,
):
    """Deletes the organization with all of its users, LOIs and applications."""
    return DeletionResponse(deleted=await service.delete_organization(actor, organization_id))
