"""Reviewer input API router: votes, budget assessments and notes."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, status

from backend.api.deps import CurrentActor, ReviewServiceDep
from backend.schemas.reviews import (
    BudgetAssessmentCreate,
    BudgetAssessmentResponse,
    ReviewNoteCreate,
    ReviewNoteResponse,
    VoteCreate,
    VoteResponse,
)


router = APIRouter(prefix="/api/applications/{application_id}", tags=["reviews"])


@router.put("/votes/me", response_model=VoteResponse)
async def cast_vote(
    application_id: UUID,
    data: VoteCreate,
    actor: CurrentActor,
    service: ReviewServiceDep,
):
    """
    Create or replace the caller's vote.

    Votes are advisory; they never move the application's status.
    """
    return await service.cast_vote(actor, application_id, data.vote, comments=data.comments)


@router.get("/votes", response_model=List[VoteResponse])
async def list_votes(application_id: UUID, actor: CurrentActor, service: ReviewServiceDep):
    return await service.list_votes(actor, application_id)


@router.put("/budget-assessments/me", response_model=BudgetAssessmentResponse)
async def submit_budget_assessment(
    application_id: UUID,
    data: BudgetAssessmentCreate,
    actor: CurrentActor,
    service: ReviewServiceDep,
):
    """Create or replace the caller's budget assessment and recompute its composite."""
    return await service.submit_budget_assessment(
        actor,
        application_id,
        **data.model_dump(),
    )


@router.get("/budget-assessments", response_model=List[BudgetAssessmentResponse])
async def list_budget_assessments(
    application_id: UUID,
    actor: CurrentActor,
    service: ReviewServiceDep,
):
    return await service.list_budget_assessments(actor, application_id)


@router.post("/notes", response_model=ReviewNoteResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    application_id: UUID,
    data: ReviewNoteCreate,
    actor: CurrentActor,
    service: ReviewServiceDep,
):
    """Add a private reviewer note. Applicants never see notes."""
    return await service.add_note(actor, application_id, data.content)


@router.get("/notes", response_model=List[ReviewNoteResponse])
async def list_notes(application_id: UUID, actor: CurrentActor, service: ReviewServiceDep):
    """Reviewer notes, newest first."""
    return await service.list_notes(actor, application_id)
