"""Reviewer input service layer: votes, budget assessments and notes."""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Type, Union
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError, PreconditionFailedError
from backend.database import atomic
from backend.models import (
    Application,
    ApplicationStatus,
    BudgetAssessment,
    ReviewNote,
    Vote,
    VoteValue,
)
from backend.services.access_policy import AccessPolicy, Actor, Role, build_default_policy

logger = structlog.get_logger(__name__)


# Weights of the four budget sub-scores
SCORE_WEIGHTS = {
    "budget_reasonableness_score": Decimal("0.30"),
    "cost_efficiency_score": Decimal("0.25"),
    "budget_detail_score": Decimal("0.25"),
    "sustainability_score": Decimal("0.20"),
}

MIN_SCORE = 1
MAX_SCORE = 5

# Reviewer input is accepted only while the application is in review
OPEN_FOR_REVIEW = frozenset(
    {
        ApplicationStatus.SUBMITTED.value,
        ApplicationStatus.UNDER_REVIEW.value,
        ApplicationStatus.INFO_REQUESTED.value,
    }
)

ReviewerInput = Union[Vote, BudgetAssessment]


def compute_composite_score(
    budget_reasonableness_score: Optional[int],
    cost_efficiency_score: Optional[int],
    budget_detail_score: Optional[int],
    sustainability_score: Optional[int],
) -> Optional[Decimal]:
    """
    Weighted composite of the four sub-scores.

    Returns None unless every sub-score is present.
    """
    scores = {
        "budget_reasonableness_score": budget_reasonableness_score,
        "cost_efficiency_score": cost_efficiency_score,
        "budget_detail_score": budget_detail_score,
        "sustainability_score": sustainability_score,
    }
    if any(value is None for value in scores.values()):
        return None
    total = sum(SCORE_WEIGHTS[name] * Decimal(value) for name, value in scores.items())
    return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def validate_scores(**scores: Optional[int]) -> None:
    """Reject sub-scores outside 1..5."""
    invalid = {
        name: value
        for name, value in scores.items()
        if value is not None
        and (isinstance(value, bool) or not isinstance(value, int) or not MIN_SCORE <= value <= MAX_SCORE)
    }
    if invalid:
        raise PreconditionFailedError(
            f"Scores must be whole numbers between {MIN_SCORE} and {MAX_SCORE}",
            reason="invalid_score",
            fields=invalid,
        )


class ReviewWorkflowService:
    """Service for advisory reviewer input on applications."""

    def __init__(self, db: AsyncSession, policy: Optional[AccessPolicy] = None):
        self.db = db
        self.policy = policy or build_default_policy()

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _load_application(self, application_id: UUID) -> Application:
        application = await self.db.get(Application, application_id)
        if not application:
            raise NotFoundError("Application", application_id)
        return application

    @staticmethod
    def _ensure_open(application: Application) -> None:
        if application.status not in OPEN_FOR_REVIEW:
            raise PreconditionFailedError(
                f"Reviews are closed for applications in status {application.status}",
                reason="review_closed",
            )

    async def _find(
        self,
        model: Type[ReviewerInput],
        application_id: UUID,
        reviewer_id: str,
    ) -> Optional[ReviewerInput]:
        result = await self.db.execute(
            select(model)
            .where(model.application_id == application_id, model.reviewer_id == reviewer_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_or_create(
        self,
        model: Type[ReviewerInput],
        application_id: UUID,
        actor: Actor,
    ) -> ReviewerInput:
        """
        Fetch the reviewer's row, inserting it when absent.

        A concurrent insert by the same reviewer loses on the unique
        constraint; the savepoint is rolled back and the winner's row is
        updated instead.
        """
        row = await self._find(model, application_id, actor.id)
        if row is not None:
            return row

        try:
            async with self.db.begin_nested():
                row = model(
                    application_id=application_id,
                    reviewer_id=actor.id,
                    reviewer_name=actor.display_name,
                )
                self.db.add(row)
                await self.db.flush()
        except IntegrityError:
            logger.info(
                "reviewer_input_insert_raced",
                model=model.__tablename__,
                application_id=str(application_id),
                reviewer_id=actor.id,
            )
            row = await self._find(model, application_id, actor.id)
            if row is None:
                raise
        return row

    # =========================================================================
    # Votes
    # =========================================================================

    async def cast_vote(
        self,
        actor: Actor,
        application_id: UUID,
        vote: VoteValue,
        comments: Optional[str] = None,
    ) -> Vote:
        """Create or replace the reviewer's vote."""
        vote = VoteValue(vote)

        async with atomic(self.db):
            application = await self._load_application(application_id)
            self.policy.require(actor, Role.MEMBER, application, action="vote on applications")
            self._ensure_open(application)

            row = await self._get_or_create(Vote, application.id, actor)
            row.reviewer_name = actor.display_name
            row.vote = vote.value
            row.comments = comments
            await self.db.flush()

        logger.info(
            "vote_cast",
            application_id=str(application_id),
            reviewer_id=actor.id,
            vote=vote.value,
        )
        return row

    async def list_votes(self, actor: Actor, application_id: UUID) -> List[Vote]:
        application = await self._load_application(application_id)
        self.policy.require(actor, Role.MEMBER, application, action="view votes")
        result = await self.db.execute(
            select(Vote).where(Vote.application_id == application_id).order_by(Vote.created_at.asc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # Budget assessments
    # =========================================================================

    async def submit_budget_assessment(
        self,
        actor: Actor,
        application_id: UUID,
        budget_reasonableness_score: Optional[int] = None,
        cost_efficiency_score: Optional[int] = None,
        budget_detail_score: Optional[int] = None,
        sustainability_score: Optional[int] = None,
        comments: Optional[str] = None,
    ) -> BudgetAssessment:
        """
        Create or replace the reviewer's budget assessment.

        Every call replaces all four sub-scores and recomputes the composite.
        """
        scores = {
            "budget_reasonableness_score": budget_reasonableness_score,
            "cost_efficiency_score": cost_efficiency_score,
            "budget_detail_score": budget_detail_score,
            "sustainability_score": sustainability_score,
        }
        validate_scores(**scores)

        async with atomic(self.db):
            application = await self._load_application(application_id)
            self.policy.require(actor, Role.MEMBER, application, action="assess budgets")
            self._ensure_open(application)

            row = await self._get_or_create(BudgetAssessment, application.id, actor)
            row.reviewer_name = actor.display_name
            for name, value in scores.items():
                setattr(row, name, value)
            row.composite_score = compute_composite_score(**scores)
            row.comments = comments
            await self.db.flush()

        logger.info(
            "budget_assessment_submitted",
            application_id=str(application_id),
            reviewer_id=actor.id,
            composite_score=str(row.composite_score) if row.composite_score is not None else None,
        )
        return row

    async def list_budget_assessments(
        self,
        actor: Actor,
        application_id: UUID,
    ) -> List[BudgetAssessment]:
        application = await self._load_application(application_id)
        self.policy.require(actor, Role.MEMBER, application, action="view budget assessments")
        result = await self.db.execute(
            select(BudgetAssessment)
            .where(BudgetAssessment.application_id == application_id)
            .order_by(BudgetAssessment.created_at.asc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # Notes
    # =========================================================================

    async def add_note(self, actor: Actor, application_id: UUID, content: str) -> ReviewNote:
        """Attach a private reviewer note. Notes are accepted in any status."""
        if not content or not content.strip():
            raise PreconditionFailedError("Note content is required", reason="content_required")

        async with atomic(self.db):
            application = await self._load_application(application_id)
            self.policy.require(actor, Role.MEMBER, application, action="add review notes")

            note = ReviewNote(
                application_id=application.id,
                author_id=actor.id,
                author_name=actor.display_name,
                content=content.strip(),
                is_private=True,
            )
            self.db.add(note)
            await self.db.flush()

        logger.info(
            "review_note_added",
            application_id=str(application_id),
            note_id=str(note.id),
            author_id=actor.id,
        )
        return note

    async def list_notes(self, actor: Actor, application_id: UUID) -> List[ReviewNote]:
        """Reviewer notes, newest first."""
        application = await self._load_application(application_id)
        self.policy.require(actor, Role.MEMBER, application, action="view review notes")
        result = await self.db.execute(
            select(ReviewNote)
            .where(ReviewNote.application_id == application_id)
            .order_by(ReviewNote.created_at.desc())
        )
        return list(result.scalars().all())
