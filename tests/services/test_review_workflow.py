"""
Tests for reviewer votes, budget assessments and notes.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from backend.core.exceptions import ForbiddenError, PreconditionFailedError
from backend.models import ApplicationStatus, BudgetAssessment, ReviewNote, Vote
from backend.services.review_workflow import (
    ReviewWorkflowService,
    compute_composite_score,
    validate_scores,
)
from tests.fixtures.factories import ApplicationFactory, staff_actor

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(async_session, policy):
    return ReviewWorkflowService(async_session, policy=policy)


@pytest.fixture
def make_application(async_session, organization, cycle):
    async def _make(status=ApplicationStatus.UNDER_REVIEW):
        application = ApplicationFactory.create(organization.id, cycle.id, status=status)
        async_session.add(application)
        await async_session.commit()
        return application

    return _make


class TestCompositeScore:
    """Tests for the weighted composite."""

    def test_all_fives(self):
        assert compute_composite_score(5, 5, 5, 5) == Decimal("5.00")

    def test_weighted_mix(self):
        # 0.30*4 + 0.25*3 + 0.25*5 + 0.20*2
        assert compute_composite_score(4, 3, 5, 2) == Decimal("3.60")

    def test_two_decimal_places(self):
        # 0.30*1 + 0.25*2 + 0.25*2 + 0.20*1 = 1.50
        assert compute_composite_score(1, 2, 2, 1) == Decimal("1.50")

    def test_missing_score_yields_none(self):
        assert compute_composite_score(5, None, 4, 3) is None

    @pytest.mark.parametrize("bad", [0, 6, -1, 3.5, True, "4"])
    def test_validate_rejects_out_of_range(self, bad):
        with pytest.raises(PreconditionFailedError) as exc_info:
            validate_scores(budget_reasonableness_score=bad)

        assert exc_info.value.reason == "invalid_score"

    def test_validate_accepts_none(self):
        validate_scores(budget_reasonableness_score=None, cost_efficiency_score=3)


class TestVotes:
    """Tests for cast_vote and list_votes."""

    async def test_vote_is_idempotent_per_reviewer(self, service, async_session, member, make_application):
        application = await make_application()

        await service.cast_vote(member, application.id, "APPROVE", comments="Solid plan")
        latest = await service.cast_vote(member, application.id, "DECLINE", comments="Changed my mind")

        count = await async_session.scalar(select(func.count()).select_from(Vote))
        assert count == 1
        assert latest.vote == "DECLINE"
        assert latest.comments == "Changed my mind"

    async def test_votes_from_different_reviewers(self, service, member, admin, make_application):
        application = await make_application()

        await service.cast_vote(member, application.id, "APPROVE")
        await service.cast_vote(admin, application.id, "ABSTAIN")

        votes = await service.list_votes(member, application.id)
        assert {(v.reviewer_id, v.vote) for v in votes} == {
            (member.id, "APPROVE"),
            (admin.id, "ABSTAIN"),
        }

    async def test_vote_does_not_move_status(self, service, async_session, member, make_application):
        application = await make_application(ApplicationStatus.SUBMITTED)

        await service.cast_vote(member, application.id, "APPROVE")

        await async_session.refresh(application)
        assert application.status == ApplicationStatus.SUBMITTED.value

    async def test_applicant_cannot_vote(self, service, applicant, make_application):
        application = await make_application()

        with pytest.raises(ForbiddenError):
            await service.cast_vote(applicant, application.id, "APPROVE")

    async def test_applicant_cannot_read_votes(self, service, applicant, make_application):
        application = await make_application()

        with pytest.raises(ForbiddenError):
            await service.list_votes(applicant, application.id)

    @pytest.mark.parametrize("status", [ApplicationStatus.DRAFT, ApplicationStatus.APPROVED])
    async def test_closed_for_review(self, service, member, make_application, status):
        application = await make_application(status)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.cast_vote(member, application.id, "APPROVE")

        assert exc_info.value.reason == "review_closed"

    async def test_invalid_vote_value(self, service, member, make_application):
        application = await make_application()

        with pytest.raises(ValueError):
            await service.cast_vote(member, application.id, "MAYBE")


class TestBudgetAssessments:
    """Tests for submit_budget_assessment."""

    async def test_assessment_upsert_recomputes_composite(
        self, service, async_session, member, make_application
    ):
        application = await make_application()

        first = await service.submit_budget_assessment(
            member,
            application.id,
            budget_reasonableness_score=5,
            cost_efficiency_score=5,
            budget_detail_score=5,
            sustainability_score=5,
        )
        assert first.composite_score == Decimal("5.00")

        second = await service.submit_budget_assessment(
            member,
            application.id,
            budget_reasonableness_score=4,
            cost_efficiency_score=3,
            budget_detail_score=5,
            sustainability_score=2,
            comments="Sustainability plan is thin",
        )

        count = await async_session.scalar(select(func.count()).select_from(BudgetAssessment))
        assert count == 1
        assert second.id == first.id
        assert second.composite_score == Decimal("3.60")
        assert second.comments == "Sustainability plan is thin"

    async def test_partial_scores_leave_composite_empty(self, service, member, make_application):
        application = await make_application()

        assessment = await service.submit_budget_assessment(
            member, application.id, budget_reasonableness_score=4, cost_efficiency_score=4
        )

        assert assessment.composite_score is None

    async def test_resubmit_replaces_every_score(self, service, member, make_application):
        application = await make_application()
        await service.submit_budget_assessment(
            member,
            application.id,
            budget_reasonableness_score=3,
            cost_efficiency_score=3,
            budget_detail_score=3,
            sustainability_score=3,
        )

        replaced = await service.submit_budget_assessment(
            member, application.id, budget_reasonableness_score=2
        )

        assert replaced.cost_efficiency_score is None
        assert replaced.composite_score is None

    async def test_out_of_range_score(self, service, member, make_application):
        application = await make_application()

        with pytest.raises(PreconditionFailedError):
            await service.submit_budget_assessment(
                member, application.id, budget_reasonableness_score=9
            )

    async def test_listing_per_reviewer(self, service, make_application):
        application = await make_application()
        first = staff_actor("org:member", id="staff_first")
        second = staff_actor("org:member", id="staff_second")

        for reviewer in (first, second):
            await service.submit_budget_assessment(
                reviewer,
                application.id,
                budget_reasonableness_score=3,
                cost_efficiency_score=4,
                budget_detail_score=3,
                sustainability_score=4,
            )

        assessments = await service.list_budget_assessments(first, application.id)
        assert sorted(a.reviewer_id for a in assessments) == ["staff_first", "staff_second"]


class TestReviewNotes:
    """Tests for staff-only reviewer notes."""

    async def test_notes_listed_newest_first(self, service, async_session, member, admin, make_application):
        application = await make_application()
        earlier = await service.add_note(member, application.id, "Strong community letters.")
        earlier.created_at = earlier.created_at - timedelta(minutes=5)
        await async_session.commit()
        await service.add_note(admin, application.id, "Budget needs a second look.")

        notes = await service.list_notes(member, application.id)

        assert [n.content for n in notes] == [
            "Budget needs a second look.",
            "Strong community letters.",
        ]
        assert [n.author_id for n in notes] == [admin.id, member.id]
        assert all(n.is_private for n in notes)

    async def test_content_is_trimmed(self, service, member, make_application):
        application = await make_application()

        note = await service.add_note(member, application.id, "  Follow up on matching funds.  \n")

        assert note.content == "Follow up on matching funds."
        assert note.author_name == member.display_name

    async def test_blank_content_rejected(self, service, async_session, member, make_application):
        application = await make_application()

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.add_note(member, application.id, "   ")

        assert exc_info.value.reason == "content_required"
        assert await async_session.scalar(select(func.count()).select_from(ReviewNote)) == 0

    async def test_notes_accepted_in_any_status(self, service, member, make_application):
        application = await make_application(ApplicationStatus.APPROVED)

        note = await service.add_note(member, application.id, "Site visit scheduled.")

        assert note.application_id == application.id

    async def test_applicant_cannot_add_note(self, service, async_session, applicant, make_application):
        application = await make_application()
        application_id = application.id

        with pytest.raises(ForbiddenError):
            await service.add_note(applicant, application_id, "Please fund us.")

        assert await async_session.scalar(select(func.count()).select_from(ReviewNote)) == 0

    async def test_applicant_cannot_read_notes(self, service, member, applicant, make_application):
        application = await make_application()
        await service.add_note(member, application.id, "Internal only.")

        with pytest.raises(ForbiddenError):
            await service.list_notes(applicant, application.id)
