"""
Tests for the Letter of Interest API endpoints.
"""
import uuid

import pytest

from backend.models import LOIStatus
from tests.api.conftest import auth_headers
from tests.fixtures.factories import LOIFactory

pytestmark = pytest.mark.asyncio


COMPLETE_DRAFT = {
    "project_title": "Mobile Pantry",
    "project_description": "Two refrigerated vans serving rural townships.",
    "project_goals": "Reach 400 more households each month.",
    "expenditure_type": "capital",
    "total_project_amount": "120000.00",
    "grant_request_amount": "45000.00",
    "budget_outline": "Vans 90000, outfitting 20000, signage 10000.",
    "primary_contact_name": "Dana Applicant",
    "primary_contact_email": "dana@foodbank.org",
}


@pytest.fixture
def seed_loi(async_session, organization, cycle):
    async def _seed(status=LOIStatus.SUBMITTED, **kwargs):
        loi = LOIFactory.create(organization.id, cycle.id, status=status, **kwargs)
        async_session.add(loi)
        await async_session.commit()
        return loi

    return _seed


class TestAuthentication:
    """Every endpoint needs a bearer token."""

    async def test_missing_token(self, client):
        response = await client.get("/api/lois")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] is True
        assert body["detail"]["code"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_garbage_token(self, client):
        response = await client.get("/api/lois", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401


class TestApplicantFlow:
    """Create, edit and submit an LOI over HTTP."""

    async def test_create_edit_submit(self, client, applicant_headers, cycle, dispatcher):
        created = await client.post("/api/lois", json={}, headers=applicant_headers)
        assert created.status_code == 201
        loi = created.json()
        assert loi["status"] == "DRAFT"
        assert loi["cycle_config_id"] == str(cycle.id)

        updated = await client.patch(
            f"/api/lois/{loi['id']}", json=COMPLETE_DRAFT, headers=applicant_headers
        )
        assert updated.status_code == 200
        assert updated.json()["project_title"] == "Mobile Pantry"

        submitted = await client.post(f"/api/lois/{loi['id']}/submit", headers=applicant_headers)
        assert submitted.status_code == 200
        assert submitted.json()["status"] == "SUBMITTED"
        assert submitted.json()["submitted_at"] is not None
        assert dispatcher.kinds() == ["loi_submitted"]

        history = await client.get(f"/api/lois/{loi['id']}/history", headers=applicant_headers)
        assert [entry["new_status"] for entry in history.json()] == ["SUBMITTED"]

    async def test_duplicate_create(self, client, applicant_headers, cycle):
        first = await client.post("/api/lois", json={"cycle_id": str(cycle.id)}, headers=applicant_headers)

        response = await client.post("/api/lois", json={"cycle_id": str(cycle.id)}, headers=applicant_headers)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["reason"] == "duplicate"
        assert detail["fields"]["existing_id"] == first.json()["id"]

    async def test_submit_incomplete_lists_missing_fields(self, client, applicant_headers, cycle):
        created = await client.post("/api/lois", json={}, headers=applicant_headers)

        response = await client.post(
            f"/api/lois/{created.json()['id']}/submit", headers=applicant_headers
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "precondition_failed"
        assert detail["reason"] == "missing_fields"
        assert "Project Title" in detail["fields"]

    async def test_delete_draft(self, client, applicant_headers, cycle):
        created = await client.post("/api/lois", json={}, headers=applicant_headers)
        loi_id = created.json()["id"]

        response = await client.delete(f"/api/lois/{loi_id}", headers=applicant_headers)

        assert response.status_code == 204
        assert (await client.get(f"/api/lois/{loi_id}", headers=applicant_headers)).status_code == 404

    async def test_invalid_payload(self, client, applicant_headers, seed_loi):
        loi = await seed_loi(LOIStatus.DRAFT)

        response = await client.patch(
            f"/api/lois/{loi.id}",
            json={"percent_of_project": 140},
            headers=applicant_headers,
        )

        assert response.status_code == 422


class TestVisibility:
    """Applicants see their own records and never the internal notes."""

    async def test_outsider_cannot_read(self, client, outsider, seed_loi):
        loi = await seed_loi()

        response = await client.get(f"/api/lois/{loi.id}", headers=auth_headers(outsider))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"

    async def test_outsider_list_is_empty(self, client, outsider, seed_loi):
        await seed_loi()

        response = await client.get("/api/lois", headers=auth_headers(outsider))

        assert response.json() == []

    async def test_review_notes_hidden_from_applicant(
        self, client, applicant_headers, member_headers, admin_headers, seed_loi
    ):
        loi = await seed_loi()
        decided = await client.post(
            f"/api/lois/{loi.id}/decision",
            json={"decision": "DECLINED", "reason": "Outside our focus", "notes": "Weak budget"},
            headers=member_headers,
        )
        assert decided.json()["loi"]["review_notes"] == "Weak budget"
        await client.post("/api/admin/releases", json={"loi_ids": [str(loi.id)]}, headers=admin_headers)

        staff_view = await client.get(f"/api/lois/{loi.id}", headers=member_headers)
        applicant_view = await client.get(f"/api/lois/{loi.id}", headers=applicant_headers)

        assert staff_view.json()["review_notes"] == "Weak budget"
        assert staff_view.json()["reviewed_by_id"] == "staff_member"
        assert applicant_view.json()["review_notes"] is None
        assert applicant_view.json()["reviewed_by_id"] is None
        assert applicant_view.json()["decision_reason"] == "Outside our focus"

    async def test_unreleased_decision_hidden_from_applicant(
        self, client, applicant_headers, member_headers, seed_loi
    ):
        loi = await seed_loi()
        await client.post(
            f"/api/lois/{loi.id}/decision",
            json={"decision": "DECLINED", "reason": "Outside our focus"},
            headers=member_headers,
        )

        single = await client.get(f"/api/lois/{loi.id}", headers=applicant_headers)
        history = await client.get(f"/api/lois/{loi.id}/history", headers=applicant_headers)
        listing = await client.get("/api/lois", headers=applicant_headers)

        assert single.status_code == 404
        assert history.status_code == 404
        assert listing.json() == []
        assert (await client.get(f"/api/lois/{loi.id}", headers=member_headers)).status_code == 200

    async def test_status_filter(
        self, client, async_session, member_headers, seed_loi, other_organization, cycle
    ):
        submitted = await seed_loi(LOIStatus.SUBMITTED)
        async_session.add(LOIFactory.create(other_organization.id, cycle.id, status=LOIStatus.DRAFT))
        await async_session.commit()

        response = await client.get("/api/lois", params={"status": "SUBMITTED"}, headers=member_headers)

        assert [item["id"] for item in response.json()] == [str(submitted.id)]


class TestDecisions:
    """Tests for the decision endpoint."""

    async def test_approval_returns_application_id(self, client, member_headers, seed_loi, dispatcher):
        loi = await seed_loi()

        response = await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "APPROVED"}, headers=member_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["loi"]["status"] == "APPROVED"
        assert body["application_id"] is not None
        assert body["loi"]["notification_sent"] is False
        assert dispatcher.intents == []

    async def test_second_decision_conflicts(self, client, member_headers, seed_loi):
        loi = await seed_loi()
        await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "APPROVED"}, headers=member_headers
        )

        response = await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "DECLINED"}, headers=member_headers
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "invalid_transition"
        assert detail["current_status"] == "APPROVED"
        assert detail["allowed"] == []

    async def test_applicant_cannot_decide(self, client, applicant_headers, seed_loi):
        loi = await seed_loi()

        response = await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "APPROVED"}, headers=applicant_headers
        )

        assert response.status_code == 403
        assert response.json()["detail"]["required_role"] == "member"

    async def test_unknown_decision_value(self, client, member_headers, seed_loi):
        loi = await seed_loi()

        response = await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "MAYBE"}, headers=member_headers
        )

        assert response.status_code == 422

    async def test_unknown_loi(self, client, member_headers):
        response = await client.post(
            f"/api/lois/{uuid.uuid4()}/decision", json={"decision": "APPROVED"}, headers=member_headers
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    async def test_begin_review(self, client, member_headers, seed_loi):
        loi = await seed_loi()

        response = await client.post(f"/api/lois/{loi.id}/review", headers=member_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "UNDER_REVIEW"
