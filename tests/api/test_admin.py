"""
Tests for the admin API: decision releases, grant cycles and deletions.
"""
import pytest

from backend.models import ApplicationStatus, LOIStatus
from tests.fixtures.factories import ApplicationFactory, LOIFactory

pytestmark = pytest.mark.asyncio


@pytest.fixture
def submitted_loi(async_session, organization, org_user, cycle):
    async def _seed():
        loi = LOIFactory.create(organization.id, cycle.id, status=LOIStatus.SUBMITTED)
        async_session.add(loi)
        await async_session.commit()
        return loi

    return _seed


class TestReleases:
    """Decisions reach applicants only through the release endpoint."""

    async def test_decide_then_release(
        self, client, member_headers, admin_headers, submitted_loi, sender
    ):
        loi = await submitted_loi()
        decided = await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "APPROVED"}, headers=member_headers
        )
        application_id = decided.json()["application_id"]

        pending = await client.get("/api/admin/releases", headers=admin_headers)
        assert [item["loi_id"] for item in pending.json()] == [str(loi.id)]
        assert pending.json()[0]["application_id"] == application_id
        assert pending.json()[0]["contact_email"] == loi.primary_contact_email

        released = await client.post(
            "/api/admin/releases", json={"release_all": True}, headers=admin_headers
        )

        assert released.status_code == 200
        body = released.json()
        assert body["released_count"] == 1
        assert body["emails_sent_count"] == 1
        assert body["results"][0]["email_sent"] is True
        assert [str(intent.application_id) for intent in sender.sent] == [application_id]

        assert (await client.get("/api/admin/releases", headers=admin_headers)).json() == []

    async def test_derived_application_hidden_until_release(
        self, client, member_headers, admin_headers, applicant_headers, submitted_loi
    ):
        loi = await submitted_loi()
        decided = await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "APPROVED"}, headers=member_headers
        )
        application_id = decided.json()["application_id"]

        before = await client.get(f"/api/applications/{application_id}", headers=applicant_headers)
        assert before.status_code == 404
        assert (await client.get("/api/applications", headers=applicant_headers)).json() == []

        await client.post("/api/admin/releases", json={"release_all": True}, headers=admin_headers)

        after = await client.get(f"/api/applications/{application_id}", headers=applicant_headers)
        assert after.status_code == 200
        assert after.json()["loi_id"] == str(loi.id)
        listed = await client.get("/api/applications", headers=applicant_headers)
        assert [item["id"] for item in listed.json()] == [application_id]

    async def test_release_with_nothing_selected(self, client, admin_headers):
        response = await client.post("/api/admin/releases", json={}, headers=admin_headers)

        assert response.status_code == 422
        assert "loi_ids" in response.text

    async def test_release_requires_admin(self, client, manager_headers):
        response = await client.post(
            "/api/admin/releases", json={"release_all": True}, headers=manager_headers
        )

        assert response.status_code == 403
        assert response.json()["detail"]["required_role"] == "admin"
        assert response.json()["detail"]["actual_role"] == "manager"


class TestCycles:
    """Grant cycle administration endpoints."""

    async def test_create_and_activate(self, client, admin_headers, applicant_headers, cycle):
        created = await client.post(
            "/api/admin/cycles",
            json={
                "cycle": "Spring",
                "year": 2040,
                "loi_deadline": "2040-03-01T00:00:00Z",
                "accepting_lois": True,
            },
            headers=admin_headers,
        )
        assert created.status_code == 201
        assert created.json()["is_active"] is False

        activated = await client.post(
            f"/api/admin/cycles/{created.json()['id']}/activate", headers=admin_headers
        )
        assert activated.json()["is_active"] is True

        open_cycles = await client.get("/api/cycles", headers=applicant_headers)
        assert [item["id"] for item in open_cycles.json()] == [created.json()["id"]]

    async def test_duplicate_cycle(self, client, admin_headers):
        payload = {"cycle": "Fall", "year": 2041, "loi_deadline": "2041-09-01T00:00:00Z"}
        await client.post("/api/admin/cycles", json=payload, headers=admin_headers)

        response = await client.post("/api/admin/cycles", json=payload, headers=admin_headers)

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "duplicate"

    async def test_update_flags(self, client, admin_headers, cycle):
        response = await client.patch(
            f"/api/admin/cycles/{cycle.id}",
            json={"accepting_lois": False},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["accepting_lois"] is False
        assert response.json()["is_active"] is True

    async def test_delete_cycle_in_use(self, client, admin_headers, submitted_loi, cycle):
        await submitted_loi()

        response = await client.delete(f"/api/admin/cycles/{cycle.id}", headers=admin_headers)

        assert response.status_code == 422
        assert response.json()["detail"]["fields"] == {"lois": 1, "applications": 0}

    async def test_delete_unused_cycle(self, client, admin_headers, cycle):
        response = await client.delete(f"/api/admin/cycles/{cycle.id}", headers=admin_headers)

        assert response.status_code == 204
        assert (await client.get("/api/admin/cycles", headers=admin_headers)).json() == []

    async def test_member_cannot_list_cycles(self, client, member_headers):
        response = await client.get("/api/admin/cycles", headers=member_headers)

        assert response.status_code == 403


class TestDeletion:
    """Cascading record deletion endpoints."""

    async def test_delete_application(self, client, async_session, admin_headers, organization, cycle):
        application = ApplicationFactory.create(organization.id, cycle.id, status=ApplicationStatus.DRAFT)
        async_session.add(application)
        await async_session.commit()

        response = await client.delete(f"/api/admin/applications/{application.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["deleted"]["applications"] == 1
        missing = await client.get(f"/api/applications/{application.id}", headers=admin_headers)
        assert missing.status_code == 404

    async def test_derived_application_cannot_be_deleted(
        self, client, member_headers, admin_headers, submitted_loi
    ):
        loi = await submitted_loi()
        decided = await client.post(
            f"/api/lois/{loi.id}/decision", json={"decision": "APPROVED"}, headers=member_headers
        )
        application_id = decided.json()["application_id"]

        response = await client.delete(f"/api/admin/applications/{application_id}", headers=admin_headers)

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "derived_application"
        assert response.json()["detail"]["fields"] == {"loi_id": str(loi.id)}
        still_there = await client.get(f"/api/applications/{application_id}", headers=admin_headers)
        assert still_there.status_code == 200

    async def test_delete_organization(
        self, client, admin_headers, organization, submitted_loi
    ):
        await submitted_loi()

        response = await client.delete(f"/api/admin/organizations/{organization.id}", headers=admin_headers)

        assert response.status_code == 200
        deleted = response.json()["deleted"]
        assert deleted["organizations"] == 1
        assert deleted["letters_of_interest"] == 1
        assert deleted["users"] == 1

    async def test_delete_requires_admin(self, client, manager_headers, submitted_loi):
        loi = await submitted_loi()

        response = await client.delete(f"/api/admin/lois/{loi.id}", headers=manager_headers)

        assert response.status_code == 403
