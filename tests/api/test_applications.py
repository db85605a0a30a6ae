"""
Tests for the Application API endpoints.
"""
import pytest

from backend.models import ApplicationStatus
from tests.fixtures.factories import ApplicationFactory

pytestmark = pytest.mark.asyncio


@pytest.fixture
def seed_application(async_session, organization, org_user, cycle):
    async def _seed(status=ApplicationStatus.UNDER_REVIEW, **kwargs):
        application = ApplicationFactory.create(organization.id, cycle.id, status=status, **kwargs)
        async_session.add(application)
        await async_session.commit()
        return application

    return _seed


class TestDrafts:
    """Direct-path creation and submission."""

    async def test_create_and_submit(self, client, applicant_headers, cycle, dispatcher):
        created = await client.post("/api/applications", headers=applicant_headers)
        assert created.status_code == 201
        application_id = created.json()["id"]
        assert created.json()["status"] == "DRAFT"

        patched = await client.patch(
            f"/api/applications/{application_id}",
            json={"project_title": "Reading Corps", "payload": {"sections": {"mission": "Literacy"}}},
            headers=applicant_headers,
        )
        assert patched.status_code == 200
        assert patched.json()["payload"] == {"sections": {"mission": "Literacy"}}

        submitted = await client.post(
            f"/api/applications/{application_id}/submit", headers=applicant_headers
        )
        assert submitted.status_code == 200
        assert submitted.json()["status"] == "SUBMITTED"
        assert "application_submitted" in dispatcher.kinds()

    async def test_second_application_in_cycle(self, client, applicant_headers, cycle):
        await client.post("/api/applications", headers=applicant_headers)

        response = await client.post("/api/applications", headers=applicant_headers)

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "duplicate"

    async def test_staff_cannot_edit_draft(self, client, member_headers, seed_application):
        application = await seed_application(ApplicationStatus.DRAFT)

        response = await client.patch(
            f"/api/applications/{application.id}",
            json={"project_title": "Renamed"},
            headers=member_headers,
        )

        assert response.status_code == 403


class TestInformationRequests:
    """The request-info and respond round trip."""

    async def test_round_trip(self, client, manager_headers, applicant_headers, seed_application):
        application = await seed_application()

        requested = await client.post(
            f"/api/applications/{application.id}/request-info",
            json={"message": "Please attach your audited financials."},
            headers=manager_headers,
        )
        assert requested.status_code == 201
        communication = requested.json()
        assert communication["response_required"] is True

        pending = await client.get(
            f"/api/applications/{application.id}/request-info", headers=applicant_headers
        )
        assert pending.json()["id"] == communication["id"]

        responded = await client.post(
            f"/api/applications/{application.id}/respond",
            json={"communication_id": communication["id"], "response": "Attached."},
            headers=applicant_headers,
        )
        assert responded.status_code == 200
        assert responded.json()["response_content"] == "Attached."

        current = await client.get(f"/api/applications/{application.id}", headers=applicant_headers)
        assert current.json()["status"] == "UNDER_REVIEW"

        after = await client.get(
            f"/api/applications/{application.id}/request-info", headers=applicant_headers
        )
        assert after.json() is None

    async def test_second_request_while_pending(self, client, manager_headers, seed_application):
        application = await seed_application()
        first = await client.post(
            f"/api/applications/{application.id}/request-info",
            json={"message": "Send the budget."},
            headers=manager_headers,
        )

        response = await client.post(
            f"/api/applications/{application.id}/request-info",
            json={"message": "And the board list."},
            headers=manager_headers,
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["reason"] == "info_request_pending"
        assert detail["fields"]["communication_id"] == first.json()["id"]

    async def test_blank_message_rejected(self, client, manager_headers, seed_application):
        application = await seed_application()

        response = await client.post(
            f"/api/applications/{application.id}/request-info",
            json={"message": "   "},
            headers=manager_headers,
        )

        assert response.status_code == 422

    async def test_member_cannot_request(self, client, member_headers, seed_application):
        application = await seed_application()

        response = await client.post(
            f"/api/applications/{application.id}/request-info",
            json={"message": "Send the budget."},
            headers=member_headers,
        )

        assert response.status_code == 403
        assert response.json()["detail"]["required_role"] == "manager"


class TestStatusChanges:
    """Tests for decisions and the admin status route."""

    async def test_admin_decision_notifies_applicant(
        self, client, admin_headers, seed_application, org_user, dispatcher
    ):
        application = await seed_application()

        response = await client.post(
            f"/api/applications/{application.id}/decision",
            json={"decision": "APPROVED", "reason": "Strong community support"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"
        assert response.json()["decided_by_name"] == "Alex Admin"
        assert dispatcher.intents[-1].recipients == [org_user.email]

    async def test_manager_cannot_decide(self, client, manager_headers, seed_application):
        application = await seed_application()

        response = await client.post(
            f"/api/applications/{application.id}/decision",
            json={"decision": "APPROVED"},
            headers=manager_headers,
        )

        assert response.status_code == 403

    async def test_status_route_follows_table(self, client, admin_headers, seed_application):
        application = await seed_application(ApplicationStatus.SUBMITTED)

        response = await client.put(
            f"/api/applications/{application.id}/status",
            json={"status": "UNDER_REVIEW"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        history = await client.get(f"/api/applications/{application.id}/history", headers=admin_headers)
        assert history.json()[0]["previous_status"] == "SUBMITTED"
        assert history.json()[0]["new_status"] == "UNDER_REVIEW"

    async def test_status_route_rejects_skipped_edge(self, client, admin_headers, seed_application):
        application = await seed_application(ApplicationStatus.DRAFT)

        response = await client.put(
            f"/api/applications/{application.id}/status",
            json={"status": "APPROVED"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["allowed"] == ["SUBMITTED"]

    async def test_status_route_refuses_info_requested(self, client, admin_headers, seed_application):
        application = await seed_application()

        response = await client.put(
            f"/api/applications/{application.id}/status",
            json={"status": "INFO_REQUESTED"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "use_request_info"

    async def test_unknown_status_value(self, client, admin_headers, seed_application):
        application = await seed_application()

        response = await client.put(
            f"/api/applications/{application.id}/status",
            json={"status": "ARCHIVED"},
            headers=admin_headers,
        )

        assert response.status_code == 422
