"""API tests for the lead, staff and trigger routers."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app import app
from leadflow.models.enums import LeadStatus, NotificationKind
from leadflow.repositories.records.dependencies import get_db
from leadflow.services.leads.lead_workflow import get_lead_workflow
from leadflow.services.time_utils import utcnow

ADMIN_HEADERS = {"X-User-Role": "admin", "X-User-Id": "admin-1", "X-User-Name": "Admin"}


@pytest.fixture()
def client(session_factory, workflow):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lead_workflow] = lambda: workflow
    yield TestClient(app)
    app.dependency_overrides.clear()


def sales_headers(staff):
    return {"X-User-Role": "sales", "X-User-Id": staff.id, "X-User-Name": staff.full_name}


class TestLeadsApi:
    def test_missing_identity_is_unauthorized(self, client) -> None:
        assert client.get("/leads/").status_code == 401

    def test_create_without_online_sales_is_conflict(self, client, make_staff) -> None:
        make_staff("Nok")

        response = client.post(
            "/leads/", json={"name": "Ploy", "phone": "0812345678"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 409

    def test_create_and_list(self, client, make_staff) -> None:
        nok = make_staff("Nok", online=True)

        created = client.post(
            "/leads/",
            json={"name": "Ploy", "phone": "0812345678", "value": "9,900"},
            headers=ADMIN_HEADERS,
        )
        listed = client.get("/leads/", headers=sales_headers(nok))

        assert created.status_code == 201
        body = created.json()
        assert body["assigned_to"] == nok.id
        assert body["assignee_name"] == "Nok"
        assert body["value"] == 9900.0
        assert [lead["id"] for lead in listed.json()] == [body["id"]]

    def test_contact_log_and_trail(self, client, make_staff, make_lead) -> None:
        nok = make_staff("Nok")
        lead = make_lead(assigned_to=nok.id)

        response = client.post(
            f"/leads/{lead.id}/contact",
            json={"status": "contacted", "note": "Wants a quote"},
            headers=sales_headers(nok),
        )
        trail = client.get(f"/leads/{lead.id}/activities", headers=sales_headers(nok))

        assert response.status_code == 200
        assert response.json()["status"] == "contacted"
        assert [entry["activity_description"] for entry in trail.json()] == [
            'Status changed to "contacted". Note: Wants a quote'
        ]

    def test_foreign_lead_is_forbidden(self, client, make_staff, make_lead) -> None:
        nok = make_staff("Nok")
        boon = make_staff("Boon")
        lead = make_lead(assigned_to=boon.id)

        response = client.patch(
            f"/leads/{lead.id}", json={"status": "lost"}, headers=sales_headers(nok)
        )

        assert response.status_code == 403

    def test_delete(self, client, make_staff, make_lead, notifier) -> None:
        nok = make_staff("Nok")
        lead = make_lead(assigned_to=nok.id)

        assert client.delete(f"/leads/{lead.id}", headers=sales_headers(nok)).status_code == 403
        assert client.delete(f"/leads/{lead.id}", headers=ADMIN_HEADERS).status_code == 204
        assert client.delete(f"/leads/{lead.id}", headers=ADMIN_HEADERS).status_code == 404
        assert notifier.send.call_args.args[0] == NotificationKind.DELETE_LEAD

    def test_sale_books_follow_ups(self, client, make_staff, make_lead) -> None:
        nok = make_staff("Nok")
        lead = make_lead(assigned_to=nok.id)

        response = client.post(
            f"/leads/{lead.id}/sale",
            json={"service_date": "2024-03-10"},
            headers=sales_headers(nok),
        )
        events = client.get("/calendar/events", headers=sales_headers(nok))

        assert response.status_code == 200
        assert response.json()["lead"]["status"] == LeadStatus.WON.value
        assert len(response.json()["follow_ups"]) == 5
        assert len(events.json()) == 5

    def test_pending_count(self, client, make_staff, make_lead) -> None:
        nok = make_staff("Nok")
        make_lead(assigned_to=nok.id)

        response = client.get("/leads/pending-count", headers=sales_headers(nok))

        assert response.json() == {"count": 1}


class TestStaffAndTriggersApi:
    def test_presence_toggle_and_directory(self, client, make_staff) -> None:
        nok = make_staff("Nok")

        toggled = client.put(
            "/staff/me/presence", json={"state": "online"}, headers=sales_headers(nok)
        )
        directory = client.get("/staff/", headers=ADMIN_HEADERS)
        eligible = client.get("/staff/eligible", headers=ADMIN_HEADERS)

        assert toggled.status_code == 200
        assert toggled.json()["is_online"] is True
        assert [member["full_name"] for member in directory.json()] == ["Nok"]
        assert [member["id"] for member in eligible.json()] == [nok.id]

    def test_invalid_presence_state(self, client, make_staff) -> None:
        nok = make_staff("Nok")

        response = client.put(
            "/staff/me/presence", json={"state": "away"}, headers=sales_headers(nok)
        )

        assert response.status_code == 422

    def test_heartbeat(self, client, make_staff) -> None:
        nok = make_staff("Nok")

        response = client.post("/staff/me/heartbeat", headers=sales_headers(nok))

        assert response.json() == {"accepted": True}

    def test_remove_staff_member(self, client, db, make_staff, make_lead) -> None:
        nok = make_staff("Nok")
        lead = make_lead(assigned_to=nok.id)

        assert client.delete(f"/staff/{nok.id}", headers=sales_headers(nok)).status_code == 403
        nok_id = nok.id
        assert client.delete(f"/staff/{nok_id}", headers=ADMIN_HEADERS).status_code == 204
        assert client.delete(f"/staff/{nok_id}", headers=ADMIN_HEADERS).status_code == 404
        db.refresh(lead)
        assert lead.assigned_to is None

    def test_triggers_are_admin_only(self, client, make_staff) -> None:
        nok = make_staff("Nok")

        assert client.post("/triggers/idle-leads", headers=sales_headers(nok)).status_code == 403

    def test_idle_leads_trigger(self, client, make_lead) -> None:
        make_lead(created_at=utcnow() - timedelta(minutes=30))

        response = client.post("/triggers/idle-leads", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["check"] == "stale_notify"
        assert len(body["leads"]) == 1
        # LINE is not configured in tests
        assert body["notified"] is False

    def test_test_notification_without_configuration(self, client) -> None:
        response = client.post("/triggers/test-notification", headers=ADMIN_HEADERS)

        assert response.json()["status"] == "skipped"


class TestSessionSocket:
    def test_admin_session_is_told_to_refresh(self, client, make_staff, make_lead) -> None:
        with client.websocket_connect("/sessions/ws?role=admin&name=Admin") as websocket:
            make_staff("Nok")
            assert websocket.receive_json() == {"type": "refresh", "view": "staff"}

            make_lead()
            assert websocket.receive_json() == {"type": "refresh", "view": "leads"}
