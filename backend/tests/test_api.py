"""HTTP tests for the FastAPI application."""

from datetime import datetime
from pathlib import Path
import sys

from fastapi.testclient import TestClient
import pytest
import pytz

sys.path.append(str(Path(__file__).resolve().parents[1]))
from examdesk.domain.models import SessionUser  # noqa: E402
from examdesk.main import create_app  # noqa: E402
from examdesk.storage.backends import MemoryBackend  # noqa: E402
from examdesk.storage.store import Store  # noqa: E402

NOW = datetime(2026, 2, 2, 8, 0, tzinfo=pytz.UTC)

TEST_PAYLOAD = {
    "title": "Codul electoral",
    "questions": [{"text": "Cine organizeaza alegerile?", "options": ["CEC", "Guvernul"], "correct_answer": 0}],
}
BOOKING = {"full_name": "Ion Popescu", "id_or_phone": "069123456", "date": "2026-02-09", "slot_id": "slot1"}


@pytest.fixture
def app_store() -> Store:
    return Store(MemoryBackend(), tz=pytz.timezone("Europe/Chisinau"), clock=lambda: NOW)


@pytest.fixture
def client(app_store) -> TestClient:
    return TestClient(create_app(app_store))


def test_health_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "storage": "memory"}
    assert response.headers["X-Request-ID"]


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_eligible_days(client):
    response = client.get("/schedule/days", params={"start": "2026-02-02", "count": 3})

    assert response.status_code == 200
    assert [item["date"] for item in response.json()] == ["2026-02-02", "2026-02-04", "2026-02-06"]
    assert response.json()[0]["remaining"] == 30


def test_booking_then_slots(client, app_store):
    app_store.write_session(SessionUser(id="u1", email="ion@example.com", full_name="Ion Popescu"), "token")

    created = client.post("/appointments", json=BOOKING)

    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert body["userEmail"] == "ion@example.com"
    assert body["appointmentCode"].startswith("AP-2026-")

    slots = client.get("/schedule/days/2026-02-09/slots").json()
    assert slots["occupied"] == 1
    assert [slot["available"] for slot in slots["slots"]] == [False, True, True]

    inbox = client.get("/inbox/user/ion@example.com").json()
    assert inbox["unread"] == 1
    assert client.post("/inbox/user/ion@example.com/read-all").status_code == 204
    assert client.get("/inbox/user/ion@example.com").json()["unread"] == 0


def test_booking_errors_carry_the_field(client):
    response = client.post("/appointments", json={**BOOKING, "date": "2026-02-10"})

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "date"


def test_candidate_reschedule(client):
    appointment = client.post("/appointments", json=BOOKING).json()

    moved = client.post(
        f"/appointments/{appointment['id']}/reschedule",
        json={"date": "2026-02-11", "slot_start": "13:00", "slot_end": "13:30"},
    )
    missing = client.post(
        "/appointments/nope/reschedule",
        json={"date": "2026-02-11", "slot_start": "13:00", "slot_end": "13:30"},
    )

    assert moved.status_code == 200
    assert moved.json()["previousAppointmentId"] == appointment["id"]
    assert moved.json()["rescheduleCount"] == 1
    assert missing.status_code == 404


def test_admin_test_lifecycle(client):
    created = client.post("/admin/tests", json=TEST_PAYLOAD)
    assert created.status_code == 201
    test_id = created.json()["id"]

    updated = client.put(f"/admin/tests/{test_id}", json={**TEST_PAYLOAD, "title": "Renamed"})
    assert updated.json()["title"] == "Renamed"

    assert client.post("/admin/tests", json={**TEST_PAYLOAD, "title": " "}).status_code == 422
    assert client.delete(f"/admin/tests/{test_id}").status_code == 204
    assert client.delete(f"/admin/tests/{test_id}").status_code == 404
    assert client.get("/admin/state").json()["tests"] == []


def test_admin_settings_validation(client):
    rejected = client.put("/admin/settings", json={"passingThreshold": 0})
    accepted = client.put("/admin/settings", json={"passingThreshold": 85, "appointmentLeadTimeHours": 0})

    assert rejected.status_code == 422
    assert accepted.status_code == 200
    assert accepted.json()["passingThreshold"] == 85
    assert client.get("/admin/state").json()["settings"]["appointmentLeadTimeHours"] == 0


def test_admin_day_configuration(client):
    response = client.put("/admin/days/2026-02-09", json={"blocked": True, "note": "Audit"})

    assert response.status_code == 200
    slots = client.get("/schedule/days/2026-02-09/slots").json()
    assert slots["blocked"] is True
    assert slots["blockedNote"] == "Audit"
    assert not any(slot["available"] for slot in slots["slots"])
    assert client.put("/admin/days/2026-02-09", json={"slot_lines": "late"}).status_code == 422


def test_admin_appointment_workflow(client):
    appointment = client.post("/appointments", json=BOOKING).json()
    path = f"/admin/appointments/{appointment['id']}"

    approved = client.post(f"{path}/status", json={"status": "approved", "admin_note": "ok"})
    patched = client.patch(path, json={"adminNote": "Bring ID"})
    moved = client.post(f"{path}/reschedule", json={"date": "2026-02-13", "slot_start": "15:00", "slot_end": "15:30"})

    assert approved.json()["status"] == "approved"
    assert patched.json()["adminNote"] == "Bring ID"
    assert moved.json()["date"] == "2026-02-13"
    assert moved.json()["status"] == "approved"
    assert client.post("/admin/appointments/nope/status", json={"status": "approved"}).status_code == 404


def test_admin_toggle_block_and_notifications(client, app_store, make_user):
    app_store.write_users([make_user(1), make_user(2)])

    blocked = client.post("/admin/users/user-1/toggle-block")
    sent = client.post("/admin/notifications", json={"target": "all", "title": "Hi", "message": "Exam day"})
    invalid = client.post("/admin/notifications", json={"target": "email", "title": "Hi", "message": "x"})

    assert blocked.json()["isBlocked"] is True
    assert sent.status_code == 201
    assert sent.json()["recipientCount"] == 3
    assert invalid.status_code == 422
    assert client.post("/admin/users/nope/toggle-block").status_code == 404


def test_quiz_attempt(client):
    response = client.post(
        "/quiz/attempts",
        json={
            "categoryId": "law",
            "categoryTitle": "Legislatie",
            "score": 90,
            "completedAt": "2026-02-02T08:00:00Z",
            "userEmail": "ion@example.com",
        },
    )

    assert response.status_code == 201
    assert response.json() == {"passed": True}
    assert client.get("/admin/state").json()["quizHistory"][0]["score"] == 90
