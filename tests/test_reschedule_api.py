import os
import sys
from datetime import date, datetime, time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "local")
os.environ.setdefault("DISABLE_DEMO_SEED", "1")

import models  # noqa: E402
import database  # noqa: E402
from app.services import booking_rules, reschedule  # noqa: E402

BASE_NOW = datetime(2026, 3, 2, 8, 0)
TUESDAY = date(2026, 3, 3)
REASON = "Expert has a conflicting onsite visit"


@pytest.fixture(autouse=True)
def _reset_tables(monkeypatch):
    monkeypatch.setattr(booking_rules, "get_local_now", lambda: BASE_NOW)
    models.Base.metadata.drop_all(bind=database.engine)
    models.Base.metadata.create_all(bind=database.engine)
    yield


@pytest.fixture
def client_base() -> TestClient:
    sys.modules["models"] = models
    sys.modules["database"] = database
    from main import app  # noqa: E402

    return TestClient(app)


def _appointment(status: str = "approved") -> str:
    db = database.SessionLocal()
    try:
        expert = models.Expert(name="Reschedule Expert", email="resched@example.com")
        db.add(expert)
        db.flush()
        db.add(models.AvailabilityWindow(expert_id=expert.id, day_of_week=1, start_time=time(9), end_time=time(11)))
        db.add(models.AvailabilityWindow(expert_id=expert.id, day_of_week=1, start_time=time(13), end_time=time(16)))
        appointment = models.Appointment(
            expert_id=expert.id,
            customer_name="Selin",
            customer_email="selin@example.com",
            customer_phone="5550102030",
            ticket_no="INC0000100",
            date=TUESDAY,
            time=time(9),
            status=status,
        )
        db.add(appointment)
        db.commit()
        return appointment.id
    finally:
        db.close()


def _propose(client: TestClient, appointment_id: str, proposed_time: str = "13:00"):
    return client.post(
        f"/api/appointments/{appointment_id}/reschedule",
        json={"proposedDate": TUESDAY.isoformat(), "proposedTime": proposed_time, "reason": REASON},
    )


def _token(request_id: str) -> str:
    db = database.SessionLocal()
    try:
        return db.get(models.RescheduleRequest, request_id).token
    finally:
        db.close()


def test_proposal_response_does_not_expose_token(client_base: TestClient):
    appointment_id = _appointment()
    resp = _propose(client_base, appointment_id)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["state"] == "pending"
    assert body["proposedTime"] == "13:00"
    assert "token" not in body


def test_customer_approval_moves_the_appointment(client_base: TestClient):
    appointment_id = _appointment()
    request_id = _propose(client_base, appointment_id).json()["id"]
    token = _token(request_id)

    detail = client_base.get(f"/api/reschedule/{token}")
    assert detail.status_code == 200, detail.text
    assert detail.json()["appointment"]["time"] == "09:00"

    resp = client_base.post(f"/api/reschedule/{token}/approve")
    assert resp.status_code == 200, resp.text
    assert resp.json()["state"] == "approved"
    assert resp.json()["appointment"]["time"] == "13:00"

    logs = client_base.get("/api/activity-logs", params={"action": "approve_reschedule"}).json()["logs"]
    assert logs[0]["actorName"] == "Customer: selin@example.com"


def test_token_cannot_be_used_twice(client_base: TestClient):
    appointment_id = _appointment()
    token = _token(_propose(client_base, appointment_id).json()["id"])

    assert client_base.post(f"/api/reschedule/{token}/approve").status_code == 200
    again = client_base.post(f"/api/reschedule/{token}/approve")
    assert again.status_code == 409, again.text
    assert again.json()["code"] == "already_resolved"
    assert client_base.post(f"/api/reschedule/{token}/reject").status_code == 409


def test_reject_keeps_original_time(client_base: TestClient):
    appointment_id = _appointment()
    token = _token(_propose(client_base, appointment_id).json()["id"])

    resp = client_base.post(f"/api/reschedule/{token}/reject")
    assert resp.status_code == 200, resp.text
    assert resp.json()["state"] == "rejected"
    assert resp.json()["appointment"]["time"] == "09:00"


def test_new_proposal_supersedes_pending_one(client_base: TestClient):
    appointment_id = _appointment()
    first_token = _token(_propose(client_base, appointment_id).json()["id"])
    second_token = _token(_propose(client_base, appointment_id).json()["id"])
    assert first_token != second_token

    stale = client_base.post(f"/api/reschedule/{first_token}/approve")
    assert stale.status_code == 409, stale.text
    assert stale.json()["code"] == "already_resolved"

    assert client_base.post(f"/api/reschedule/{second_token}/approve").status_code == 200


def test_unknown_token_returns_404(client_base: TestClient):
    assert client_base.get("/api/reschedule/not-a-token").status_code == 404
    assert client_base.post("/api/reschedule/not-a-token/approve").status_code == 404


def test_only_approved_appointments_can_be_rescheduled(client_base: TestClient):
    appointment_id = _appointment(status="pending")
    resp = _propose(client_base, appointment_id)
    assert resp.status_code == 409, resp.text


def test_proposal_outside_availability_is_rejected(client_base: TestClient):
    appointment_id = _appointment()
    assert _propose(client_base, appointment_id, proposed_time="10:00").status_code == 400


def test_proposal_of_current_slot_is_rejected(client_base: TestClient):
    appointment_id = _appointment()
    assert _propose(client_base, appointment_id, proposed_time="09:00").status_code == 400


def test_action_links_carry_token_and_action():
    url = reschedule.action_url("abc", "approve")
    assert url.endswith("/reschedule?token=abc&action=approve")


def _request_state(request_id: str) -> str:
    db = database.SessionLocal()
    try:
        return db.get(models.RescheduleRequest, request_id).state
    finally:
        db.close()


def _morning_only_expert() -> str:
    db = database.SessionLocal()
    try:
        expert = models.Expert(name="Morning Expert", email="morning@example.com")
        db.add(expert)
        db.flush()
        db.add(models.AvailabilityWindow(expert_id=expert.id, day_of_week=1, start_time=time(9), end_time=time(11)))
        db.commit()
        return expert.id
    finally:
        db.close()


def test_cancel_supersedes_pending_proposal(client_base: TestClient):
    appointment_id = _appointment()
    request_id = _propose(client_base, appointment_id).json()["id"]
    token = _token(request_id)

    cancel = client_base.put(
        f"/api/appointments/{appointment_id}/cancel",
        json={"cancellationReason": "Customer solved it"},
    )
    assert cancel.status_code == 200, cancel.text
    assert _request_state(request_id) == "superseded"

    rejected = client_base.post(f"/api/reschedule/{token}/reject")
    assert rejected.status_code == 409, rejected.text
    assert rejected.json()["code"] == "already_resolved"
    approved = client_base.post(f"/api/reschedule/{token}/approve")
    assert approved.status_code == 409, approved.text


def test_complete_supersedes_pending_proposal(client_base: TestClient):
    appointment_id = _appointment()
    request_id = _propose(client_base, appointment_id).json()["id"]
    token = _token(request_id)

    assert client_base.put(f"/api/appointments/{appointment_id}/complete").status_code == 200
    assert _request_state(request_id) == "superseded"
    assert client_base.post(f"/api/reschedule/{token}/approve").status_code == 409
    assert client_base.post(f"/api/reschedule/{token}/reject").status_code == 409


def test_reassignment_supersedes_proposal_for_previous_expert(client_base: TestClient):
    appointment_id = _appointment()
    new_expert_id = _morning_only_expert()
    request_id = _propose(client_base, appointment_id).json()["id"]
    token = _token(request_id)

    reassigned = client_base.put(
        f"/api/appointments/{appointment_id}/reassign",
        json={"newExpertId": new_expert_id, "reason": "Original expert is on leave"},
    )
    assert reassigned.status_code == 200, reassigned.text
    assert _request_state(request_id) == "superseded"

    resp = client_base.post(f"/api/reschedule/{token}/approve")
    assert resp.status_code == 409, resp.text
    assert resp.json()["code"] == "already_resolved"

    appointment = client_base.get(f"/api/appointments/{appointment_id}").json()
    assert appointment["expertId"] == new_expert_id
    assert appointment["time"] == "09:00"


def test_approve_rechecks_availability_of_current_expert(client_base: TestClient):
    appointment_id = _appointment()
    request_id = _propose(client_base, appointment_id).json()["id"]
    token = _token(request_id)

    # Move the appointment behind the request's back; the pending row stays.
    new_expert_id = _morning_only_expert()
    db = database.SessionLocal()
    try:
        db.get(models.Appointment, appointment_id).expert_id = new_expert_id
        db.commit()
    finally:
        db.close()

    resp = client_base.post(f"/api/reschedule/{token}/approve")
    assert resp.status_code == 400, resp.text
    assert resp.json()["code"] == "slot_unavailable"
    assert _request_state(request_id) == "pending"
    assert client_base.get(f"/api/appointments/{appointment_id}").json()["time"] == "09:00"


def test_reject_requires_approved_appointment(client_base: TestClient):
    appointment_id = _appointment()
    request_id = _propose(client_base, appointment_id).json()["id"]
    token = _token(request_id)

    db = database.SessionLocal()
    try:
        db.get(models.Appointment, appointment_id).status = "cancelled"
        db.commit()
    finally:
        db.close()

    resp = client_base.post(f"/api/reschedule/{token}/reject")
    assert resp.status_code == 409, resp.text
    assert resp.json()["code"] == "invalid_transition"
    assert _request_state(request_id) == "pending"
