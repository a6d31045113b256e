import os
import sys
from datetime import datetime, time
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
from app.services import booking, booking_rules  # noqa: E402

# Monday 08:00 local; bookings target Tuesday 2026-03-03.
BASE_NOW = datetime(2026, 3, 2, 8, 0)
TUESDAY = "2026-03-03"


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


def _create_expert(name: str = "Booking Expert", email: str = "expert@example.com") -> str:
    db = database.SessionLocal()
    try:
        expert = models.Expert(name=name, email=email)
        db.add(expert)
        db.flush()
        for day in (models.Weekday.MONDAY, models.Weekday.TUESDAY):
            db.add(models.AvailabilityWindow(expert_id=expert.id, day_of_week=day, start_time=time(9), end_time=time(11)))
            db.add(models.AvailabilityWindow(expert_id=expert.id, day_of_week=day, start_time=time(13), end_time=time(16)))
        db.commit()
        return expert.id
    finally:
        db.close()


def _payload(expert_id: str, **overrides):
    payload = {
        "expertId": expert_id,
        "userName": "Deniz Yilmaz",
        "userEmail": "deniz@example.com",
        "userPhone": "+90 555 123 45 67",
        "ticketNo": "INC0123456",
        "date": TUESDAY,
        "time": "09:00",
    }
    payload.update(overrides)
    return payload


def test_booking_creates_pending_appointment(client_base: TestClient):
    expert_id = _create_expert()
    resp = client_base.post("/api/appointments", json=_payload(expert_id, notes="VPN drops every hour"))
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "pending"
    assert body["time"] == "09:00"
    assert body["expertName"] == "Booking Expert"
    assert body["notes"] == "VPN drops every hour"

    fetched = client_base.get(f"/api/appointments/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["ticketNo"] == "INC0123456"


def test_booking_same_slot_twice_returns_409(client_base: TestClient):
    expert_id = _create_expert()
    first = client_base.post("/api/appointments", json=_payload(expert_id))
    assert first.status_code == 201, first.text

    second = client_base.post(
        "/api/appointments",
        json=_payload(expert_id, userEmail="other@example.com", userPhone="5550000000", ticketNo="INC0654321"),
    )
    assert second.status_code == 409, second.text
    assert second.json()["code"] == "slot_taken"


def test_booking_inside_a_window_but_not_at_its_start_is_rejected(client_base: TestClient):
    expert_id = _create_expert()
    resp = client_base.post("/api/appointments", json=_payload(expert_id, time="09:30"))
    assert resp.status_code == 400, resp.text
    assert resp.json()["code"] == "slot_unavailable"


def test_booking_on_a_day_without_windows_is_rejected(client_base: TestClient):
    expert_id = _create_expert()
    resp = client_base.post("/api/appointments", json=_payload(expert_id, date="2026-03-04"))
    assert resp.status_code == 400, resp.text


def test_cancelled_appointment_frees_the_slot(client_base: TestClient):
    expert_id = _create_expert()
    first = client_base.post("/api/appointments", json=_payload(expert_id)).json()
    cancel = client_base.put(
        f"/api/appointments/{first['id']}/cancel",
        json={"cancellationReason": "Customer solved it"},
    )
    assert cancel.status_code == 200, cancel.text

    again = client_base.post("/api/appointments", json=_payload(expert_id))
    assert again.status_code == 201, again.text


def test_customer_with_active_appointment_cannot_book_again(client_base: TestClient):
    expert_id = _create_expert()
    other_expert_id = _create_expert("Second Expert", "second-expert@example.com")
    first = client_base.post("/api/appointments", json=_payload(expert_id))
    assert first.status_code == 201, first.text

    # Same customer, other expert and slot; email case and phone formatting do not matter.
    resp = client_base.post(
        "/api/appointments",
        json=_payload(other_expert_id, time="13:00", userEmail="DENIZ@example.com", userPhone="905551234567"),
    )
    assert resp.status_code == 409, resp.text
    assert resp.json()["code"] == "duplicate_customer"

    client_base.put(f"/api/appointments/{first.json()['id']}/cancel", json={"cancellationReason": "Booked by mistake"})
    retry = client_base.post("/api/appointments", json=_payload(other_expert_id, time="13:00"))
    assert retry.status_code == 201, retry.text


def test_same_email_with_different_phone_is_a_different_customer(client_base: TestClient):
    expert_id = _create_expert()
    assert client_base.post("/api/appointments", json=_payload(expert_id)).status_code == 201

    resp = client_base.post("/api/appointments", json=_payload(expert_id, time="13:00", userPhone="5551112233"))
    assert resp.status_code == 201, resp.text


@pytest.mark.parametrize("ticket_no", ["INC123456", "INC01234567", "inc0123456", "REQ0123456", ""])
def test_invalid_ticket_number_is_rejected(client_base: TestClient, ticket_no: str):
    expert_id = _create_expert()
    resp = client_base.post("/api/appointments", json=_payload(expert_id, ticketNo=ticket_no))
    assert resp.status_code == 400, resp.text
    assert resp.json()["code"] == "invalid_ticket_no"


def test_booking_inside_lead_time_is_rejected(client_base: TestClient):
    expert_id = _create_expert()
    # Monday 09:00 is one hour after BASE_NOW, default lead time is three hours.
    resp = client_base.post("/api/appointments", json=_payload(expert_id, date="2026-03-02"))
    assert resp.status_code == 400, resp.text
    assert resp.json()["code"] == "lead_time"


def test_lead_time_follows_settings(client_base: TestClient):
    expert_id = _create_expert()
    update = client_base.put("/api/settings/minimum_booking_hours", json={"value": "0"})
    assert update.status_code == 200, update.text

    resp = client_base.post("/api/appointments", json=_payload(expert_id, date="2026-03-02"))
    assert resp.status_code == 201, resp.text


def test_booking_unknown_expert_returns_404(client_base: TestClient):
    resp = client_base.post("/api/appointments", json=_payload("missing-expert"))
    assert resp.status_code == 404, resp.text


def test_invalid_email_is_a_400(client_base: TestClient):
    expert_id = _create_expert()
    resp = client_base.post("/api/appointments", json=_payload(expert_id, userEmail="not-an-email"))
    assert resp.status_code == 400, resp.text
    assert resp.json()["code"] == "validation_error"


def test_booking_releases_locks_on_the_slot(client_base: TestClient):
    expert_id = _create_expert()
    lock = client_base.post(
        "/api/appointments/lock/create",
        json={"expertId": expert_id, "date": TUESDAY, "time": "09:00", "sessionId": "form-1"},
    )
    assert lock.status_code == 201, lock.text

    assert client_base.post("/api/appointments", json=_payload(expert_id)).status_code == 201

    check = client_base.get(
        "/api/appointments/lock/check",
        params={"expertId": expert_id, "date": TUESDAY, "time": "09:00", "currentSessionId": "other"},
    )
    assert check.status_code == 200
    assert check.json() == {"locked": False}


def test_list_appointments_filters_by_status(client_base: TestClient):
    expert_id = _create_expert()
    first = client_base.post("/api/appointments", json=_payload(expert_id)).json()
    client_base.post(
        "/api/appointments",
        json=_payload(expert_id, time="13:00", userEmail="second@example.com", ticketNo="INC0000002"),
    )
    client_base.put(f"/api/appointments/{first['id']}/approve")

    resp = client_base.get("/api/appointments", params={"status": "approved"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert [a["id"] for a in body["appointments"]] == [first["id"]]
    assert body["pagination"]["total"] == 1


def _live_appointments() -> list:
    db = database.SessionLocal()
    try:
        return (
            db.query(models.Appointment)
            .filter(models.Appointment.status != models.AppointmentStatus.CANCELLED.value)
            .all()
        )
    finally:
        db.close()


def test_unique_slot_key_rejects_a_double_booking_the_lookup_missed(monkeypatch, client_base: TestClient):
    expert_id = _create_expert()
    monkeypatch.setattr(booking, "find_slot_conflict", lambda *args, **kwargs: None)

    first = client_base.post("/api/appointments", json=_payload(expert_id))
    assert first.status_code == 201, first.text
    second = client_base.post(
        "/api/appointments",
        json=_payload(expert_id, userEmail="other@example.com", userPhone="5550000000", ticketNo="INC0654321"),
    )
    assert second.status_code == 409, second.text
    assert second.json()["code"] == "slot_taken"
    assert len(_live_appointments()) == 1


def test_unique_customer_key_rejects_a_second_booking_the_lookup_missed(monkeypatch, client_base: TestClient):
    expert_id = _create_expert()
    monkeypatch.setattr(booking, "find_active_customer_appointment", lambda *args, **kwargs: None)

    first = client_base.post("/api/appointments", json=_payload(expert_id))
    assert first.status_code == 201, first.text
    second = client_base.post("/api/appointments", json=_payload(expert_id, time="13:00"))
    assert second.status_code == 409, second.text
    assert second.json()["code"] == "duplicate_customer"
    assert len(_live_appointments()) == 1


@pytest.mark.parametrize("field", ["userName", "userPhone"])
def test_blank_customer_fields_are_rejected(client_base: TestClient, field: str):
    expert_id = _create_expert()
    resp = client_base.post("/api/appointments", json=_payload(expert_id, **{field: "   "}))
    assert resp.status_code == 400, resp.text
    assert resp.json()["code"] == "validation_error"
    assert _live_appointments() == []


def test_customer_name_is_stored_trimmed(client_base: TestClient):
    expert_id = _create_expert()
    resp = client_base.post("/api/appointments", json=_payload(expert_id, userName="  Deniz Yilmaz  "))
    assert resp.status_code == 201, resp.text
    assert resp.json()["userName"] == "Deniz Yilmaz"
