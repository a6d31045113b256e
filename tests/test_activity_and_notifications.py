import os
import smtplib
import sys
from datetime import date, datetime, time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "local")
os.environ.setdefault("DISABLE_DEMO_SEED", "1")

import models  # noqa: E402
import database  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.services import activity_log, booking_rules, calendar_invite, mailer, notifications  # noqa: E402
from app.services.activity_log import Actor  # noqa: E402
from app.services.notifications import (  # noqa: E402
    AppointmentSnapshot,
    NotificationEvent,
    NotificationKind,
)

BASE_NOW = datetime(2026, 3, 2, 8, 0)
TUESDAY = date(2026, 3, 3)


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


def _expert_with_window() -> str:
    db = database.SessionLocal()
    try:
        expert = models.Expert(name="Notify Expert", email="notify@example.com")
        db.add(expert)
        db.flush()
        db.add(models.AvailabilityWindow(expert_id=expert.id, day_of_week=1, start_time=time(9), end_time=time(11)))
        db.commit()
        return expert.id
    finally:
        db.close()


def _booking_payload(expert_id: str) -> dict:
    return {
        "expertId": expert_id,
        "userName": "Burak",
        "userEmail": "burak@example.com",
        "userPhone": "5559998877",
        "ticketNo": "INC0999999",
        "date": TUESDAY.isoformat(),
        "time": "09:00",
    }


def _snapshot(status: str = "approved") -> AppointmentSnapshot:
    return AppointmentSnapshot(
        id="appt-1",
        ticket_no="INC0000001",
        customer_name="Burak",
        customer_email="burak@example.com",
        customer_phone="5559998877",
        date=TUESDAY,
        time=time(9),
        status=status,
        notes=None,
        expert_name="Notify Expert",
        expert_email="notify@example.com",
    )


class _BrokenSession:
    def __init__(self) -> None:
        self.rolled_back = False

    def add(self, _entry) -> None:
        pass

    def commit(self) -> None:
        raise OperationalError("INSERT INTO activity_logs", {}, Exception("database is locked"))

    def rollback(self) -> None:
        self.rolled_back = True


def test_activity_log_failure_is_swallowed():
    session = _BrokenSession()
    result = activity_log.record(session, Actor(id="u1", name="Admin"), "approve_appointment", "appointment", "a1")
    assert result is None
    assert session.rolled_back


def test_actor_headers_are_recorded(client_base: TestClient):
    expert_id = _expert_with_window()
    resp = client_base.post(
        "/api/appointments",
        json=_booking_payload(expert_id),
        headers={"actor-id": "admin-7", "actor-name": "Helpdesk Admin"},
    )
    assert resp.status_code == 201, resp.text

    logs = client_base.get("/api/activity-logs", params={"actorId": "admin-7"}).json()
    assert logs["pagination"]["total"] == 1
    entry = logs["logs"][0]
    assert entry["action"] == "create_appointment"
    assert entry["actorName"] == "Helpdesk Admin"
    assert entry["details"]["ticket_no"] == "INC0999999"


def test_notification_failure_does_not_fail_booking(monkeypatch, client_base: TestClient):
    def broken_send(*_args, **_kwargs):
        raise RuntimeError("smtp exploded")

    monkeypatch.setattr(mailer, "send_email", broken_send)
    expert_id = _expert_with_window()

    resp = client_base.post("/api/appointments", json=_booking_payload(expert_id))
    assert resp.status_code == 201, resp.text
    assert client_base.get(f"/api/appointments/{resp.json()['id']}").json()["status"] == "pending"


def test_booking_notifies_expert_inbox(client_base: TestClient):
    expert_id = _expert_with_window()
    appointment = client_base.post("/api/appointments", json=_booking_payload(expert_id)).json()

    inbox = client_base.get("/api/notifications", params={"email": "notify@example.com"})
    assert inbox.status_code == 200, inbox.text
    body = inbox.json()
    assert body["unreadCount"] == 1
    item = body["notifications"][0]
    assert item["kind"] == "appointment_created"
    assert item["appointmentId"] == appointment["id"]

    read = client_base.put(f"/api/notifications/{item['id']}/read")
    assert read.status_code == 200, read.text
    assert read.json()["isRead"] is True
    assert client_base.get("/api/notifications", params={"email": "notify@example.com"}).json()["unreadCount"] == 0


def test_mark_all_read(client_base: TestClient):
    expert_id = _expert_with_window()
    appointment = client_base.post("/api/appointments", json=_booking_payload(expert_id)).json()
    client_base.put(f"/api/appointments/{appointment['id']}/approve")

    assert client_base.get("/api/notifications", params={"email": "burak@example.com"}).json()["unreadCount"] == 1
    resp = client_base.put("/api/notifications/read-all", json={"email": "burak@example.com"})
    assert resp.status_code == 200, resp.text
    assert client_base.get("/api/notifications", params={"email": "burak@example.com"}).json()["unreadCount"] == 0


def test_notifications_require_email(client_base: TestClient):
    assert client_base.get("/api/notifications").status_code == 400
    assert client_base.put("/api/notifications/999/read").status_code == 404


def test_approved_message_carries_calendar_invite():
    message = notifications.render(
        NotificationEvent(NotificationKind.APPOINTMENT_APPROVED, "burak@example.com", _snapshot()),
        site_title="Helpdesk",
    )
    assert message.subject.startswith("Helpdesk - ")
    assert [a["content_type"] for a in message.attachments] == ["text/calendar"]
    assert "DTSTART;TZID=Europe/Istanbul:20260303T090000" in message.attachments[0]["content"]


def test_cancel_message_includes_reason_and_no_invite():
    message = notifications.render(
        NotificationEvent(NotificationKind.APPOINTMENT_CANCELLED, "burak@example.com", _snapshot(), {"reason": "Resolved"}),
    )
    assert "Reason: Resolved" in message.text
    assert message.attachments == []


def test_reschedule_proposal_message_has_both_links():
    extra = {
        "proposed_date": date(2026, 3, 5),
        "proposed_time": time(13),
        "reason": "Onsite visit",
        "approve_url": "http://front/reschedule?token=t&action=approve",
        "reject_url": "http://front/reschedule?token=t&action=reject",
    }
    message = notifications.render(
        NotificationEvent(NotificationKind.RESCHEDULE_PROPOSED, "burak@example.com", _snapshot(), extra)
    )
    assert extra["approve_url"] in message.text
    assert extra["reject_url"] in message.text


def test_calendar_invite_end_is_start_plus_duration():
    ics = calendar_invite.build_ics(
        "appt-1",
        TUESDAY,
        time(13),
        "Notify Expert",
        "Burak",
        "INC0000001",
        stamp=datetime(2026, 3, 1, 12, 0),
    )
    lines = ics.split("\r\n")
    assert "DTEND;TZID=Europe/Istanbul:20260303T140000" in lines
    assert "DTSTAMP:20260301T120000Z" in lines
    assert "UID:appointment-appt-1@expert-booking" in lines


def test_mailer_reports_unconfigured_smtp():
    assert mailer.send_email("someone@example.com", "subject", "body") is False


def test_dispatcher_skips_events_without_recipient():
    dispatcher = notifications.EventDispatcher()
    snap = _snapshot()
    dispatcher.emit(NotificationEvent(NotificationKind.APPOINTMENT_CREATED, None, snap))
    assert dispatcher.kinds() == [NotificationKind.APPOINTMENT_CREATED]


class FailingTlsServer:
    instances: list = []

    def __init__(self, host, port, timeout=None):
        self.closed = False
        self.logged_in = False
        FailingTlsServer.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False

    def starttls(self, context=None):
        raise smtplib.SMTPException("STARTTLS extension not supported by server")

    def login(self, user, password):
        self.logged_in = True


def test_mailer_closes_connection_when_starttls_fails(monkeypatch):
    monkeypatch.setattr(settings, "smtp_enabled", True)
    monkeypatch.setattr(settings, "smtp_host", "smtp.example.com")
    monkeypatch.setattr(settings, "smtp_port", 587)
    monkeypatch.setattr(settings, "smtp_user", "mailer@example.com")
    FailingTlsServer.instances = []
    monkeypatch.setattr(mailer.smtplib, "SMTP", FailingTlsServer)

    assert mailer.send_email("someone@example.com", "subject", "body") is False
    assert len(FailingTlsServer.instances) == 1
    server = FailingTlsServer.instances[0]
    assert server.closed
    assert not server.logged_in
