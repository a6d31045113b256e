"""iCalendar (.ics) attachments for appointment confirmations."""
from __future__ import annotations

from datetime import date, datetime, time

from app.core.config import settings
from app.services import booking_rules

ICS_DATETIME_FORMAT = "%Y%m%dT%H%M%S"


def _escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def build_ics(
    appointment_id: str,
    target_date: date,
    target_time: time,
    expert_name: str,
    customer_name: str,
    ticket_no: str,
    sequence: int = 0,
    stamp: datetime | None = None,
) -> str:
    """
    Single-event calendar. Start/end are floating local times tagged with
    the configured timezone; the end is start + appointment duration.
    """
    start = booking_rules.starts_at(target_date, target_time)
    end = booking_rules.ends_at(target_date, target_time)
    dtstamp = (stamp or booking_rules.utcnow()).strftime(ICS_DATETIME_FORMAT) + "Z"
    tz = settings.timezone
    description = _escape(f"Ticket No: {ticket_no}\nExpert: {expert_name}\nCustomer: {customer_name}")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{_escape(settings.site_title)}//Expert Booking//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-TIMEZONE:{tz}",
        "BEGIN:VEVENT",
        f"UID:appointment-{appointment_id}@expert-booking",
        f"DTSTAMP:{dtstamp}",
        f"DTSTART;TZID={tz}:{start.strftime(ICS_DATETIME_FORMAT)}",
        f"DTEND;TZID={tz}:{end.strftime(ICS_DATETIME_FORMAT)}",
        f"SUMMARY:{_escape(f'Expert appointment - {expert_name}')}",
        f"DESCRIPTION:{description}",
        "STATUS:CONFIRMED",
        f"SEQUENCE:{sequence}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"
