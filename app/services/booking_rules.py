from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.models.appointment import customer_key, normalize_phone, slot_key

# Support ticket numbers: "INC0" followed by exactly six digits.
TICKET_NO_PATTERN = re.compile(r"^INC0\d{6}$")

# Default weekly windows used by the "setup all experts" action (Mon-Fri).
DEFAULT_WEEKDAY_WINDOWS = [
    (time(9, 0), time(11, 0)),
    (time(13, 0), time(16, 0)),
]

TIME_FORMAT = "%H:%M"


def utcnow() -> datetime:
    """Naive UTC now. Separated for monkeypatching in tests (slot lock TTL)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_local_now() -> datetime:
    """Naive wall-clock time in the configured timezone. Separated for monkeypatching in tests."""
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)


def is_valid_ticket_no(ticket_no: str | None) -> bool:
    return bool(ticket_no) and TICKET_NO_PATTERN.fullmatch(ticket_no) is not None


def starts_at(target_date: date, target_time: time) -> datetime:
    return datetime.combine(target_date, target_time)


def ends_at(target_date: date, target_time: time) -> datetime:
    return starts_at(target_date, target_time) + timedelta(minutes=settings.appointment_duration_minutes)


def meets_lead_time(target_date: date, target_time: time, minimum_hours: int, now: datetime | None = None) -> bool:
    """True when the slot starts at least ``minimum_hours`` after now (local time)."""
    ref = now or get_local_now()
    return starts_at(target_date, target_time) - ref >= timedelta(hours=minimum_hours)


def format_time(value: time) -> str:
    return value.strftime(TIME_FORMAT)


def windows_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    return start_a < end_b and start_b < end_a


__all__ = [
    "TICKET_NO_PATTERN",
    "DEFAULT_WEEKDAY_WINDOWS",
    "utcnow",
    "get_local_now",
    "is_valid_ticket_no",
    "starts_at",
    "ends_at",
    "meets_lead_time",
    "format_time",
    "windows_overlap",
    "normalize_phone",
    "slot_key",
    "customer_key",
]
