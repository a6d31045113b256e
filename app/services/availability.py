"""
Availability index: an expert's recurring weekly windows and the bookable
start times they yield on a given date.

Each window contributes exactly one bookable instant, its ``start_time``;
ranges are never subdivided into several slots.
"""
from __future__ import annotations

import logging
from datetime import date, time
from typing import List

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models import Appointment, AppointmentStatus, AvailabilityWindow, Expert, Weekday
from app.services import booking_rules

logger = logging.getLogger(__name__)


def open_start_times(db: Session, expert_id: str, target_date: date) -> List[time]:
    """Sorted, de-duplicated start times of the expert's windows on that weekday."""
    weekday = Weekday.of(target_date)
    rows = (
        db.query(AvailabilityWindow.start_time)
        .filter(
            AvailabilityWindow.expert_id == expert_id,
            AvailabilityWindow.day_of_week == int(weekday),
        )
        .all()
    )
    return sorted({row.start_time for row in rows})


def is_open_start_time(db: Session, expert_id: str, target_date: date, target_time: time) -> bool:
    return target_time in open_start_times(db, expert_id, target_date)


def day_slots(db: Session, expert_id: str, target_date: date) -> list[dict]:
    """Open start times for one date, each flagged when a live appointment holds it."""
    starts = open_start_times(db, expert_id, target_date)
    if not starts:
        return []
    booked = {
        row.time
        for row in db.query(Appointment.time).filter(
            Appointment.expert_id == expert_id,
            Appointment.date == target_date,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        )
    }
    return [{"time": start, "booked": start in booked} for start in starts]


def list_windows(db: Session, expert_id: str | None = None) -> List[AvailabilityWindow]:
    query = db.query(AvailabilityWindow)
    if expert_id:
        query = query.filter(AvailabilityWindow.expert_id == expert_id)
    return query.order_by(
        AvailabilityWindow.expert_id,
        AvailabilityWindow.day_of_week,
        AvailabilityWindow.start_time,
    ).all()


def create_window(
    db: Session,
    expert_id: str,
    day_of_week: Weekday,
    start_time: time,
    end_time: time,
) -> AvailabilityWindow:
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time")

    expert = db.get(Expert, expert_id)
    if not expert:
        raise NotFoundError("Expert not found")

    existing = (
        db.query(AvailabilityWindow)
        .filter(
            AvailabilityWindow.expert_id == expert_id,
            AvailabilityWindow.day_of_week == int(day_of_week),
        )
        .all()
    )
    for window in existing:
        if booking_rules.windows_overlap(window.start_time, window.end_time, start_time, end_time):
            raise ConflictError("Availability overlaps an existing window for this day")

    window = AvailabilityWindow(
        expert_id=expert_id,
        day_of_week=int(day_of_week),
        start_time=start_time,
        end_time=end_time,
    )
    db.add(window)
    db.commit()
    db.refresh(window)
    return window


def delete_window(db: Session, window_id: str) -> AvailabilityWindow:
    window = db.get(AvailabilityWindow, window_id)
    if not window:
        raise NotFoundError("Availability not found")
    db.delete(window)
    db.commit()
    return window


def setup_default_windows(db: Session) -> dict:
    """Give every expert the default Mon-Fri windows; existing overlapping windows are kept."""
    experts = db.query(Expert).all()
    if not experts:
        raise ValidationError("No experts found")

    created = 0
    skipped = 0
    for expert in experts:
        current = {(w.day_of_week, w.start_time, w.end_time) for w in expert.availability_windows}
        for day in (Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY):
            for start, end in booking_rules.DEFAULT_WEEKDAY_WINDOWS:
                clash = any(
                    dow == int(day) and booking_rules.windows_overlap(s, e, start, end) for dow, s, e in current
                )
                if clash:
                    skipped += 1
                    continue
                db.add(AvailabilityWindow(expert_id=expert.id, day_of_week=int(day), start_time=start, end_time=end))
                current.add((int(day), start, end))
                created += 1
    db.commit()
    logger.info("Default availability setup: created=%s skipped=%s experts=%s", created, skipped, len(experts))
    return {
        "created": created,
        "skipped": skipped,
        "experts": len(experts),
        "total_slots": len(experts) * 5 * len(booking_rules.DEFAULT_WEEKDAY_WINDOWS),
    }
