"""
Soft locks on slots while a booking form is open.

There is one row per slot, owned by whichever session acquired it last.
Locks are advisory: acquiring never fails because another session holds the
slot (it takes the row over), and booking never consults locks. They only
drive the "someone is filling in this slot" hint in the UI. Expiry is lazy;
expired rows are swept on every acquire/check instead of by a background timer.
"""
from __future__ import annotations

import logging
from datetime import date, time, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError
from app.models import SlotLock
from app.services import booking_rules

logger = logging.getLogger(__name__)


def lock_ttl() -> timedelta:
    return timedelta(seconds=settings.slot_lock_ttl_seconds)


def sweep_expired(db: Session) -> int:
    now = booking_rules.utcnow()
    removed = db.query(SlotLock).filter(SlotLock.expires_at < now).delete(synchronize_session=False)
    if removed:
        logger.debug("Swept %s expired slot locks", removed)
    return removed


def acquire(db: Session, expert_id: str, target_date: date, target_time: time, session_id: str) -> SlotLock:
    if not session_id:
        raise ValidationError("sessionId is required")

    sweep_expired(db)

    # A session holds at most one lock; picking another slot drops the previous one.
    (
        db.query(SlotLock)
        .filter(SlotLock.session_id == session_id)
        .filter(
            (SlotLock.expert_id != expert_id) | (SlotLock.date != target_date) | (SlotLock.time != target_time)
        )
        .delete(synchronize_session=False)
    )

    now = booking_rules.utcnow()
    lock = (
        db.query(SlotLock)
        .filter(
            SlotLock.expert_id == expert_id,
            SlotLock.date == target_date,
            SlotLock.time == target_time,
        )
        .first()
    )
    if lock is None:
        lock = SlotLock(expert_id=expert_id, date=target_date, time=target_time)
        db.add(lock)
    elif lock.session_id != session_id:
        logger.debug("Session %s takes over slot lock from %s", session_id, lock.session_id)
    lock.session_id = session_id
    lock.created_at = now
    lock.expires_at = now + lock_ttl()
    try:
        db.commit()
    except IntegrityError:
        # Another request inserted the row first; take it over.
        db.rollback()
        return acquire(db, expert_id, target_date, target_time, session_id)
    db.refresh(lock)
    return lock


def is_locked(db: Session, expert_id: str, target_date: date, target_time: time, excluding_session_id: str | None) -> bool:
    sweep_expired(db)
    db.commit()

    query = db.query(SlotLock.id).filter(
        SlotLock.expert_id == expert_id,
        SlotLock.date == target_date,
        SlotLock.time == target_time,
        SlotLock.expires_at > booking_rules.utcnow(),
    )
    if excluding_session_id:
        query = query.filter(SlotLock.session_id != excluding_session_id)
    return query.first() is not None


def release(db: Session, session_id: str) -> int:
    removed = db.query(SlotLock).filter(SlotLock.session_id == session_id).delete(synchronize_session=False)
    db.commit()
    return removed


def release_for_slot(db: Session, expert_id: str, target_date: date, target_time: time) -> int:
    removed = (
        db.query(SlotLock)
        .filter(
            SlotLock.expert_id == expert_id,
            SlotLock.date == target_date,
            SlotLock.time == target_time,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed
