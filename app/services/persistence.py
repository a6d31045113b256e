"""Commit helpers that turn store-level conflicts into domain errors."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConflictError

logger = logging.getLogger(__name__)

SLOT_CONFLICT_MESSAGE = "This time slot is already booked. Please choose another slot."
CUSTOMER_CONFLICT_MESSAGE = "This customer already has an active appointment."
CONCURRENT_UPDATE_MESSAGE = "The appointment was modified by another request. Reload and try again."


def commit_appointment_change(db: Session) -> None:
    """
    Commit, mapping the appointment uniqueness keys and the optimistic
    version check onto ConflictError. The session is rolled back on failure.
    """
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if "active_customer" in str(exc.orig):
            raise ConflictError(CUSTOMER_CONFLICT_MESSAGE, code="duplicate_customer") from exc
        if "active_slot" in str(exc.orig):
            raise ConflictError(SLOT_CONFLICT_MESSAGE, code="slot_taken") from exc
        raise
    except StaleDataError as exc:
        db.rollback()
        logger.info("Concurrent appointment update rejected: %s", exc)
        raise ConflictError(CONCURRENT_UPDATE_MESSAGE, code="concurrent_update") from exc
