"""Move an appointment to another expert at the same date and time."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from app.models import Appointment, Expert
from app.services import activity_log, availability, booking_rules
from app.services.activity_log import Actor, SYSTEM_ACTOR
from app.services.booking import find_slot_conflict
from app.services.lifecycle import TERMINAL_STATUSES, get_appointment, supersede_pending_requests
from app.services.notifications import AppointmentSnapshot, EventDispatcher, NotificationEvent, NotificationKind
from app.services.persistence import SLOT_CONFLICT_MESSAGE, commit_appointment_change

logger = logging.getLogger(__name__)


def reassign(
    db: Session,
    appointment_id: str,
    new_expert_id: str,
    reason: str,
    actor: Actor = SYSTEM_ACTOR,
    dispatcher: EventDispatcher | None = None,
) -> Appointment:
    """
    Status is preserved: an approved appointment stays approved under the
    new expert. The reason's minimum length is checked by the request schema.
    """
    appointment = get_appointment(db, appointment_id)
    if appointment.status_enum in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Cannot reassign a {appointment.status} appointment")

    new_expert = db.get(Expert, new_expert_id)
    if not new_expert:
        raise NotFoundError("Expert not found")
    if new_expert.id == appointment.expert_id:
        raise ValidationError("The appointment is already assigned to this expert")

    if not availability.is_open_start_time(db, new_expert.id, appointment.date, appointment.time):
        raise ValidationError(
            "The selected expert is not available at this appointment's date and time",
            code="slot_unavailable",
        )
    if find_slot_conflict(db, new_expert.id, appointment.date, appointment.time, exclude_appointment_id=appointment.id):
        raise ConflictError(SLOT_CONFLICT_MESSAGE, code="slot_taken")

    previous_expert = appointment.expert
    previous_snapshot = AppointmentSnapshot.of(appointment, previous_expert)

    appointment.expert_id = new_expert.id
    appointment.expert = new_expert
    appointment.reassignment_reason = reason.strip()
    # A proposal made against the previous expert's calendar no longer applies.
    superseded = supersede_pending_requests(db, appointment.id)
    commit_appointment_change(db)
    db.refresh(appointment)
    logger.info("Appointment %s reassigned %s -> %s", appointment.id, previous_snapshot.expert_name, new_expert.name)

    snapshot = AppointmentSnapshot.of(appointment, new_expert)
    activity_log.record(
        db,
        actor,
        "reassign_appointment",
        "appointment",
        appointment.id,
        {
            "appointment_id": appointment.id,
            "old_expert_id": previous_expert.id if previous_expert else None,
            "old_expert_name": previous_snapshot.expert_name,
            "new_expert_id": new_expert.id,
            "new_expert_name": new_expert.name,
            "reason": appointment.reassignment_reason,
            "status": appointment.status,
            "date": appointment.date.isoformat(),
            "time": booking_rules.format_time(appointment.time),
            "superseded_reschedule_requests": superseded,
        },
    )

    if dispatcher is not None:
        extra = {"reason": appointment.reassignment_reason, "previous_expert_name": previous_snapshot.expert_name}
        dispatcher.emit(
            NotificationEvent(NotificationKind.REASSIGNED_FROM_EXPERT, previous_snapshot.expert_email, snapshot, extra)
        )
        dispatcher.emit(NotificationEvent(NotificationKind.REASSIGNED_TO_EXPERT, new_expert.email, snapshot, extra))
        dispatcher.emit(NotificationEvent(NotificationKind.REASSIGNED_CUSTOMER, snapshot.customer_email, snapshot, extra))
    return appointment
