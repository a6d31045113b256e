"""
Reschedule negotiation: an expert proposes a new date/time, the customer
accepts or rejects it through a single-use link.

The token in the link is the customer's only credential, so resolution fails
closed: unknown tokens raise NotFoundError and tokens that are no longer
pending (approved, rejected, or superseded by a newer proposal, a
cancellation, completion or reassignment) raise AlreadyResolvedError. The
pending -> resolved step is a compare-and-set UPDATE, so two clicks on the
same link cannot both succeed.
"""
from __future__ import annotations

import logging
import secrets
from datetime import date, time
from urllib.parse import urlencode

from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.errors import AlreadyResolvedError, ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from app.models import AppointmentStatus, RescheduleRequest, RescheduleState
from app.services import activity_log, availability, booking_rules
from app.services.activity_log import Actor, SYSTEM_ACTOR
from app.services.booking import find_slot_conflict
from app.services.lifecycle import get_appointment, supersede_pending_requests
from app.services.notifications import AppointmentSnapshot, EventDispatcher, NotificationEvent, NotificationKind
from app.services.persistence import SLOT_CONFLICT_MESSAGE, commit_appointment_change

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
CUSTOMER_ACTOR_NAME = "Customer"


def new_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def action_url(token: str, action: str) -> str:
    query = urlencode({"token": token, "action": action})
    return f"{settings.frontend_base_url.rstrip('/')}/reschedule?{query}"


def propose(
    db: Session,
    appointment_id: str,
    proposed_date: date,
    proposed_time: time,
    reason: str,
    actor: Actor = SYSTEM_ACTOR,
    dispatcher: EventDispatcher | None = None,
) -> RescheduleRequest:
    appointment = get_appointment(db, appointment_id)
    if appointment.status_enum is not AppointmentStatus.APPROVED:
        raise InvalidTransitionError("Only approved appointments can be rescheduled")

    if (proposed_date, proposed_time) == (appointment.date, appointment.time):
        raise ValidationError("The proposed time is the same as the current one")
    if not availability.is_open_start_time(db, appointment.expert_id, proposed_date, proposed_time):
        raise ValidationError("The expert is not available at the proposed date and time", code="slot_unavailable")
    if find_slot_conflict(db, appointment.expert_id, proposed_date, proposed_time, exclude_appointment_id=appointment.id):
        raise ConflictError(SLOT_CONFLICT_MESSAGE, code="slot_taken")

    superseded = supersede_pending_requests(db, appointment.id)
    request = RescheduleRequest(
        appointment_id=appointment.id,
        proposed_date=proposed_date,
        proposed_time=proposed_time,
        reason=reason.strip(),
        token=new_token(),
        state=RescheduleState.PENDING.value,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    if superseded:
        logger.info("Superseded %s pending reschedule request(s) for appointment %s", superseded, appointment.id)

    snapshot = AppointmentSnapshot.of(appointment)
    activity_log.record(
        db,
        actor,
        "propose_reschedule",
        "appointment",
        appointment.id,
        {
            "appointment_id": appointment.id,
            "reschedule_request_id": request.id,
            "current_date": appointment.date.isoformat(),
            "current_time": booking_rules.format_time(appointment.time),
            "proposed_date": proposed_date.isoformat(),
            "proposed_time": booking_rules.format_time(proposed_time),
            "reason": request.reason,
            "superseded": superseded,
        },
    )
    if dispatcher is not None:
        dispatcher.emit(
            NotificationEvent(
                NotificationKind.RESCHEDULE_PROPOSED,
                snapshot.customer_email,
                snapshot,
                {
                    "proposed_date": proposed_date,
                    "proposed_time": proposed_time,
                    "reason": request.reason,
                    "approve_url": action_url(request.token, "approve"),
                    "reject_url": action_url(request.token, "reject"),
                },
            )
        )
    return request


def get_by_token(db: Session, token: str) -> RescheduleRequest:
    request = (
        db.query(RescheduleRequest)
        .options(joinedload(RescheduleRequest.appointment))
        .filter(RescheduleRequest.token == token)
        .first()
    )
    if not request:
        raise NotFoundError("Reschedule request not found")
    return request


def _pending_request(db: Session, token: str) -> RescheduleRequest:
    request = get_by_token(db, token)
    if request.state != RescheduleState.PENDING.value:
        raise AlreadyResolvedError(f"This reschedule request was already {request.state}")
    return request


def _claim(db: Session, request: RescheduleRequest, state: RescheduleState) -> None:
    claimed = (
        db.query(RescheduleRequest)
        .filter(
            RescheduleRequest.id == request.id,
            RescheduleRequest.state == RescheduleState.PENDING.value,
        )
        .update(
            {RescheduleRequest.state: state.value, RescheduleRequest.resolved_at: booking_rules.utcnow()},
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.rollback()
        raise AlreadyResolvedError("This reschedule request was already resolved")


def _customer_actor(request: RescheduleRequest) -> Actor:
    return Actor(id=None, name=f"{CUSTOMER_ACTOR_NAME}: {request.appointment.customer_email}")


def approve(db: Session, token: str, dispatcher: EventDispatcher | None = None) -> RescheduleRequest:
    request = _pending_request(db, token)
    appointment = get_appointment(db, request.appointment_id)
    if appointment.status_enum is not AppointmentStatus.APPROVED:
        raise InvalidTransitionError("The appointment can no longer be rescheduled")
    if not availability.is_open_start_time(db, appointment.expert_id, request.proposed_date, request.proposed_time):
        raise ValidationError(
            "The expert is no longer available at the proposed date and time",
            code="slot_unavailable",
        )

    previous_date, previous_time = appointment.date, appointment.time
    _claim(db, request, RescheduleState.APPROVED)
    appointment.date = request.proposed_date
    appointment.time = request.proposed_time
    # Slot taken in the meantime -> rollback also releases the claim.
    commit_appointment_change(db)
    db.refresh(request)
    db.refresh(appointment)
    logger.info("Appointment %s rescheduled via token approval", appointment.id)

    snapshot = AppointmentSnapshot.of(appointment)
    activity_log.record(
        db,
        _customer_actor(request),
        "approve_reschedule",
        "appointment",
        appointment.id,
        {
            "appointment_id": appointment.id,
            "reschedule_request_id": request.id,
            "previous_date": previous_date.isoformat(),
            "previous_time": booking_rules.format_time(previous_time),
            "new_date": appointment.date.isoformat(),
            "new_time": booking_rules.format_time(appointment.time),
        },
    )
    if dispatcher is not None:
        dispatcher.emit(NotificationEvent(NotificationKind.RESCHEDULE_APPROVED, snapshot.customer_email, snapshot))
    return request


def reject(db: Session, token: str, dispatcher: EventDispatcher | None = None) -> RescheduleRequest:
    request = _pending_request(db, token)
    appointment = get_appointment(db, request.appointment_id)
    if appointment.status_enum is not AppointmentStatus.APPROVED:
        raise InvalidTransitionError("The appointment can no longer be rescheduled")

    _claim(db, request, RescheduleState.REJECTED)
    db.commit()
    db.refresh(request)
    db.refresh(appointment)
    snapshot = AppointmentSnapshot.of(appointment)
    activity_log.record(
        db,
        _customer_actor(request),
        "reject_reschedule",
        "appointment",
        appointment.id,
        {
            "appointment_id": appointment.id,
            "reschedule_request_id": request.id,
            "proposed_date": request.proposed_date.isoformat(),
            "proposed_time": booking_rules.format_time(request.proposed_time),
        },
    )
    if dispatcher is not None:
        dispatcher.emit(NotificationEvent(NotificationKind.RESCHEDULE_REJECTED, snapshot.customer_email, snapshot))
    return request
