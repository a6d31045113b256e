"""
Appointment state machine.

    pending  -> approved | cancelled
    approved -> cancelled | completed
    cancelled, completed: terminal

Every transition is a versioned UPDATE (``version_id_col``), so two requests
racing on the same appointment cannot both win. Side effects (activity log,
notifications) run only after the transition is committed.
"""
from __future__ import annotations

import logging
from typing import Mapping

from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.models import Appointment, AppointmentStatus, RescheduleRequest, RescheduleState
from app.services import activity_log, booking_rules
from app.services.activity_log import Actor, SYSTEM_ACTOR
from app.services.notifications import AppointmentSnapshot, EventDispatcher, NotificationEvent, NotificationKind
from app.services.persistence import commit_appointment_change

logger = logging.getLogger(__name__)

TRANSITIONS: Mapping[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.APPROVED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.APPROVED: frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS[current]


def supersede_pending_requests(db: Session, appointment_id: str) -> int:
    """Mark the appointment's pending reschedule requests superseded. Not committed here."""
    return (
        db.query(RescheduleRequest)
        .filter(
            RescheduleRequest.appointment_id == appointment_id,
            RescheduleRequest.state == RescheduleState.PENDING.value,
        )
        .update(
            {
                RescheduleRequest.state: RescheduleState.SUPERSEDED.value,
                RescheduleRequest.resolved_at: booking_rules.utcnow(),
            },
            synchronize_session=False,
        )
    )


def get_appointment(db: Session, appointment_id: str) -> Appointment:
    appointment = (
        db.query(Appointment)
        .options(joinedload(Appointment.expert))
        .filter(Appointment.id == appointment_id)
        .first()
    )
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def _transition(db: Session, appointment_id: str, target: AppointmentStatus, **changes) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    return _apply_transition(db, appointment, target, **changes)


def _apply_transition(db: Session, appointment: Appointment, target: AppointmentStatus, **changes) -> Appointment:
    current = appointment.status_enum
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot change appointment status from {current.value} to {target.value}")

    appointment.status = target.value
    for name, value in changes.items():
        setattr(appointment, name, value)
    if target in TERMINAL_STATUSES:
        superseded = supersede_pending_requests(db, appointment.id)
        if superseded:
            logger.info("Superseded %s pending reschedule request(s) for appointment %s", superseded, appointment.id)
    commit_appointment_change(db)
    db.refresh(appointment)
    logger.info("Appointment %s: %s -> %s", appointment.id, current.value, target.value)
    return appointment


def _audit_details(appointment: Appointment, **extra) -> dict:
    details = {
        "appointment_id": appointment.id,
        "expert_id": appointment.expert_id,
        "expert_name": appointment.expert.name if appointment.expert else None,
        "customer_name": appointment.customer_name,
        "ticket_no": appointment.ticket_no,
        "date": appointment.date.isoformat(),
        "time": booking_rules.format_time(appointment.time),
        "status": appointment.status,
    }
    details.update(extra)
    return details


def approve(
    db: Session,
    appointment_id: str,
    actor: Actor = SYSTEM_ACTOR,
    dispatcher: EventDispatcher | None = None,
) -> Appointment:
    appointment = _transition(db, appointment_id, AppointmentStatus.APPROVED)
    snapshot = AppointmentSnapshot.of(appointment)
    activity_log.record(db, actor, "approve_appointment", "appointment", appointment.id, _audit_details(appointment))
    if dispatcher is not None:
        dispatcher.emit(NotificationEvent(NotificationKind.APPOINTMENT_APPROVED, snapshot.customer_email, snapshot))
        dispatcher.emit(NotificationEvent(NotificationKind.APPROVAL_CONFIRMED_EXPERT, snapshot.expert_email, snapshot))
    return appointment


def cancel(
    db: Session,
    appointment_id: str,
    reason: str,
    actor: Actor = SYSTEM_ACTOR,
    dispatcher: EventDispatcher | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")

    appointment = _apply_transition(db, appointment, AppointmentStatus.CANCELLED, cancellation_reason=reason)
    snapshot = AppointmentSnapshot.of(appointment)
    activity_log.record(
        db,
        actor,
        "cancel_appointment",
        "appointment",
        appointment.id,
        _audit_details(appointment, cancellation_reason=reason),
    )
    if dispatcher is not None:
        dispatcher.emit(
            NotificationEvent(
                NotificationKind.APPOINTMENT_CANCELLED,
                snapshot.customer_email,
                snapshot,
                {"reason": reason},
            )
        )
    return appointment


def complete(
    db: Session,
    appointment_id: str,
    actor: Actor = SYSTEM_ACTOR,
    dispatcher: EventDispatcher | None = None,
) -> Appointment:
    appointment = _transition(db, appointment_id, AppointmentStatus.COMPLETED)
    snapshot = AppointmentSnapshot.of(appointment)
    activity_log.record(db, actor, "complete_appointment", "appointment", appointment.id, _audit_details(appointment))
    if dispatcher is not None:
        survey_url = f"{settings.survey_url.rstrip('/')}/{appointment.id}" if settings.survey_url else None
        dispatcher.emit(
            NotificationEvent(
                NotificationKind.APPOINTMENT_COMPLETED,
                snapshot.customer_email,
                snapshot,
                {"survey_url": survey_url},
            )
        )
    return appointment


def send_reminder(
    db: Session,
    appointment_id: str,
    actor: Actor = SYSTEM_ACTOR,
    dispatcher: EventDispatcher | None = None,
) -> Appointment:
    """Remind the customer of an approved appointment. Status is unchanged."""
    appointment = get_appointment(db, appointment_id)
    if appointment.status_enum is not AppointmentStatus.APPROVED:
        raise InvalidTransitionError("Reminders can only be sent for approved appointments")

    snapshot = AppointmentSnapshot.of(appointment)
    activity_log.record(db, actor, "remind_appointment", "appointment", appointment.id, _audit_details(appointment))
    if dispatcher is not None:
        dispatcher.emit(NotificationEvent(NotificationKind.APPOINTMENT_REMINDER, snapshot.customer_email, snapshot))
    return appointment


def delete(db: Session, appointment_id: str, actor: Actor = SYSTEM_ACTOR) -> None:
    """Hard delete. Only cancelled appointments can be purged."""
    appointment = get_appointment(db, appointment_id)
    if appointment.status_enum is not AppointmentStatus.CANCELLED:
        raise InvalidTransitionError("Only cancelled appointments can be deleted")

    details = _audit_details(appointment)
    db.delete(appointment)
    commit_appointment_change(db)
    logger.info("Deleted cancelled appointment %s", appointment_id)
    activity_log.record(db, actor, "delete_appointment", "appointment", appointment_id, details)
