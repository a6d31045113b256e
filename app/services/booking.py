"""
Booking validator: turns a requested (expert, date, time) into a pending
appointment.

Checks run in a fixed order and stop at the first failure. The conflict and
duplicate-customer checks give friendly errors up front; the UNIQUE
``active_slot_key`` / ``active_customer_key`` columns are what actually
prevent two concurrent requests from both inserting.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models import Appointment, AppointmentStatus, Expert
from app.services import availability, booking_rules, slot_locks, activity_log, settings_store
from app.services.activity_log import Actor, SYSTEM_ACTOR
from app.services.notifications import AppointmentSnapshot, EventDispatcher, NotificationEvent, NotificationKind
from app.services.persistence import CUSTOMER_CONFLICT_MESSAGE, SLOT_CONFLICT_MESSAGE, commit_appointment_change

logger = logging.getLogger(__name__)

TICKET_FORMAT_ERROR = "Ticket number must look like INC0 followed by 6 digits (e.g. INC0123456)"
SLOT_UNAVAILABLE_ERROR = "The expert is not available at the selected date and time"
LEAD_TIME_ERROR = "Appointments must be booked at least {hours} hours in advance"


@dataclass(frozen=True)
class Customer:
    name: str
    email: str
    phone: str


def find_slot_conflict(
    db: Session,
    expert_id: str,
    target_date: date,
    target_time: time,
    exclude_appointment_id: str | None = None,
) -> Optional[Appointment]:
    query = db.query(Appointment).filter(
        Appointment.expert_id == expert_id,
        Appointment.date == target_date,
        Appointment.time == target_time,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.first()


def find_active_customer_appointment(db: Session, customer: Customer) -> Optional[Appointment]:
    key = booking_rules.customer_key(customer.email, customer.phone)
    return db.query(Appointment).filter(Appointment.active_customer_key == key).first()


def validate(
    db: Session,
    expert_id: str,
    target_date: date,
    target_time: time,
    customer: Customer,
    ticket_no: str,
) -> Expert:
    if not booking_rules.is_valid_ticket_no(ticket_no):
        raise ValidationError(TICKET_FORMAT_ERROR, code="invalid_ticket_no")

    expert = db.get(Expert, expert_id)
    if not expert:
        raise NotFoundError("Expert not found")

    if not availability.is_open_start_time(db, expert_id, target_date, target_time):
        raise ValidationError(SLOT_UNAVAILABLE_ERROR, code="slot_unavailable")

    if find_slot_conflict(db, expert_id, target_date, target_time):
        raise ConflictError(SLOT_CONFLICT_MESSAGE, code="slot_taken")

    if find_active_customer_appointment(db, customer):
        raise ConflictError(CUSTOMER_CONFLICT_MESSAGE, code="duplicate_customer")

    minimum_hours = settings_store.get_minimum_booking_hours(db)
    if not booking_rules.meets_lead_time(target_date, target_time, minimum_hours):
        raise ValidationError(LEAD_TIME_ERROR.format(hours=minimum_hours), code="lead_time")

    return expert


def book(
    db: Session,
    expert_id: str,
    target_date: date,
    target_time: time,
    customer: Customer,
    ticket_no: str,
    notes: str | None = None,
    actor: Actor = SYSTEM_ACTOR,
    dispatcher: EventDispatcher | None = None,
) -> Appointment:
    expert = validate(db, expert_id, target_date, target_time, customer, ticket_no)

    appointment = Appointment(
        expert_id=expert.id,
        customer_name=customer.name.strip(),
        customer_email=customer.email.strip(),
        customer_phone=customer.phone.strip(),
        ticket_no=ticket_no,
        date=target_date,
        time=target_time,
        status=AppointmentStatus.PENDING.value,
        notes=notes or None,
    )
    db.add(appointment)
    commit_appointment_change(db)
    db.refresh(appointment)
    logger.info(
        "Booked appointment %s expert=%s slot=%s %s",
        appointment.id,
        expert.id,
        target_date.isoformat(),
        booking_rules.format_time(target_time),
    )

    slot_locks.release_for_slot(db, expert.id, target_date, target_time)
    activity_log.record(
        db,
        actor,
        "create_appointment",
        "appointment",
        appointment.id,
        {
            "expert_id": expert.id,
            "expert_name": expert.name,
            "customer_name": appointment.customer_name,
            "ticket_no": appointment.ticket_no,
            "date": target_date.isoformat(),
            "time": booking_rules.format_time(target_time),
        },
    )
    if dispatcher is not None:
        dispatcher.emit(
            NotificationEvent(
                kind=NotificationKind.APPOINTMENT_CREATED,
                recipient_email=expert.email,
                appointment=AppointmentSnapshot.of(appointment, expert),
            )
        )
    return appointment
