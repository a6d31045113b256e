from __future__ import annotations

import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload

from app.api.deps import get_actor, get_dispatcher
from app.models import Appointment, AppointmentStatus
from app.schemas.appointment import (
    AppointmentActionResponse,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    CancelRequest,
    ReassignRequest,
    RescheduleProposal,
)
from app.schemas.common import MessageResponse, Pagination
from app.schemas.reschedule import RescheduleRequestResponse
from app.services import booking, lifecycle, reassignment, reschedule
from app.services.activity_log import Actor
from app.services.booking import Customer
from app.services.notifications import EventDispatcher
from database import get_db

router = APIRouter()


def to_response(appointment: Appointment) -> AppointmentResponse:
    expert = appointment.expert
    return AppointmentResponse(
        id=appointment.id,
        expert_id=appointment.expert_id,
        expert_name=expert.name if expert else None,
        user_name=appointment.customer_name,
        user_email=appointment.customer_email,
        user_phone=appointment.customer_phone,
        ticket_no=appointment.ticket_no,
        date=appointment.date,
        time=appointment.time,
        status=appointment.status,
        notes=appointment.notes,
        cancellation_reason=appointment.cancellation_reason,
        reassignment_reason=appointment.reassignment_reason,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def _action_response(message: str, appointment: Appointment) -> AppointmentActionResponse:
    return AppointmentActionResponse(message=message, status=appointment.status, appointment=to_response(appointment))


@router.get("/appointments", response_model=AppointmentListResponse)
def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status", description="Filter by status"),
    expert_id: Optional[str] = Query(None, alias="expertId", description="Filter by expert"),
    target_date: Optional[date] = Query(None, alias="date", description="Filter by date (YYYY-MM-DD)"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> AppointmentListResponse:
    query = db.query(Appointment)
    if status_filter:
        query = query.filter(Appointment.status == status_filter.value)
    if expert_id:
        query = query.filter(Appointment.expert_id == expert_id)
    if target_date:
        query = query.filter(Appointment.date == target_date)

    total = query.count()
    rows = (
        query.options(joinedload(Appointment.expert))
        .order_by(Appointment.date.desc(), Appointment.time.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return AppointmentListResponse(
        appointments=[to_response(row) for row in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(appointment_id: str, db: Session = Depends(get_db)) -> AppointmentResponse:
    return to_response(lifecycle.get_appointment(db, appointment_id))


@router.post("/appointments", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> AppointmentResponse:
    appointment = booking.book(
        db,
        expert_id=payload.expert_id,
        target_date=payload.date,
        target_time=payload.time,
        customer=Customer(name=payload.user_name, email=str(payload.user_email), phone=payload.user_phone),
        ticket_no=payload.ticket_no,
        notes=payload.notes,
        actor=actor,
        dispatcher=dispatcher,
    )
    return to_response(appointment)


@router.put("/appointments/{appointment_id}/approve", response_model=AppointmentActionResponse)
def approve_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> AppointmentActionResponse:
    appointment = lifecycle.approve(db, appointment_id, actor=actor, dispatcher=dispatcher)
    return _action_response("Appointment approved successfully", appointment)


@router.put("/appointments/{appointment_id}/cancel", response_model=AppointmentActionResponse)
def cancel_appointment(
    appointment_id: str,
    payload: CancelRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> AppointmentActionResponse:
    appointment = lifecycle.cancel(db, appointment_id, payload.cancellation_reason, actor=actor, dispatcher=dispatcher)
    return _action_response("Appointment cancelled successfully", appointment)


@router.put("/appointments/{appointment_id}/complete", response_model=AppointmentActionResponse)
def complete_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> AppointmentActionResponse:
    appointment = lifecycle.complete(db, appointment_id, actor=actor, dispatcher=dispatcher)
    return _action_response("Appointment completed successfully", appointment)


@router.post("/appointments/{appointment_id}/remind", response_model=AppointmentActionResponse)
def remind_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> AppointmentActionResponse:
    appointment = lifecycle.send_reminder(db, appointment_id, actor=actor, dispatcher=dispatcher)
    return _action_response("Reminder sent", appointment)


@router.put("/appointments/{appointment_id}/reassign", response_model=AppointmentActionResponse)
def reassign_appointment(
    appointment_id: str,
    payload: ReassignRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> AppointmentActionResponse:
    appointment = reassignment.reassign(
        db,
        appointment_id,
        payload.new_expert_id,
        payload.reason,
        actor=actor,
        dispatcher=dispatcher,
    )
    return _action_response("Appointment reassigned successfully", appointment)


@router.post(
    "/appointments/{appointment_id}/reschedule",
    response_model=RescheduleRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
def propose_reschedule(
    appointment_id: str,
    payload: RescheduleProposal,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> RescheduleRequestResponse:
    request = reschedule.propose(
        db,
        appointment_id,
        payload.proposed_date,
        payload.proposed_time,
        payload.reason,
        actor=actor,
        dispatcher=dispatcher,
    )
    return RescheduleRequestResponse.model_validate(request)


@router.delete("/appointments/{appointment_id}", response_model=MessageResponse)
def delete_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> MessageResponse:
    lifecycle.delete(db, appointment_id, actor=actor)
    return MessageResponse(message="Appointment deleted successfully")
