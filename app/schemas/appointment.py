from datetime import date, datetime
from typing import List, Optional

from pydantic import ConfigDict, EmailStr, Field

from app.models.enums import AppointmentStatus
from app.schemas.common import CamelModel, ClockTime, Pagination

REASON_MIN_LENGTH = 10


class AppointmentCreate(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    expert_id: str
    user_name: str = Field(..., min_length=1, max_length=255)
    user_email: EmailStr
    user_phone: str = Field(..., min_length=1, max_length=50)
    # Format (INC0 + 6 digits) is checked by the booking validator.
    ticket_no: str
    date: date
    time: ClockTime
    notes: Optional[str] = None


class AppointmentResponse(CamelModel):
    id: str
    expert_id: str
    expert_name: Optional[str] = None
    user_name: str
    user_email: str
    user_phone: str
    ticket_no: str
    date: date
    time: ClockTime
    status: AppointmentStatus
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    reassignment_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentListResponse(CamelModel):
    appointments: List[AppointmentResponse]
    pagination: Pagination


class AppointmentActionResponse(CamelModel):
    message: str
    status: AppointmentStatus
    appointment: AppointmentResponse


class CancelRequest(CamelModel):
    # Emptiness is checked after the appointment lookup so an unknown id stays a 404.
    cancellation_reason: str = ""


class ReassignRequest(CamelModel):
    new_expert_id: str
    reason: str = Field(..., min_length=REASON_MIN_LENGTH)


class RescheduleProposal(CamelModel):
    proposed_date: date
    proposed_time: ClockTime
    reason: str = Field(..., min_length=REASON_MIN_LENGTH)
