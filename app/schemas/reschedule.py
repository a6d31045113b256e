from datetime import date, datetime
from typing import Optional

from app.models.enums import RescheduleState
from app.schemas.appointment import AppointmentResponse
from app.schemas.common import CamelModel, ClockTime


class RescheduleRequestResponse(CamelModel):
    """Never includes the token; it only travels in the customer's email."""

    id: str
    appointment_id: str
    proposed_date: date
    proposed_time: ClockTime
    reason: str
    state: RescheduleState
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class RescheduleDetailResponse(CamelModel):
    request: RescheduleRequestResponse
    appointment: AppointmentResponse


class RescheduleResolutionResponse(CamelModel):
    message: str
    state: RescheduleState
    appointment: AppointmentResponse
