from datetime import date, datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from app.models.enums import Weekday
from app.schemas.common import CamelModel, ClockTime


class ExpertCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    title: Optional[str] = None


class ExpertResponse(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    title: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class DaySlot(CamelModel):
    time: ClockTime
    booked: bool


class ExpertDayAvailabilityResponse(CamelModel):
    expert_id: str
    date: date
    day_of_week: Weekday
    slots: List[DaySlot]
