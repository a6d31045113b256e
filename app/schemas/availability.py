from datetime import datetime
from typing import List, Optional

from app.models.enums import Weekday
from app.schemas.common import CamelModel, ClockTime


class AvailabilityWindowCreate(CamelModel):
    expert_id: str
    day_of_week: Weekday
    start_time: ClockTime
    end_time: ClockTime


class AvailabilityWindowResponse(CamelModel):
    id: str
    expert_id: str
    expert_name: Optional[str] = None
    day_of_week: Weekday
    start_time: ClockTime
    end_time: ClockTime
    created_at: Optional[datetime] = None


class AvailabilityListResponse(CamelModel):
    windows: List[AvailabilityWindowResponse]


class AvailabilitySetupResponse(CamelModel):
    message: str
    created: int
    skipped: int
    experts: int
    total_slots: int
