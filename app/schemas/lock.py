from datetime import date, datetime

from pydantic import Field

from app.schemas.common import CamelModel, ClockTime


class LockCreate(CamelModel):
    expert_id: str
    date: date
    time: ClockTime
    session_id: str = Field(..., min_length=1, max_length=128)


class LockResponse(CamelModel):
    expert_id: str
    date: date
    time: ClockTime
    session_id: str
    created_at: datetime
    expires_at: datetime


class LockStatusResponse(CamelModel):
    locked: bool


class LockReleaseResponse(CamelModel):
    message: str
    released: int
