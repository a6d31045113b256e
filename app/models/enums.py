from __future__ import annotations

from datetime import date
from enum import Enum, IntEnum


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class RescheduleState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class Weekday(IntEnum):
    """Day of week with Monday=0 ... Sunday=6 (same as ``date.weekday()``)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, target: date) -> "Weekday":
        # date.isoweekday() / JS getDay() use other numberings; weekday() is Monday=0.
        return cls(target.weekday())


__all__ = ["AppointmentStatus", "RescheduleState", "Weekday"]
