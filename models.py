"""
Top-level `models` import used by main, seed, alembic and the tests.
Domain models live in `app.models.*`.
"""
from app.models import (  # noqa: F401,F403
    ActivityLogEntry,
    Appointment,
    AppointmentStatus,
    AvailabilityWindow,
    Expert,
    GUID_LENGTH,
    GUID_TYPE,
    Notification,
    RescheduleRequest,
    RescheduleState,
    Setting,
    SlotLock,
    Weekday,
    default_uuid,
    utcnow,
)
from database import Base  # noqa: F401

__all__ = [
    "Base",
    "GUID_TYPE",
    "GUID_LENGTH",
    "default_uuid",
    "utcnow",
    "AppointmentStatus",
    "RescheduleState",
    "Weekday",
    "Expert",
    "AvailabilityWindow",
    "Appointment",
    "SlotLock",
    "RescheduleRequest",
    "ActivityLogEntry",
    "Setting",
    "Notification",
]
