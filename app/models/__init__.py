from database import Base
from app.models.base import GUID_LENGTH, GUID_TYPE, default_uuid, utcnow
from app.models.enums import AppointmentStatus, RescheduleState, Weekday
from app.models.expert import AvailabilityWindow, Expert
from app.models.appointment import Appointment, RescheduleRequest, SlotLock
from app.models.activity import ActivityLogEntry, Setting
from app.models.notification import Notification

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
