from . import (
    booking_rules,
    settings_store,
    activity_log,
    calendar_invite,
    mailer,
    notifications,
    persistence,
    availability,
    slot_locks,
    booking,
    lifecycle,
    reassignment,
    reschedule,
)

__all__ = [
    "booking_rules",
    "settings_store",
    "activity_log",
    "calendar_invite",
    "mailer",
    "notifications",
    "persistence",
    "availability",
    "slot_locks",
    "booking",
    "lifecycle",
    "reassignment",
    "reschedule",
]
