# FastAPI routers grouped under app.api.*
from . import (
    admin,
    appointments,
    availability,
    experts,
    reschedule,
    slot_locks,
)

__all__ = [
    "admin",
    "appointments",
    "availability",
    "experts",
    "reschedule",
    "slot_locks",
]
