"""
Domain errors raised by the booking services.

Each error carries a stable machine-readable ``code`` and the HTTP status the
API layer maps it to. Routers never build ``HTTPException`` for these cases;
the handlers registered in ``main.py`` render them as
``{"detail": <message>, "code": <code>}``.
"""
from __future__ import annotations


class BookingError(Exception):
    code = "booking_error"
    status_code = 400

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(BookingError):
    code = "validation_error"
    status_code = 400


class NotFoundError(BookingError):
    code = "not_found"
    status_code = 404


class ConflictError(BookingError):
    code = "conflict"
    status_code = 409


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class AlreadyResolvedError(ConflictError):
    code = "already_resolved"


class InternalError(BookingError):
    code = "internal_error"
    status_code = 500


__all__ = [
    "BookingError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "AlreadyResolvedError",
    "InternalError",
]
