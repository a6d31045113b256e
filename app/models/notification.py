from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from database import Base
from app.models.base import GUID_TYPE, utcnow


class Notification(Base):
    """In-app copy of an outgoing notification, listed per recipient email."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_email = Column(String(255), nullable=False, index=True)
    # No FK: the inbox outlives purged appointments.
    appointment_id = Column(GUID_TYPE, nullable=True)
    kind = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    read_at = Column(DateTime, nullable=True)


__all__ = ["Notification"]
