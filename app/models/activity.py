from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text

from database import Base
from app.models.base import utcnow


class ActivityLogEntry(Base):
    """Append-only audit record. Rows are never updated."""

    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(String(64), nullable=True, index=True)
    actor_name = Column(String(255), nullable=False, default="System")
    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(64), nullable=True)
    entity_id = Column(String(64), nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


__all__ = ["ActivityLogEntry", "Setting"]
