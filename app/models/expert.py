from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from app.models.base import GUID_TYPE, default_uuid, utcnow


class Expert(Base):
    __tablename__ = "experts"

    id = Column(GUID_TYPE, primary_key=True, default=default_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    title = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    availability_windows = relationship(
        "AvailabilityWindow",
        back_populates="expert",
        cascade="all, delete-orphan",
        order_by="(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)",
    )
    appointments = relationship("Appointment", back_populates="expert")


class AvailabilityWindow(Base):
    """Recurring weekly open interval. Only ``start_time`` is bookable."""

    __tablename__ = "availability_windows"
    __table_args__ = (
        UniqueConstraint("expert_id", "day_of_week", "start_time", name="uq_availability_window_start"),
    )

    id = Column(GUID_TYPE, primary_key=True, default=default_uuid)
    expert_id = Column(GUID_TYPE, ForeignKey("experts.id"), nullable=False, index=True)
    # Monday=0 ... Sunday=6, see app.models.enums.Weekday
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    expert = relationship("Expert", back_populates="availability_windows")


__all__ = ["Expert", "AvailabilityWindow"]
