from __future__ import annotations

import re
from datetime import date, time

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint, event
from sqlalchemy.orm import relationship

from database import Base
from app.models.base import GUID_TYPE, default_uuid, utcnow
from app.models.enums import AppointmentStatus, RescheduleState


def normalize_phone(raw: str | None) -> str:
    return re.sub(r"\D", "", raw or "")


def slot_key(expert_id: str, target_date: date, target_time: time) -> str:
    return f"{expert_id}|{target_date.isoformat()}|{target_time.strftime('%H:%M')}"


def customer_key(email: str | None, phone: str | None) -> str:
    return f"{(email or '').strip().lower()}|{normalize_phone(phone)}"


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # NULL while cancelled, so only live appointments compete for these keys.
        UniqueConstraint("active_slot_key", name="uq_appointment_active_slot"),
        UniqueConstraint("active_customer_key", name="uq_appointment_active_customer"),
        Index("ix_appointments_expert_date", "expert_id", "date"),
    )

    id = Column(GUID_TYPE, primary_key=True, default=default_uuid)
    expert_id = Column(GUID_TYPE, ForeignKey("experts.id"), nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=False)
    ticket_no = Column(String(10), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    reassignment_reason = Column(Text, nullable=True)
    active_slot_key = Column(String(96), nullable=True)
    active_customer_key = Column(String(320), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    expert = relationship("Expert", back_populates="appointments")
    reschedule_requests = relationship(
        "RescheduleRequest",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="RescheduleRequest.created_at",
    )

    @property
    def status_enum(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)

    def sync_active_keys(self) -> None:
        if self.status == AppointmentStatus.CANCELLED.value:
            self.active_slot_key = None
            self.active_customer_key = None
            return
        self.active_slot_key = slot_key(self.expert_id, self.date, self.time)
        self.active_customer_key = customer_key(self.customer_email, self.customer_phone)


@event.listens_for(Appointment, "before_insert")
@event.listens_for(Appointment, "before_update")
def _sync_appointment_keys(_mapper, _connection, target: Appointment) -> None:
    target.sync_active_keys()


class SlotLock(Base):
    """Advisory, TTL-bound hold on a slot while a booking form is being filled in. One row per slot."""

    __tablename__ = "slot_locks"
    __table_args__ = (
        UniqueConstraint("expert_id", "date", "time", name="uq_slot_lock_slot"),
    )

    id = Column(GUID_TYPE, primary_key=True, default=default_uuid)
    expert_id = Column(GUID_TYPE, nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    session_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)


class RescheduleRequest(Base):
    __tablename__ = "reschedule_requests"

    id = Column(GUID_TYPE, primary_key=True, default=default_uuid)
    appointment_id = Column(GUID_TYPE, ForeignKey("appointments.id"), nullable=False, index=True)
    proposed_date = Column(Date, nullable=False)
    proposed_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=False)
    token = Column(String(128), nullable=False, unique=True)
    state = Column(String(20), nullable=False, default=RescheduleState.PENDING.value)
    created_at = Column(DateTime, default=utcnow)
    resolved_at = Column(DateTime, nullable=True)

    appointment = relationship("Appointment", back_populates="reschedule_requests")


__all__ = [
    "Appointment",
    "SlotLock",
    "RescheduleRequest",
    "normalize_phone",
    "slot_key",
    "customer_key",
]
