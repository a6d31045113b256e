"""
Appointment notifications.

Services build ``NotificationEvent`` objects after their change is committed
and hand them to an ``EventDispatcher``. The dispatcher schedules delivery on
FastAPI ``BackgroundTasks``, so emails go out after the response and a failed
delivery can never undo or block the change that triggered it. Delivery sends
the email (when SMTP is configured) and stores an in-app inbox copy; any
failure is logged and dropped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Any, Callable, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Appointment, AppointmentStatus, Expert, Notification, utcnow
from app.services import booking_rules, calendar_invite, mailer, settings_store
import database

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_APPROVED = "appointment_approved"
    APPROVAL_CONFIRMED_EXPERT = "approval_confirmed_expert"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_REMINDER = "appointment_reminder"
    APPOINTMENT_COMPLETED = "appointment_completed"
    REASSIGNED_FROM_EXPERT = "reassigned_from_expert"
    REASSIGNED_TO_EXPERT = "reassigned_to_expert"
    REASSIGNED_CUSTOMER = "reassigned_customer"
    RESCHEDULE_PROPOSED = "reschedule_proposed"
    RESCHEDULE_APPROVED = "reschedule_approved"
    RESCHEDULE_REJECTED = "reschedule_rejected"


@dataclass(frozen=True)
class AppointmentSnapshot:
    """Detached copy of the fields a message needs; safe to use after the session closes."""

    id: str
    ticket_no: str
    customer_name: str
    customer_email: str
    customer_phone: str
    date: date
    time: time
    status: str
    notes: Optional[str]
    expert_name: str
    expert_email: Optional[str]

    @classmethod
    def of(cls, appointment: Appointment, expert: Expert | None = None) -> "AppointmentSnapshot":
        expert = expert or appointment.expert
        return cls(
            id=appointment.id,
            ticket_no=appointment.ticket_no,
            customer_name=appointment.customer_name,
            customer_email=appointment.customer_email,
            customer_phone=appointment.customer_phone,
            date=appointment.date,
            time=appointment.time,
            status=appointment.status,
            notes=appointment.notes,
            expert_name=expert.name if expert else "Unknown expert",
            expert_email=expert.email if expert else None,
        )


@dataclass(frozen=True)
class NotificationEvent:
    kind: NotificationKind
    recipient_email: Optional[str]
    appointment: AppointmentSnapshot
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class RenderedMessage:
    subject: str
    text: str
    html: str
    attachments: List[dict] = field(default_factory=list)


class EventDispatcher:
    """
    Collects events and, when bound to ``BackgroundTasks``, schedules their
    delivery to run after the response has been sent.
    """

    def __init__(
        self,
        background_tasks: BackgroundTasks | None = None,
        deliver_fn: Callable[[NotificationEvent], None] | None = None,
    ) -> None:
        self.background_tasks = background_tasks
        self.deliver_fn = deliver_fn or deliver
        self.events: List[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)
        if not event.recipient_email:
            logger.info("Skipping %s notification for %s: no recipient", event.kind.value, event.appointment.id)
            return
        if self.background_tasks is not None:
            self.background_tasks.add_task(self.deliver_fn, event)

    def kinds(self) -> List[NotificationKind]:
        return [event.kind for event in self.events]


def _date_label(value: date) -> str:
    return value.strftime("%A, %d %B %Y")


def _details_block(snap: AppointmentSnapshot, when: tuple[date, time] | None = None) -> list[str]:
    target_date, target_time = when or (snap.date, snap.time)
    lines = [
        f"- Date: {_date_label(target_date)}",
        f"- Time: {booking_rules.format_time(target_time)}",
        f"- Expert: {snap.expert_name}",
        f"- Customer: {snap.customer_name}",
        f"- Ticket No: {snap.ticket_no}",
    ]
    return lines


def _calendar_attachment(snap: AppointmentSnapshot, target_date: date, target_time: time, sequence: int = 0) -> dict:
    return {
        "filename": f"appointment-{snap.id}.ics",
        "content": calendar_invite.build_ics(
            snap.id,
            target_date,
            target_time,
            snap.expert_name,
            snap.customer_name,
            snap.ticket_no,
            sequence=sequence,
        ),
        "content_type": "text/calendar",
    }


def render(event: NotificationEvent, site_title: str | None = None) -> RenderedMessage:
    snap = event.appointment
    extra = event.extra
    title = site_title or settings.site_title
    kind = event.kind
    when = _date_label(snap.date)
    attachments: list[dict] = []

    if kind is NotificationKind.APPOINTMENT_CREATED:
        subject = f"New appointment request - {when}"
        intro = f"Hello {snap.expert_name},\n\nYou have a new appointment request:"
        details = _details_block(snap) + [f"- Email: {snap.customer_email}", f"- Phone: {snap.customer_phone}"]
        if snap.notes:
            details.append(f"- Notes: {snap.notes}")
        outro = "Sign in to approve or decline the request."
    elif kind is NotificationKind.APPOINTMENT_APPROVED:
        subject = f"Your appointment is confirmed - {when}"
        intro = f"Hello {snap.customer_name},\n\nYour appointment has been approved:"
        details = _details_block(snap)
        outro = "The attached calendar file (.ics) adds the appointment to Outlook, Google Calendar and others."
        attachments.append(_calendar_attachment(snap, snap.date, snap.time))
    elif kind is NotificationKind.APPROVAL_CONFIRMED_EXPERT:
        subject = f"You approved an appointment - {when}"
        intro = f"Hello {snap.expert_name},\n\nYou approved the following appointment:"
        details = _details_block(snap) + [f"- Email: {snap.customer_email}", f"- Phone: {snap.customer_phone}"]
        outro = "The attached calendar file (.ics) adds the appointment to your calendar."
        attachments.append(_calendar_attachment(snap, snap.date, snap.time))
    elif kind is NotificationKind.APPOINTMENT_CANCELLED:
        subject = f"Your appointment was cancelled - {when}"
        intro = f"Hello {snap.customer_name},\n\nYour appointment has been cancelled:"
        details = _details_block(snap) + [f"- Reason: {extra.get('reason') or '-'}"]
        outro = "You can book a new appointment at any time."
    elif kind is NotificationKind.APPOINTMENT_REMINDER:
        subject = f"Reminder: upcoming appointment - {when}"
        intro = f"Hello {snap.customer_name},\n\nThis is a reminder of your upcoming appointment:"
        details = _details_block(snap)
        outro = "Please be available at the scheduled time."
    elif kind is NotificationKind.APPOINTMENT_COMPLETED:
        subject = f"Your appointment is complete - {when}"
        intro = f"Hello {snap.customer_name},\n\nYour appointment has been marked as completed:"
        details = _details_block(snap)
        survey = extra.get("survey_url")
        outro = f"Please take a moment to rate the session: {survey}" if survey else "Thank you for your time."
    elif kind is NotificationKind.REASSIGNED_FROM_EXPERT:
        subject = f"Appointment reassigned to another expert - {when}"
        intro = (
            f"Hello {extra.get('previous_expert_name') or 'there'},\n\n"
            "The following appointment is no longer assigned to you:"
        )
        details = _details_block(snap) + [
            f"- New expert: {snap.expert_name}",
            f"- Reason: {extra.get('reason') or '-'}",
        ]
        outro = "No further action is needed on your side."
    elif kind is NotificationKind.REASSIGNED_TO_EXPERT:
        approved = snap.status == AppointmentStatus.APPROVED.value
        subject = (
            f"Approved appointment assigned to you - {when}" if approved else f"New appointment request - {when}"
        )
        intro = (
            f"Hello {snap.expert_name},\n\nAn approved appointment has been assigned to you:"
            if approved
            else f"Hello {snap.expert_name},\n\nAn appointment request has been assigned to you:"
        )
        details = _details_block(snap) + [
            f"- Email: {snap.customer_email}",
            f"- Phone: {snap.customer_phone}",
            f"- Reason: {extra.get('reason') or '-'}",
        ]
        outro = "The appointment is already confirmed." if approved else "Sign in to approve or decline the request."
        if approved:
            attachments.append(_calendar_attachment(snap, snap.date, snap.time, sequence=1))
    elif kind is NotificationKind.REASSIGNED_CUSTOMER:
        subject = f"Your appointment has a new expert - {when}"
        intro = f"Hello {snap.customer_name},\n\nYour appointment has been assigned to a different expert:"
        details = _details_block(snap) + [
            f"- Previous expert: {extra.get('previous_expert_name') or '-'}",
            f"- Reason: {extra.get('reason') or '-'}",
        ]
        outro = "Date and time are unchanged."
    elif kind is NotificationKind.RESCHEDULE_PROPOSED:
        proposed = (extra["proposed_date"], extra["proposed_time"])
        subject = f"New time proposed for your appointment - {when}"
        intro = f"Hello {snap.customer_name},\n\nYour expert proposed moving your appointment."
        details = ["Current:"] + _details_block(snap) + ["Proposed:"] + _details_block(snap, proposed)
        details.append(f"- Reason: {extra.get('reason') or '-'}")
        outro = (
            f"Accept the new time: {extra.get('approve_url')}\n"
            f"Keep the current time: {extra.get('reject_url')}"
        )
    elif kind is NotificationKind.RESCHEDULE_APPROVED:
        subject = f"Your appointment was moved - {when}"
        intro = f"Hello {snap.customer_name},\n\nYou accepted the new time. Your appointment is now:"
        details = _details_block(snap)
        outro = "An updated calendar file (.ics) is attached."
        attachments.append(_calendar_attachment(snap, snap.date, snap.time, sequence=1))
    elif kind is NotificationKind.RESCHEDULE_REJECTED:
        subject = f"Your appointment time is unchanged - {when}"
        intro = f"Hello {snap.customer_name},\n\nYou kept your original time. Your appointment remains:"
        details = _details_block(snap)
        outro = "Nothing else changes."
    else:  # pragma: no cover - enum is closed
        raise ValueError(f"Unknown notification kind: {kind}")

    text = "\n".join([intro, "", *details, "", outro, "", title])
    html_details = "".join(f"<li>{line[2:] if line.startswith('- ') else line}</li>" for line in details)
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<p>{intro.replace(chr(10), '<br>')}</p>"
        f"<ul>{html_details}</ul>"
        f"<p>{outro.replace(chr(10), '<br>')}</p>"
        f"<p><strong>{title}</strong></p>"
        "</div>"
    )
    return RenderedMessage(subject=f"{title} - {subject}", text=text, html=html, attachments=attachments)


def store_inbox_copy(db: Session, event: NotificationEvent, message: RenderedMessage) -> Notification:
    row = Notification(
        recipient_email=event.recipient_email,
        appointment_id=event.appointment.id,
        kind=event.kind.value,
        title=message.subject,
        message=message.text,
        is_read=False,
    )
    db.add(row)
    db.commit()
    return row


def deliver(event: NotificationEvent) -> None:
    """Background task: send the email and keep an inbox copy. Never raises."""
    try:
        with database.SessionLocal() as db:
            try:
                site_title = settings_store.get_site_title(db)
            except SQLAlchemyError:
                db.rollback()
                site_title = settings.site_title
            message = render(event, site_title=site_title)
            mailer.send_email(
                event.recipient_email,
                message.subject,
                message.text,
                html=message.html,
                attachments=message.attachments,
            )
            store_inbox_copy(db, event, message)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Notification %s for appointment %s failed: %s", event.kind.value, event.appointment.id, exc)


def list_inbox(db: Session, email: str, limit: int = 50) -> tuple[list[Notification], int]:
    rows = (
        db.query(Notification)
        .filter(Notification.recipient_email == email)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )
    unread = sum(1 for row in rows if not row.is_read)
    return rows, unread


def mark_read(db: Session, notification_id: int) -> Notification | None:
    row = db.get(Notification, notification_id)
    if row is None:
        return None
    if not row.is_read:
        row.is_read = True
        row.read_at = utcnow()
        db.commit()
        db.refresh(row)
    return row


def mark_all_read(db: Session, email: str) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.recipient_email == email, Notification.is_read.is_(False))
        .update({Notification.is_read: True, Notification.read_at: utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated
