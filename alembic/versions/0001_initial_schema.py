"""Initial expert booking schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

GUID = sa.String(length=36)


def upgrade() -> None:
    op.create_table(
        "experts",
        sa.Column("id", GUID, primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "availability_windows",
        sa.Column("id", GUID, primary_key=True),
        sa.Column("expert_id", GUID, sa.ForeignKey("experts.id"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("expert_id", "day_of_week", "start_time", name="uq_availability_window_start"),
    )
    op.create_index("ix_availability_windows_expert_id", "availability_windows", ["expert_id"])

    op.create_table(
        "appointments",
        sa.Column("id", GUID, primary_key=True),
        sa.Column("expert_id", GUID, sa.ForeignKey("experts.id"), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=50), nullable=False),
        sa.Column("ticket_no", sa.String(length=10), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("reassignment_reason", sa.Text(), nullable=True),
        sa.Column("active_slot_key", sa.String(length=96), nullable=True),
        sa.Column("active_customer_key", sa.String(length=320), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("active_slot_key", name="uq_appointment_active_slot"),
        sa.UniqueConstraint("active_customer_key", name="uq_appointment_active_customer"),
    )
    op.create_index("ix_appointments_expert_date", "appointments", ["expert_id", "date"])
    op.create_index("ix_appointments_customer_email", "appointments", ["customer_email"])

    op.create_table(
        "slot_locks",
        sa.Column("id", GUID, primary_key=True),
        sa.Column("expert_id", GUID, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("session_id", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("expert_id", "date", "time", name="uq_slot_lock_slot"),
    )
    op.create_index("ix_slot_locks_session_id", "slot_locks", ["session_id"])
    op.create_index("ix_slot_locks_expires_at", "slot_locks", ["expires_at"])

    op.create_table(
        "reschedule_requests",
        sa.Column("id", GUID, primary_key=True),
        sa.Column("appointment_id", GUID, sa.ForeignKey("appointments.id"), nullable=False),
        sa.Column("proposed_date", sa.Date(), nullable=False),
        sa.Column("proposed_time", sa.Time(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False, unique=True),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_reschedule_requests_appointment_id", "reschedule_requests", ["appointment_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("actor_name", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=True),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_activity_logs_actor_id", "activity_logs", ["actor_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])

    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=100), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_email", sa.String(length=255), nullable=False),
        sa.Column("appointment_id", GUID, nullable=True),
        sa.Column("kind", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("read_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notifications_recipient_email", "notifications", ["recipient_email"])


def downgrade() -> None:
    op.drop_index("ix_notifications_recipient_email", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("settings")
    op.drop_index("ix_activity_logs_created_at", table_name="activity_logs")
    op.drop_index("ix_activity_logs_action", table_name="activity_logs")
    op.drop_index("ix_activity_logs_actor_id", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_reschedule_requests_appointment_id", table_name="reschedule_requests")
    op.drop_table("reschedule_requests")
    op.drop_index("ix_slot_locks_expires_at", table_name="slot_locks")
    op.drop_index("ix_slot_locks_session_id", table_name="slot_locks")
    op.drop_table("slot_locks")
    op.drop_index("ix_appointments_customer_email", table_name="appointments")
    op.drop_index("ix_appointments_expert_date", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_availability_windows_expert_id", table_name="availability_windows")
    op.drop_table("availability_windows")
    op.drop_table("experts")
