"""Initial schema: users, appointment types, availability, booking sessions,
appointments, appointment notifications.

Revision ID: 001_initial
Revises:
Create Date: 2025-09-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ACTIVE_ONLY = "status != 'cancelled'"


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="user"),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "appointment_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("instructor_id", sa.Integer(), nullable=False),
        sa.Column("type_name", sa.String(length=150), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("booking_advance_hours", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("booking_advance_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("booking_advance_hours >= 0", name="ck_appointment_types_advance_hours"),
        sa.CheckConstraint("booking_advance_days >= 0", name="ck_appointment_types_advance_days"),
        sa.ForeignKeyConstraint(["instructor_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointment_types_instructor_id"), "appointment_types", ["instructor_id"])

    op.create_table(
        "instructor_availability",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("instructor_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day_of_week"),
        sa.CheckConstraint("end_time > start_time", name="ck_availability_time_range"),
        sa.ForeignKeyConstraint(["instructor_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_instructor_availability_instructor_id"), "instructor_availability", ["instructor_id"])

    op.create_table(
        "time_blocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("instructor_id", sa.Integer(), nullable=False),
        sa.Column("block_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("block_reason", sa.String(), nullable=True),
        sa.CheckConstraint("end_time > start_time", name="ck_time_blocks_time_range"),
        sa.ForeignKeyConstraint(["instructor_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_time_blocks_instructor_id"), "time_blocks", ["instructor_id"])
    op.create_index(op.f("ix_time_blocks_block_date"), "time_blocks", ["block_date"])

    op.create_table(
        "booking_sessions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("session_token", sa.String(length=100), nullable=True),
        sa.Column("current_step", sa.String(length=32), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "(user_id IS NULL) <> (session_token IS NULL)", name="ck_booking_sessions_single_owner"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_booking_sessions_user_id"), "booking_sessions", ["user_id"])
    op.create_index(op.f("ix_booking_sessions_session_token"), "booking_sessions", ["session_token"], unique=True)
    op.create_index(op.f("ix_booking_sessions_expires_at"), "booking_sessions", ["expires_at"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("instructor_id", sa.Integer(), nullable=False),
        sa.Column("appointment_type_id", sa.Integer(), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("meeting_type", sa.String(length=20), nullable=False),
        sa.Column("meeting_location", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("end_time > start_time", name="ck_appointments_time_range"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["instructor_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["appointment_type_id"], ["appointment_types.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_user_id"), "appointments", ["user_id"])
    op.create_index(op.f("ix_appointments_instructor_id"), "appointments", ["instructor_id"])
    op.create_index(op.f("ix_appointments_appointment_date"), "appointments", ["appointment_date"])
    op.create_index(
        "uq_appointments_instructor_slot",
        "appointments",
        ["instructor_id", "appointment_date", "start_time"],
        unique=True,
        sqlite_where=sa.text(_ACTIVE_ONLY),
        postgresql_where=sa.text(_ACTIVE_ONLY),
    )

    if is_postgres:
        # Close the check-then-insert window: overlapping live appointments of one
        # instructor are rejected by the database itself.
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE appointments
              ADD CONSTRAINT appointments_no_overlap_per_instructor
              EXCLUDE USING gist (
                instructor_id WITH =,
                tsrange(appointment_date + start_time, appointment_date + end_time, '[)') WITH &&
              )
              WHERE (status <> 'cancelled')
            """
        )

    op.create_table(
        "appointment_notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=False),
        sa.Column("notification_type", sa.String(length=30), nullable=False),
        sa.Column("scheduled_time", sa.DateTime(), nullable=False),
        sa.Column("is_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("template_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_appointment_notifications_appointment_id"), "appointment_notifications", ["appointment_id"]
    )
    op.create_index(
        op.f("ix_appointment_notifications_scheduled_time"), "appointment_notifications", ["scheduled_time"]
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_appointment_notifications_scheduled_time"), table_name="appointment_notifications")
    op.drop_index(op.f("ix_appointment_notifications_appointment_id"), table_name="appointment_notifications")
    op.drop_table("appointment_notifications")
    op.drop_index("uq_appointments_instructor_slot", table_name="appointments")
    op.drop_index(op.f("ix_appointments_appointment_date"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_instructor_id"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_user_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_index(op.f("ix_booking_sessions_expires_at"), table_name="booking_sessions")
    op.drop_index(op.f("ix_booking_sessions_session_token"), table_name="booking_sessions")
    op.drop_index(op.f("ix_booking_sessions_user_id"), table_name="booking_sessions")
    op.drop_table("booking_sessions")
    op.drop_index(op.f("ix_time_blocks_block_date"), table_name="time_blocks")
    op.drop_index(op.f("ix_time_blocks_instructor_id"), table_name="time_blocks")
    op.drop_table("time_blocks")
    op.drop_index(op.f("ix_instructor_availability_instructor_id"), table_name="instructor_availability")
    op.drop_table("instructor_availability")
    op.drop_index(op.f("ix_appointment_types_instructor_id"), table_name="appointment_types")
    op.drop_table("appointment_types")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
