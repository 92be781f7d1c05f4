from datetime import date, datetime, time
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from booking_engine.core.timeutil import utc_naive_now
from booking_engine.models.appointment_type import AppointmentTypePublic
from booking_engine.models.user import InstructorPublic, UserPublic


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class MeetingType(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"


_ACTIVE_ONLY = "status != 'cancelled'"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    # Two live appointments can never start at the same instant for one instructor.
    # Overlapping spans are additionally excluded on Postgres by the migration.
    __table_args__ = (
        Index(
            "uq_appointments_instructor_slot",
            "instructor_id",
            "appointment_date",
            "start_time",
            unique=True,
            sqlite_where=text(_ACTIVE_ONLY),
            postgresql_where=text(_ACTIVE_ONLY),
        ),
    )
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    instructor_id: int = Field(foreign_key="users.id", index=True)
    appointment_type_id: int = Field(foreign_key="appointment_types.id")
    appointment_date: date = Field(index=True)
    start_time: time
    end_time: time
    duration_minutes: int
    status: str = Field(default=AppointmentStatus.PENDING.value, max_length=20)
    meeting_type: str = Field(max_length=20)
    meeting_location: str | None = None
    # Snapshot of the appointment type at booking time
    title: str
    description: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now)


class AppointmentPublic(SQLModel):
    id: int
    user_id: int
    instructor_id: int
    appointment_type_id: int
    appointment_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    status: str
    meeting_type: str
    meeting_location: str | None = None
    title: str
    description: str | None = None
    notes: str | None = None
    created_at: datetime


class AppointmentWithDetails(AppointmentPublic):
    instructor: InstructorPublic | None = None
    user: UserPublic | None = None
    appointment_type: AppointmentTypePublic | None = None
