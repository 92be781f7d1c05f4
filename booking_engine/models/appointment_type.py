from datetime import datetime

from sqlmodel import Field, SQLModel

from booking_engine.core.timeutil import utc_naive_now


class AppointmentType(SQLModel, table=True):
    """Service offered by an instructor. Read-only for the booking engine."""

    __tablename__ = "appointment_types"
    id: int | None = Field(default=None, primary_key=True)
    instructor_id: int = Field(foreign_key="users.id", index=True)
    type_name: str = Field(max_length=150)
    description: str | None = None
    duration_minutes: int = 60
    # How far ahead a slot may be booked: no sooner than N hours, no later than N days
    booking_advance_hours: int = 1
    booking_advance_days: int = 30
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_naive_now)


class AppointmentTypePublic(SQLModel):
    id: int
    instructor_id: int
    type_name: str
    description: str | None = None
    duration_minutes: int
    booking_advance_hours: int
    booking_advance_days: int
    is_active: bool
