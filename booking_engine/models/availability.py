from datetime import date, time

from sqlmodel import Field, SQLModel


class AvailabilityRule(SQLModel, table=True):
    """Recurring weekly open hours of an instructor."""

    __tablename__ = "instructor_availability"
    id: int | None = Field(default=None, primary_key=True)
    instructor_id: int = Field(foreign_key="users.id", index=True)
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    start_time: time
    end_time: time
    is_available: bool = True


class TimeBlock(SQLModel, table=True):
    """One-off unavailability on a specific date; overrides the weekly rule."""

    __tablename__ = "time_blocks"
    id: int | None = Field(default=None, primary_key=True)
    instructor_id: int = Field(foreign_key="users.id", index=True)
    block_date: date = Field(index=True)
    start_time: time
    end_time: time
    is_blocked: bool = True
    block_reason: str | None = None
