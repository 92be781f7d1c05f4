from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, CheckConstraint, Column
from sqlmodel import Field, SQLModel

from booking_engine.core.timeutil import utc_naive_now


class BookingStep(str, Enum):
    """Wizard steps, in the order a booker walks through them."""

    INSTRUCTOR_SELECTION = "instructor_selection"
    SERVICE_SELECTION = "service_selection"
    DATE_TIME_SELECTION = "date_time_selection"
    USER_DETAILS = "user_details"
    CONFIRMATION = "confirmation"

    @property
    def position(self) -> int:
        return BOOKING_STEP_ORDER.index(self)


BOOKING_STEP_ORDER: tuple[BookingStep, ...] = tuple(BookingStep)

# Payload keys that must be present before the wizard may leave the slot step
SLOT_FIELDS = ("appointment_date", "start_time", "end_time")


def _new_session_id() -> str:
    return str(uuid4())


class BookingSession(SQLModel, table=True):
    __tablename__ = "booking_sessions"
    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (session_token IS NULL)", name="ck_booking_sessions_single_owner"),
    )
    id: str = Field(default_factory=_new_session_id, primary_key=True, max_length=36)
    # Exactly one of user_id / session_token is set
    user_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    session_token: str | None = Field(default=None, unique=True, index=True, max_length=100)
    current_step: str = Field(default=BookingStep.INSTRUCTOR_SELECTION.value, max_length=32)
    data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utc_naive_now)
    updated_at: datetime = Field(default_factory=utc_naive_now)

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None
