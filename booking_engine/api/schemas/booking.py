from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from booking_engine.models.appointment import AppointmentWithDetails, MeetingType
from booking_engine.models.booking_session import BookingStep


class UserDetails(BaseModel):
    full_name: str | None = Field(default=None, min_length=2, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, pattern=r"^[0-9+()\s-]+$", max_length=30)


class BookingSessionData(BaseModel):
    """Fields a wizard step may contribute; anything omitted is left untouched."""

    instructor_id: int | None = None
    appointment_type_id: int | None = None
    appointment_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    meeting_type: MeetingType | None = None
    meeting_location: str | None = None
    notes: str | None = Field(default=None, max_length=2000)
    user_details: UserDetails | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class CreateBookingSessionRequest(BaseModel):
    instructor_id: int | None = None
    appointment_type_id: int | None = None
    initial_step: BookingStep | None = None


class UpdateBookingSessionRequest(BaseModel):
    step: BookingStep | None = None
    data: BookingSessionData = Field(default_factory=BookingSessionData)


class BookingSessionPublic(BaseModel):
    id: str
    user_id: int | None = None
    # Only ever returned to the anonymous booker who owns it
    session_token: str | None = None
    current_step: str
    data: dict[str, Any]
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


class CompletedBookingResponse(BaseModel):
    appointment: AppointmentWithDetails
    message: str = "Appointment booked successfully"
    warnings: list[str] = []


class SlotCheckResponse(BaseModel):
    available: bool
    reason: str | None = None


class SlotPublic(BaseModel):
    start_time: time
    end_time: time
    available: bool


class DailyAvailabilityResponse(BaseModel):
    instructor_id: int
    date: date
    duration_minutes: int
    slots: list[SlotPublic]
    total_available: int
