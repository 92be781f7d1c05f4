from datetime import date, time

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentWithDetails,
)
from booking_engine.models.appointment_type import AppointmentType, AppointmentTypePublic
from booking_engine.models.user import InstructorPublic, User, UserPublic


async def create_appointment(
    session: AsyncSession,
    *,
    user_id: int,
    instructor_id: int,
    appointment_type: AppointmentType,
    appointment_date: date,
    start_time: time,
    end_time: time,
    duration_minutes: int,
    meeting_type: str,
    meeting_location: str | None = None,
    notes: str | None = None,
) -> Appointment:
    """Insert a pending appointment; title and description are copied from the type now."""
    appointment = Appointment(
        user_id=user_id,
        instructor_id=instructor_id,
        appointment_type_id=appointment_type.id,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=duration_minutes,
        status=AppointmentStatus.PENDING.value,
        meeting_type=meeting_type,
        meeting_location=meeting_location,
        title=appointment_type.type_name,
        description=appointment_type.description,
        notes=notes,
    )
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    return appointment


def to_details(
    appointment: Appointment,
    instructor: User | None,
    user: User | None,
    appointment_type: AppointmentType | None,
) -> AppointmentWithDetails:
    """Public shape of a booked appointment with instructor, booker and type."""
    return AppointmentWithDetails(
        **appointment.model_dump(),
        instructor=InstructorPublic.model_validate(instructor, from_attributes=True) if instructor else None,
        user=UserPublic.model_validate(user, from_attributes=True) if user else None,
        appointment_type=(
            AppointmentTypePublic.model_validate(appointment_type, from_attributes=True)
            if appointment_type
            else None
        ),
    )
