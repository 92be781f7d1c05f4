"""
Turn a finished booking session into an appointment.

The session walks ``Draft -> ReadyToComplete -> Completing`` and ends either in
``Completed`` (appointment committed, session gone) or ``Rejected`` (validation or
availability failure, session untouched so the booker can fix it and retry).

Only the appointment insert is a hard commit. Notification scheduling and session
cleanup run after it in their own transactions; their failures are logged and
reported as warnings on the result, never undoing the appointment.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import (
    BookingValidationError,
    DependencyError,
    IncompleteSessionError,
    SlotUnavailableError,
)
from booking_engine.core.timeutil import slot_start, utc_naive_now
from booking_engine.models.appointment import Appointment, AppointmentWithDetails, MeetingType
from booking_engine.models.appointment_type import AppointmentType
from booking_engine.models.booking_session import BookingSession
from booking_engine.models.user import User, UserRole
from booking_engine.services.appointment_service import create_appointment, to_details
from booking_engine.services.appointment_type_service import get_active_appointment_type
from booking_engine.services.availability_service import REASON_BOOKED, check_slot_availability
from booking_engine.services.booking_session_service import (
    CallerIdentity,
    get_booking_session,
    purge_booking_session,
)
from booking_engine.services.identity_service import get_or_create_pending_user, get_user
from booking_engine.services.notification_service import schedule_appointment_notifications

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "instructor_id",
    "appointment_type_id",
    "appointment_date",
    "start_time",
    "end_time",
    "duration_minutes",
    "meeting_type",
)

_PHONE_RE = re.compile(r"^[0-9+()\s-]+$")

WARNING_NOTIFICATIONS = "notification_scheduling_failed"
WARNING_CLEANUP = "session_cleanup_failed"


class CompletionState(str, Enum):
    DRAFT = "draft"
    READY_TO_COMPLETE = "ready_to_complete"
    COMPLETING = "completing"
    COMPLETED = "completed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class BookingRequest:
    """Typed view of a complete session payload."""

    instructor_id: int
    appointment_type_id: int
    appointment_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    meeting_type: str
    meeting_location: str | None = None
    notes: str | None = None
    contact: dict[str, Any] = field(default_factory=dict)

    @property
    def starts_at(self) -> datetime:
        return slot_start(self.appointment_date, self.start_time)


@dataclass
class CompletionResult:
    """The appointment is committed; warnings list auxiliary steps that failed."""

    appointment: Appointment
    details: AppointmentWithDetails
    state: CompletionState = CompletionState.COMPLETED
    warnings: list[str] = field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def find_missing_fields(data: dict[str, Any], anonymous: bool) -> list[str]:
    missing = [f for f in REQUIRED_FIELDS if _is_blank(data.get(f))]
    if anonymous:
        details = data.get("user_details") or {}
        if not isinstance(details, dict) or _is_blank(details.get("email")):
            missing.append("user_details.email")
    return missing


def validate_contact(contact: dict[str, Any]) -> dict[str, str]:
    """Field errors for the optional contact details; empty when they are usable."""
    errors: dict[str, str] = {}
    full_name = contact.get("full_name")
    if full_name is not None and len(str(full_name).strip()) < 2:
        errors["full_name"] = "must be at least 2 characters"
    phone = contact.get("phone")
    if not _is_blank(phone) and not _PHONE_RE.match(str(phone)):
        errors["phone"] = "may only contain digits, spaces, +, -, ( and )"
    return errors


def check_booking_window(
    request: BookingRequest, appointment_type: AppointmentType, now: datetime
) -> None:
    """Reject slots in the past, too soon, or beyond the type's advance-booking horizon."""
    starts_at = request.starts_at
    if starts_at <= now:
        raise BookingValidationError(
            "Cannot book a time slot in the past",
            details={"starts_at": starts_at.isoformat()},
        )
    earliest = now + timedelta(hours=appointment_type.booking_advance_hours)
    if starts_at < earliest:
        raise BookingValidationError(
            f"Appointments must be booked at least {appointment_type.booking_advance_hours} hours in advance",
            details={"starts_at": starts_at.isoformat(), "earliest": earliest.isoformat()},
        )
    latest = now + timedelta(days=appointment_type.booking_advance_days)
    if starts_at > latest:
        raise BookingValidationError(
            f"Appointments can be booked at most {appointment_type.booking_advance_days} days in advance",
            details={"starts_at": starts_at.isoformat(), "latest": latest.isoformat()},
        )


def parse_booking_request(data: dict[str, Any], anonymous: bool) -> BookingRequest:
    """Validate a session payload before anything touches availability.

    Raises IncompleteSessionError listing every missing field, or
    BookingValidationError for values that are present but unusable.
    """
    missing = find_missing_fields(data, anonymous)
    if missing:
        raise IncompleteSessionError(missing)

    try:
        instructor_id = int(data["instructor_id"])
        appointment_type_id = int(data["appointment_type_id"])
        appointment_date = date.fromisoformat(str(data["appointment_date"]))
        start = time.fromisoformat(str(data["start_time"]))
        end = time.fromisoformat(str(data["end_time"]))
        duration = int(data["duration_minutes"])
    except (TypeError, ValueError) as e:
        raise BookingValidationError(f"Invalid booking details: {e}")

    if start >= end:
        raise BookingValidationError(
            "End time must be after start time",
            details={"start_time": start.isoformat(), "end_time": end.isoformat()},
        )
    span = (datetime.combine(appointment_date, end) - datetime.combine(appointment_date, start)).seconds // 60
    if duration != span:
        raise BookingValidationError(
            "Duration does not match the selected time range",
            details={"duration_minutes": duration, "expected_minutes": span},
        )

    try:
        meeting_type = MeetingType(data["meeting_type"]).value
    except ValueError:
        raise BookingValidationError(f"Invalid meeting type: {data['meeting_type']}")
    meeting_location = data.get("meeting_location") or None
    if meeting_type == MeetingType.OFFLINE.value and _is_blank(meeting_location):
        raise BookingValidationError(
            "Meeting location is required for offline meetings",
            details={"field_errors": {"meeting_location": "required for offline meetings"}},
        )

    contact = data.get("user_details") or {}
    if not isinstance(contact, dict):
        contact = {}
    contact_errors = validate_contact(contact)
    if contact_errors:
        raise BookingValidationError("Invalid contact details", details={"field_errors": contact_errors})
    return BookingRequest(
        instructor_id=instructor_id,
        appointment_type_id=appointment_type_id,
        appointment_date=appointment_date,
        start_time=start,
        end_time=end,
        duration_minutes=duration,
        meeting_type=meeting_type,
        meeting_location=meeting_location,
        notes=data.get("notes") or None,
        contact=contact,
    )


async def _load_instructor(session: AsyncSession, instructor_id: int) -> User:
    instructor = await get_user(session, instructor_id)
    if not instructor or instructor.role not in (UserRole.INSTRUCTOR.value, UserRole.ADMIN.value):
        raise BookingValidationError("Instructor not found", details={"instructor_id": instructor_id})
    return instructor


async def _load_appointment_type(session: AsyncSession, request: BookingRequest) -> AppointmentType:
    appointment_type = await get_active_appointment_type(session, request.appointment_type_id)
    if not appointment_type:
        raise BookingValidationError(
            "Invalid or inactive appointment type",
            details={"appointment_type_id": request.appointment_type_id},
        )
    if appointment_type.instructor_id != request.instructor_id:
        raise BookingValidationError(
            "Appointment type is not offered by this instructor",
            details={"appointment_type_id": request.appointment_type_id},
        )
    return appointment_type


async def _resolve_booker(
    session: AsyncSession, booking: BookingSession, request: BookingRequest
) -> User:
    try:
        if booking.is_anonymous:
            return await get_or_create_pending_user(
                session,
                email=request.contact["email"],
                full_name=request.contact.get("full_name"),
                phone=request.contact.get("phone"),
            )
        user = await get_user(session, booking.user_id)
    except SQLAlchemyError as e:
        logger.exception("Identity resolution failed for booking session %s: %s", booking.id, e)
        raise DependencyError("Failed to validate user information") from e
    if not user:
        raise DependencyError("Booking user no longer exists")
    return user


async def _insert_appointment(
    session: AsyncSession,
    booking_id: str,
    request: BookingRequest,
    user: User,
    appointment_type: AppointmentType,
) -> Appointment:
    try:
        appointment = await create_appointment(
            session,
            user_id=user.id,
            instructor_id=request.instructor_id,
            appointment_type=appointment_type,
            appointment_date=request.appointment_date,
            start_time=request.start_time,
            end_time=request.end_time,
            duration_minutes=request.duration_minutes,
            meeting_type=request.meeting_type,
            meeting_location=request.meeting_location,
            notes=request.notes,
        )
        await session.commit()
    except IntegrityError as e:
        # Lost the race to a concurrent completion between the re-check and the insert
        await session.rollback()
        logger.warning("Slot constraint rejected booking session %s: %s", booking_id, e.orig)
        raise SlotUnavailableError(REASON_BOOKED) from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("Appointment insert failed for booking session %s: %s", booking_id, e)
        raise DependencyError("Failed to create appointment") from e
    return appointment


async def _schedule_notifications(
    session: AsyncSession, appointment_id: int, title: str, request: BookingRequest, now: datetime
) -> bool:
    try:
        await schedule_appointment_notifications(
            session,
            appointment_id,
            request.starts_at,
            template_data={
                "appointment_id": appointment_id,
                "title": title,
                "appointment_date": request.appointment_date.isoformat(),
                "start_time": request.start_time.isoformat(timespec="minutes"),
            },
            now=now,
        )
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.exception("Scheduling notifications for appointment %s failed: %s", appointment_id, e)
        return False
    return True


async def _cleanup_session(session: AsyncSession, booking_id: str) -> bool:
    try:
        await purge_booking_session(session, booking_id)
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.warning("Could not delete consumed booking session %s (it will expire): %s", booking_id, e)
        return False
    return True


async def complete_booking_session(
    session: AsyncSession,
    session_id: str,
    caller: CallerIdentity,
    now: datetime | None = None,
) -> CompletionResult:
    """Validate the caller's session, re-check the slot, and book it.

    Order matters: rejections happen before any write, the appointment is
    committed before notifications are scheduled, and the session is deleted
    last. Raises SessionNotFoundError, IncompleteSessionError,
    BookingValidationError, SlotUnavailableError or DependencyError.
    """
    current_time = now or utc_naive_now()
    booking = await get_booking_session(session, session_id, caller, now=current_time)
    state = CompletionState.DRAFT

    try:
        request = parse_booking_request(booking.data, anonymous=booking.is_anonymous)
        state = CompletionState.READY_TO_COMPLETE
        instructor = await _load_instructor(session, request.instructor_id)
        appointment_type = await _load_appointment_type(session, request)
        check_booking_window(request, appointment_type, current_time)

        availability = await check_slot_availability(
            session, request.instructor_id, request.appointment_date, request.start_time, request.end_time
        )
        if not availability.available:
            raise SlotUnavailableError(availability.reason or "Time slot not available")
    except (BookingValidationError, SlotUnavailableError) as e:
        logger.info(
            "Booking session %s %s at %s: %s",
            booking.id, CompletionState.REJECTED.value, state.value, e.message,
        )
        raise

    logger.debug("Booking session %s -> %s", booking.id, CompletionState.COMPLETING.value)
    booking_id = booking.id
    user = await _resolve_booker(session, booking, request)
    appointment = await _insert_appointment(session, booking_id, request, user, appointment_type)
    # Rendered now: a failed auxiliary step rolls back and expires loaded instances
    details = to_details(appointment, instructor, user, appointment_type)
    logger.info(
        "Booking session %s completed as appointment %s (instructor=%s, %s %s-%s)",
        booking_id, details.id, request.instructor_id,
        request.appointment_date, request.start_time, request.end_time,
    )

    warnings: list[str] = []
    if not await _schedule_notifications(session, details.id, details.title, request, current_time):
        warnings.append(WARNING_NOTIFICATIONS)
    if not await _cleanup_session(session, booking_id):
        warnings.append(WARNING_CLEANUP)

    return CompletionResult(
        appointment=appointment,
        details=details,
        state=CompletionState.COMPLETED,
        warnings=warnings,
    )
