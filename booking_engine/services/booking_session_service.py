import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.exceptions import InvalidStepTransitionError, SessionNotFoundError
from booking_engine.core.security import generate_booking_token, validate_booking_token
from booking_engine.core.timeutil import utc_naive_now
from booking_engine.models.booking_session import SLOT_FIELDS, BookingSession, BookingStep

logger = logging.getLogger(__name__)

# Payload keys a step must have gathered before the wizard may move past it
STEP_REQUIREMENTS: dict[BookingStep, tuple[str, ...]] = {
    BookingStep.INSTRUCTOR_SELECTION: ("instructor_id",),
    BookingStep.SERVICE_SELECTION: ("appointment_type_id",),
    BookingStep.DATE_TIME_SELECTION: SLOT_FIELDS,
    BookingStep.USER_DETAILS: (),
    BookingStep.CONFIRMATION: (),
}


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling: an authenticated user id, or an anonymous session token."""

    user_id: int | None = None
    session_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def _expiry(now: datetime) -> datetime:
    return now + timedelta(minutes=settings.booking_session_ttl_minutes)


def _owned_by(query, caller: CallerIdentity):
    """Restrict a select or delete to rows the caller owns."""
    if caller.is_authenticated:
        return query.where(BookingSession.user_id == caller.user_id)
    return query.where(
        BookingSession.session_token == caller.session_token,
        BookingSession.user_id.is_(None),
    )


def _check_anonymous_token(caller: CallerIdentity) -> None:
    # Malformed or stale tokens are rejected before they ever reach a query
    if not caller.is_authenticated:
        validate_booking_token(caller.session_token)


def parse_step(value: str | BookingStep) -> BookingStep:
    try:
        return BookingStep(value)
    except ValueError:
        raise InvalidStepTransitionError(f"Unknown booking step: {value}")


def validate_step_transition(current: BookingStep, target: BookingStep, data: dict[str, Any]) -> None:
    """Allow staying, going back to any earlier step, or advancing exactly one step.

    Advancing also requires the step being left to have gathered its fields.
    """
    if target.position > current.position + 1:
        raise InvalidStepTransitionError(
            f"Cannot skip from {current.value} to {target.value}",
            details={"current_step": current.value, "requested_step": target.value},
        )
    if target.position == current.position + 1:
        missing = [f for f in STEP_REQUIREMENTS[current] if data.get(f) in (None, "")]
        if missing:
            raise InvalidStepTransitionError(
                f"Step {current.value} is missing: {', '.join(missing)}",
                details={"current_step": current.value, "missing_fields": missing},
            )


async def create_booking_session(
    session: AsyncSession,
    caller: CallerIdentity,
    initial_step: BookingStep | str | None = None,
    initial_data: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> BookingSession:
    current = now or utc_naive_now()
    step = parse_step(initial_step) if initial_step else BookingStep.INSTRUCTOR_SELECTION
    data = {k: v for k, v in (initial_data or {}).items() if k != "completed_steps" and v is not None}
    data["completed_steps"] = []
    booking = BookingSession(
        user_id=caller.user_id if caller.is_authenticated else None,
        session_token=None if caller.is_authenticated else generate_booking_token(),
        current_step=step.value,
        data=data,
        expires_at=_expiry(current),
        created_at=current,
        updated_at=current,
    )
    session.add(booking)
    await session.flush()
    logger.info(
        "Booking session %s created (anonymous=%s, step=%s)",
        booking.id, not caller.is_authenticated, step.value,
    )
    return booking


async def get_booking_session(
    session: AsyncSession, session_id: str, caller: CallerIdentity, now: datetime | None = None
) -> BookingSession:
    """Return the caller's live session or raise SessionNotFoundError.

    Missing, expired and foreign sessions are indistinguishable to the caller.
    Expired rows are filtered out here rather than deleted.
    """
    _check_anonymous_token(caller)
    query = select(BookingSession).where(
        BookingSession.id == session_id,
        BookingSession.expires_at > (now or utc_naive_now()),
    )
    result = await session.execute(_owned_by(query, caller))
    booking = result.scalar_one_or_none()
    if not booking:
        raise SessionNotFoundError()
    return booking


async def list_active_sessions(
    session: AsyncSession, caller: CallerIdentity, now: datetime | None = None
) -> list[BookingSession]:
    _check_anonymous_token(caller)
    query = select(BookingSession).where(BookingSession.expires_at > (now or utc_naive_now()))
    result = await session.execute(_owned_by(query, caller).order_by(BookingSession.created_at))
    return list(result.scalars().all())


async def update_booking_session(
    session: AsyncSession,
    session_id: str,
    caller: CallerIdentity,
    partial_data: dict[str, Any] | None = None,
    step: BookingStep | str | None = None,
    now: datetime | None = None,
) -> BookingSession:
    current_time = now or utc_naive_now()
    booking = await get_booking_session(session, session_id, caller, now=current_time)

    # Shallow merge; completed_steps is owned by the server
    incoming = {k: v for k, v in (partial_data or {}).items() if k != "completed_steps"}
    merged = {**booking.data, **incoming}
    completed = list(booking.data.get("completed_steps") or [])

    current_step = parse_step(booking.current_step)
    if step is not None:
        target = parse_step(step)
        validate_step_transition(current_step, target, merged)
        if target.position > current_step.position and current_step.value not in completed:
            completed.append(current_step.value)
        booking.current_step = target.value
    merged["completed_steps"] = completed

    # Reassign so the JSON column is flagged dirty
    booking.data = merged
    booking.expires_at = _expiry(current_time)
    booking.updated_at = current_time
    session.add(booking)
    await session.flush()
    return booking


async def delete_booking_session(
    session: AsyncSession, session_id: str, caller: CallerIdentity
) -> None:
    """Delete the caller's session. Deleting a missing or expired session is not an error."""
    _check_anonymous_token(caller)
    query = delete(BookingSession).where(BookingSession.id == session_id)
    result = await session.execute(
        _owned_by(query, caller).execution_options(synchronize_session=False)
    )
    await session.flush()
    if result.rowcount:
        logger.debug("Booking session %s deleted", session_id)


async def purge_booking_session(session: AsyncSession, session_id: str) -> None:
    """Remove a consumed session whose ownership was already established."""
    await session.execute(
        delete(BookingSession)
        .where(BookingSession.id == session_id)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
