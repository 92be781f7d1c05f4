import logging
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.models.appointment import Appointment, AppointmentStatus
from booking_engine.models.availability import AvailabilityRule, TimeBlock

logger = logging.getLogger(__name__)

REASON_BOOKED = "Time slot already booked"
REASON_DAY_UNAVAILABLE = "Instructor not available on this day"
REASON_OUTSIDE_HOURS = "Time slot outside working hours"
REASON_BLOCKED = "Time slot blocked by instructor"
REASON_UNVERIFIED = "Unable to verify availability"


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    reason: str | None = None


AVAILABLE = AvailabilityResult(available=True)


def day_of_week(d: date) -> int:
    """Weekday number as stored in availability rules (0 = Sunday ... 6 = Saturday)."""
    return (d.weekday() + 1) % 7


def intervals_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open [start, end) overlap, including either interval containing the other."""
    contains = a_start <= b_start and a_end >= b_end
    return contains or (a_start < b_end and a_end > b_start)


def window_covers(rule_start: time, rule_end: time, start: time, end: time) -> bool:
    return rule_start <= start and rule_end >= end


async def find_conflicting_appointments(
    session: AsyncSession, instructor_id: int, d: date, start: time, end: time
) -> list[int]:
    result = await session.execute(
        select(Appointment.id).where(
            Appointment.instructor_id == instructor_id,
            Appointment.appointment_date == d,
            Appointment.status != AppointmentStatus.CANCELLED.value,
            or_(
                and_(Appointment.start_time <= start, Appointment.end_time >= end),
                and_(Appointment.start_time < end, Appointment.end_time > start),
            ),
        )
    )
    return [row[0] for row in result.all()]


async def get_active_rules(
    session: AsyncSession, instructor_id: int, d: date
) -> list[AvailabilityRule]:
    result = await session.execute(
        select(AvailabilityRule).where(
            AvailabilityRule.instructor_id == instructor_id,
            AvailabilityRule.day_of_week == day_of_week(d),
            AvailabilityRule.is_available == True,  # noqa: E712
        )
    )
    return list(result.scalars().all())


async def get_blocks_for_date(
    session: AsyncSession, instructor_id: int, d: date
) -> list[TimeBlock]:
    result = await session.execute(
        select(TimeBlock).where(
            TimeBlock.instructor_id == instructor_id,
            TimeBlock.block_date == d,
            TimeBlock.is_blocked == True,  # noqa: E712
        )
    )
    return list(result.scalars().all())


async def check_slot_availability(
    session: AsyncSession, instructor_id: int, d: date, start: time, end: time
) -> AvailabilityResult:
    """Decide whether an instructor can take the slot [start, end) on `d`.

    Checks run in a fixed order and stop at the first failure, so the reason is
    the first blocking condition:

    1. an overlapping appointment that is not cancelled
    2. no active weekly rule for that weekday, or none covering the whole slot
    3. an instructor time block overlapping the slot

    A storage error in any step reports the slot as unavailable.
    """
    try:
        conflicts = await find_conflicting_appointments(session, instructor_id, d, start, end)
        if conflicts:
            return AvailabilityResult(False, REASON_BOOKED)

        rules = await get_active_rules(session, instructor_id, d)
        if not rules:
            return AvailabilityResult(False, REASON_DAY_UNAVAILABLE)
        if not any(window_covers(r.start_time, r.end_time, start, end) for r in rules):
            return AvailabilityResult(False, REASON_OUTSIDE_HOURS)

        blocks = await get_blocks_for_date(session, instructor_id, d)
        if any(intervals_overlap(b.start_time, b.end_time, start, end) for b in blocks):
            return AvailabilityResult(False, REASON_BLOCKED)
    except SQLAlchemyError as e:
        logger.exception(
            "Availability check failed for instructor=%s date=%s %s-%s: %s",
            instructor_id, d, start, end, e,
        )
        return AvailabilityResult(False, REASON_UNVERIFIED)
    return AVAILABLE
