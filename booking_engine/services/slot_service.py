from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.models.appointment import Appointment, AppointmentStatus
from booking_engine.services.availability_service import (
    get_active_rules,
    get_blocks_for_date,
    intervals_overlap,
)


@dataclass(frozen=True)
class SlotInfo:
    start_time: time
    end_time: time
    available: bool


def _slot_times_for_window(
    d: date, window_start: time, window_end: time, duration_minutes: int, buffer_minutes: int
) -> list[tuple[time, time]]:
    """Candidate (start, end) pairs inside one rule window, stepping by duration + buffer."""
    slots: list[tuple[time, time]] = []
    current = datetime.combine(d, window_start)
    end = datetime.combine(d, window_end)
    length = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=duration_minutes + buffer_minutes)
    while current + length <= end:
        slots.append((current.time(), (current + length).time()))
        current += step
    return slots


async def get_booked_intervals(
    session: AsyncSession, instructor_id: int, d: date
) -> list[tuple[time, time]]:
    result = await session.execute(
        select(Appointment.start_time, Appointment.end_time).where(
            Appointment.instructor_id == instructor_id,
            Appointment.appointment_date == d,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        )
    )
    return [(row[0], row[1]) for row in result.all()]


async def get_available_slots_for_date(
    session: AsyncSession, instructor_id: int, d: date, duration_minutes: int
) -> list[SlotInfo]:
    """All candidate slots of the day for an instructor, each marked available or not.

    Slots come from the weekly rules of that weekday; a slot is unavailable when it
    overlaps a live appointment or a time block. Duplicates from overlapping rules
    are collapsed and the list is sorted by start time.
    """
    rules = await get_active_rules(session, instructor_id, d)
    if not rules:
        return []
    booked = await get_booked_intervals(session, instructor_id, d)
    blocks = [(b.start_time, b.end_time) for b in await get_blocks_for_date(session, instructor_id, d)]

    seen: dict[tuple[time, time], SlotInfo] = {}
    for rule in rules:
        for start, end in _slot_times_for_window(
            d, rule.start_time, rule.end_time, duration_minutes, settings.slot_buffer_minutes
        ):
            if (start, end) in seen:
                continue
            taken = any(intervals_overlap(s, e, start, end) for s, e in booked + blocks)
            seen[(start, end)] = SlotInfo(start_time=start, end_time=end, available=not taken)
    return sorted(seen.values(), key=lambda s: s.start_time)
