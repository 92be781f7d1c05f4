from datetime import date, time

import pytest
from sqlalchemy.exc import SQLAlchemyError

from booking_engine.models.appointment import Appointment, AppointmentStatus
from booking_engine.services import availability_service
from booking_engine.services.availability_service import (
    REASON_BLOCKED,
    REASON_BOOKED,
    REASON_DAY_UNAVAILABLE,
    REASON_OUTSIDE_HOURS,
    REASON_UNVERIFIED,
    check_slot_availability,
    day_of_week,
    intervals_overlap,
)
from booking_engine.services.slot_service import get_available_slots_for_date
from conftest import add_block

MONDAY = date(2025, 3, 10)
SUNDAY = date(2025, 3, 9)


async def _book(db, catalog, start, end, status=AppointmentStatus.PENDING.value):
    appointment = Appointment(
        user_id=catalog["booker"].id,
        instructor_id=catalog["instructor"].id,
        appointment_type_id=catalog["service"].id,
        appointment_date=MONDAY,
        start_time=start,
        end_time=end,
        duration_minutes=60,
        status=status,
        meeting_type="online",
        title="Consultation",
    )
    db.add(appointment)
    await db.commit()
    return appointment


def test_day_of_week_counts_from_sunday():
    assert day_of_week(SUNDAY) == 0
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2025, 3, 15)) == 6


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ((time(14), time(15)), (time(14), time(15)), True),
        ((time(13), time(16)), (time(14), time(15)), True),
        ((time(14, 30), time(15, 30)), (time(14), time(15)), True),
        ((time(15), time(16)), (time(14), time(15)), False),
        ((time(13), time(14)), (time(14), time(15)), False),
    ],
)
def test_intervals_overlap_is_half_open(a, b, expected):
    assert intervals_overlap(a[0], a[1], b[0], b[1]) is expected


@pytest.mark.asyncio
async def test_slot_inside_working_hours_is_available(db, catalog):
    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    assert result.available is True
    assert result.reason is None


@pytest.mark.asyncio
async def test_whole_working_window_is_available(db, catalog):
    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(9), time(17))

    assert result.available is True


@pytest.mark.asyncio
async def test_exact_match_appointment_conflicts(db, catalog):
    await _book(db, catalog, time(14), time(15))

    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    assert result.available is False
    assert result.reason == REASON_BOOKED


@pytest.mark.asyncio
async def test_containing_appointment_conflicts(db, catalog):
    await _book(db, catalog, time(13), time(16))

    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    assert result.reason == REASON_BOOKED


@pytest.mark.asyncio
async def test_back_to_back_and_cancelled_appointments_do_not_conflict(db, catalog):
    await _book(db, catalog, time(13), time(14))
    await _book(db, catalog, time(14), time(15), status=AppointmentStatus.CANCELLED.value)

    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    assert result.available is True


@pytest.mark.asyncio
async def test_day_without_rules_is_unavailable(db, catalog):
    result = await check_slot_availability(db, catalog["instructor"].id, SUNDAY, time(14), time(15))

    assert result.reason == REASON_DAY_UNAVAILABLE


@pytest.mark.asyncio
async def test_slot_crossing_end_of_day_is_outside_hours(db, catalog):
    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(16, 30), time(17, 30))

    assert result.reason == REASON_OUTSIDE_HOURS


@pytest.mark.asyncio
async def test_time_block_makes_slot_unavailable(db, catalog):
    await add_block(db, catalog["instructor"].id, MONDAY, time(14, 30), time(15))

    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    assert result.reason == REASON_BLOCKED


@pytest.mark.asyncio
async def test_first_blocking_condition_wins(db, catalog):
    await _book(db, catalog, time(14), time(15))
    await add_block(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    assert result.reason == REASON_BOOKED


@pytest.mark.asyncio
async def test_storage_failure_reports_unavailable(db, catalog, monkeypatch):
    async def broken(*args, **kwargs):
        raise SQLAlchemyError("connection reset")

    monkeypatch.setattr(availability_service, "find_conflicting_appointments", broken)

    result = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(14), time(15))

    assert result.available is False
    assert result.reason == REASON_UNVERIFIED


@pytest.mark.asyncio
async def test_daily_slots_step_by_duration_plus_buffer(db, catalog):
    slots = await get_available_slots_for_date(db, catalog["instructor"].id, MONDAY, 60)

    assert [s.start_time for s in slots] == [
        time(9), time(10, 15), time(11, 30), time(12, 45), time(14), time(15, 15),
    ]
    assert all(s.available for s in slots)


@pytest.mark.asyncio
async def test_daily_slots_mark_booked_and_blocked_slots(db, catalog):
    await _book(db, catalog, time(10, 15), time(11, 15))
    await add_block(db, catalog["instructor"].id, MONDAY, time(14, 30), time(15))

    slots = await get_available_slots_for_date(db, catalog["instructor"].id, MONDAY, 60)

    unavailable = [s.start_time for s in slots if not s.available]
    assert unavailable == [time(10, 15), time(14)]


@pytest.mark.asyncio
async def test_no_slots_on_days_without_rules(db, catalog):
    assert await get_available_slots_for_date(db, catalog["instructor"].id, SUNDAY, 60) == []


@pytest.mark.asyncio
async def test_daily_slots_treat_every_non_cancelled_status_as_taken(db, catalog):
    await _book(db, catalog, time(9), time(10), status=AppointmentStatus.CANCELLED.value)
    await _book(db, catalog, time(10, 15), time(11, 15), status=AppointmentStatus.COMPLETED.value)
    await _book(db, catalog, time(11, 30), time(12, 30), status=AppointmentStatus.NO_SHOW.value)

    slots = await get_available_slots_for_date(db, catalog["instructor"].id, MONDAY, 60)
    verdict = await check_slot_availability(db, catalog["instructor"].id, MONDAY, time(11, 30), time(12, 30))

    unavailable = [s.start_time for s in slots if not s.available]
    assert unavailable == [time(10, 15), time(11, 30)]
    assert verdict.reason == REASON_BOOKED
