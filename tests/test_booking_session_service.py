from datetime import timedelta

import pytest

from booking_engine.core.exceptions import (
    InvalidSessionTokenError,
    InvalidStepTransitionError,
    SessionNotFoundError,
)
from booking_engine.core.timeutil import utc_naive_now
from booking_engine.models.booking_session import BookingStep
from booking_engine.services.booking_session_service import (
    CallerIdentity,
    create_booking_session,
    delete_booking_session,
    get_booking_session,
    list_active_sessions,
    update_booking_session,
    validate_step_transition,
)


def _owner(booking) -> CallerIdentity:
    if booking.session_token:
        return CallerIdentity(session_token=booking.session_token)
    return CallerIdentity(user_id=booking.user_id)


@pytest.mark.asyncio
async def test_anonymous_session_gets_token_and_two_hour_expiry(db):
    now = utc_naive_now()
    booking = await create_booking_session(db, CallerIdentity(), now=now)

    assert booking.user_id is None
    assert booking.session_token.startswith("booking_")
    assert booking.current_step == BookingStep.INSTRUCTOR_SELECTION.value
    assert booking.data == {"completed_steps": []}
    assert booking.expires_at == now + timedelta(hours=2)


@pytest.mark.asyncio
async def test_authenticated_session_has_no_token(db, catalog):
    booker = catalog["booker"]
    booking = await create_booking_session(
        db,
        CallerIdentity(user_id=booker.id),
        initial_data={"instructor_id": catalog["instructor"].id, "appointment_type_id": None},
    )

    assert booking.user_id == booker.id
    assert booking.session_token is None
    assert booking.data == {"instructor_id": catalog["instructor"].id, "completed_steps": []}


@pytest.mark.asyncio
async def test_get_is_scoped_to_owner(db, catalog):
    booking = await create_booking_session(db, CallerIdentity(user_id=catalog["booker"].id))
    await db.commit()

    assert (await get_booking_session(db, booking.id, _owner(booking))).id == booking.id
    with pytest.raises(SessionNotFoundError):
        await get_booking_session(db, booking.id, CallerIdentity(user_id=catalog["instructor"].id))


@pytest.mark.asyncio
async def test_anonymous_get_requires_the_matching_token(db):
    booking = await create_booking_session(db, CallerIdentity())
    other = await create_booking_session(db, CallerIdentity())
    await db.commit()

    with pytest.raises(SessionNotFoundError):
        await get_booking_session(db, booking.id, CallerIdentity(session_token=other.session_token))
    with pytest.raises(InvalidSessionTokenError):
        await get_booking_session(db, booking.id, CallerIdentity())
    with pytest.raises(InvalidSessionTokenError):
        await get_booking_session(db, booking.id, CallerIdentity(session_token="not-a-token"))


@pytest.mark.asyncio
async def test_expired_session_is_not_found(db, catalog):
    now = utc_naive_now()
    booking = await create_booking_session(db, CallerIdentity(user_id=catalog["booker"].id), now=now)
    await db.commit()

    with pytest.raises(SessionNotFoundError):
        await get_booking_session(db, booking.id, _owner(booking), now=now + timedelta(hours=2, seconds=1))


@pytest.mark.asyncio
async def test_update_merges_data_and_slides_expiry(db, catalog):
    now = utc_naive_now()
    booking = await create_booking_session(
        db,
        CallerIdentity(user_id=catalog["booker"].id),
        initial_data={"instructor_id": catalog["instructor"].id},
        now=now,
    )
    later = now + timedelta(minutes=90)

    updated = await update_booking_session(
        db,
        booking.id,
        _owner(booking),
        partial_data={"notes": "First visit", "completed_steps": ["confirmation"]},
        now=later,
    )

    assert updated.data["instructor_id"] == catalog["instructor"].id
    assert updated.data["notes"] == "First visit"
    assert updated.data["completed_steps"] == []
    assert updated.expires_at == later + timedelta(hours=2)
    assert updated.updated_at == later


@pytest.mark.asyncio
async def test_advancing_records_completed_step(db, catalog):
    booking = await create_booking_session(
        db,
        CallerIdentity(user_id=catalog["booker"].id),
        initial_data={"instructor_id": catalog["instructor"].id},
    )

    updated = await update_booking_session(
        db, booking.id, _owner(booking), step=BookingStep.SERVICE_SELECTION
    )

    assert updated.current_step == "service_selection"
    assert updated.data["completed_steps"] == ["instructor_selection"]


@pytest.mark.asyncio
async def test_going_back_keeps_completed_steps(db, catalog):
    booking = await create_booking_session(
        db,
        CallerIdentity(user_id=catalog["booker"].id),
        initial_data={"instructor_id": catalog["instructor"].id, "appointment_type_id": catalog["service"].id},
    )
    await update_booking_session(db, booking.id, _owner(booking), step="service_selection")
    await update_booking_session(db, booking.id, _owner(booking), step="date_time_selection")

    updated = await update_booking_session(db, booking.id, _owner(booking), step="instructor_selection")

    assert updated.current_step == "instructor_selection"
    assert updated.data["completed_steps"] == ["instructor_selection", "service_selection"]


@pytest.mark.asyncio
async def test_skipping_a_step_is_rejected(db, catalog):
    booking = await create_booking_session(
        db,
        CallerIdentity(user_id=catalog["booker"].id),
        initial_data={"instructor_id": catalog["instructor"].id},
    )

    with pytest.raises(InvalidStepTransitionError):
        await update_booking_session(db, booking.id, _owner(booking), step="date_time_selection")


@pytest.mark.asyncio
async def test_unknown_step_is_rejected(db, catalog):
    booking = await create_booking_session(db, CallerIdentity(user_id=catalog["booker"].id))

    with pytest.raises(InvalidStepTransitionError):
        await update_booking_session(db, booking.id, _owner(booking), step="payment")


def test_advancing_requires_fields_of_the_step_being_left():
    with pytest.raises(InvalidStepTransitionError) as exc_info:
        validate_step_transition(
            BookingStep.DATE_TIME_SELECTION,
            BookingStep.USER_DETAILS,
            {"appointment_date": "2025-03-10", "start_time": "14:00:00"},
        )

    assert exc_info.value.details["missing_fields"] == ["end_time"]


def test_staying_on_a_step_needs_nothing():
    validate_step_transition(BookingStep.DATE_TIME_SELECTION, BookingStep.DATE_TIME_SELECTION, {})


@pytest.mark.asyncio
async def test_delete_is_idempotent(db, catalog):
    booking = await create_booking_session(db, CallerIdentity(user_id=catalog["booker"].id))
    await db.commit()
    caller = _owner(booking)

    await delete_booking_session(db, booking.id, caller)
    await db.commit()
    await delete_booking_session(db, booking.id, caller)
    await delete_booking_session(db, "does-not-exist", caller)

    with pytest.raises(SessionNotFoundError):
        await get_booking_session(db, booking.id, caller)


@pytest.mark.asyncio
async def test_delete_does_not_touch_foreign_sessions(db, catalog):
    booking = await create_booking_session(db, CallerIdentity(user_id=catalog["booker"].id))
    await db.commit()

    await delete_booking_session(db, booking.id, CallerIdentity(user_id=catalog["instructor"].id))

    assert (await get_booking_session(db, booking.id, _owner(booking))).id == booking.id


@pytest.mark.asyncio
async def test_list_returns_only_live_sessions_of_the_caller(db, catalog):
    caller = CallerIdentity(user_id=catalog["booker"].id)
    now = utc_naive_now()
    stale = await create_booking_session(db, caller, now=now - timedelta(hours=3))
    live = await create_booking_session(db, caller, now=now)
    await create_booking_session(db, CallerIdentity(user_id=catalog["instructor"].id), now=now)
    await db.commit()

    sessions = await list_active_sessions(db, caller, now=now)

    assert [s.id for s in sessions] == [live.id]
    assert stale.id not in [s.id for s in sessions]
