import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_caller_identity, get_session
from booking_engine.api.schemas.booking import (
    BookingSessionPublic,
    CompletedBookingResponse,
    CreateBookingSessionRequest,
    UpdateBookingSessionRequest,
)
from booking_engine.models.booking_session import BookingSession
from booking_engine.services.booking_completion_service import complete_booking_session
from booking_engine.services.booking_session_service import (
    CallerIdentity,
    create_booking_session,
    delete_booking_session,
    get_booking_session,
    list_active_sessions,
    update_booking_session,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/booking/sessions", tags=["booking"])


def _to_public(s: BookingSession) -> BookingSessionPublic:
    return BookingSessionPublic(
        id=s.id,
        user_id=s.user_id,
        session_token=s.session_token,
        current_step=s.current_step,
        data=s.data,
        expires_at=s.expires_at,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


@router.post("", response_model=BookingSessionPublic, status_code=status.HTTP_201_CREATED)
async def start_booking(
    body: CreateBookingSessionRequest,
    session: AsyncSession = Depends(get_session),
    caller: CallerIdentity = Depends(get_caller_identity),
) -> BookingSessionPublic:
    booking = await create_booking_session(
        session,
        # A stray token on an authenticated request is ignored; a new session gets its own
        CallerIdentity(user_id=caller.user_id),
        initial_step=body.initial_step,
        initial_data={
            "instructor_id": body.instructor_id,
            "appointment_type_id": body.appointment_type_id,
        },
    )
    return _to_public(booking)


@router.get("", response_model=list[BookingSessionPublic])
async def list_my_sessions(
    session: AsyncSession = Depends(get_session),
    caller: CallerIdentity = Depends(get_caller_identity),
) -> list[BookingSessionPublic]:
    return [_to_public(s) for s in await list_active_sessions(session, caller)]


@router.get("/{session_id}", response_model=BookingSessionPublic)
async def get_booking(
    session_id: str,
    session: AsyncSession = Depends(get_session),
    caller: CallerIdentity = Depends(get_caller_identity),
) -> BookingSessionPublic:
    return _to_public(await get_booking_session(session, session_id, caller))


@router.put("/{session_id}", response_model=BookingSessionPublic)
async def update_booking(
    session_id: str,
    body: UpdateBookingSessionRequest,
    session: AsyncSession = Depends(get_session),
    caller: CallerIdentity = Depends(get_caller_identity),
) -> BookingSessionPublic:
    booking = await update_booking_session(
        session, session_id, caller, partial_data=body.data.to_payload(), step=body.step
    )
    return _to_public(booking)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_booking(
    session_id: str,
    session: AsyncSession = Depends(get_session),
    caller: CallerIdentity = Depends(get_caller_identity),
) -> None:
    await delete_booking_session(session, session_id, caller)


@router.post(
    "/{session_id}/complete",
    response_model=CompletedBookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def complete_booking(
    session_id: str,
    session: AsyncSession = Depends(get_session),
    caller: CallerIdentity = Depends(get_caller_identity),
) -> CompletedBookingResponse:
    result = await complete_booking_session(session, session_id, caller)
    if result.warnings:
        logger.warning("Booking session %s completed with warnings: %s", session_id, result.warnings)
    return CompletedBookingResponse(appointment=result.details, warnings=result.warnings)
