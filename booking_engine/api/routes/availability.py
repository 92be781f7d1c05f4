from datetime import UTC, date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_session
from booking_engine.api.schemas.booking import (
    DailyAvailabilityResponse,
    SlotCheckResponse,
    SlotPublic,
)
from booking_engine.core.config import settings
from booking_engine.services.availability_service import check_slot_availability
from booking_engine.services.slot_service import get_available_slots_for_date

router = APIRouter(prefix="/booking/availability", tags=["availability"])


@router.get("", response_model=DailyAvailabilityResponse)
async def daily_availability(
    response: Response,
    instructor_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    duration_minutes: int = Query(60),
    session: AsyncSession = Depends(get_session),
) -> DailyAvailabilityResponse:
    """Every candidate slot of the day for an instructor, each marked available or not."""
    if date_param < datetime.now(UTC).date():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot check availability for past dates",
        )
    if not settings.min_duration_minutes <= duration_minutes <= settings.max_duration_minutes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Duration must be between {settings.min_duration_minutes} and {settings.max_duration_minutes} minutes",
        )
    slots = await get_available_slots_for_date(session, instructor_id, date_param, duration_minutes)
    response.headers["Cache-Control"] = "public, max-age=300, stale-while-revalidate=60"
    return DailyAvailabilityResponse(
        instructor_id=instructor_id,
        date=date_param,
        duration_minutes=duration_minutes,
        slots=[SlotPublic(start_time=s.start_time, end_time=s.end_time, available=s.available) for s in slots],
        total_available=sum(1 for s in slots if s.available),
    )


@router.get("/check", response_model=SlotCheckResponse)
async def check_slot(
    instructor_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    start_time: time = Query(...),
    end_time: time = Query(...),
    session: AsyncSession = Depends(get_session),
) -> SlotCheckResponse:
    if start_time >= end_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End time must be after start time",
        )
    result = await check_slot_availability(session, instructor_id, date_param, start_time, end_time)
    return SlotCheckResponse(available=result.available, reason=result.reason)
