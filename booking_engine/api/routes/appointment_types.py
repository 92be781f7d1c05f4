from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_session
from booking_engine.models.appointment_type import AppointmentTypePublic
from booking_engine.services.appointment_type_service import list_appointment_types

router = APIRouter(prefix="/appointment-types", tags=["appointment-types"])


@router.get("", response_model=list[AppointmentTypePublic])
async def active_appointment_types(
    instructor_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[AppointmentTypePublic]:
    types = await list_appointment_types(session, instructor_id=instructor_id)
    return [AppointmentTypePublic.model_validate(t, from_attributes=True) for t in types]
