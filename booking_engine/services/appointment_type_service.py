from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.models.appointment_type import AppointmentType


async def get_active_appointment_type(session: AsyncSession, type_id: int) -> AppointmentType | None:
    result = await session.execute(
        select(AppointmentType).where(
            AppointmentType.id == type_id,
            AppointmentType.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def list_appointment_types(
    session: AsyncSession, instructor_id: int | None = None
) -> list[AppointmentType]:
    q = select(AppointmentType).where(AppointmentType.is_active == True)  # noqa: E712
    if instructor_id is not None:
        q = q.where(AppointmentType.instructor_id == instructor_id)
    result = await session.execute(q.order_by(AppointmentType.type_name))
    return list(result.scalars().all())
