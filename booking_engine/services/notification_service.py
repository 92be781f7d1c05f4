from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.timeutil import utc_naive_now
from booking_engine.models.notification import AppointmentNotification, NotificationType


def compute_notification_schedule(
    start_at: datetime, now: datetime | None = None
) -> list[tuple[NotificationType, datetime]]:
    """Confirmation right away plus two reminders anchored to the appointment start.

    Past-due reminders (e.g. a same-day booking) are kept; the delivery worker
    decides whether they still fire.
    """
    return [
        (NotificationType.CONFIRMATION, now or utc_naive_now()),
        (NotificationType.REMINDER_24H, start_at - timedelta(minutes=settings.reminder_24h_minutes)),
        (NotificationType.REMINDER_1H, start_at - timedelta(minutes=settings.reminder_1h_minutes)),
    ]


async def schedule_appointment_notifications(
    session: AsyncSession,
    appointment_id: int,
    start_at: datetime,
    template_data: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> list[AppointmentNotification]:
    rows = [
        AppointmentNotification(
            appointment_id=appointment_id,
            notification_type=kind.value,
            scheduled_time=scheduled,
            is_sent=False,
            template_data=dict(template_data or {}),
        )
        for kind, scheduled in compute_notification_schedule(start_at, now=now)
    ]
    session.add_all(rows)
    await session.flush()
    return rows


async def list_notifications_for_appointment(
    session: AsyncSession, appointment_id: int
) -> list[AppointmentNotification]:
    result = await session.execute(
        select(AppointmentNotification)
        .where(AppointmentNotification.appointment_id == appointment_id)
        .order_by(AppointmentNotification.scheduled_time)
    )
    return list(result.scalars().all())
