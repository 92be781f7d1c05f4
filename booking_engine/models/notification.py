from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from booking_engine.core.timeutil import utc_naive_now


class NotificationType(str, Enum):
    CONFIRMATION = "confirmation"
    REMINDER_24H = "reminder_24h"
    REMINDER_1H = "reminder_1h"


class AppointmentNotification(SQLModel, table=True):
    """Pending work item for the delivery worker; nothing here sends anything."""

    __tablename__ = "appointment_notifications"
    id: int | None = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", index=True)
    notification_type: str = Field(max_length=30)
    scheduled_time: datetime = Field(index=True)
    is_sent: bool = False
    template_data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utc_naive_now)
