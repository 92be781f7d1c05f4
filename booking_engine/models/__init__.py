from booking_engine.models.user import User, UserPublic, UserRole, UserStatus
from booking_engine.models.appointment_type import AppointmentType, AppointmentTypePublic
from booking_engine.models.availability import AvailabilityRule, TimeBlock
from booking_engine.models.appointment import (
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentWithDetails,
    MeetingType,
)
from booking_engine.models.booking_session import BookingSession, BookingStep
from booking_engine.models.notification import AppointmentNotification, NotificationType

__all__ = [
    "User",
    "UserPublic",
    "UserRole",
    "UserStatus",
    "AppointmentType",
    "AppointmentTypePublic",
    "AvailabilityRule",
    "TimeBlock",
    "Appointment",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentWithDetails",
    "MeetingType",
    "BookingSession",
    "BookingStep",
    "AppointmentNotification",
    "NotificationType",
]
