from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from booking_engine.core.timeutil import utc_naive_now


class UserRole(str, Enum):
    USER = "user"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"  # provisioned from an anonymous booking, not yet registered


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    phone: str | None = None
    role: str = UserRole.USER.value
    status: str = UserStatus.ACTIVE.value


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_naive_now)


class UserPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None


class InstructorPublic(UserPublic):
    pass
