import os
from datetime import time

import pytest
import pytest_asyncio

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import booking_engine.models  # noqa: E402,F401
from booking_engine.core.db import get_session  # noqa: E402
from booking_engine.core.security import create_access_token  # noqa: E402
from booking_engine.main import app  # noqa: E402
from booking_engine.models.appointment_type import AppointmentType  # noqa: E402
from booking_engine.models.availability import AvailabilityRule, TimeBlock  # noqa: E402
from booking_engine.models.user import User, UserRole, UserStatus  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker):
    async def _get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def catalog(db):
    """One instructor (I1) working Mondays 09:00-17:00 with a 60 minute service (T1), plus a booker (U1)."""
    instructor = User(email="instructor@example.com", full_name="Ada Instructor", role=UserRole.INSTRUCTOR.value)
    booker = User(email="booker@example.com", full_name="Bob Booker", role=UserRole.USER.value)
    db.add_all([instructor, booker])
    await db.flush()

    service = AppointmentType(
        instructor_id=instructor.id,
        type_name="Consultation",
        description="One hour consultation",
        duration_minutes=60,
    )
    db.add(service)
    db.add(
        AvailabilityRule(
            instructor_id=instructor.id,
            day_of_week=1,
            start_time=time(9, 0),
            end_time=time(17, 0),
        )
    )
    await db.commit()
    return {"instructor": instructor, "booker": booker, "service": service}


@pytest_asyncio.fixture
async def pending_user(db):
    user = User(email="guest@example.com", full_name="Returning Guest", status=UserStatus.PENDING.value)
    db.add(user)
    await db.commit()
    return user


async def add_block(db, instructor_id, block_date, start, end, reason="Personal"):
    block = TimeBlock(
        instructor_id=instructor_id,
        block_date=block_date,
        start_time=start,
        end_time=end,
        block_reason=reason,
    )
    db.add(block)
    await db.commit()
    return block


def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def slot_payload(catalog, **overrides) -> dict:
    """A complete session payload for I1/T1 on Monday 2025-03-10 14:00-15:00."""
    payload = {
        "instructor_id": catalog["instructor"].id,
        "appointment_type_id": catalog["service"].id,
        "appointment_date": "2025-03-10",
        "start_time": "14:00:00",
        "end_time": "15:00:00",
        "duration_minutes": 60,
        "meeting_type": "online",
    }
    payload.update(overrides)
    return payload
