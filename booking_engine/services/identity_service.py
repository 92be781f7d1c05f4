import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.models.user import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    # Legacy rows may differ only in case; the oldest account wins
    result = await session.execute(
        select(User).where(func.lower(User.email) == normalize_email(email)).order_by(User.id)
    )
    return result.scalars().first()


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    return await session.get(User, user_id)


async def get_or_create_pending_user(
    session: AsyncSession, email: str, full_name: str | None = None, phone: str | None = None
) -> User:
    """Bind an anonymous booker to an account, provisioning a pending one if needed."""
    user = await get_user_by_email(session, email)
    if user:
        return user
    user = User(
        email=normalize_email(email),
        full_name=full_name or "Anonymous User",
        phone=phone,
        role=UserRole.USER.value,
        status=UserStatus.PENDING.value,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    logger.info("Provisioned pending account %s for anonymous booking", user.id)
    return user
