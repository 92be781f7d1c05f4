from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.db import get_session
from booking_engine.core.security import decode_access_token
from booking_engine.models.user import User
from booking_engine.services.booking_session_service import CallerIdentity

optional_bearer = HTTPBearer(auto_error=False)


def booking_token(
    session_token: str | None = Query(default=None),
    x_booking_token: str | None = Header(default=None, alias="X-Booking-Token"),
) -> str | None:
    """Anonymous session token from the X-Booking-Token header or the session_token query param."""
    return x_booking_token or session_token


async def get_optional_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> User | None:
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        # A bearer that fails verification must not silently downgrade to anonymous access
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        uid = int(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    result = await session.execute(select(User).where(User.id == uid))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_caller_identity(
    user: User | None = Depends(get_optional_user),
    token: str | None = Depends(booking_token),
) -> CallerIdentity:
    if user:
        return CallerIdentity(user_id=user.id)
    return CallerIdentity(session_token=token)
