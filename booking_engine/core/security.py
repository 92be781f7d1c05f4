import re
import secrets
import string
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from booking_engine.core.config import settings
from booking_engine.core.exceptions import InvalidSessionTokenError

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_URLSAFE_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_TIMESTAMP_RE = re.compile(r"^[0-9a-z]+$")
# Tolerated clock drift between the node that issued a token and the one checking it
_MAX_CLOCK_SKEW = timedelta(minutes=5)


def create_access_token(subject: str | int) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {"sub": str(subject), "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> str | None:
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
        if payload.get("type") != "access":
            return None
        sub = payload.get("sub")
        return str(sub) if sub else None
    except JWTError:
        return None


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def generate_booking_token(now: datetime | None = None) -> str:
    """Opaque anonymous-booking token: ``{prefix}{urlsafe random}_{base36 ms timestamp}``.

    The timestamp only lets the age be checked without a lookup; the secrecy of the
    token rests entirely on the random part.
    """
    issued = now or datetime.now(UTC)
    random_part = secrets.token_urlsafe(settings.booking_token_entropy_bytes)
    return f"{settings.booking_token_prefix}{random_part}_{_to_base36(_epoch_ms(issued))}"


def validate_booking_token(token: str | None, now: datetime | None = None) -> str:
    """Check prefix, structure and age of an anonymous token before it is used as a key.

    Returns the token unchanged; raises InvalidSessionTokenError otherwise.
    """
    if not token:
        raise InvalidSessionTokenError("Session token is required for anonymous access")
    prefix = settings.booking_token_prefix
    if not token.startswith(prefix):
        raise InvalidSessionTokenError("Invalid session token format")
    body = token[len(prefix):]
    random_part, sep, stamp = body.rpartition("_")
    # urlsafe base64 of N bytes is at least 4*N/3 characters long
    min_random_len = (settings.booking_token_entropy_bytes * 4) // 3
    if (
        not sep
        or len(random_part) < min_random_len
        or not _URLSAFE_RE.match(random_part)
        or not _TIMESTAMP_RE.match(stamp)
    ):
        raise InvalidSessionTokenError("Invalid session token format")

    issued_at = datetime.fromtimestamp(int(stamp, 36) / 1000, tz=UTC)
    current = now or datetime.now(UTC)
    if issued_at - current > _MAX_CLOCK_SKEW:
        raise InvalidSessionTokenError("Invalid session token format")
    if current - issued_at > timedelta(minutes=settings.booking_token_max_age_minutes):
        raise InvalidSessionTokenError("Session token has expired")
    return token
