from datetime import UTC, datetime, timedelta

import pytest

from booking_engine.core.exceptions import InvalidSessionTokenError
from booking_engine.core.security import (
    create_access_token,
    decode_access_token,
    generate_booking_token,
    validate_booking_token,
)

ISSUED = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


def test_generated_token_has_prefix_random_part_and_timestamp():
    token = generate_booking_token(now=ISSUED)

    assert token.startswith("booking_")
    random_part, _, stamp = token[len("booking_"):].rpartition("_")
    assert len(random_part) >= 42
    assert int(stamp, 36) == int(ISSUED.timestamp() * 1000)


def test_generated_tokens_are_unique():
    assert generate_booking_token() != generate_booking_token()


def test_fresh_token_is_accepted():
    token = generate_booking_token(now=ISSUED)

    assert validate_booking_token(token, now=ISSUED + timedelta(minutes=30)) == token


@pytest.mark.parametrize(
    ("token", "message"),
    [
        (None, "Session token is required for anonymous access"),
        ("", "Session token is required for anonymous access"),
        ("session_abc_123", "Invalid session token format"),
        ("booking_short_kz", "Invalid session token format"),
        ("booking_" + "a" * 43, "Invalid session token format"),
        ("booking_" + "a" * 43 + "_NOT-BASE36", "Invalid session token format"),
        ("booking_" + "a!" * 22 + "_kz", "Invalid session token format"),
    ],
)
def test_malformed_tokens_are_rejected(token, message):
    with pytest.raises(InvalidSessionTokenError) as exc_info:
        validate_booking_token(token, now=ISSUED)

    assert exc_info.value.message == message
    assert exc_info.value.status_code == 401


def test_token_older_than_max_age_is_expired():
    token = generate_booking_token(now=ISSUED)

    with pytest.raises(InvalidSessionTokenError) as exc_info:
        validate_booking_token(token, now=ISSUED + timedelta(hours=2, minutes=1))

    assert exc_info.value.message == "Session token has expired"


def test_token_issued_far_in_the_future_is_rejected():
    token = generate_booking_token(now=ISSUED + timedelta(hours=1))

    with pytest.raises(InvalidSessionTokenError):
        validate_booking_token(token, now=ISSUED)


def test_small_clock_skew_is_tolerated():
    token = generate_booking_token(now=ISSUED + timedelta(minutes=2))

    assert validate_booking_token(token, now=ISSUED) == token


def test_access_token_round_trip():
    token = create_access_token(42)

    assert decode_access_token(token) == "42"


def test_access_token_with_wrong_signature_is_ignored():
    token = create_access_token(42)

    assert decode_access_token(token[:-4] + "AAAA") is None
