from datetime import UTC, date, datetime, time


def utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def slot_start(d: date, t: time) -> datetime:
    """Appointment dates and times are stored as UTC wall-clock values."""
    return datetime.combine(d, t)
