"""UTC helpers. Timestamps are stored as naive UTC datetimes."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert a datetime to naive UTC; naive inputs are assumed to be UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
