"""Time helpers shared by models and services."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return a naive UTC timestamp, matching how datetimes are stored."""
    return datetime.now(UTC).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def normalize_now(now: datetime | None) -> datetime:
    """Return *now* as naive UTC, or the current time when no clock is supplied."""
    if now is None:
        return utcnow()
    return as_naive_utc(now)
