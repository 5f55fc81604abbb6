"""UTC datetime utilities."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC

    Example:
        >>> now = utc_now()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime, or convert an aware one to UTC.

    Naive values are assumed to already be in UTC (that is how they are
    written to databases without timezone support).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_today(now: datetime | None = None) -> date:
    """Return the calendar date in UTC for ``now`` (defaults to the current time)."""
    return ensure_utc(now or utc_now()).date()
