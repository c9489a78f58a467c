"""Time utilities for timezone-aware UTC datetimes."""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def utc_today() -> date:
    return utc_now().date()


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from stores that drop the offset (SQLite)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_between(start: date | datetime, end: date | datetime) -> int:
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    return (end - start).days
