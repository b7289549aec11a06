"""Timezone-aware date/time helpers for the coworking application."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'Africa/Algiers')
    return ZoneInfo(tz_name)


def get_today() -> date:
    """Get today's date in the configured timezone."""
    return datetime.now(get_timezone()).date()


def get_now() -> datetime:
    """Get current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def to_local_naive(value) -> datetime:
    """
    Normalize a datetime or ISO string to naive local wall-clock time.

    Aware values are converted to the configured timezone first; naive
    values are assumed to already be local. Seconds precision is kept.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not isinstance(value, datetime):
        raise ValueError(f"Not a datetime: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(get_timezone()).replace(tzinfo=None)
    return value.replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    """Format a datetime for storage (YYYY-MM-DD HH:MM:SS)."""
    return to_local_naive(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp back into a naive local datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT)


def now_timestamp() -> str:
    """Current local time formatted for storage."""
    return format_timestamp(get_now())


def to_date(value) -> date:
    """Coerce a date, datetime or YYYY-MM-DD string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
