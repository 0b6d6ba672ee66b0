"""Shared datetime helpers for the task engine.

parse_datetime:  ISO-8601 input → aware UTC datetime (raises ValueError)
as_utc:          naive-or-aware datetime → aware UTC datetime
utcnow:          timezone-aware "now"
"""
from datetime import date, datetime, timezone


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Return ``value`` as an aware UTC datetime.

    SQLite hands DateTime columns back without tzinfo; every timestamp
    this platform writes is UTC, so naive values are tagged, not shifted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value):
    """Parse an ISO date or datetime string to an aware UTC datetime.

    Returns None for empty input. Supports:
    - YYYY-MM-DD (midnight UTC)
    - YYYY-MM-DDTHH:MM:SS[.ffffff][+HH:MM]
    - trailing "Z" as UTC (JavaScript ``toISOString()`` output)

    Raises:
        ValueError: on any other input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValueError(
            f"Invalid datetime {value!r}. Use ISO-8601 (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)."
        ) from exc
