"""
Date handling shared by all schemas.

All dates are compared as absolute instants: plain dates become UTC
midnight, naive datetimes are taken as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

SECONDS_PER_DAY = 86400


def parse_datetime(value: str | date | datetime | None) -> datetime | None:
    """
    Parse a date value into an aware datetime.

    Accepts datetime, date, ISO 8601 strings (including a trailing "Z") and
    Gmail-style epoch milliseconds. Returns None for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit() and len(text) > 8:
            # Gmail internalDate: epoch milliseconds as a string
            return parse_datetime(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return parse_datetime(datetime.fromisoformat(text))
        except ValueError:
            pass
        try:
            return parse_datetime(datetime.strptime(text[:10], "%Y-%m-%d"))
        except ValueError:
            return None
    return None


def day_distance(a: datetime | None, b: datetime | None) -> float | None:
    """Absolute distance between two instants in (fractional) days."""
    a, b = parse_datetime(a), parse_datetime(b)
    if a is None or b is None:
        return None
    return abs((a - b).total_seconds()) / SECONDS_PER_DAY


def format_iso(value: datetime | None) -> str | None:
    """Serialize a datetime for JSON output."""
    return value.isoformat() if value else None
