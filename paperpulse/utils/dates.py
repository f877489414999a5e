"""Timestamp helpers.

All timestamps are stored as UTC ISO-8601 strings with millisecond
precision and a ``Z`` suffix (``2024-01-01T00:00:00.000Z``), so that plain
string comparison in SQL matches chronological order.
"""

from datetime import datetime, timezone
from typing import Optional, Union

from dateutil import parser as dtparser


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-ish timestamp; None for empty or unparseable input."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    try:
        return ensure_aware(dtparser.isoparse(str(value).strip()))
    except (ValueError, OverflowError):
        try:
            return ensure_aware(dtparser.parse(str(value)))
        except (ValueError, OverflowError):
            return None


def format_timestamp(value: Union[str, datetime, None]) -> Optional[str]:
    """Format as canonical ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (UTC)."""
    dt = parse_timestamp(value)
    if dt is None:
        return None
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def local_midnight(now: datetime) -> datetime:
    """Start of the local calendar day containing *now*."""
    local = ensure_aware(now).astimezone()
    return local.replace(hour=0, minute=0, second=0, microsecond=0)
