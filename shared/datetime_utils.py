"""
Date/time helpers — framework-agnostic.

Every credential operation reads "now" exactly once from a ``Clock`` and
passes that value through all of its window and expiry math.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """The default clock: current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (as returned by MongoDB unless the client is ``tz_aware``)
    are assumed to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a date/time value into a timezone-aware UTC datetime.

    Accepts ``None``, ``datetime``, Unix epoch seconds, or an ISO 8601 string
    (a trailing ``"Z"`` is accepted). Returns ``None`` when *value* is ``None``
    or cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        raw = str(value)
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return ensure_utc(datetime.fromisoformat(raw))
    except (ValueError, OSError, OverflowError):
        return None


def seconds_between(earlier: datetime, later: datetime) -> float:
    """Elapsed seconds from *earlier* to *later* (negative if reversed)."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds()


def add_seconds(moment: datetime, seconds: int) -> datetime:
    return moment + timedelta(seconds=seconds)
