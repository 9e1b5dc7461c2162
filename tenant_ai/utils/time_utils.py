"""
Time helpers
All timestamps inside the core are timezone-aware UTC.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC; convert aware ones to UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(earlier: Optional[datetime], later: datetime) -> float:
    """Fractional days from earlier to later (0.0 when earlier is unknown)"""
    if earlier is None:
        return 0.0
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 86400.0


def hours_between(earlier: Optional[datetime], later: datetime) -> float:
    if earlier is None:
        return float("inf")
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 3600.0
