"""
Timestamp utility functions.

Databases hand back naive datetimes for UTC columns on some backends
(SQLite) and aware ones on others (PostgreSQL); these helpers normalize
both so elapsed-time checks never mix the two.
"""
import math
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current server time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def seconds_between(earlier: datetime, later: datetime) -> float:
    """Elapsed seconds from earlier to later."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds()


def floor_seconds(value: Optional[float]) -> Optional[int]:
    """
    Floor a provider-reported duration to whole seconds.

    Returns None for missing, negative, or non-finite values.
    """
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(math.floor(number))
