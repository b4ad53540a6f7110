"""
Utility functions for the TubeHub application.
"""
from tubehub.utils.retry import is_transient_error, retry_with_backoff
from tubehub.utils.timestamp_utils import utcnow, ensure_utc, seconds_between, floor_seconds

__all__ = [
    "is_transient_error",
    "retry_with_backoff",
    "utcnow",
    "ensure_utc",
    "seconds_between",
    "floor_seconds",
]
