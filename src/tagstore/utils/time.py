"""
Time-related utilities for the store.

All timestamps are generated in UTC with timezone information and
microsecond precision, which the record codec preserves exactly.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)
