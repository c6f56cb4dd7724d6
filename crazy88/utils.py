"""
Utility functions
"""
import uuid
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes read back from the database

    SQLite drops tzinfo on the way out; every timestamp we store is UTC.

    Example:
        >>> as_utc(datetime(2025, 5, 1, 12, 0)).tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex
