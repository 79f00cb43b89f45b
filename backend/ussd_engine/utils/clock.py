"""
Clock helpers. Timestamps are stored as naive UTC.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
