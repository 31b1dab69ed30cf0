# utils/time_utils.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the form stored in the database)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value):
    """Normalise ``value`` to naive UTC; ``None`` means now."""
    if value is None:
        return utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def isoformat(value):
    return value.isoformat() + "Z" if value is not None else None
