from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC now, matching what the timestamp columns store."""
    return datetime.utcnow()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC. Naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Tag a stored naive UTC value with its offset for output."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
