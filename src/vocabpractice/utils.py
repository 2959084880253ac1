"""Small helpers shared by the services."""
import math
from datetime import UTC, datetime
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def percentage(part: float, total: float) -> int:
    """Integer percentage of part in total, 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
