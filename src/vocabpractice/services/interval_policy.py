"""Review interval policy: recall rating to next-review offset."""
from datetime import datetime, timedelta
from typing import Dict, Optional

from vocabpractice.config import settings
from vocabpractice.models.practice_models import Rating


def next_review_offset(rating: Rating, intervals: Optional[Dict[str, int]] = None) -> int:
    """Return the number of days until the next review for a rating."""
    if intervals is None:
        intervals = settings.practice.review_intervals
    return intervals[Rating(rating).value]


def next_review_at(rating: Rating, now: datetime, intervals: Optional[Dict[str, int]] = None) -> datetime:
    """Calculate the next review date for a rating given at ``now``."""
    return now + timedelta(days=next_review_offset(rating, intervals))
