"""Tests for the review interval policy."""
from datetime import UTC, datetime, timedelta

import pytest

from vocabpractice.models.practice_models import Rating
from vocabpractice.services.interval_policy import next_review_at, next_review_offset


@pytest.mark.parametrize(
    "rating, days",
    [
        (Rating.AGAIN, 1),
        (Rating.HARD, 2),
        (Rating.GOOD, 4),
        (Rating.EASY, 7),
    ],
)
def test_next_review_offset(rating: Rating, days: int) -> None:
    assert next_review_offset(rating) == days


def test_offsets_increase_with_confidence():
    offsets = [next_review_offset(rating) for rating in (Rating.AGAIN, Rating.HARD, Rating.GOOD, Rating.EASY)]
    assert offsets == sorted(offsets)
    assert len(set(offsets)) == 4


def test_next_review_offset_accepts_raw_value():
    assert next_review_offset("good") == 4


def test_next_review_offset_with_custom_intervals():
    intervals = {"again": 0, "hard": 3, "good": 10, "easy": 21}
    assert next_review_offset(Rating.GOOD, intervals) == 10


def test_next_review_at():
    now = datetime(2024, 1, 31, 8, 30, tzinfo=UTC)
    assert next_review_at(Rating.EASY, now) == now + timedelta(days=7)
    assert next_review_at(Rating.AGAIN, now) == datetime(2024, 2, 1, 8, 30, tzinfo=UTC)
