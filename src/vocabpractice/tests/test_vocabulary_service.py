"""Tests for vocabulary service."""
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from vocabpractice.models.models import User
from vocabpractice.models.practice_models import Difficulty, MasteryStatus
from vocabpractice.services.vocabulary_service import (
    VocabularyService,
    calculate_mastery,
    calculate_practice_score,
)

NOW = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def vocabulary_service(db: Session) -> VocabularyService:
    """Create a vocabulary service instance."""
    return VocabularyService(db)


def test_calculate_mastery_reaches_mastered():
    assert calculate_mastery(70, 2, True, MasteryStatus.LEARNING) == (80, 3, MasteryStatus.MASTERED)


def test_calculate_mastery_first_practice():
    assert calculate_mastery(0, 0, False, MasteryStatus.NEW) == (0, 1, MasteryStatus.LEARNING)
    assert calculate_mastery(0, 0, True, MasteryStatus.NEW) == (100, 1, MasteryStatus.LEARNING)


def test_calculate_mastery_rounds_half_up():
    # (75 * 1 + 0) / 2 = 37.5
    assert calculate_mastery(75, 1, False, MasteryStatus.LEARNING)[0] == 38


def test_calculate_mastery_never_downgrades():
    accuracy, count, status = calculate_mastery(80, 3, False, MasteryStatus.MASTERED)
    assert accuracy == 60
    assert count == 4
    assert status == MasteryStatus.MASTERED


def test_calculate_mastery_needs_enough_practice():
    assert calculate_mastery(100, 1, True, MasteryStatus.LEARNING)[2] == MasteryStatus.LEARNING


def test_practice_score_prefers_unpracticed(make_vocabulary):
    fresh = make_vocabulary()
    practiced = make_vocabulary(
        status=MasteryStatus.LEARNING.value,
        accuracy=90,
        practice_count=4,
        last_practiced=NOW - timedelta(days=1),
    )
    assert calculate_practice_score(fresh, NOW) > calculate_practice_score(practiced, NOW)


def test_practice_score_due_review_bonus(make_vocabulary):
    due = make_vocabulary(last_practiced=NOW - timedelta(days=2), next_review=NOW - timedelta(hours=1))
    not_due = make_vocabulary(last_practiced=NOW - timedelta(days=2), next_review=NOW + timedelta(days=1))
    assert calculate_practice_score(due, NOW) - calculate_practice_score(not_due, NOW) == 50


def test_add_word(vocabulary_service: VocabularyService, test_user: User) -> None:
    entry = vocabulary_service.add_word(test_user.id, "apple", "яблуко", difficulty=Difficulty.EASY)

    assert entry.id is not None
    assert entry.status == MasteryStatus.NEW.value
    assert entry.difficulty == "easy"
    assert entry.practice_count == 0


def test_add_word_unknown_user(vocabulary_service: VocabularyService, db: Session) -> None:
    with pytest.raises(ValueError):
        vocabulary_service.add_word(999, "apple", "яблуко")


def test_get_words_for_practice(vocabulary_service: VocabularyService, test_user: User, make_vocabulary) -> None:
    for _ in range(6):
        make_vocabulary()

    items = vocabulary_service.get_words_for_practice(test_user.id, limit=5, now=NOW)

    assert len(items) == 5
    assert len({item.id for item in items}) == 5


def test_get_words_for_practice_filters(vocabulary_service: VocabularyService, test_user: User, make_vocabulary) -> None:
    hard = make_vocabulary(difficulty=Difficulty.HARD.value)
    make_vocabulary(difficulty=Difficulty.EASY.value)
    mastered = make_vocabulary(difficulty=Difficulty.HARD.value, status=MasteryStatus.MASTERED.value)

    items = vocabulary_service.get_words_for_practice(test_user.id, difficulty=Difficulty.HARD, now=NOW)
    assert {item.id for item in items} == {hard.id, mastered.id}

    items = vocabulary_service.get_words_for_practice(
        test_user.id,
        difficulty=Difficulty.HARD,
        status=MasteryStatus.MASTERED,
        now=NOW,
    )
    assert [item.id for item in items] == [mastered.id]


def test_get_words_for_practice_prioritizes_weak(
    vocabulary_service: VocabularyService,
    test_user: User,
    make_vocabulary,
) -> None:
    strong = [
        make_vocabulary(
            status=MasteryStatus.MASTERED.value,
            accuracy=100,
            practice_count=5,
            last_practiced=NOW - timedelta(hours=1),
        )
        for _ in range(3)
    ]
    weak = make_vocabulary()

    items = vocabulary_service.get_words_for_practice(test_user.id, limit=1, shuffle=False, now=NOW)

    assert [item.id for item in items] == [weak.id]
    assert weak.id not in {word.id for word in strong}


def test_get_words_for_practice_empty(vocabulary_service: VocabularyService, test_user: User) -> None:
    assert vocabulary_service.get_words_for_practice(test_user.id) == []


def test_update_vocabulary_stats(vocabulary_service: VocabularyService, make_vocabulary) -> None:
    entry = make_vocabulary(status=MasteryStatus.LEARNING.value, accuracy=70, practice_count=2)
    next_review = NOW + timedelta(days=4)

    updated = vocabulary_service.update_vocabulary_stats(
        entry.id,
        is_correct=True,
        attempts=1,
        time_spent_seconds=6,
        next_review=next_review,
        now=NOW,
    )

    assert updated.accuracy == 80
    assert updated.practice_count == 3
    assert updated.status == MasteryStatus.MASTERED.value
    assert updated.time_spent == 6
    item = vocabulary_service.to_item(updated)
    assert item.last_practiced == NOW
    assert item.next_review == next_review


def test_update_vocabulary_stats_keeps_next_review(vocabulary_service: VocabularyService, make_vocabulary) -> None:
    scheduled = NOW + timedelta(days=2)
    entry = make_vocabulary(next_review=scheduled)

    updated = vocabulary_service.update_vocabulary_stats(entry.id, False, 1, 3, now=NOW)

    assert vocabulary_service.to_item(updated).next_review == scheduled


def test_update_vocabulary_stats_missing_word(vocabulary_service: VocabularyService, db: Session) -> None:
    with pytest.raises(ValueError):
        vocabulary_service.update_vocabulary_stats(12345, True, 1, 3)


def test_update_vocabulary_stats_rejects_bad_input(vocabulary_service: VocabularyService, make_vocabulary) -> None:
    entry = make_vocabulary()
    with pytest.raises(ValueError):
        vocabulary_service.update_vocabulary_stats(entry.id, True, 0, 3)
    with pytest.raises(ValueError):
        vocabulary_service.update_vocabulary_stats(entry.id, True, 1, -3)


def test_update_vocabulary_stats_rolls_back(vocabulary_service: VocabularyService, make_vocabulary, db: Session) -> None:
    entry = make_vocabulary()

    with patch.object(db, "commit", side_effect=OperationalError("UPDATE", {}, Exception("locked"))):
        with pytest.raises(OperationalError):
            vocabulary_service.update_vocabulary_stats(entry.id, True, 1, 3)

    db.refresh(entry)
    assert entry.practice_count == 0


def test_get_vocabulary_stats(vocabulary_service: VocabularyService, test_user: User, make_vocabulary) -> None:
    make_vocabulary(status=MasteryStatus.MASTERED.value, accuracy=90, practice_count=5)
    make_vocabulary(status=MasteryStatus.LEARNING.value, accuracy=40, practice_count=2)
    make_vocabulary()

    stats = vocabulary_service.get_vocabulary_stats(test_user.id)

    assert stats["total_words"] == 3
    assert stats["mastered_words"] == 1
    assert stats["learning_words"] == 1
    assert stats["new_words"] == 1
    assert stats["average_accuracy"] == 43
    assert stats["total_practice_count"] == 7
