"""Tests for database and domain models."""
from datetime import UTC, datetime

import pytest
from faker import Faker
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vocabpractice.models.models import PracticeSessionRecord, User, UserAchievement, Vocabulary
from vocabpractice.models.practice_models import (
    PersistedProgress,
    PracticeConfig,
    PracticeWord,
    Rating,
    SessionType,
    VocabularyItem,
)
from vocabpractice.services.session_machine import create_session

fake = Faker()

NOW = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


def test_user_creation(db: Session) -> None:
    """Test user creation."""
    user = User(username=fake.user_name())
    db.add(user)
    db.commit()
    db.refresh(user)

    assert user.id is not None
    assert user.native_language == "uk"
    assert user.target_language == "en"
    assert user.created_at is not None


def test_vocabulary_defaults(db: Session, test_user: User) -> None:
    """Test vocabulary creation."""
    entry = Vocabulary(user_id=test_user.id, word="hello", translation="привіт")
    db.add(entry)
    db.commit()
    db.refresh(entry)

    assert entry.difficulty == "medium"
    assert entry.status == "new"
    assert entry.practice_count == 0
    assert entry.accuracy == 0
    assert entry.last_practiced is None
    assert test_user.vocabulary == [entry]


def test_practice_session_record(db: Session, test_user: User) -> None:
    """Test practice session creation."""
    row = PracticeSessionRecord(
        user_id=test_user.id,
        session_type=SessionType.MIXED.value,
        score=80,
        total_questions=5,
        correct_answers=4,
        words_data=[{"vocabulary_id": 1, "is_correct": True, "time_spent_seconds": 3, "attempts": 1}],
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    assert row.time_spent == 0
    assert row.difficulty == "medium"
    assert row.words_data[0]["vocabulary_id"] == 1
    assert test_user.practice_sessions == [row]


def test_user_achievement_is_unique(db: Session, test_user: User) -> None:
    db.add(UserAchievement(user_id=test_user.id, achievement_id="first_practice", points=10, unlocked_at=NOW))
    db.commit()

    db.add(UserAchievement(user_id=test_user.id, achievement_id="first_practice", points=10, unlocked_at=NOW))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_practice_word_data():
    item = VocabularyItem(id=7, word="house", translation="будинок", definition="a building")
    word = PracticeWord(
        vocabulary=item,
        attempts=1,
        is_correct=True,
        time_spent_seconds=4,
        user_answer="будинок",
        rating=Rating.GOOD,
        next_review_at=NOW,
    )

    data = word.to_data()

    assert data["rating"] == "good"
    assert data["next_review_at"] == NOW.isoformat()
    assert data["vocabulary"]["difficulty"] == "medium"
    assert PracticeWord.from_data(data) == word


def test_persisted_progress_data():
    items = [VocabularyItem(id=index, word=fake.word(), translation=fake.word()) for index in range(5)]
    session = create_session(items, SessionType.LISTENING, PracticeConfig(time_limit_seconds=300), NOW)
    progress = PersistedProgress(session=session, last_saved_at=NOW)

    data = progress.to_data()

    assert data["last_saved_at"] == NOW.isoformat()
    assert data["metadata"]["time_limit_seconds"] == 300
    assert PersistedProgress.from_data(data) == progress


def test_session_progress_percentage():
    items = [VocabularyItem(id=index, word=fake.word(), translation=fake.word()) for index in range(4)]
    session = create_session(items, SessionType.LISTENING, PracticeConfig(), NOW)
    assert session.progress_percentage() == 0
    session.current_index = 3
    assert session.progress_percentage() == 75
