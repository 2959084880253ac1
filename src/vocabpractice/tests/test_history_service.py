"""Tests for practice history service."""
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from vocabpractice.errors import FinalizeWriteFailure
from vocabpractice.models.models import PracticeSessionRecord, User
from vocabpractice.models.practice_models import (
    Difficulty,
    FinalizedSessionRecord,
    PracticeStats,
    SessionType,
    WordResult,
)
from vocabpractice.services.history_service import PracticeHistoryService
from vocabpractice.services.stats_cache import StatsCache
from vocabpractice.utils import utcnow


@pytest.fixture
def history_service(db: Session) -> PracticeHistoryService:
    """Create a history service instance."""
    return PracticeHistoryService(db)


def make_record(
    score: int = 67,
    session_type: SessionType = SessionType.FLASHCARD,
    minutes_ago: int = 0,
) -> FinalizedSessionRecord:
    return FinalizedSessionRecord(
        session_type=session_type,
        score=score,
        time_spent_seconds=90,
        difficulty=Difficulty.HARD,
        word_results=[
            WordResult(vocabulary_id=1, is_correct=True, time_spent_seconds=30, attempts=1),
            WordResult(vocabulary_id=2, is_correct=False, time_spent_seconds=60, attempts=1),
        ],
        created_at=utcnow() - timedelta(minutes=minutes_ago),
        total_questions=3,
        correct_answers=2,
        average_time_per_question=45.0,
    )


def test_create_session(history_service: PracticeHistoryService, test_user: User, db: Session) -> None:
    record = make_record()

    session_id = history_service.create_session(test_user.id, record)

    row = db.query(PracticeSessionRecord).filter(PracticeSessionRecord.id == session_id).one()
    assert row.user_id == test_user.id
    assert row.score == 67
    assert row.difficulty == "hard"
    assert len(row.words_data) == 2


def test_history_round_trip(history_service: PracticeHistoryService, test_user: User) -> None:
    record = make_record()
    record.id = history_service.create_session(test_user.id, record)

    stored = history_service.get_history(test_user.id)[0]

    assert stored.id == record.id
    assert stored.session_type == SessionType.FLASHCARD
    assert stored.word_results == record.word_results
    assert stored.total_questions == 3
    assert stored.correct_answers == 2
    assert stored.created_at.replace(microsecond=0) == record.created_at.replace(microsecond=0)
    assert stored.created_at.tzinfo is not None


def test_get_history_newest_first(history_service: PracticeHistoryService, test_user: User) -> None:
    for minutes_ago in (30, 10, 20):
        history_service.create_session(test_user.id, make_record(score=minutes_ago, minutes_ago=minutes_ago))

    history = history_service.get_history(test_user.id)

    assert [record.score for record in history] == [10, 20, 30]
    assert len(history_service.get_history(test_user.id, limit=2)) == 2


def test_get_history_other_user(history_service: PracticeHistoryService, test_user: User) -> None:
    history_service.create_session(test_user.id, make_record())
    assert history_service.get_history(test_user.id + 1) == []


def test_create_session_failure(history_service: PracticeHistoryService, test_user: User, db: Session) -> None:
    with patch.object(db, "commit", side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))):
        with pytest.raises(FinalizeWriteFailure):
            history_service.create_session(test_user.id, make_record())

    assert history_service.get_history(test_user.id) == []


def test_list_sessions_pagination(history_service: PracticeHistoryService, test_user: User) -> None:
    for index in range(5):
        history_service.create_session(test_user.id, make_record(minutes_ago=index))

    page = history_service.list_sessions(test_user.id, page=2, limit=2)

    assert page["total_docs"] == 5
    assert page["total_pages"] == 3
    assert len(page["docs"]) == 2
    assert page["has_next_page"] is True
    assert page["has_prev_page"] is True

    last_page = history_service.list_sessions(test_user.id, page=3, limit=2)
    assert len(last_page["docs"]) == 1
    assert last_page["has_next_page"] is False


def test_list_sessions_by_type(history_service: PracticeHistoryService, test_user: User) -> None:
    history_service.create_session(test_user.id, make_record(session_type=SessionType.MIXED))
    history_service.create_session(test_user.id, make_record(session_type=SessionType.LISTENING))

    page = history_service.list_sessions(test_user.id, session_type=SessionType.MIXED)

    assert page["total_docs"] == 1
    assert page["docs"][0].session_type == SessionType.MIXED


def test_list_sessions_empty(history_service: PracticeHistoryService, test_user: User) -> None:
    page = history_service.list_sessions(test_user.id)
    assert page["docs"] == []
    assert page["total_pages"] == 0
    assert page["has_next_page"] is False


def test_list_sessions_rejects_bad_page(history_service: PracticeHistoryService, test_user: User) -> None:
    with pytest.raises(ValueError):
        history_service.list_sessions(test_user.id, page=0)


def test_delete_session_invalidates_cache(db: Session, test_user: User) -> None:
    cache = StatsCache(ttl_seconds=60)
    cache.set(test_user.id, PracticeStats(total_sessions=1))
    history_service = PracticeHistoryService(db, cache)
    session_id = history_service.create_session(test_user.id, make_record())

    assert history_service.delete_session(test_user.id, session_id) is True
    assert cache.get(test_user.id) is None
    assert history_service.get_history(test_user.id) == []
    assert history_service.delete_session(test_user.id, session_id) is False


def test_delete_session_failure_rolls_back(history_service: PracticeHistoryService, test_user: User, db: Session) -> None:
    session_id = history_service.create_session(test_user.id, make_record())

    with patch.object(db, "commit", side_effect=OperationalError("DELETE", {}, Exception("database is locked"))):
        with pytest.raises(OperationalError):
            history_service.delete_session(test_user.id, session_id)

    assert [record.id for record in history_service.get_history(test_user.id)] == [session_id]
