"""Finalization of completed practice sessions."""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from vocabpractice.errors import FinalizeWriteFailure, MasteryUpdateFailure, SessionNotComplete
from vocabpractice.models.practice_models import (
    Difficulty,
    FinalizedSessionRecord,
    PracticeSession,
    PracticeWord,
    WordResult,
)
from vocabpractice.monitoring import finalize_errors, session_duration, session_score, sessions_finalized
from vocabpractice.services.achievement_service import AchievementRule, AchievementService, SessionCheck
from vocabpractice.services.history_service import PracticeHistoryService
from vocabpractice.services.progress_store import ProgressPersistence
from vocabpractice.services.stats_cache import StatsCache
from vocabpractice.services.stats_service import compute_stats
from vocabpractice.services.vocabulary_service import VocabularyService
from vocabpractice.utils import percentage, utcnow

logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    """Stored record and the achievements it unlocked."""
    record: FinalizedSessionRecord
    achievements: List[AchievementRule] = field(default_factory=list)


def session_difficulty(words: List[PracticeWord]) -> Difficulty:
    """Most common difficulty among the words, medium on ties."""
    counts = Counter(word.vocabulary.difficulty for word in words)
    if not counts:
        return Difficulty.MEDIUM
    (top, top_count), *rest = counts.most_common()
    if rest and rest[0][1] == top_count:
        return Difficulty.MEDIUM
    return top


def build_record(session: PracticeSession, now: datetime) -> Optional[FinalizedSessionRecord]:
    """Summarize a completed session, None when no word was attempted."""
    attempted = session.attempted_words
    if not attempted:
        return None

    return FinalizedSessionRecord(
        session_type=session.session_type,
        score=percentage(session.correct_answers, session.total_words),
        time_spent_seconds=session.time_spent_seconds,
        difficulty=session_difficulty(attempted),
        word_results=[
            WordResult(
                vocabulary_id=word.vocabulary.id,
                is_correct=bool(word.is_correct),
                time_spent_seconds=word.time_spent_seconds,
                attempts=word.attempts,
            )
            for word in attempted
        ],
        created_at=now,
        total_questions=session.total_words,
        correct_answers=session.correct_answers,
        average_time_per_question=round(session.time_spent_seconds / len(attempted), 2),
    )


class SessionFinalizer:
    """Writes a completed session to history and applies its consequences."""

    def __init__(
        self,
        user_id: int,
        history_service: PracticeHistoryService,
        vocabulary_service: VocabularyService,
        achievement_service: Optional[AchievementService] = None,
        stats_cache: Optional[StatsCache] = None,
        progress: Optional[ProgressPersistence] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.user_id = user_id
        self.history_service = history_service
        self.vocabulary_service = vocabulary_service
        self.achievement_service = achievement_service
        self.stats_cache = stats_cache
        self.progress = progress
        self.clock = clock

    def _update_mastery(self, session: PracticeSession, now: datetime) -> List[int]:
        failed = []
        for word in session.attempted_words:
            try:
                self.vocabulary_service.update_vocabulary_stats(
                    word.vocabulary.id,
                    is_correct=bool(word.is_correct),
                    attempts=word.attempts,
                    time_spent_seconds=word.time_spent_seconds,
                    next_review=word.next_review_at,
                    now=now,
                )
            except (SQLAlchemyError, ValueError) as e:
                logger.error(f"Error updating vocabulary {word.vocabulary.id} for user {self.user_id}: {e}")
                failed.append(word.vocabulary.id)
        return failed

    def _evaluate_achievements(self, record: FinalizedSessionRecord, now: datetime) -> List[AchievementRule]:
        if self.achievement_service is None:
            return []
        check = SessionCheck(
            score=record.score,
            time_spent_seconds=record.time_spent_seconds,
            session_type=record.session_type,
            total_questions=record.total_questions,
            correct_answers=record.correct_answers,
        )
        try:
            stats = compute_stats(self.history_service.get_history(self.user_id))
            return self.achievement_service.evaluate(self.user_id, check, stats, now)
        except SQLAlchemyError as e:
            finalize_errors.labels(error_type="achievements").inc()
            logger.error(f"Error checking achievements for user {self.user_id}: {e}")
            return []

    def finalize(self, session: PracticeSession) -> Optional[FinalizeResult]:
        """Store a completed session, update word mastery and check achievements.

        Raises FinalizeWriteFailure when the session could not be stored; the
        session can then be finalized again. Raises MasteryUpdateFailure after
        all other steps ran when some words could not be updated.
        """
        if not session.is_complete:
            raise SessionNotComplete("Only a completed session can be finalized")

        now = self.clock()
        record = build_record(session, now)
        if record is None:
            logger.info(f"Nothing to finalize for user {self.user_id}: no word was attempted")
            return None

        try:
            record.id = self.history_service.create_session(self.user_id, record)
        except FinalizeWriteFailure:
            finalize_errors.labels(error_type="write").inc()
            raise

        sessions_finalized.labels(session_type=record.session_type.value).inc()
        session_duration.labels(session_type=record.session_type.value).observe(record.time_spent_seconds)
        session_score.observe(record.score)

        failed = self._update_mastery(session, now)
        achievements = self._evaluate_achievements(record, now)

        if self.stats_cache is not None:
            self.stats_cache.invalidate_user(self.user_id)
        if self.progress is not None:
            self.progress.clear()

        logger.info(
            f"Finalized session {record.id} for user {self.user_id}: score {record.score}, "
            f"{len(achievements)} new achievements"
        )
        if failed:
            finalize_errors.labels(error_type="mastery").inc()
            raise MasteryUpdateFailure(failed, record=record)
        return FinalizeResult(record=record, achievements=achievements)
