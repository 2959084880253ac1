"""Practice session state machine.

Transitions are pure: ``reduce(session, event)`` returns a new
``PracticeSession`` and never mutates its argument. Events that are not
valid in the current state return the session unchanged, so callers can
detect a rejected event with an identity check.

States: uninitialized -> active <-> paused -> complete. ``reset`` (dropping
the session) is the only way out of complete.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Union

from vocabpractice.config import settings
from vocabpractice.errors import EmptyVocabularyPool, InvalidPracticeConfig
from vocabpractice.models.practice_models import (
    PracticeConfig,
    PracticeResults,
    PracticeSession,
    PracticeWord,
    Rating,
    SessionType,
    VocabularyItem,
)
from vocabpractice.services.interval_policy import next_review_at
from vocabpractice.utils import percentage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitAnswer:
    """User answered the current word."""
    user_answer: str
    is_correct: bool
    time_spent_seconds: int
    now: datetime
    rating: Optional[Rating] = None


@dataclass(frozen=True)
class Pause:
    now: datetime


@dataclass(frozen=True)
class Resume:
    now: datetime


@dataclass(frozen=True)
class Tick:
    """Emitted by timers; checks the time limit."""
    now: datetime


SessionEvent = Union[SubmitAnswer, Pause, Resume, Tick]


def validate_config(config: PracticeConfig) -> None:
    """Raise InvalidPracticeConfig if the config is out of range."""
    min_count = settings.practice.min_word_count
    max_count = settings.practice.max_word_count
    if not min_count <= config.word_count <= max_count:
        raise InvalidPracticeConfig(
            f"word_count must be between {min_count} and {max_count}, got {config.word_count}"
        )
    if config.time_limit_seconds is not None and config.time_limit_seconds <= 0:
        raise InvalidPracticeConfig("time_limit_seconds must be positive")


def create_session(
    items: List[VocabularyItem],
    session_type: SessionType,
    config: PracticeConfig,
    now: datetime,
) -> PracticeSession:
    """Build a fresh session from the words returned by the vocabulary source."""
    if not items:
        raise EmptyVocabularyPool("No vocabulary words found for practice")

    words = [PracticeWord(vocabulary=item) for item in items[:config.word_count]]
    return PracticeSession(
        words=words,
        session_type=SessionType(session_type),
        started_at=now,
        metadata=config.to_metadata(),
        total_words=len(words),
        question_started_at=now,
    )


def _open_pause_seconds(session: PracticeSession, now: datetime) -> float:
    if session.paused_at is None:
        return 0.0
    return max(0.0, (now - session.paused_at).total_seconds())


def active_seconds(session: PracticeSession, now: datetime) -> float:
    """Time since the session started, excluding paused intervals."""
    elapsed = (now - session.started_at).total_seconds()
    elapsed -= session.paused_seconds + _open_pause_seconds(session, now)
    return max(0.0, elapsed)


def question_active_seconds(session: PracticeSession, now: datetime) -> float:
    """Time since the current word was presented, excluding paused intervals."""
    started = session.question_started_at or session.started_at
    elapsed = (now - started).total_seconds()
    elapsed -= session.question_paused_seconds + _open_pause_seconds(session, now)
    return max(0.0, elapsed)


def remaining_seconds(session: PracticeSession, now: datetime) -> Optional[int]:
    """Seconds left before the time limit expires, None without a limit."""
    limit = session.metadata.time_limit_seconds
    if not limit:
        return None
    return max(0, int(limit - active_seconds(session, now)))


def can_submit(session: Optional[PracticeSession]) -> bool:
    return session is not None and not session.is_paused and not session.is_complete


def _submit(session: PracticeSession, event: SubmitAnswer) -> PracticeSession:
    if not can_submit(session):
        return session
    if event.time_spent_seconds < 0:
        raise ValueError(f"time_spent_seconds must not be negative, got {event.time_spent_seconds}")

    index = session.current_index
    word = session.words[index]
    answered = replace(
        word,
        attempts=word.attempts + 1,
        is_correct=event.is_correct,
        time_spent_seconds=word.time_spent_seconds + event.time_spent_seconds,
        user_answer=event.user_answer,
        rating=event.rating,
        next_review_at=next_review_at(event.rating, event.now) if event.rating else word.next_review_at,
    )
    words = list(session.words)
    words[index] = answered

    # Incorrect words are not re-queued; they come back through next_review_at.
    new_index = index + 1
    return replace(
        session,
        words=words,
        current_index=new_index,
        correct_answers=session.correct_answers + (1 if event.is_correct else 0),
        time_spent_seconds=session.time_spent_seconds + event.time_spent_seconds,
        is_complete=new_index >= session.total_words,
        question_started_at=event.now,
        question_paused_seconds=0.0,
    )


def _pause(session: PracticeSession, event: Pause) -> PracticeSession:
    if session.is_paused or session.is_complete:
        return session
    return replace(session, is_paused=True, paused_at=event.now)


def _resume(session: PracticeSession, event: Resume) -> PracticeSession:
    if not session.is_paused:
        return session
    paused_for = _open_pause_seconds(session, event.now)
    return replace(
        session,
        is_paused=False,
        paused_at=None,
        paused_seconds=session.paused_seconds + paused_for,
        question_paused_seconds=session.question_paused_seconds + paused_for,
    )


def _tick(session: PracticeSession, event: Tick) -> PracticeSession:
    limit = session.metadata.time_limit_seconds
    if not limit or session.is_complete or session.is_paused:
        return session
    if active_seconds(session, event.now) < limit:
        return session
    return _expire(session, event.now)


def _expire(session: PracticeSession, now: datetime) -> PracticeSession:
    """Time is up: the current word counts as a wrong answer, the rest are forfeited."""
    index = session.current_index
    word = session.words[index]
    spent = int(question_active_seconds(session, now))
    words = list(session.words)
    words[index] = replace(
        word,
        attempts=word.attempts + 1,
        is_correct=False,
        time_spent_seconds=word.time_spent_seconds + spent,
        user_answer="",
    )
    logger.info(
        f"Time limit reached after {index + 1}/{session.total_words} words, "
        f"{session.total_words - index - 1} words forfeited"
    )
    return replace(
        session,
        words=words,
        current_index=session.total_words,
        time_spent_seconds=session.time_spent_seconds + spent,
        is_complete=True,
        time_expired=True,
        question_started_at=now,
        question_paused_seconds=0.0,
    )


def reduce(session: PracticeSession, event: SessionEvent) -> PracticeSession:
    """Apply an event to a session and return the resulting session."""
    if isinstance(event, SubmitAnswer):
        return _submit(session, event)
    if isinstance(event, Pause):
        return _pause(session, event)
    if isinstance(event, Resume):
        return _resume(session, event)
    if isinstance(event, Tick):
        return _tick(session, event)
    raise TypeError(f"Unknown session event: {event!r}")


def session_results(session: PracticeSession) -> PracticeResults:
    """Summarize a session for display."""
    return PracticeResults(
        total_words=session.total_words,
        correct_words=session.correct_answers,
        time_spent=session.time_spent_seconds,
        accuracy=percentage(session.correct_answers, session.total_words),
        session_type=session.session_type.value,
        words_reviewed=[
            {
                "word": word.vocabulary.word,
                "translation": word.vocabulary.translation,
                "is_correct": bool(word.is_correct),
                "rating": word.rating.value if word.rating else Rating.GOOD.value,
                "time_spent": word.time_spent_seconds,
            }
            for word in session.words
        ],
    )
