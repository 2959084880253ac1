"""Controller owning the in-memory practice session of one user."""
import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from vocabpractice.errors import FinalizeInProgress, MasteryUpdateFailure, SessionAlreadyActive, SessionNotComplete
from vocabpractice.models.practice_models import (
    Difficulty,
    MasteryStatus,
    PracticeConfig,
    PracticeResults,
    PracticeSession,
    Rating,
    SessionState,
    SessionType,
    VocabularyItem,
)
from vocabpractice.monitoring import answers_submitted, sessions_resumed, sessions_started
from vocabpractice.services.finalizer import FinalizeResult, SessionFinalizer
from vocabpractice.services.progress_store import ProgressPersistence
from vocabpractice.services.session_machine import (
    Pause,
    Resume,
    SubmitAnswer,
    Tick,
    can_submit,
    create_session,
    question_active_seconds,
    reduce,
    remaining_seconds,
    session_results,
    validate_config,
)
from vocabpractice.utils import round_half_up, utcnow

logger = logging.getLogger(__name__)


class VocabularySource(Protocol):
    def get_words_for_practice(
        self,
        user_id: int,
        limit: int = 20,
        difficulty: Optional[Difficulty] = None,
        status: Optional[MasteryStatus] = None,
        prioritize_weak: bool = True,
        shuffle: bool = True,
    ) -> List[VocabularyItem]:
        ...


class PracticeSessionController:
    """Applies user and timer events to the current session.

    Every mutation runs under one lock so that a submission and the save that
    follows it are never interleaved with a pause, a resume or a tick.
    """

    def __init__(
        self,
        user_id: int,
        vocabulary_source: VocabularySource,
        progress: ProgressPersistence,
        finalizer: Optional[SessionFinalizer] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.user_id = user_id
        self.vocabulary_source = vocabulary_source
        self.progress = progress
        self.finalizer = finalizer
        self.clock = clock
        self._session: Optional[PracticeSession] = None
        self._lock = threading.RLock()
        self._dirty = False
        self._finalizing = False

    @property
    def session(self) -> Optional[PracticeSession]:
        return self._session

    @property
    def state(self) -> SessionState:
        session = self._session
        return session.state if session is not None else SessionState.UNINITIALIZED

    def _check_not_finalizing(self) -> None:
        if self._finalizing:
            raise FinalizeInProgress(f"Finalize running for user {self.user_id}")

    def _check_no_active_session(self) -> None:
        self._check_not_finalizing()
        if self._session is not None and not self._session.is_complete:
            raise SessionAlreadyActive(f"User {self.user_id} already has an unfinished session")

    def _save(self, now: datetime) -> bool:
        saved = self.progress.save(self._session, now)
        self._dirty = not saved
        return saved

    def initialize(self, session_type: SessionType, config: Optional[PracticeConfig] = None) -> PracticeSession:
        """Start a new session with words from the vocabulary source."""
        config = config or PracticeConfig()
        validate_config(config)
        with self._lock:
            self._check_no_active_session()

        items = self.vocabulary_source.get_words_for_practice(
            self.user_id,
            limit=config.word_count,
            difficulty=config.difficulty_filter,
            status=config.status_filter,
            shuffle=config.shuffle_words,
        )

        with self._lock:
            # Another session may have started while the words were loading.
            self._check_no_active_session()
            now = self.clock()
            session = create_session(items, session_type, config, now)
            self._session = session
            sessions_started.labels(session_type=session.session_type.value).inc()
            logger.info(f"Started {session.session_type.value} session for user {self.user_id} with {session.total_words} words")
            self._save(now)
            return session

    def resume_saved(self) -> Optional[PracticeSession]:
        """Restore the saved session, if one can still be resumed."""
        with self._lock:
            self._check_no_active_session()
            now = self.clock()
            saved = self.progress.load(now)
            if saved is None:
                return None

            session = saved.session
            if not session.is_paused:
                # Time between the last save and now was not spent practicing.
                session = reduce(reduce(session, Pause(saved.last_saved_at)), Resume(now))
            self._session = session
            self.progress.last_saved_at = saved.last_saved_at
            self._dirty = session is not saved.session
            sessions_resumed.inc()
            logger.info(f"Resumed session for user {self.user_id} at word {session.current_index}/{session.total_words}")
            return session

    def submit_answer(
        self,
        user_answer: str,
        is_correct: bool,
        time_spent_seconds: Optional[int] = None,
        rating: Optional[Rating] = None,
    ) -> bool:
        """Record an answer for the current word.

        Returns True if this answer completed the session. Answers while the
        session is paused, complete or missing are ignored.
        """
        with self._lock:
            session = self._session
            if not can_submit(session):
                logger.debug(f"Ignoring answer for user {self.user_id} in state {self.state.value}")
                return False

            now = self.clock()
            if time_spent_seconds is None:
                time_spent_seconds = round_half_up(question_active_seconds(session, now))
            event = SubmitAnswer(
                user_answer=user_answer,
                is_correct=is_correct,
                time_spent_seconds=time_spent_seconds,
                now=now,
                rating=Rating(rating) if rating else None,
            )
            self._session = reduce(session, event)
            answers_submitted.labels(result="correct" if is_correct else "incorrect").inc()
            self._save(now)
            if self._session.is_complete:
                logger.info(f"Session complete for user {self.user_id}: {self._session.correct_answers}/{self._session.total_words} correct")
            return self._session.is_complete

    def _apply(self, event) -> bool:
        with self._lock:
            session = self._session
            if session is None:
                return False
            updated = reduce(session, event)
            if updated is session:
                return False
            self._session = updated
            self._save(event.now)
            return True

    def pause(self) -> bool:
        """Pause the session. Returns False if nothing changed."""
        return self._apply(Pause(self.clock()))

    def resume(self) -> bool:
        """Resume a paused session. Returns False if nothing changed."""
        return self._apply(Resume(self.clock()))

    def tick(self) -> bool:
        """Timer callback: enforce the time limit and autosave.

        Returns True if the time limit ended the session.
        """
        with self._lock:
            session = self._session
            if session is None or session.is_complete:
                return False

            now = self.clock()
            if self._apply(Tick(now)):
                return True
            if self._dirty and not session.is_paused and self.progress.autosave_due(now):
                self._save(now)
            return False

    def remaining_seconds(self) -> Optional[int]:
        """Seconds left before the time limit ends the session."""
        with self._lock:
            if self._session is None:
                return None
            return remaining_seconds(self._session, self.clock())

    def save_progress(self) -> bool:
        with self._lock:
            if self._session is None:
                return False
            return self._save(self.clock())

    def reset(self, clear_progress: bool = False) -> None:
        """Drop the in-memory session, optionally with its saved snapshot.

        Raises FinalizeInProgress while a finalize is running.
        """
        with self._lock:
            self._check_not_finalizing()
            self._session = None
            self._dirty = False
            if clear_progress:
                self.progress.clear()
        logger.info(f"Reset practice session for user {self.user_id}")

    def _drop(self, session: PracticeSession) -> None:
        with self._lock:
            if self._session is session:
                self._session = None
                self._dirty = False

    def finalize(self) -> Optional[FinalizeResult]:
        """Finalize the completed session.

        On FinalizeWriteFailure the session stays in memory so finalize can be
        retried.
        """
        if self.finalizer is None:
            raise RuntimeError("No finalizer configured")

        with self._lock:
            if self._finalizing:
                raise FinalizeInProgress(f"Finalize already running for user {self.user_id}")
            session = self._session
            if session is None or not session.is_complete:
                raise SessionNotComplete(f"User {self.user_id} has no completed session")
            self._finalizing = True

        try:
            result = self.finalizer.finalize(session)
        except MasteryUpdateFailure:
            # The record is stored; only word statistics are missing.
            self._drop(session)
            raise
        finally:
            with self._lock:
                self._finalizing = False

        self._drop(session)
        return result

    def results(self) -> Optional[PracticeResults]:
        with self._lock:
            if self._session is None:
                return None
            return session_results(self._session)
