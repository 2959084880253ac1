"""Service for the durable history of finalized practice sessions."""
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vocabpractice.config import settings
from vocabpractice.errors import FinalizeWriteFailure
from vocabpractice.models.models import PracticeSessionRecord
from vocabpractice.models.practice_models import (
    Difficulty,
    FinalizedSessionRecord,
    SessionType,
    WordResult,
)
from vocabpractice.services.stats_cache import StatsCache
from vocabpractice.utils import as_utc

logger = logging.getLogger(__name__)


class PracticeHistoryService:
    """Service for storing and reading finalized practice sessions."""

    def __init__(self, db: Session, stats_cache: Optional[StatsCache] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.stats_cache = stats_cache

    @staticmethod
    def to_record(row: PracticeSessionRecord) -> FinalizedSessionRecord:
        """Convert a database row to a domain record."""
        return FinalizedSessionRecord(
            id=row.id,
            session_type=SessionType(row.session_type),
            score=row.score,
            time_spent_seconds=row.time_spent,
            difficulty=Difficulty(row.difficulty),
            word_results=[WordResult.from_data(data) for data in row.words_data or []],
            created_at=as_utc(row.created_at),
            total_questions=row.total_questions,
            correct_answers=row.correct_answers,
            average_time_per_question=row.average_time_per_question,
        )

    def create_session(self, user_id: int, record: FinalizedSessionRecord) -> int:
        """Store a finalized session and return its ID."""
        row = PracticeSessionRecord(
            user_id=user_id,
            session_type=record.session_type.value,
            score=record.score,
            time_spent=record.time_spent_seconds,
            difficulty=record.difficulty.value,
            total_questions=record.total_questions,
            correct_answers=record.correct_answers,
            average_time_per_question=record.average_time_per_question,
            words_data=[result.to_data() for result in record.word_results],
            created_at=record.created_at,
            updated_at=record.created_at,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise FinalizeWriteFailure(f"Failed to create practice session for user {user_id}: {e}") from e
        self.db.refresh(row)
        logger.info(f"Practice session created with ID {row.id} for user {user_id}")
        return row.id

    def get_history(self, user_id: int, limit: Optional[int] = None) -> List[FinalizedSessionRecord]:
        """Get a user's finalized sessions, newest first."""
        rows = (
            self.db.query(PracticeSessionRecord)
            .filter(PracticeSessionRecord.user_id == user_id)
            .order_by(PracticeSessionRecord.created_at.desc(), PracticeSessionRecord.id.desc())
            .limit(limit or settings.practice.history_limit)
            .all()
        )
        return [self.to_record(row) for row in rows]

    def list_sessions(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        session_type: Optional[SessionType] = None,
    ) -> Dict[str, Any]:
        """Get one page of a user's finalized sessions."""
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")

        query = self.db.query(PracticeSessionRecord).filter(PracticeSessionRecord.user_id == user_id)
        if session_type is not None:
            query = query.filter(PracticeSessionRecord.session_type == SessionType(session_type).value)

        total_docs = query.count()
        rows = (
            query.order_by(PracticeSessionRecord.created_at.desc(), PracticeSessionRecord.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        total_pages = math.ceil(total_docs / limit) if total_docs else 0
        return {
            "docs": [self.to_record(row) for row in rows],
            "total_docs": total_docs,
            "limit": limit,
            "page": page,
            "total_pages": total_pages,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        }

    def delete_session(self, user_id: int, session_id: int) -> bool:
        """Delete one of a user's sessions."""
        row = (
            self.db.query(PracticeSessionRecord)
            .filter(
                PracticeSessionRecord.id == session_id,
                PracticeSessionRecord.user_id == user_id,
            )
            .first()
        )
        if not row:
            return False

        try:
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting practice session {session_id} for user {user_id}: {e}")
            raise
        if self.stats_cache is not None:
            self.stats_cache.invalidate_user(user_id)
        logger.info(f"Deleted practice session {session_id} for user {user_id}")
        return True
