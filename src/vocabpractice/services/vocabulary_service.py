"""Service for vocabulary selection and per-word practice statistics."""
import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vocabpractice.config import settings
from vocabpractice.models.models import User, Vocabulary
from vocabpractice.models.practice_models import Difficulty, MasteryStatus, VocabularyItem
from vocabpractice.utils import as_utc, round_half_up, utcnow

logger = logging.getLogger(__name__)


def calculate_mastery(
    accuracy: int,
    practice_count: int,
    is_correct: bool,
    status: MasteryStatus,
) -> Tuple[int, int, MasteryStatus]:
    """Fold one practice result into a word's accuracy, count and status.

    Accuracy is a running average over all practices. Status only moves
    forward: new -> learning -> mastered.
    """
    new_count = practice_count + 1
    new_accuracy = round_half_up((accuracy * practice_count + (100 if is_correct else 0)) / new_count)

    new_status = MasteryStatus(status)
    if new_status != MasteryStatus.MASTERED:
        if (
            new_accuracy >= settings.practice.mastery_accuracy_threshold
            and new_count >= settings.practice.mastery_practice_threshold
        ):
            new_status = MasteryStatus.MASTERED
        elif new_count >= 1:
            new_status = MasteryStatus.LEARNING
    return new_accuracy, new_count, new_status


def calculate_practice_score(word: Vocabulary, now: datetime) -> float:
    """Priority of a word for the next session; higher is practiced first."""
    score = 0.0

    # Never practiced gets highest priority
    last_practiced = as_utc(word.last_practiced)
    if last_practiced is None:
        score += 100
    else:
        days_since = (now - last_practiced).days
        score += min(days_since * 5, 50)

    # Low accuracy gets higher priority
    score += (100 - (word.accuracy or 0)) * 0.3

    if word.status == MasteryStatus.NEW.value:
        score += 30
    elif word.status == MasteryStatus.LEARNING.value:
        score += 40

    next_review = as_utc(word.next_review)
    if next_review is not None and next_review <= now:
        score += 50

    return score


class VocabularyService:
    """Service for vocabulary selection and statistics."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    @staticmethod
    def to_item(word: Vocabulary) -> VocabularyItem:
        """Convert a database row to the read-only item used by sessions."""
        return VocabularyItem(
            id=word.id,
            word=word.word,
            translation=word.translation,
            difficulty=Difficulty(word.difficulty),
            status=MasteryStatus(word.status),
            definition=word.definition,
            example=word.example,
            pronunciation=word.pronunciation,
            accuracy=word.accuracy or 0,
            practice_count=word.practice_count or 0,
            last_practiced=as_utc(word.last_practiced),
            next_review=as_utc(word.next_review),
        )

    def get_vocabulary(self, vocabulary_id: int) -> Optional[Vocabulary]:
        """Get a vocabulary entry by its ID."""
        return self.db.query(Vocabulary).filter(Vocabulary.id == vocabulary_id).first()

    def add_word(
        self,
        user_id: int,
        word: str,
        translation: str,
        difficulty: Difficulty = Difficulty.MEDIUM,
        definition: Optional[str] = None,
        example: Optional[str] = None,
        pronunciation: Optional[str] = None,
    ) -> Vocabulary:
        """Add a word to a user's vocabulary."""
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ValueError(f"User {user_id} not found")

        entry = Vocabulary(
            user_id=user_id,
            word=word,
            translation=translation,
            difficulty=Difficulty(difficulty).value,
            status=MasteryStatus.NEW.value,
            definition=definition,
            example=example,
            pronunciation=pronunciation,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_words_for_practice(
        self,
        user_id: int,
        limit: int = 20,
        difficulty: Optional[Difficulty] = None,
        status: Optional[MasteryStatus] = None,
        prioritize_weak: bool = True,
        shuffle: bool = True,
        now: Optional[datetime] = None,
    ) -> List[VocabularyItem]:
        """Choose up to ``limit`` words for a practice session."""
        now = now or utcnow()
        logger.info(f"Choosing words for practice for user {user_id}")

        query = self.db.query(Vocabulary).filter(Vocabulary.user_id == user_id)
        if difficulty is not None:
            query = query.filter(Vocabulary.difficulty == Difficulty(difficulty).value)
        if status is not None:
            query = query.filter(Vocabulary.status == MasteryStatus(status).value)

        if prioritize_weak:
            # Fetch more to allow for scoring
            words = (
                query.order_by(Vocabulary.last_practiced.asc(), Vocabulary.accuracy.asc(), Vocabulary.created_at.desc())
                .limit(limit * 2)
                .all()
            )
            words = sorted(words, key=lambda w: calculate_practice_score(w, now), reverse=True)[:limit]
        else:
            words = query.order_by(Vocabulary.created_at.desc()).limit(limit).all()
        logger.info(f"Words for practice: {len(words)}")

        if shuffle:
            words = random.sample(words, len(words))
        return [self.to_item(word) for word in words]

    def update_vocabulary_stats(
        self,
        vocabulary_id: int,
        is_correct: bool,
        attempts: int,
        time_spent_seconds: int,
        next_review: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Vocabulary:
        """Record one practice result for a word."""
        if attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {attempts}")
        if time_spent_seconds < 0:
            raise ValueError(f"time_spent_seconds must not be negative, got {time_spent_seconds}")

        word = self.get_vocabulary(vocabulary_id)
        if not word:
            raise ValueError(f"Vocabulary {vocabulary_id} not found")

        accuracy, practice_count, status = calculate_mastery(
            word.accuracy or 0,
            word.practice_count or 0,
            is_correct,
            MasteryStatus(word.status),
        )
        word.accuracy = accuracy
        word.practice_count = practice_count
        word.status = status.value
        word.time_spent = (word.time_spent or 0) + time_spent_seconds
        word.last_practiced = now or utcnow()
        if next_review is not None:
            word.next_review = next_review

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(word)
        logger.debug(f"Vocabulary {vocabulary_id}: accuracy {accuracy}, count {practice_count}, status {status.value}")
        return word

    def get_vocabulary_stats(self, user_id: int) -> Dict[str, Any]:
        """Get counts per mastery status and practice totals for a user."""
        counts = dict(
            self.db.query(Vocabulary.status, func.count(Vocabulary.id))
            .filter(Vocabulary.user_id == user_id)
            .group_by(Vocabulary.status)
            .all()
        )
        total_words = sum(counts.values())
        average_accuracy, total_practice_count, last_practiced = (
            self.db.query(
                func.avg(Vocabulary.accuracy),
                func.sum(Vocabulary.practice_count),
                func.max(Vocabulary.last_practiced),
            )
            .filter(Vocabulary.user_id == user_id)
            .one()
        )
        return {
            "total_words": total_words,
            "mastered_words": counts.get(MasteryStatus.MASTERED.value, 0),
            "learning_words": counts.get(MasteryStatus.LEARNING.value, 0),
            "new_words": counts.get(MasteryStatus.NEW.value, 0),
            "average_accuracy": round_half_up(average_accuracy) if average_accuracy is not None else 0,
            "total_practice_count": total_practice_count or 0,
            "last_practiced": as_utc(last_practiced),
        }
