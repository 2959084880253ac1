"""Models for practice session data structures."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionType(Enum):
    """Available practice session types."""
    FLASHCARD = "flashcard"
    MULTIPLE_CHOICE = "multiple_choice"
    FILL_BLANKS = "fill_blanks"
    LISTENING = "listening"
    MIXED = "mixed"


class Difficulty(Enum):
    """Difficulty tag of a vocabulary item."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class MasteryStatus(Enum):
    """Coarse summary of a vocabulary item's practice history."""
    NEW = "new"
    LEARNING = "learning"
    MASTERED = "mastered"


class Rating(Enum):
    """User-reported recall confidence (Anki-style)."""
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class SessionState(Enum):
    """Lifecycle state of the in-memory session."""
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETE = "complete"


def datetime_to_str(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to ISO format."""
    return value.isoformat() if value else None


def datetime_from_str(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format datetime."""
    return datetime.fromisoformat(value) if value else None


@dataclass
class VocabularyItem:
    """Read-only view of a vocabulary entry used by a session."""
    id: int
    word: str
    translation: str
    difficulty: Difficulty = Difficulty.MEDIUM
    status: MasteryStatus = MasteryStatus.NEW
    definition: Optional[str] = None
    example: Optional[str] = None
    pronunciation: Optional[str] = None
    accuracy: int = 0
    practice_count: int = 0
    last_practiced: Optional[datetime] = None
    next_review: Optional[datetime] = None

    def to_data(self) -> Dict[str, Any]:
        """Convert to serializable data for storage."""
        return {
            "id": self.id,
            "word": self.word,
            "translation": self.translation,
            "difficulty": self.difficulty.value,
            "status": self.status.value,
            "definition": self.definition,
            "example": self.example,
            "pronunciation": self.pronunciation,
            "accuracy": self.accuracy,
            "practice_count": self.practice_count,
            "last_practiced": datetime_to_str(self.last_practiced),
            "next_review": datetime_to_str(self.next_review),
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "VocabularyItem":
        """Create an item from stored data."""
        return cls(
            id=data["id"],
            word=data["word"],
            translation=data["translation"],
            difficulty=Difficulty(data.get("difficulty", Difficulty.MEDIUM.value)),
            status=MasteryStatus(data.get("status", MasteryStatus.NEW.value)),
            definition=data.get("definition"),
            example=data.get("example"),
            pronunciation=data.get("pronunciation"),
            accuracy=data.get("accuracy", 0),
            practice_count=data.get("practice_count", 0),
            last_practiced=datetime_from_str(data.get("last_practiced")),
            next_review=datetime_from_str(data.get("next_review")),
        )


@dataclass
class SessionMetadata:
    """Options a session was started with."""
    include_definitions: bool = True
    include_examples: bool = False
    time_limit_seconds: Optional[int] = None
    shuffle_words: bool = True


@dataclass
class PracticeConfig:
    """Request for a new practice session."""
    word_count: int = 10
    difficulty_filter: Optional[Difficulty] = None
    status_filter: Optional[MasteryStatus] = None
    include_definitions: bool = True
    include_examples: bool = False
    shuffle_words: bool = True
    time_limit_seconds: Optional[int] = None

    def to_metadata(self) -> SessionMetadata:
        """Metadata carried by the session built from this config."""
        return SessionMetadata(
            include_definitions=self.include_definitions,
            include_examples=self.include_examples,
            time_limit_seconds=self.time_limit_seconds,
            shuffle_words=self.shuffle_words,
        )


@dataclass
class PracticeWord:
    """Per-session record of one vocabulary item."""
    vocabulary: VocabularyItem
    attempts: int = 0
    is_correct: Optional[bool] = None
    time_spent_seconds: int = 0
    user_answer: Optional[str] = None
    rating: Optional[Rating] = None
    next_review_at: Optional[datetime] = None

    def to_data(self) -> Dict[str, Any]:
        return {
            "vocabulary": self.vocabulary.to_data(),
            "attempts": self.attempts,
            "is_correct": self.is_correct,
            "time_spent_seconds": self.time_spent_seconds,
            "user_answer": self.user_answer,
            "rating": self.rating.value if self.rating else None,
            "next_review_at": datetime_to_str(self.next_review_at),
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "PracticeWord":
        return cls(
            vocabulary=VocabularyItem.from_data(data["vocabulary"]),
            attempts=data.get("attempts", 0),
            is_correct=data.get("is_correct"),
            time_spent_seconds=data.get("time_spent_seconds", 0),
            user_answer=data.get("user_answer"),
            rating=Rating(data["rating"]) if data.get("rating") else None,
            next_review_at=datetime_from_str(data.get("next_review_at")),
        )


@dataclass
class PracticeSession:
    """State of one practice session.

    ``paused_at``, ``paused_seconds``, ``question_started_at`` and
    ``question_paused_seconds`` record pause intervals so that derived time
    never includes paused duration.
    """
    words: List[PracticeWord]
    session_type: SessionType
    started_at: datetime
    metadata: SessionMetadata = field(default_factory=SessionMetadata)
    current_index: int = 0
    total_words: int = 0
    correct_answers: int = 0
    time_spent_seconds: int = 0
    is_paused: bool = False
    is_complete: bool = False
    paused_at: Optional[datetime] = None
    paused_seconds: float = 0.0
    question_started_at: Optional[datetime] = None
    question_paused_seconds: float = 0.0
    time_expired: bool = False

    @property
    def state(self) -> SessionState:
        if self.is_complete:
            return SessionState.COMPLETE
        if self.is_paused:
            return SessionState.PAUSED
        return SessionState.ACTIVE

    @property
    def current_word(self) -> Optional[PracticeWord]:
        if self.is_complete:
            return None
        return self.words[self.current_index]

    @property
    def attempted_words(self) -> List[PracticeWord]:
        return [word for word in self.words if word.attempts > 0]

    def progress_percentage(self) -> int:
        """Share of words already answered, in percent."""
        return int(self.current_index * 100 / self.total_words) if self.total_words else 0

    def to_data(self) -> Dict[str, Any]:
        """Convert to serializable data for storage."""
        return {
            "words": [word.to_data() for word in self.words],
            "session_type": self.session_type.value,
            "started_at": datetime_to_str(self.started_at),
            "metadata": {
                "include_definitions": self.metadata.include_definitions,
                "include_examples": self.metadata.include_examples,
                "time_limit_seconds": self.metadata.time_limit_seconds,
                "shuffle_words": self.metadata.shuffle_words,
            },
            "current_index": self.current_index,
            "total_words": self.total_words,
            "correct_answers": self.correct_answers,
            "time_spent_seconds": self.time_spent_seconds,
            "is_paused": self.is_paused,
            "is_complete": self.is_complete,
            "paused_at": datetime_to_str(self.paused_at),
            "paused_seconds": self.paused_seconds,
            "question_started_at": datetime_to_str(self.question_started_at),
            "question_paused_seconds": self.question_paused_seconds,
            "time_expired": self.time_expired,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "PracticeSession":
        """Create a session from stored data."""
        words = [PracticeWord.from_data(word) for word in data["words"]]
        return cls(
            words=words,
            session_type=SessionType(data["session_type"]),
            started_at=datetime_from_str(data["started_at"]),
            metadata=SessionMetadata(**data.get("metadata", {})),
            current_index=data.get("current_index", 0),
            total_words=data.get("total_words", len(words)),
            correct_answers=data.get("correct_answers", 0),
            time_spent_seconds=data.get("time_spent_seconds", 0),
            is_paused=data.get("is_paused", False),
            is_complete=data.get("is_complete", False),
            paused_at=datetime_from_str(data.get("paused_at")),
            paused_seconds=data.get("paused_seconds", 0.0),
            question_started_at=datetime_from_str(data.get("question_started_at")),
            question_paused_seconds=data.get("question_paused_seconds", 0.0),
            time_expired=data.get("time_expired", False),
        )


@dataclass
class PersistedProgress:
    """Snapshot of an in-progress session in the local store."""
    session: PracticeSession
    last_saved_at: datetime

    def to_data(self) -> Dict[str, Any]:
        data = self.session.to_data()
        data["last_saved_at"] = datetime_to_str(self.last_saved_at)
        return data

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "PersistedProgress":
        return cls(
            session=PracticeSession.from_data(data),
            last_saved_at=datetime_from_str(data["last_saved_at"]),
        )


@dataclass
class WordResult:
    """Outcome of one attempted word in a finalized session."""
    vocabulary_id: int
    is_correct: bool
    time_spent_seconds: int
    attempts: int

    def to_data(self) -> Dict[str, Any]:
        return {
            "vocabulary_id": self.vocabulary_id,
            "is_correct": self.is_correct,
            "time_spent_seconds": self.time_spent_seconds,
            "attempts": self.attempts,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "WordResult":
        return cls(
            vocabulary_id=data["vocabulary_id"],
            is_correct=bool(data["is_correct"]),
            time_spent_seconds=data.get("time_spent_seconds", 0),
            attempts=data.get("attempts", 1),
        )


@dataclass
class FinalizedSessionRecord:
    """Durable, append-only summary of a completed session."""
    session_type: SessionType
    score: int
    time_spent_seconds: int
    difficulty: Difficulty
    word_results: List[WordResult]
    created_at: datetime
    total_questions: int = 0
    correct_answers: int = 0
    average_time_per_question: float = 0.0
    id: Optional[int] = None


@dataclass
class ProgressSummary:
    """Aggregate over a trailing window of sessions."""
    sessions_completed: int = 0
    time_spent: int = 0
    average_score: int = 0
    words_learned: int = 0


@dataclass
class PracticeStats:
    """Aggregate statistics over a user's finalized sessions."""
    total_sessions: int = 0
    total_time_spent: int = 0
    average_score: int = 0
    best_score: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    sessions_by_type: Dict[str, int] = field(default_factory=dict)
    recent_sessions: List[FinalizedSessionRecord] = field(default_factory=list)
    weekly_progress: ProgressSummary = field(default_factory=ProgressSummary)
    monthly_progress: ProgressSummary = field(default_factory=ProgressSummary)


@dataclass
class PracticeResults:
    """Summary shown to the user at the end of a session."""
    total_words: int
    correct_words: int
    time_spent: int
    accuracy: int
    session_type: str
    words_reviewed: List[Dict[str, Any]]
