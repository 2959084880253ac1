"""Achievement rules and their evaluation after each finalized session."""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vocabpractice.models.models import UserAchievement
from vocabpractice.models.practice_models import PracticeStats, SessionType
from vocabpractice.monitoring import achievements_unlocked
from vocabpractice.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SessionCheck:
    """The just-finalized session as seen by the rules."""
    score: int
    time_spent_seconds: int
    session_type: SessionType
    total_questions: int = 0
    correct_answers: int = 0


@dataclass
class AchievementCheck:
    """Input of a rule predicate."""
    session: Optional[SessionCheck]
    stats: PracticeStats


class RuleKind(Enum):
    """Kinds of achievement conditions."""
    SESSION_SCORE = "session_score"
    SESSION_TIME_BELOW = "session_time_below"
    SESSION_TIME_ABOVE = "session_time_above"
    TOTAL_SESSIONS = "total_sessions"
    CURRENT_STREAK = "current_streak"
    AVERAGE_SCORE = "average_score"
    SESSION_TYPE_COUNT = "session_type_count"


# Rules judged on the finalized session alone; progress is all or nothing.
SESSION_KINDS = {RuleKind.SESSION_SCORE, RuleKind.SESSION_TIME_BELOW, RuleKind.SESSION_TIME_ABOVE}


@dataclass(frozen=True)
class AchievementRule:
    """A single achievement and the condition that unlocks it."""
    id: str
    title: str
    description: str
    points: int
    kind: RuleKind
    threshold: int
    session_type: Optional[SessionType] = None
    min_sessions: int = 0

    def _value(self, stats: PracticeStats) -> int:
        """Current value of a cumulative condition."""
        if self.kind == RuleKind.TOTAL_SESSIONS:
            return stats.total_sessions
        if self.kind == RuleKind.CURRENT_STREAK:
            return stats.current_streak
        if self.kind == RuleKind.AVERAGE_SCORE:
            return stats.average_score
        if self.kind == RuleKind.SESSION_TYPE_COUNT:
            return stats.sessions_by_type.get(self.session_type.value, 0)
        raise ValueError(f"{self.kind.value} has no cumulative value")

    def predicate(self, check: AchievementCheck) -> bool:
        """Whether the condition holds for this session and these stats."""
        if self.kind in SESSION_KINDS:
            session = check.session
            if session is None:
                return False
            if self.kind == RuleKind.SESSION_SCORE:
                return session.score >= self.threshold
            if self.kind == RuleKind.SESSION_TIME_BELOW:
                return session.time_spent_seconds < self.threshold
            return session.time_spent_seconds > self.threshold

        if self.kind == RuleKind.AVERAGE_SCORE and check.stats.total_sessions < self.min_sessions:
            return False
        return self._value(check.stats) >= self.threshold

    def progress(self, stats: PracticeStats) -> int:
        """Progress towards the rule in percent, capped below 100.

        Session rules cannot be measured ahead of a session and report 0.
        """
        if self.kind in SESSION_KINDS:
            return 0
        value = self._value(stats)
        if self.kind == RuleKind.AVERAGE_SCORE and self.min_sessions:
            # Both the average and the session count must be reached.
            value_share = value / self.threshold
            sessions_share = stats.total_sessions / self.min_sessions
            share = min(value_share, sessions_share)
        else:
            share = value / self.threshold
        return min(int(share * 100), 99)


DEFAULT_ACHIEVEMENTS: List[AchievementRule] = [
    AchievementRule(
        id="first_practice",
        title="First Steps",
        description="Complete your first practice session",
        points=10,
        kind=RuleKind.TOTAL_SESSIONS,
        threshold=1,
    ),
    AchievementRule(
        id="perfect_score",
        title="Perfectionist",
        description="Get 100% on a practice session",
        points=25,
        kind=RuleKind.SESSION_SCORE,
        threshold=100,
    ),
    AchievementRule(
        id="speed_demon",
        title="Speed Demon",
        description="Complete a session in under 2 minutes",
        points=20,
        kind=RuleKind.SESSION_TIME_BELOW,
        threshold=120,
    ),
    AchievementRule(
        id="consistency_king",
        title="Consistency King",
        description="Practice for 7 days in a row",
        points=50,
        kind=RuleKind.CURRENT_STREAK,
        threshold=7,
    ),
    AchievementRule(
        id="practice_master",
        title="Practice Master",
        description="Complete 50 practice sessions",
        points=100,
        kind=RuleKind.TOTAL_SESSIONS,
        threshold=50,
    ),
    AchievementRule(
        id="high_achiever",
        title="High Achiever",
        description="Maintain 90% average score over 10 sessions",
        points=75,
        kind=RuleKind.AVERAGE_SCORE,
        threshold=90,
        min_sessions=10,
    ),
    AchievementRule(
        id="flashcard_expert",
        title="Flashcard Expert",
        description="Complete 20 flashcard sessions",
        points=30,
        kind=RuleKind.SESSION_TYPE_COUNT,
        threshold=20,
        session_type=SessionType.FLASHCARD,
    ),
    AchievementRule(
        id="mixed_master",
        title="Mixed Master",
        description="Complete 10 mixed practice sessions",
        points=40,
        kind=RuleKind.SESSION_TYPE_COUNT,
        threshold=10,
        session_type=SessionType.MIXED,
    ),
    AchievementRule(
        id="marathon_runner",
        title="Marathon Runner",
        description="Practice for 30 minutes in one session",
        points=35,
        kind=RuleKind.SESSION_TIME_ABOVE,
        threshold=1800,
    ),
    AchievementRule(
        id="streak_legend",
        title="Streak Legend",
        description="Practice for 30 days in a row",
        points=200,
        kind=RuleKind.CURRENT_STREAK,
        threshold=30,
    ),
]


class AchievementStore(ABC):
    """Append-only set of achievements unlocked per user."""

    @abstractmethod
    def unlocked_ids(self, user_id: int) -> Set[str]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def unlock(self, user_id: int, rule: AchievementRule, now: datetime) -> bool:
        """Record an unlock. Returns False if it was already unlocked."""
        raise NotImplementedError("Subclasses must implement this method")

    def has_unlocked(self, user_id: int, achievement_id: str) -> bool:
        return achievement_id in self.unlocked_ids(user_id)


class InMemoryAchievementStore(AchievementStore):
    """Achievement store kept in process memory."""

    def __init__(self):
        self._unlocked: Dict[int, Set[str]] = {}
        self._lock = threading.Lock()

    def unlocked_ids(self, user_id: int) -> Set[str]:
        with self._lock:
            return set(self._unlocked.get(user_id, set()))

    def unlock(self, user_id: int, rule: AchievementRule, now: datetime) -> bool:
        with self._lock:
            unlocked = self._unlocked.setdefault(user_id, set())
            if rule.id in unlocked:
                return False
            unlocked.add(rule.id)
            return True


class SqlAchievementStore(AchievementStore):
    """Achievement store backed by the user_achievements table."""

    def __init__(self, db: Session):
        self.db = db

    def unlocked_ids(self, user_id: int) -> Set[str]:
        rows = (
            self.db.query(UserAchievement.achievement_id)
            .filter(UserAchievement.user_id == user_id)
            .all()
        )
        return {row.achievement_id for row in rows}

    def unlock(self, user_id: int, rule: AchievementRule, now: datetime) -> bool:
        self.db.add(
            UserAchievement(
                user_id=user_id,
                achievement_id=rule.id,
                points=rule.points,
                unlocked_at=now,
            )
        )
        try:
            self.db.commit()
        except IntegrityError:
            # The unique constraint already holds this achievement.
            self.db.rollback()
            return False
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error unlocking achievement {rule.id} for user {user_id}: {e}")
            raise
        return True


class AchievementService:
    """Evaluates the achievement rules for a user."""

    def __init__(self, store: AchievementStore, rules: Optional[List[AchievementRule]] = None):
        self.store = store
        self.rules = DEFAULT_ACHIEVEMENTS if rules is None else rules

    def evaluate(
        self,
        user_id: int,
        session: Optional[SessionCheck],
        stats: PracticeStats,
        now: Optional[datetime] = None,
    ) -> List[AchievementRule]:
        """Unlock every rule that now holds and was not unlocked before.

        Returns the newly unlocked rules.
        """
        now = now or utcnow()
        unlocked = self.store.unlocked_ids(user_id)
        check = AchievementCheck(session=session, stats=stats)

        new_achievements = []
        for rule in self.rules:
            if rule.id in unlocked or not rule.predicate(check):
                continue
            if self.store.unlock(user_id, rule, now):
                achievements_unlocked.labels(achievement_id=rule.id).inc()
                logger.info(f"User {user_id} unlocked achievement {rule.id}")
                new_achievements.append(rule)
        return new_achievements

    def achievement_progress(self, user_id: int, stats: PracticeStats) -> List[Dict[str, object]]:
        """Unlocked flag and progress in percent for every rule."""
        unlocked = self.store.unlocked_ids(user_id)
        return [
            {
                "id": rule.id,
                "title": rule.title,
                "description": rule.description,
                "points": rule.points,
                "unlocked": rule.id in unlocked,
                "progress": 100 if rule.id in unlocked else rule.progress(stats),
            }
            for rule in self.rules
        ]

    def total_points(self, user_id: int) -> int:
        unlocked = self.store.unlocked_ids(user_id)
        return sum(rule.points for rule in self.rules if rule.id in unlocked)
