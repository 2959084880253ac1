"""Statistics over the history of finalized practice sessions."""
import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Set

from vocabpractice.config import settings
from vocabpractice.models.practice_models import (
    FinalizedSessionRecord,
    PracticeStats,
    ProgressSummary,
    SessionType,
)
from vocabpractice.services.history_service import PracticeHistoryService
from vocabpractice.services.stats_cache import StatsCache
from vocabpractice.utils import round_half_up

logger = logging.getLogger(__name__)

SCORE_GRADES = ((90, "A"), (75, "B"), (60, "C"), (40, "D"))


def _local_time(value: datetime) -> datetime:
    # Naive datetimes are taken as local time.
    return value.astimezone()


def session_date(record: FinalizedSessionRecord) -> date:
    """Calendar day of a session in the client's local time."""
    return _local_time(record.created_at).date()


def calculate_current_streak(dates: Set[date], today: date) -> int:
    """Consecutive days with practice ending today or yesterday."""
    yesterday = today - timedelta(days=1)
    if today in dates:
        day = today
    elif yesterday in dates:
        day = yesterday
    else:
        return 0

    streak = 0
    while day in dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def calculate_longest_streak(dates: Iterable[date]) -> int:
    """Longest run of consecutive practice days anywhere in history."""
    sorted_dates = sorted(set(dates))
    if not sorted_dates:
        return 0

    longest_streak = 0
    current_streak = 1
    for previous, current in zip(sorted_dates, sorted_dates[1:]):
        if (current - previous).days == 1:
            current_streak += 1
        else:
            longest_streak = max(longest_streak, current_streak)
            current_streak = 1
    return max(longest_streak, current_streak)


def _average_score(records: Sequence[FinalizedSessionRecord]) -> int:
    if not records:
        return 0
    return round_half_up(sum(record.score for record in records) / len(records))


def summarize_window(records: Sequence[FinalizedSessionRecord], since: date) -> ProgressSummary:
    """Aggregate the sessions held on or after ``since``."""
    window = [record for record in records if session_date(record) >= since]
    learned = {
        result.vocabulary_id
        for record in window
        for result in record.word_results
        if result.is_correct
    }
    return ProgressSummary(
        sessions_completed=len(window),
        time_spent=sum(record.time_spent_seconds for record in window),
        average_score=_average_score(window),
        words_learned=len(learned),
    )


def compute_stats(history: Sequence[FinalizedSessionRecord], today: Optional[date] = None) -> PracticeStats:
    """Compute aggregate statistics from a user's finalized sessions."""
    today = today or date.today()
    dates = {session_date(record) for record in history}

    sessions_by_type = {session_type.value: 0 for session_type in SessionType}
    for session_type, count in Counter(SessionType(record.session_type).value for record in history).items():
        sessions_by_type[session_type] = count

    recent = sorted(history, key=lambda record: _local_time(record.created_at), reverse=True)

    return PracticeStats(
        total_sessions=len(history),
        total_time_spent=sum(record.time_spent_seconds for record in history),
        average_score=_average_score(history),
        best_score=max((record.score for record in history), default=0),
        current_streak=calculate_current_streak(dates, today),
        longest_streak=calculate_longest_streak(dates),
        sessions_by_type=sessions_by_type,
        recent_sessions=recent[:settings.practice.recent_sessions_limit],
        weekly_progress=summarize_window(history, today - timedelta(days=6)),
        monthly_progress=summarize_window(history, today - timedelta(days=29)),
    )


def score_grade(score: int) -> str:
    """Letter grade for a session score."""
    for threshold, grade in SCORE_GRADES:
        if score >= threshold:
            return grade
    return "F"


def is_streak_milestone(streak: int) -> bool:
    return streak in settings.practice.streak_milestones


def next_streak_milestone(current_streak: int) -> Optional[int]:
    """The first milestone above the current streak, None past the last one."""
    return next((m for m in settings.practice.streak_milestones if m > current_streak), None)


def format_duration(seconds: int) -> str:
    """Human readable duration, e.g. ``4m 5s`` or ``1h 2m``."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def generate_recommendations(stats: PracticeStats) -> List[str]:
    """Suggestions shown next to the statistics."""
    recommendations = []
    if stats.total_sessions and stats.average_score < 60:
        recommendations.append("Focus on easier words to build confidence")
    if stats.current_streak == 0:
        recommendations.append("Start a daily practice streak")
    if stats.sessions_by_type.get(SessionType.FLASHCARD.value, 0) == 0:
        recommendations.append("Try flashcard sessions for quick reviews")
    return recommendations


class StatsService:
    """Serves per-user statistics through the stats cache."""

    def __init__(self, history_service: PracticeHistoryService, stats_cache: Optional[StatsCache] = None):
        self.history_service = history_service
        self.stats_cache = stats_cache

    def compute(self, user_id: int, today: Optional[date] = None) -> PracticeStats:
        """Recompute statistics from the full history, bypassing the cache."""
        return compute_stats(self.history_service.get_history(user_id), today)

    def get_stats(self, user_id: int) -> PracticeStats:
        if self.stats_cache is not None:
            cached = self.stats_cache.get(user_id)
            if cached is not None:
                return cached

        stats = self.compute(user_id)
        if self.stats_cache is not None:
            self.stats_cache.set(user_id, stats)
        logger.debug(f"Computed stats for user {user_id}: {stats.total_sessions} sessions")
        return stats
