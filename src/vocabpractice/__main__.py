"""Command line entry point for the practice engine."""
import argparse
import logging
import sys
from typing import List, Optional

from vocabpractice.config import ensure_directories, settings
from vocabpractice.logging_config import setup_logging
from vocabpractice.models.base import SessionLocal, init_db
from vocabpractice.monitoring import start_monitoring
from vocabpractice.services.achievement_service import AchievementService, SqlAchievementStore
from vocabpractice.services.history_service import PracticeHistoryService
from vocabpractice.services.progress_store import FileKeyValueStore, ProgressPersistence
from vocabpractice.services.stats_service import (
    StatsService,
    format_duration,
    generate_recommendations,
    next_streak_milestone,
)

logger = logging.getLogger(__name__)


def show_stats(user_id: int) -> None:
    db = SessionLocal()
    try:
        stats = StatsService(PracticeHistoryService(db)).get_stats(user_id)
        achievements = AchievementService(SqlAchievementStore(db)).achievement_progress(user_id, stats)
    finally:
        db.close()

    print(f"Sessions:        {stats.total_sessions}")
    print(f"Time practiced:  {format_duration(stats.total_time_spent)}")
    print(f"Average score:   {stats.average_score}%")
    print(f"Best score:      {stats.best_score}%")
    print(f"Current streak:  {stats.current_streak} days (longest {stats.longest_streak})")
    milestone = next_streak_milestone(stats.current_streak)
    if milestone:
        print(f"Next milestone:  {milestone} days")
    for session_type, count in stats.sessions_by_type.items():
        print(f"  {session_type}: {count}")
    print("Achievements:")
    for achievement in achievements:
        mark = "x" if achievement["unlocked"] else " "
        print(f"  [{mark}] {achievement['title']} ({achievement['points']} pts) {achievement['progress']}%")
    for recommendation in generate_recommendations(stats):
        print(f"- {recommendation}")


def show_progress(clear: bool) -> None:
    progress = ProgressPersistence(FileKeyValueStore())
    if clear:
        progress.clear()
        print("Saved progress cleared")
        return

    saved = progress.load()
    if saved is None:
        print("No resumable session")
        return
    session = saved.session
    print(
        f"{session.session_type.value} session: {session.current_index}/{session.total_words} words, "
        f"saved at {saved.last_saved_at.isoformat()}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vocabpractice", description="Vocabulary practice engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the database tables")

    stats_parser = subparsers.add_parser("stats", help="Show practice statistics for a user")
    stats_parser.add_argument("user_id", type=int)

    progress_parser = subparsers.add_parser("progress", help="Show the saved in-progress session")
    progress_parser.add_argument("--clear", action="store_true", help="Discard the saved session")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    ensure_directories()
    setup_logging("Starting vocabpractice ...")
    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)

    if args.command == "init-db":
        init_db()
        logger.info("Database initialized")
    elif args.command == "stats":
        show_stats(args.user_id)
    elif args.command == "progress":
        show_progress(args.clear)
    return 0


if __name__ == "__main__":
    sys.exit(main())
