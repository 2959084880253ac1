"""Configuration settings for the practice engine."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
PROGRESS_DIR = DATA_DIR / "progress"

# Practice settings
REVIEW_INTERVALS = {"again": 1, "hard": 2, "good": 4, "easy": 7}  # days until next review
MASTERY_ACCURACY_THRESHOLD = 80  # percent
MASTERY_PRACTICE_THRESHOLD = 3  # practice count
STREAK_MILESTONES = (3, 7, 14, 30, 60, 100)


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        PROGRESS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    progress_dir: Path = PROGRESS_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///vocabpractice.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class PracticeSettings:
    """Practice session settings."""
    min_word_count: int = int(os.getenv("MIN_WORD_COUNT", "5"))
    max_word_count: int = int(os.getenv("MAX_WORD_COUNT", "100"))
    default_word_count: int = int(os.getenv("DEFAULT_WORD_COUNT", "10"))
    review_intervals: dict[str, int] = field(default_factory=lambda: dict(REVIEW_INTERVALS))
    mastery_accuracy_threshold: int = MASTERY_ACCURACY_THRESHOLD
    mastery_practice_threshold: int = MASTERY_PRACTICE_THRESHOLD
    streak_milestones: tuple[int, ...] = STREAK_MILESTONES
    recent_sessions_limit: int = int(os.getenv("RECENT_SESSIONS_LIMIT", "10"))
    history_limit: int = int(os.getenv("HISTORY_LIMIT", "1000"))


@dataclass
class ProgressSettings:
    """In-progress session persistence settings."""
    storage_key: str = os.getenv("PROGRESS_STORAGE_KEY", "practice_progress")
    autosave_interval: int = int(os.getenv("AUTOSAVE_INTERVAL", "30"))  # seconds
    max_age_hours: int = int(os.getenv("PROGRESS_MAX_AGE_HOURS", "24"))
    tick_interval: float = float(os.getenv("TICK_INTERVAL", "1.0"))  # seconds


@dataclass
class MonitoringSettings:
    """Metrics settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))
    stats_cache_ttl: int = int(os.getenv("STATS_CACHE_TTL", "300"))  # seconds


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_practice_settings() -> PracticeSettings:
    """Get practice settings."""
    return PracticeSettings()


def get_progress_settings() -> ProgressSettings:
    """Get progress settings."""
    return ProgressSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    practice: PracticeSettings = field(default_factory=get_practice_settings)
    progress: ProgressSettings = field(default_factory=get_progress_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.practice.min_word_count < 1:
            raise ValueError("MIN_WORD_COUNT must be positive")

        if self.practice.min_word_count > self.practice.max_word_count:
            raise ValueError("MIN_WORD_COUNT cannot be greater than MAX_WORD_COUNT")

        if not self.practice.min_word_count <= self.practice.default_word_count <= self.practice.max_word_count:
            raise ValueError("DEFAULT_WORD_COUNT must be between MIN_WORD_COUNT and MAX_WORD_COUNT")

        intervals = self.practice.review_intervals
        ordered = [intervals.get(rating) for rating in ("again", "hard", "good", "easy")]
        if None in ordered:
            raise ValueError("Review intervals must define again, hard, good and easy")
        if any(later <= earlier for earlier, later in zip(ordered, ordered[1:])):
            raise ValueError("Review intervals must increase from again to easy")

        if not 0 <= self.practice.mastery_accuracy_threshold <= 100:
            raise ValueError("Mastery accuracy threshold must be between 0 and 100")

        if self.progress.autosave_interval <= 0:
            raise ValueError("AUTOSAVE_INTERVAL must be positive")

        if self.progress.max_age_hours <= 0:
            raise ValueError("PROGRESS_MAX_AGE_HOURS must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
