"""Prometheus metrics for practice sessions."""
from prometheus_client import Counter, Histogram, start_http_server

# Session metrics
sessions_started = Counter(
    "vocabpractice_sessions_started_total",
    "Total number of practice sessions started",
    ["session_type"],
)

sessions_finalized = Counter(
    "vocabpractice_sessions_finalized_total",
    "Total number of practice sessions written to history",
    ["session_type"],
)

sessions_resumed = Counter(
    "vocabpractice_sessions_resumed_total",
    "Total number of practice sessions restored from saved progress",
)

session_duration = Histogram(
    "vocabpractice_session_duration_seconds",
    "Active time spent in finalized practice sessions",
    ["session_type"],
    buckets=[60, 120, 300, 600, 1800, 3600],  # 1min, 2min, 5min, 10min, 30min, 1hour
)

session_score = Histogram(
    "vocabpractice_session_score",
    "Score of finalized practice sessions",
    buckets=[20, 40, 60, 75, 90, 100],
)

# Answer metrics
answers_submitted = Counter(
    "vocabpractice_answers_submitted_total",
    "Total number of accepted answers",
    ["result"],
)

# Achievement metrics
achievements_unlocked = Counter(
    "vocabpractice_achievements_unlocked_total",
    "Total number of achievements unlocked",
    ["achievement_id"],
)

# Error metrics
autosave_failures = Counter(
    "vocabpractice_autosave_failures_total",
    "Total number of failed progress saves",
)

finalize_errors = Counter(
    "vocabpractice_finalize_errors_total",
    "Total number of errors raised while finalizing sessions",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
