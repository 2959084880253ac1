"""In-memory cache of per-user aggregate statistics."""
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from vocabpractice.config import settings
from vocabpractice.models.practice_models import PracticeStats

logger = logging.getLogger(__name__)


class StatsCache:
    """Cache of computed PracticeStats keyed by user, with a time-to-live."""

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.monitoring.stats_cache_ttl if ttl_seconds is None else ttl_seconds
        self.clock = clock
        self._entries: Dict[int, Tuple[float, PracticeStats]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: int) -> Optional[PracticeStats]:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            stored_at, stats = entry
            if self.clock() - stored_at > self.ttl_seconds:
                del self._entries[user_id]
                return None
            return stats

    def set(self, user_id: int, stats: PracticeStats) -> None:
        with self._lock:
            self._entries[user_id] = (self.clock(), stats)

    def invalidate_user(self, user_id: int) -> None:
        """Drop cached views for a user."""
        with self._lock:
            self._entries.pop(user_id, None)
        logger.debug(f"Invalidated cached stats for user {user_id}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
