"""Local persistence of in-progress practice sessions."""
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Optional

from vocabpractice.config import settings
from vocabpractice.errors import PersistenceWriteFailure
from vocabpractice.models.practice_models import PersistedProgress, PracticeSession
from vocabpractice.monitoring import autosave_failures
from vocabpractice.utils import utcnow

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Get/set/delete storage for serialized blobs."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a value. Missing keys are ignored."""
        raise NotImplementedError("Subclasses must implement this method")


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and for ephemeral clients."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """One JSON file per key inside a directory."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else settings.paths.progress_dir

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceWriteFailure(f"Could not write {path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceWriteFailure(f"Could not delete {self._path(key)}: {e}") from e


class ProgressPersistence:
    """Saves, restores and expires the single in-progress session snapshot.

    Write failures are logged and reported through return values; they never
    propagate to the session.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: Optional[str] = None,
        max_age: Optional[timedelta] = None,
        autosave_interval: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.key = key or settings.progress.storage_key
        self.max_age = max_age or timedelta(hours=settings.progress.max_age_hours)
        self.autosave_interval = autosave_interval or timedelta(seconds=settings.progress.autosave_interval)
        self.clock = clock
        self.last_saved_at: Optional[datetime] = None

    def save(self, session: PracticeSession, now: Optional[datetime] = None) -> bool:
        """Write a snapshot of the session. Returns False if the write failed."""
        now = now or self.clock()
        snapshot = PersistedProgress(session=session, last_saved_at=now)
        try:
            self.store.set(self.key, json.dumps(snapshot.to_data()))
        except (PersistenceWriteFailure, OSError, TypeError, ValueError) as e:
            autosave_failures.inc()
            logger.error(f"Error saving practice progress: {e}")
            return False
        self.last_saved_at = now
        logger.debug(f"Saved practice progress at word {session.current_index}/{session.total_words}")
        return True

    def _read(self) -> Optional[PersistedProgress]:
        raw = self.store.get(self.key)
        if raw is None:
            return None
        return PersistedProgress.from_data(json.loads(raw))

    def _is_resumable(self, progress: PersistedProgress, now: datetime) -> bool:
        session = progress.session
        if session.is_complete:
            return False
        if session.total_words == 0 or session.total_words != len(session.words):
            return False
        if not 0 <= session.current_index < session.total_words:
            return False
        return now - progress.last_saved_at < self.max_age

    def load(self, now: Optional[datetime] = None) -> Optional[PersistedProgress]:
        """Return the saved snapshot if it can be resumed, discarding it otherwise."""
        now = now or self.clock()
        try:
            progress = self._read()
        except OSError as e:
            logger.error(f"Error loading practice progress: {e}")
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Discarding unreadable practice progress: {e}")
            self.clear()
            return None

        if progress is None:
            return None
        if not self._is_resumable(progress, now):
            logger.info(f"Discarding practice progress saved at {progress.last_saved_at.isoformat()}")
            self.clear()
            return None
        return progress

    def has_resumable(self, now: Optional[datetime] = None) -> bool:
        """Check for a resumable snapshot without modifying the store."""
        now = now or self.clock()
        try:
            progress = self._read()
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Error checking resumable progress: {e}")
            return False
        return progress is not None and self._is_resumable(progress, now)

    def clear(self) -> None:
        """Delete the stored snapshot."""
        try:
            self.store.delete(self.key)
        except (PersistenceWriteFailure, OSError) as e:
            logger.error(f"Error clearing practice progress: {e}")
        self.last_saved_at = None

    def autosave_due(self, now: Optional[datetime] = None) -> bool:
        """True when the last save is older than the autosave interval."""
        if self.last_saved_at is None:
            return True
        now = now or self.clock()
        return now - self.last_saved_at >= self.autosave_interval
