"""Test configuration."""
import os
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable, Generator, List

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="vocabpractice-test-"))

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from sqlalchemy.orm import Session

from vocabpractice.config import ensure_directories
from vocabpractice.models.base import SessionLocal, drop_db, init_db
from vocabpractice.models.models import User, Vocabulary
from vocabpractice.models.practice_models import Difficulty, MasteryStatus, VocabularyItem

fake = Faker()


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_db()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 10, 12, 0, tzinfo=UTC))


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user."""
    user = User(
        username=fake.user_name(),
        native_language="uk",
        target_language="en",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_vocabulary(db: Session, test_user: User) -> Callable[..., Vocabulary]:
    """Factory for vocabulary rows owned by the test user."""

    def _make(**kwargs) -> Vocabulary:
        values = {
            "user_id": test_user.id,
            "word": fake.word(),
            "translation": fake.word(),
            "difficulty": Difficulty.MEDIUM.value,
            "status": MasteryStatus.NEW.value,
        }
        values.update(kwargs)
        entry = Vocabulary(**values)
        db.add(entry)
        db.commit()
        return entry

    return _make


@pytest.fixture
def make_items() -> Callable[..., List[VocabularyItem]]:
    """Factory for vocabulary items as returned by the vocabulary source."""

    def _make(count: int, difficulty: Difficulty = Difficulty.MEDIUM) -> List[VocabularyItem]:
        return [
            VocabularyItem(
                id=index + 1,
                word=f"{fake.word()}-{index}",
                translation=fake.word(),
                difficulty=difficulty,
            )
            for index in range(count)
        ]

    return _make
