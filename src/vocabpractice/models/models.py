"""Database models for the practice engine."""
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from vocabpractice.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """User model."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=True)
    native_language = Column(String, nullable=False, default="uk")
    target_language = Column(String, nullable=False, default="en")

    # Relationships
    vocabulary = relationship("Vocabulary", back_populates="user")
    practice_sessions = relationship("PracticeSessionRecord", back_populates="user")
    achievements = relationship("UserAchievement", back_populates="user")


class Vocabulary(Base, TimestampMixin):
    """Vocabulary entry owned by a user."""

    __tablename__ = "vocabulary"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    word = Column(String, nullable=False)
    translation = Column(String, nullable=False)
    definition = Column(Text)
    example = Column(Text)
    pronunciation = Column(String)
    difficulty = Column(String, nullable=False, default="medium")  # easy, medium, hard
    status = Column(String, nullable=False, default="new")  # new, learning, mastered
    practice_count = Column(Integer, nullable=False, default=0)
    accuracy = Column(Integer, nullable=False, default=0)  # 0-100
    time_spent = Column(Integer, nullable=False, default=0)  # in seconds
    last_practiced = Column(DateTime(timezone=True))
    next_review = Column(DateTime(timezone=True))

    # Relationships
    user = relationship("User", back_populates="vocabulary")


class PracticeSessionRecord(Base, TimestampMixin):
    """Finalized practice session. Rows are never updated."""

    __tablename__ = "practice_sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    session_type = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    time_spent = Column(Integer, nullable=False, default=0)  # in seconds
    difficulty = Column(String, nullable=False, default="medium")
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    average_time_per_question = Column(Float, nullable=False, default=0.0)
    words_data = Column(JSON, nullable=False, default=list)

    # Relationships
    user = relationship("User", back_populates="practice_sessions")


class UserAchievement(Base, TimestampMixin):
    """Achievement unlocked by a user. Append-only."""

    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    achievement_id = Column(String, nullable=False)
    points = Column(Integer, nullable=False, default=0)
    unlocked_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    user = relationship("User", back_populates="achievements")
