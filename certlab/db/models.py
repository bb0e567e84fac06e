"""SQLAlchemy models for the CertLab study service."""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, JSON,
    CheckConstraint, UniqueConstraint, Index
)
from certlab.db.database import Base
from certlab.services.leveling import calculate_level_from_points, calculate_points_for_level


class QuizMode(str, Enum):
    """How a quiz is being taken."""
    STUDY = "study"
    QUIZ = "quiz"
    ADAPTIVE = "adaptive"


class Category(Base):
    """Certification category (e.g. a CISSP domain)."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, default=1)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)


class Quiz(Base):
    """One attempt at a set of questions.

    Mutable while in progress; completed_at and score are set exactly once
    on submission.
    """
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False)
    tenant_id = Column(Integer, nullable=False, default=1)
    title = Column(Text, nullable=False, default="Practice Quiz")
    category_ids = Column(JSON, nullable=False, default=list)
    question_count = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=True)
    correct_answers = Column(Integer, nullable=True)
    score = Column(Integer, nullable=True)  # percentage 0-100
    is_passing = Column(Boolean, nullable=False, default=False)
    mode = Column(
        Text,
        CheckConstraint("mode IN ('study', 'quiz', 'adaptive')"),
        nullable=False,
        default=QuizMode.STUDY.value
    )
    started_at = Column(DateTime, default=datetime.utcnow, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("correct_answers IS NULL OR correct_answers >= 0", name="ck_quiz_correct_non_negative"),
        Index("idx_quiz_user_completed", "user_id", "tenant_id", "completed_at"),
    )

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class MasteryScore(Base):
    """Rolling proficiency per (user, category, subcategory), 0-100."""
    __tablename__ = "mastery_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False)
    tenant_id = Column(Integer, nullable=False, default=1)
    category_id = Column(Integer, nullable=False)
    subcategory_id = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    total_answers = Column(Integer, nullable=False, default=0)
    rolling_average = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", "category_id", "subcategory_id", name="uq_mastery_scope"),
    )


class UserProgress(Base):
    """Accumulated questions answered per (user, category)."""
    __tablename__ = "user_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False)
    tenant_id = Column(Integer, nullable=False, default=1)
    category_id = Column(Integer, nullable=False)
    questions_completed = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    average_score = Column(Integer, nullable=False, default=0)
    last_quiz_date = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", "category_id", name="uq_progress_scope"),
    )


class UserGameStats(Base):
    """Gamification counters for a user.

    Only total_points is stored for leveling; level and next_level_points
    are derived on every read so they can never drift from the points.
    """
    __tablename__ = "user_game_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False)
    tenant_id = Column(Integer, nullable=False, default=1)
    total_points = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_activity_date = Column(DateTime, nullable=True)
    total_badges_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", name="uq_game_stats_scope"),
    )

    @property
    def level(self) -> int:
        return calculate_level_from_points(self.total_points)

    @property
    def next_level_points(self) -> int:
        return calculate_points_for_level(self.level + 1)


class Badge(Base):
    """Achievement definition with a JSON requirement ({"type": ..., "value": ...})."""
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, unique=True, nullable=False)
    description = Column(Text, nullable=False)
    icon = Column(Text, nullable=False)
    category = Column(Text, nullable=False)  # progress, performance, streak, mastery
    requirement = Column(JSON, nullable=False)
    rarity = Column(Text, nullable=False, default="common")
    points = Column(Integer, nullable=False, default=0)


class UserBadge(Base):
    """Badge earned by a user within a tenant."""
    __tablename__ = "user_badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False)
    tenant_id = Column(Integer, nullable=False, default=1)
    badge_id = Column(Integer, nullable=False)
    earned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    progress = Column(Integer, nullable=False, default=100)
    is_notified = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", "badge_id", name="uq_user_badge"),
    )
