"""Pytest fixtures for testing."""
from datetime import datetime, timedelta
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from certlab.db.database import Base, get_db
from certlab.db.models import Quiz, MasteryScore, UserProgress
from certlab.db.init_db import seed_badges
from certlab.rate_limit import limiter
from certlab.services.analytics_cache import analytics_cache

# Fixed reference time so day and hour bucketing is reproducible
NOW = datetime(2025, 6, 18, 12, 0, 0)  # a Wednesday, naive UTC


@pytest.fixture(scope="function")
def test_db():
    """Create a test database for each test."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()

    seed_badges(db)

    yield db

    db.close()


@pytest.fixture(scope="function")
def test_client():
    """Create a test client backed by a shared in-memory database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    from certlab.main import app
    app.dependency_overrides[get_db] = override_get_db

    db = TestingSessionLocal()
    seed_badges(db)
    db.close()

    limiter.reset()
    analytics_cache.clear()

    client = TestClient(app)
    client.session_factory = TestingSessionLocal

    yield client

    app.dependency_overrides.clear()
    analytics_cache.clear()


def make_quiz(
    score=80,
    completed_at=NOW,
    total_questions=10,
    correct_answers=None,
    duration_minutes=None,
    is_passing=None,
    quiz_id=None,
    user_id="test_user_123",
    tenant_id=1
):
    """Build a detached Quiz; correct_answers defaults to match the score."""
    if correct_answers is None:
        correct_answers = round(score / 100 * total_questions) if score is not None else 0
    if is_passing is None:
        is_passing = score is not None and score >= 85
    started_at = None
    if completed_at is not None and duration_minutes is not None:
        started_at = completed_at - timedelta(minutes=duration_minutes)
    return Quiz(
        id=quiz_id,
        user_id=user_id,
        tenant_id=tenant_id,
        title="Practice Quiz",
        category_ids=[],
        question_count=total_questions,
        total_questions=total_questions,
        correct_answers=correct_answers,
        score=score,
        is_passing=is_passing,
        mode="quiz",
        started_at=started_at,
        completed_at=completed_at,
    )


def daily_quizzes(scores, end=NOW, duration_minutes=None):
    """One quiz per consecutive day, the last one completed at `end`."""
    count = len(scores)
    return [
        make_quiz(
            score=score,
            completed_at=end - timedelta(days=count - 1 - i),
            duration_minutes=duration_minutes,
            quiz_id=i + 1,
        )
        for i, score in enumerate(scores)
    ]


def make_mastery(category_id, rolling_average, subcategory_id=0):
    return MasteryScore(
        user_id="test_user_123",
        tenant_id=1,
        category_id=category_id,
        subcategory_id=subcategory_id,
        rolling_average=rolling_average,
    )


def make_progress(category_id, questions_completed):
    return UserProgress(
        user_id="test_user_123",
        tenant_id=1,
        category_id=category_id,
        questions_completed=questions_completed,
    )


@pytest.fixture
def now():
    """Reference time shared by the analytics tests."""
    return NOW


@pytest.fixture
def quiz_factory():
    return make_quiz


@pytest.fixture
def daily_quiz_factory():
    return daily_quizzes


@pytest.fixture
def mastery_factory():
    return make_mastery


@pytest.fixture
def progress_factory():
    return make_progress
