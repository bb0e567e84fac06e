"""Database initialization and badge catalog seeding."""
import logging
from sqlalchemy.orm import Session
from certlab.config import settings
from certlab.db.database import engine, SessionLocal, Base, ensure_sqlite_directory
from certlab.db.models import Badge

logger = logging.getLogger(__name__)

# Default achievement catalog
BADGE_CATALOG = [
    {
        "name": "First Steps", "description": "Complete your first quiz",
        "icon": "footprints", "category": "progress", "rarity": "common", "points": 10,
        "requirement": {"type": "quizzes_completed", "value": 1},
    },
    {
        "name": "Quiz Enthusiast", "description": "Complete 10 quizzes",
        "icon": "book-open", "category": "progress", "rarity": "common", "points": 25,
        "requirement": {"type": "quizzes_completed", "value": 10},
    },
    {
        "name": "Quiz Master", "description": "Complete 50 quizzes",
        "icon": "graduation-cap", "category": "progress", "rarity": "rare", "points": 100,
        "requirement": {"type": "quizzes_completed", "value": 50},
    },
    {
        "name": "Perfectionist", "description": "Score 100% on a quiz",
        "icon": "star", "category": "performance", "rarity": "uncommon", "points": 50,
        "requirement": {"type": "perfect_score", "value": 1},
    },
    {
        "name": "Passing Grade", "description": "Score 85% or higher on a quiz",
        "icon": "check-circle", "category": "performance", "rarity": "common", "points": 20,
        "requirement": {"type": "high_score", "value": 85},
    },
    {
        "name": "Daily Streak", "description": "Study 3 days in a row",
        "icon": "flame", "category": "streak", "rarity": "common", "points": 15,
        "requirement": {"type": "study_streak", "value": 3},
    },
    {
        "name": "Week Warrior", "description": "Study 7 days in a row",
        "icon": "calendar-check", "category": "streak", "rarity": "uncommon", "points": 50,
        "requirement": {"type": "study_streak", "value": 7},
    },
    {
        "name": "Knowledge Seeker", "description": "Answer 100 questions correctly",
        "icon": "brain", "category": "mastery", "rarity": "uncommon", "points": 40,
        "requirement": {"type": "questions_answered", "value": 100},
    },
    {
        "name": "Point Collector", "description": "Earn 1000 points",
        "icon": "trophy", "category": "progress", "rarity": "rare", "points": 75,
        "requirement": {"type": "total_points", "value": 1000},
    },
]


def seed_badges(db: Session) -> int:
    """
    Add catalog badges that are not in the database yet.

    Returns:
        Number of badges inserted
    """
    existing = {name for (name,) in db.query(Badge.name).all()}
    missing = [badge for badge in BADGE_CATALOG if badge["name"] not in existing]

    for badge_data in missing:
        db.add(Badge(**badge_data))
    db.commit()

    if missing:
        logger.info(f"Seeded {len(missing)} badges")
    else:
        logger.info(f"Badge catalog already contains {len(existing)} entries. Skipping seed.")
    return len(missing)


def init_db() -> None:
    """Create tables and seed the badge catalog."""
    ensure_sqlite_directory(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

    db = SessionLocal()
    try:
        seed_badges(db)
    except Exception as e:
        logger.error(f"Badge seeding failed: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
