"""User game stats and achievement endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from certlab.db.database import get_db
from certlab.db.models import Quiz, UserGameStats
from certlab.routers.deps import get_user_id, get_tenant_id
from certlab.services.achievements import get_badge_progress
from certlab.services.leveling import summarize_game_stats

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/stats")
async def get_user_stats(
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """
    Get gamification stats for the header, dashboard and achievements views.

    Level, XP into the level and the XP goal are always derived from
    total_points.
    """
    stats = db.query(UserGameStats).filter(
        UserGameStats.user_id == user_id,
        UserGameStats.tenant_id == tenant_id
    ).first()

    completed_quizzes = db.query(Quiz).filter(
        Quiz.user_id == user_id,
        Quiz.tenant_id == tenant_id,
        Quiz.completed_at.isnot(None)
    ).count()

    if stats is None:
        summary = summarize_game_stats(0)
    else:
        summary = summarize_game_stats(
            stats.total_points,
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            total_badges_earned=stats.total_badges_earned
        )

    return {
        "user_id": user_id,
        "tenant_id": tenant_id,
        "completed_quizzes": completed_quizzes,
        "last_activity_date": (
            stats.last_activity_date.isoformat()
            if stats is not None and stats.last_activity_date else None
        ),
        **summary,
    }


@router.get("/badges")
async def get_user_badges(
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """Progress toward every badge, earned ones first."""
    progress = get_badge_progress(db, user_id, tenant_id)
    progress.sort(key=lambda item: not item["earned"])
    return {
        "earned_count": sum(1 for item in progress if item["earned"]),
        "badges": progress,
    }
