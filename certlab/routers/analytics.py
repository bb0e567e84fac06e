"""Analytics endpoints backed by the memoized report."""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request, HTTPException
from sqlalchemy.orm import Session
from certlab.config import settings
from certlab.constants import ANALYTICS_RATE_LIMIT, FORECAST_PERIODS
from certlab.db.database import get_db
from certlab.db.models import Category, MasteryScore, Quiz, UserProgress
from certlab.rate_limit import limiter
from certlab.routers.deps import get_user_id, get_tenant_id
from certlab.services.analytics import (
    build_analytics_report,
    forecast_performance,
    get_retention_status,
)
from certlab.services.analytics_cache import analytics_cache, fingerprint_inputs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


def load_user_quizzes(db: Session, user_id: str, tenant_id: int):
    return db.query(Quiz).filter(
        Quiz.user_id == user_id,
        Quiz.tenant_id == tenant_id
    ).all()


@router.get("")
@limiter.limit(ANALYTICS_RATE_LIMIT)
async def get_analytics_report(
    request: Request,
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """
    Full analytics report for the analytics page.

    The report is recomputed only when the user's quizzes, mastery or
    progress records differ from those of the cached report.
    """
    quizzes = load_user_quizzes(db, user_id, tenant_id)
    mastery_scores = db.query(MasteryScore).filter(
        MasteryScore.user_id == user_id,
        MasteryScore.tenant_id == tenant_id
    ).all()
    user_progress = db.query(UserProgress).filter(
        UserProgress.user_id == user_id,
        UserProgress.tenant_id == tenant_id
    ).all()
    categories = {
        c.id: c.name
        for c in db.query(Category).filter(Category.tenant_id == tenant_id).all()
    }

    logger.debug(
        f"Analytics report requested ({len(quizzes)} quizzes)",
        extra={"user_id": user_id, "tenant_id": tenant_id}
    )

    now = datetime.now(timezone.utc)
    fingerprint = fingerprint_inputs(
        quizzes, mastery_scores, user_progress, categories,
        now=now, tz_name=settings.ANALYTICS_TIMEZONE
    )

    return analytics_cache.get_or_compute(
        user_id,
        tenant_id,
        fingerprint,
        lambda: build_analytics_report(
            quizzes, mastery_scores, user_progress, categories,
            now=now, tz=settings.analytics_tz
        )
    )


@router.get("/forecast/{period}")
@limiter.limit(ANALYTICS_RATE_LIMIT)
async def get_forecast(
    period: str,
    request: Request,
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """Score forecast for one horizon: 7days, 30days or 90days."""
    quizzes = load_user_quizzes(db, user_id, tenant_id)
    try:
        return forecast_performance(quizzes, period, tz=settings.analytics_tz)
    except ValueError:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown forecast period; expected one of {', '.join(FORECAST_PERIODS)}"
        ) from None


@router.get("/retention")
@limiter.limit(ANALYTICS_RATE_LIMIT)
async def get_retention(
    request: Request,
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """Forgetting-curve projection since the most recent completed quiz."""
    quizzes = load_user_quizzes(db, user_id, tenant_id)
    return get_retention_status(quizzes)
