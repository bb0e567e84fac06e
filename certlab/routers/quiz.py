"""Quiz lifecycle endpoints."""
import logging
from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, Request, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session
from certlab.config import settings
from certlab.constants import QUIZ_START_RATE_LIMIT, QUIZ_COMPLETION_RATE_LIMIT, PASSING_SCORE
from certlab.db.database import get_db
from certlab.db.models import Quiz, QuizMode
from certlab.rate_limit import limiter
from certlab.routers.deps import get_user_id, get_tenant_id
from certlab.services.achievements import process_quiz_completion
from certlab.services.analytics_cache import analytics_cache
from certlab.services.leveling import get_level_progress
from certlab.services.points import calculate_quiz_points, calculate_score

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


class StartQuizRequest(BaseModel):
    """Request body for starting a quiz."""
    title: str = Field("Practice Quiz", min_length=1, max_length=200)
    category_ids: List[int] = Field(default_factory=list)
    question_count: int = Field(..., gt=0, le=500, description="Number of questions in the quiz")
    mode: QuizMode = QuizMode.STUDY

    @field_validator("category_ids")
    @classmethod
    def unique_categories(cls, v):
        """Category order is irrelevant; store each category once."""
        return sorted(set(v))


class CompleteQuizRequest(BaseModel):
    """Request body for submitting a finished quiz."""
    correct_answers: int = Field(..., ge=0, description="Number of correctly answered questions")


def get_owned_quiz(db: Session, quiz_id: int, user_id: str, tenant_id: int) -> Quiz:
    """Load a quiz, hiding quizzes of other users and tenants behind a 404."""
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz or quiz.user_id != user_id or quiz.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


@router.post("/start")
@limiter.limit(QUIZ_START_RATE_LIMIT)
async def start_quiz(
    quiz_request: StartQuizRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """
    Start a new quiz.

    Returns:
    - quiz_id
    - question_count, mode, started_at
    """
    quiz = Quiz(
        user_id=user_id,
        tenant_id=tenant_id,
        title=quiz_request.title,
        category_ids=quiz_request.category_ids,
        question_count=quiz_request.question_count,
        mode=quiz_request.mode.value,
        started_at=datetime.utcnow()
    )
    db.add(quiz)
    db.commit()

    logger.debug(f"Quiz {quiz.id} started", extra={"user_id": user_id, "tenant_id": tenant_id})

    return {
        "quiz_id": quiz.id,
        "title": quiz.title,
        "category_ids": quiz.category_ids,
        "question_count": quiz.question_count,
        "mode": quiz.mode,
        "started_at": quiz.started_at.isoformat(),
    }


@router.post("/{quiz_id}/complete")
@limiter.limit(QUIZ_COMPLETION_RATE_LIMIT)
async def complete_quiz(
    quiz_id: int,
    submission: CompleteQuizRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """
    Finalize a quiz and award points.

    Sets completed_at and score exactly once; a second submission is
    rejected with 400.

    Returns:
    - score, is_passing, points_earned
    - level progress derived from the new point total
    - newly awarded badges
    """
    try:
        quiz = get_owned_quiz(db, quiz_id, user_id, tenant_id)

        if quiz.is_completed:
            raise HTTPException(status_code=400, detail="Quiz already completed")

        if submission.correct_answers > quiz.question_count:
            raise HTTPException(
                status_code=422,
                detail=f"correct_answers cannot exceed question_count ({quiz.question_count})"
            )

        quiz.total_questions = quiz.question_count
        quiz.correct_answers = submission.correct_answers
        quiz.score = calculate_score(submission.correct_answers, quiz.question_count)
        quiz.is_passing = quiz.score >= PASSING_SCORE
        quiz.completed_at = datetime.utcnow()
        db.flush()

        result = process_quiz_completion(db, user_id, quiz, tenant_id, tz=settings.analytics_tz)
        db.commit()

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Completing quiz {quiz_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error completing quiz: {str(e)}")

    analytics_cache.invalidate(user_id, tenant_id)

    return {
        "quiz_id": quiz.id,
        "score": quiz.score,
        "correct_answers": quiz.correct_answers,
        "total_questions": quiz.total_questions,
        "is_passing": quiz.is_passing,
        "completed_at": quiz.completed_at.isoformat(),
        "points_earned": result["points_earned"],
        "level_up": result["level_up"],
        "previous_level": result["previous_level"],
        "current_streak": result["current_streak"],
        "level_progress": get_level_progress(result["total_points"]),
        "new_badges": [
            {"id": badge.id, "name": badge.name, "icon": badge.icon, "points": badge.points}
            for badge in result["new_badges"]
        ],
    }


@router.get("/{quiz_id}/points")
async def get_quiz_points(
    quiz_id: int,
    user_id: str = Depends(get_user_id),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db)
):
    """Points the tariff awards for a quiz (0 while it is in progress)."""
    quiz = get_owned_quiz(db, quiz_id, user_id, tenant_id)
    return {
        "quiz_id": quiz.id,
        "completed": quiz.is_completed,
        "points": calculate_quiz_points(quiz),
    }
