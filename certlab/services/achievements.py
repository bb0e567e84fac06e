"""Gamification: streaks, badge awards and quiz completion processing.

Badge requirements are stored as JSON on the Badge row:

    {"type": "quizzes_completed", "value": 10}

Supported types: quizzes_completed, perfect_score, study_streak,
high_score, questions_answered, total_points.
"""
import logging
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from certlab.db.models import Badge, Quiz, UserBadge, UserGameStats
from certlab.services.dates import to_local_date
from certlab.services.leveling import calculate_level_from_points
from certlab.services.points import calculate_quiz_points

logger = logging.getLogger(__name__)


class RequirementType(str, Enum):
    """Kinds of badge requirement."""
    QUIZZES_COMPLETED = "quizzes_completed"
    PERFECT_SCORE = "perfect_score"
    STUDY_STREAK = "study_streak"
    HIGH_SCORE = "high_score"
    QUESTIONS_ANSWERED = "questions_answered"
    TOTAL_POINTS = "total_points"


def calculate_streak(
    last_activity_date: Optional[datetime],
    current_streak: Optional[int],
    today: date
) -> Tuple[int, bool]:
    """
    Calculate the day streak after activity today.

    - No previous activity: streak starts at 1
    - Same day: streak unchanged (at least 1)
    - Next day: streak + 1
    - Any longer gap: streak resets to 1

    Args:
        last_activity_date: Date of the previous activity (datetime or date)
        current_streak: Streak before today's activity
        today: Date of the new activity

    Returns:
        (new streak, whether an existing streak was broken)
    """
    if last_activity_date is None:
        return 1, False

    last_day = last_activity_date.date() if isinstance(last_activity_date, datetime) else last_activity_date
    diff_days = (today - last_day).days

    if diff_days <= 0:
        return max(1, current_streak or 0), False
    if diff_days == 1:
        return (current_streak or 0) + 1, False
    return 1, True


def _requirement(badge: Badge) -> Optional[Tuple[RequirementType, int]]:
    requirement = badge.requirement or {}
    try:
        return RequirementType(requirement.get("type")), int(requirement.get("value", 0))
    except (ValueError, TypeError):
        return None


def evaluate_badge_requirement(
    requirement_type: RequirementType,
    value: int,
    completed_quizzes: List,
    game_stats: Optional[UserGameStats]
) -> Tuple[bool, int]:
    """
    Check one badge requirement.

    Args:
        requirement_type: Kind of requirement
        value: Threshold for the requirement
        completed_quizzes: The user's completed quizzes
        game_stats: The user's game stats (None counts as all zeros)

    Returns:
        (earned, progress) where progress is the measured quantity, e.g. the
        number of perfect scores or the best score for high_score
    """
    if requirement_type == RequirementType.QUIZZES_COMPLETED:
        progress = len(completed_quizzes)
    elif requirement_type == RequirementType.PERFECT_SCORE:
        progress = sum(1 for q in completed_quizzes if q.score == 100)
    elif requirement_type == RequirementType.STUDY_STREAK:
        progress = game_stats.current_streak if game_stats else 0
    elif requirement_type == RequirementType.HIGH_SCORE:
        progress = max((q.score or 0 for q in completed_quizzes), default=0)
    elif requirement_type == RequirementType.QUESTIONS_ANSWERED:
        progress = sum(q.correct_answers or 0 for q in completed_quizzes)
    else:
        progress = game_stats.total_points if game_stats else 0

    return progress >= value, progress


def _progress_text(requirement_type: RequirementType, value: int, progress: int) -> str:
    if requirement_type == RequirementType.QUIZZES_COMPLETED:
        return f"{progress}/{value} quizzes completed"
    if requirement_type == RequirementType.PERFECT_SCORE:
        return f"{progress}/{value} perfect scores"
    if requirement_type == RequirementType.STUDY_STREAK:
        return f"{progress}/{value} day streak"
    if requirement_type == RequirementType.HIGH_SCORE:
        if progress > 0:
            return f"Best score: {progress}% (target: {value}%)"
        return f"Achieve {value}% on a quiz"
    if requirement_type == RequirementType.QUESTIONS_ANSWERED:
        return f"{progress}/{value} correct answers"
    return f"{progress}/{value} points earned"


def get_completed_quizzes(db: Session, user_id: str, tenant_id: int) -> List[Quiz]:
    return db.query(Quiz).filter(
        Quiz.user_id == user_id,
        Quiz.tenant_id == tenant_id,
        Quiz.completed_at.isnot(None)
    ).order_by(Quiz.completed_at).all()


def get_or_create_game_stats(db: Session, user_id: str, tenant_id: int) -> UserGameStats:
    """Fetch the user's game stats row, adding an empty one if missing."""
    stats = db.query(UserGameStats).filter(
        UserGameStats.user_id == user_id,
        UserGameStats.tenant_id == tenant_id
    ).first()

    if stats is None:
        stats = UserGameStats(
            user_id=user_id,
            tenant_id=tenant_id,
            total_points=0,
            current_streak=0,
            longest_streak=0,
            total_badges_earned=0
        )
        db.add(stats)
        db.flush()

    return stats


def _earned_badge_ids(db: Session, user_id: str, tenant_id: int) -> set:
    rows = db.query(UserBadge.badge_id).filter(
        UserBadge.user_id == user_id,
        UserBadge.tenant_id == tenant_id
    ).all()
    return {badge_id for (badge_id,) in rows}


def check_and_award_badges(
    db: Session,
    user_id: str,
    tenant_id: int,
    game_stats: UserGameStats
) -> List[Badge]:
    """
    Award every badge whose requirement is now met and not yet earned.

    Args:
        db: Database session
        user_id: User identifier
        tenant_id: Tenant identifier
        game_stats: Up-to-date game stats for the user

    Returns:
        Newly awarded Badge objects
    """
    earned_ids = _earned_badge_ids(db, user_id, tenant_id)
    completed = get_completed_quizzes(db, user_id, tenant_id)

    new_badges = []
    for badge in db.query(Badge).order_by(Badge.id).all():
        if badge.id in earned_ids:
            continue

        requirement = _requirement(badge)
        if requirement is None:
            logger.warning(f"Badge {badge.name!r} has an unsupported requirement: {badge.requirement}")
            continue

        earned, _ = evaluate_badge_requirement(*requirement, completed, game_stats)
        if earned:
            db.add(UserBadge(
                user_id=user_id,
                tenant_id=tenant_id,
                badge_id=badge.id,
                progress=100,
                is_notified=False
            ))
            new_badges.append(badge)

    if new_badges:
        game_stats.total_badges_earned = (game_stats.total_badges_earned or 0) + len(new_badges)
        db.flush()

    return new_badges


def get_badge_progress(db: Session, user_id: str, tenant_id: int) -> List[Dict]:
    """
    Get the user's progress toward every badge.

    Returns:
        List of dictionaries:
        {
            "badge": {"id": 1, "name": "First Steps", ...},
            "earned": False,
            "progress": 40,
            "progress_text": "2/5 quizzes completed"
        }
    """
    earned_ids = _earned_badge_ids(db, user_id, tenant_id)
    completed = get_completed_quizzes(db, user_id, tenant_id)
    game_stats = db.query(UserGameStats).filter(
        UserGameStats.user_id == user_id,
        UserGameStats.tenant_id == tenant_id
    ).first()

    results = []
    for badge in db.query(Badge).order_by(Badge.id).all():
        badge_info = {
            "id": badge.id,
            "name": badge.name,
            "description": badge.description,
            "icon": badge.icon,
            "category": badge.category,
            "rarity": badge.rarity,
            "points": badge.points,
        }

        if badge.id in earned_ids:
            results.append({
                "badge": badge_info,
                "earned": True,
                "progress": 100,
                "progress_text": "Completed!",
            })
            continue

        requirement = _requirement(badge)
        if requirement is None:
            results.append({
                "badge": badge_info,
                "earned": False,
                "progress": 0,
                "progress_text": "Unknown requirement",
            })
            continue

        requirement_type, value = requirement
        _, measured = evaluate_badge_requirement(requirement_type, value, completed, game_stats)
        percent = min(100, round(measured / value * 100)) if value > 0 else 100

        results.append({
            "badge": badge_info,
            "earned": False,
            "progress": percent,
            "progress_text": _progress_text(requirement_type, value, measured),
        })

    return results


def process_quiz_completion(
    db: Session,
    user_id: str,
    quiz: Quiz,
    tenant_id: int = 1,
    today: Optional[date] = None,
    tz: tzinfo = timezone.utc
) -> Dict:
    """
    Award points, update streaks and badges after a quiz is completed.

    Level-up is decided by comparing levels computed from the old and the
    new point totals; no stored level is consulted.

    Args:
        db: Database session (flushed, not committed)
        user_id: User identifier
        quiz: The completed quiz
        tenant_id: Tenant identifier
        today: Activity date (defaults to the quiz completion date)
        tz: Zone for the activity date

    Returns:
        {
            "points_earned": 80,
            "total_points": 380,
            "level_up": True,
            "previous_level": 2,
            "new_level": 3,
            "current_streak": 4,
            "streak_broken": False,
            "new_badges": [Badge, ...]
        }
    """
    if today is None:
        today = to_local_date(quiz.completed_at or datetime.utcnow(), tz)

    points_earned = calculate_quiz_points(quiz)
    stats = get_or_create_game_stats(db, user_id, tenant_id)

    previous_points = stats.total_points or 0
    previous_level = calculate_level_from_points(previous_points)

    current_streak, streak_broken = calculate_streak(
        stats.last_activity_date, stats.current_streak, today
    )

    stats.total_points = previous_points + points_earned
    stats.current_streak = current_streak
    stats.longest_streak = max(stats.longest_streak or 0, current_streak)
    stats.last_activity_date = datetime.combine(today, datetime.min.time())
    db.flush()

    new_level = calculate_level_from_points(stats.total_points)
    new_badges = check_and_award_badges(db, user_id, tenant_id, stats)

    log_context = {"user_id": user_id, "tenant_id": tenant_id, "quiz_id": quiz.id}
    logger.info(f"Quiz completion awarded {points_earned} points", extra=log_context)
    if new_level > previous_level:
        logger.info(f"Level up: {previous_level} -> {new_level}", extra=log_context)
    for badge in new_badges:
        logger.info(f"Badge awarded: {badge.name}", extra=log_context)

    return {
        "points_earned": points_earned,
        "total_points": stats.total_points,
        "level_up": new_level > previous_level,
        "previous_level": previous_level,
        "new_level": new_level,
        "current_streak": current_streak,
        "streak_broken": streak_broken,
        "new_badges": new_badges,
    }
