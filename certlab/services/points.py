"""Point tariff for completed quizzes and the weekly XP chart."""
from datetime import date, datetime, timedelta, timezone, tzinfo
from math import floor
from typing import Iterable, List, Optional
from certlab.constants import (
    QUIZ_COMPLETION,
    CORRECT_ANSWER,
    PASSING_BONUS,
    PERFECT_SCORE_BONUS,
    PASSING_SCORE,
)
from certlab.services.dates import to_local_date


def calculate_quiz_points(quiz) -> int:
    """
    Calculate points awarded for a quiz.

    Tariff (all parts additive):
    - QUIZ_COMPLETION for any completed quiz
    - CORRECT_ANSWER per correct answer
    - PASSING_BONUS if the quiz is flagged passing OR scored >= 85
    - PERFECT_SCORE_BONUS if the score is exactly 100

    The passing flag and the score are both checked because stored flags
    have drifted from scores before; dropping either check changes totals.

    Args:
        quiz: Quiz record (anything with completed_at, score,
              correct_answers and is_passing attributes)

    Returns:
        Points earned, 0 for an incomplete or unscored quiz
    """
    if quiz.completed_at is None or quiz.score is None:
        return 0

    points = QUIZ_COMPLETION
    points += max(0, quiz.correct_answers or 0) * CORRECT_ANSWER

    if quiz.is_passing or quiz.score >= PASSING_SCORE:
        points += PASSING_BONUS

    if quiz.score == 100:
        points += PERFECT_SCORE_BONUS

    return points


def calculate_daily_experience(
    quizzes: Iterable,
    today: Optional[date] = None,
    tz: tzinfo = timezone.utc
) -> List[int]:
    """
    Sum quiz points per day for the current week.

    Args:
        quizzes: Quiz records
        today: Reference date (defaults to the current date in tz)
        tz: Zone used to assign quizzes to days

    Returns:
        Seven totals, index 0 = Monday ... 6 = Sunday
    """
    if today is None:
        today = datetime.now(tz).date()
    monday = today - timedelta(days=today.weekday())

    daily_xp = [0] * 7
    for quiz in quizzes:
        if quiz.completed_at is None or quiz.score is None:
            continue
        completed_on = to_local_date(quiz.completed_at, tz)
        if monday <= completed_on <= today:
            daily_xp[(completed_on - monday).days] += calculate_quiz_points(quiz)

    return daily_xp


def daily_experience_percentages(daily_xp: List[int]) -> List[float]:
    """Scale daily XP against the best day (at least 1 to avoid dividing by zero)."""
    peak = max(daily_xp + [1])
    return [round(xp / peak * 100, 1) for xp in daily_xp]


def calculate_score(correct_answers: int, total_questions: int) -> int:
    """
    Percentage score for a finished quiz, rounded half up.

    Returns 0 when there are no questions; correct answers are clamped to
    [0, total_questions].
    """
    if not total_questions or total_questions <= 0:
        return 0
    correct = min(max(0, correct_answers or 0), total_questions)
    return floor(correct * 100 / total_questions + 0.5)
