"""Learning analytics over a user's quiz history.

Every function here is pure: it reads quiz, mastery and progress records and
returns plain dictionaries. Sparse input (no quizzes, missing scores or
timestamps, a single data point) produces zero or neutral values instead of
errors, so callers can render whatever comes back.

Day and hour bucketing always goes through an explicit tz argument
(defaulting to UTC).
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from math import ceil, erf, exp, sqrt
from statistics import median
from typing import Dict, Iterable, List, Optional, Tuple
from certlab.constants import (
    PASSING_SCORE,
    MIN_QUIZZES_FOR_ANALYTICS,
    TARGET_MASTERY,
    MOVING_AVERAGE_WINDOW,
    READINESS_RECENT_QUIZZES,
    READINESS_RECENT_WEIGHT,
    READINESS_FULL_CONFIDENCE_QUIZZES,
    READINESS_BASE_MARGIN,
    MIN_SCORE_SPREAD,
    TREND_DEADBAND,
    FORECAST_PERIODS,
    STUDY_MINUTES_PER_POINT,
    MIN_DAILY_STUDY_MINUTES,
    MAX_DAILY_STUDY_MINUTES,
    LEARNING_VELOCITY_WINDOW_DAYS,
    OPTIMAL_SECONDS_PER_QUESTION,
    EFFICIENCY_ACCURACY_WEIGHT,
    DEFAULT_STUDY_SESSION_MINUTES,
    MIN_STUDY_SESSION_MINUTES,
    MAX_STUDY_SESSION_MINUTES,
    SKILL_GAP_HIGH_THRESHOLD,
    SKILL_GAP_MEDIUM_THRESHOLD,
    MASTERY_POINTS_PER_STUDY_HOUR,
    BURNOUT_RECENT_QUIZZES,
    BURNOUT_DECLINE_THRESHOLD,
    BURNOUT_STREAK_SATURATION_DAYS,
    BURNOUT_HIGH_RISK,
    BURNOUT_MEDIUM_RISK,
    LONG_SESSION_MINUTES,
    RETENTION_MEMORY_STRENGTH_DAYS,
    RETENTION_FLOOR,
    RETENTION_REVIEW_THRESHOLD,
    RETENTION_CURVE_DAYS,
    MAX_INSIGHTS,
)
from certlab.services.dates import as_utc, to_local, to_local_date, resolve_now
from certlab.services.points import (
    calculate_quiz_points,
    calculate_daily_experience,
    daily_experience_percentages,
)

logger = logging.getLogger(__name__)


class Trend(str, Enum):
    """Direction of recent performance."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InsightType(str, Enum):
    ACHIEVEMENT = "achievement"
    STRENGTH = "strength"
    WEAKNESS = "weakness"
    RECOMMENDATION = "recommendation"
    WARNING = "warning"


PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}

TREND_STUDY_FACTOR = {
    Trend.IMPROVING: 0.75,
    Trend.STABLE: 1.0,
    Trend.DECLINING: 1.25,
}


# ============================================================================
# Helpers
# ============================================================================

def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _std_dev(values: List[float]) -> float:
    """Population standard deviation (0 for fewer than two values)."""
    if len(values) < 2:
        return 0.0
    mean = _mean(values)
    return sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _linear_regression(xs: List[float], ys: List[float]) -> Tuple[float, float]:
    """
    Ordinary least squares fit of ys against xs.

    Returns:
        (slope, intercept); slope is 0 when xs carry no spread
    """
    n = len(xs)
    if n == 0:
        return 0.0, 0.0

    mean_x = _mean(xs)
    mean_y = _mean(ys)
    sxx = sum((x - mean_x) ** 2 for x in xs)
    if sxx == 0:
        return 0.0, mean_y

    sxy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    slope = sxy / sxx
    return slope, mean_y - slope * mean_x


def _normal_cdf(z: float) -> float:
    return 0.5 * (1.0 + erf(z / sqrt(2.0)))


def _completed_quizzes(quizzes: Iterable) -> List:
    """Completed, scored quizzes in chronological order."""
    completed = [
        q for q in (quizzes or [])
        if q.completed_at is not None and q.score is not None
    ]
    return sorted(completed, key=lambda q: as_utc(q.completed_at))


def _question_total(quiz) -> int:
    return max(0, quiz.total_questions or quiz.question_count or 0)


def _correct_count(quiz) -> int:
    """Correct answers clamped into [0, total questions]."""
    return min(max(0, quiz.correct_answers or 0), _question_total(quiz))


def _duration_seconds(quiz) -> float:
    """Seconds between start and completion, 0 when unknown or inconsistent."""
    if quiz.started_at is None or quiz.completed_at is None:
        return 0.0
    seconds = (as_utc(quiz.completed_at) - as_utc(quiz.started_at)).total_seconds()
    return seconds if seconds > 0 else 0.0


def _daily_scores(completed: List, tz: tzinfo) -> List[Tuple]:
    """
    Group completed quizzes by local calendar day.

    Returns:
        Chronological list of (date, average score, quiz count), one entry
        per day that has at least one quiz
    """
    by_day = defaultdict(list)
    for quiz in completed:
        by_day[to_local_date(quiz.completed_at, tz)].append(quiz.score)

    return [
        (day, _mean(scores), len(scores))
        for day, scores in sorted(by_day.items())
    ]


def _trend_from_slope(slope: float) -> Trend:
    if slope > TREND_DEADBAND:
        return Trend.IMPROVING
    if slope < -TREND_DEADBAND:
        return Trend.DECLINING
    return Trend.STABLE


def _horizon_days(period) -> int:
    if isinstance(period, int):
        if period <= 0:
            raise ValueError(f"Forecast horizon must be positive, got {period}")
        return period
    try:
        return FORECAST_PERIODS[period]
    except KeyError:
        raise ValueError(
            f"Unknown forecast period {period!r}; expected one of {sorted(FORECAST_PERIODS)}"
        ) from None


def _category_names(categories) -> Dict[int, str]:
    """Accept a {id: name} mapping or Category-like records."""
    if not categories:
        return {}
    if isinstance(categories, dict):
        return dict(categories)
    return {c.id: c.name for c in categories}


# ============================================================================
# Learning curve
# ============================================================================

def calculate_learning_curve(quizzes: Iterable, tz: tzinfo = timezone.utc) -> List[Dict]:
    """
    Calculate the daily learning curve.

    One point per local calendar day that has a completed quiz (days without
    quizzes are skipped, not zero-filled). The moving average covers the day
    and up to six preceding days with data; the trend line is the least
    squares fit of daily score against the sequential day index.

    Args:
        quizzes: Quiz records (incomplete or unscored ones are ignored)
        tz: Zone used to assign quizzes to days

    Returns:
        List of {"date", "score", "quiz_count", "moving_average", "trend_line"}
    """
    daily = _daily_scores(_completed_quizzes(quizzes), tz)
    if not daily:
        return []

    scores = [avg for _, avg, _ in daily]
    slope, intercept = _linear_regression(list(range(len(scores))), scores)

    points = []
    for index, (day, avg, count) in enumerate(daily):
        window = scores[max(0, index - MOVING_AVERAGE_WINDOW + 1):index + 1]
        points.append({
            "date": day.isoformat(),
            "score": round(avg, 1),
            "quiz_count": count,
            "moving_average": round(_mean(window), 1),
            "trend_line": round(_clamp(intercept + slope * index), 1),
        })

    return points


def calculate_learning_trend(quizzes: Iterable, tz: tzinfo = timezone.utc) -> Dict:
    """
    Fit the learning-curve trend line.

    Returns:
        {"slope": score points per day with data, "intercept", "days", "trend"}
    """
    daily = _daily_scores(_completed_quizzes(quizzes), tz)
    scores = [avg for _, avg, _ in daily]
    slope, intercept = _linear_regression(list(range(len(scores))), scores)

    return {
        "slope": round(slope, 3),
        "intercept": round(intercept, 2),
        "days": len(scores),
        "trend": _trend_from_slope(slope),
    }


# ============================================================================
# Exam readiness
# ============================================================================

def _readiness_recommendation(score: float, target_score: int) -> str:
    if score >= target_score:
        return (
            f"You're ready! Your current performance ({round(score)}%) "
            f"exceeds the passing threshold."
        )
    if score >= target_score - 5:
        return f"Almost there! Focus on your weak areas to reach the {target_score}% passing score."
    if score >= target_score - 15:
        return (
            f"Making progress. Continue practicing to improve your score "
            f"by {round(target_score - score)}%."
        )
    return "More preparation needed. Focus on fundamental concepts and practice regularly."


def predict_exam_readiness(
    quizzes: Iterable,
    mastery_scores: Optional[Iterable] = None,
    target_score: int = PASSING_SCORE
) -> Dict:
    """
    Predict exam readiness from recent scores and category mastery.

    Score: linearly weighted average of the last READINESS_RECENT_QUIZZES
    scores (most recent weighs most), blended 70/30 with average mastery when
    mastery data exists. Confidence grows with quiz count and consistency.
    The interval half-width is (2 * std_dev + base) / sqrt(quiz count), so it
    narrows as history grows, and is clamped to [0, 100].

    Args:
        quizzes: Quiz records
        mastery_scores: MasteryScore records (rolling_average 0-100)
        target_score: Passing score

    Returns:
        {"score", "confidence", "confidence_interval": {"lower", "upper"},
         "estimated_pass_probability", "recommendation", "quizzes_analyzed"}
    """
    completed = _completed_quizzes(quizzes)

    if not completed:
        return {
            "score": 0,
            "confidence": 0,
            "confidence_interval": {"lower": 0, "upper": 0},
            "estimated_pass_probability": 0,
            "recommendation": "Complete more quizzes to get an accurate readiness assessment.",
            "quizzes_analyzed": 0,
        }

    recent_scores = [q.score for q in completed[-READINESS_RECENT_QUIZZES:]]
    weights = range(1, len(recent_scores) + 1)
    weighted_recent = sum(s * w for s, w in zip(recent_scores, weights)) / sum(weights)

    mastery_values = [
        m.rolling_average for m in (mastery_scores or [])
        if m.rolling_average is not None
    ]
    if mastery_values:
        score = (
            READINESS_RECENT_WEIGHT * weighted_recent
            + (1 - READINESS_RECENT_WEIGHT) * _mean(mastery_values)
        )
    else:
        score = weighted_recent
    score = _clamp(score)

    std_dev = _std_dev(recent_scores)
    sample_confidence = min(100.0, len(completed) / READINESS_FULL_CONFIDENCE_QUIZZES * 100)
    consistency_confidence = max(0.0, 100 - std_dev * 2)
    confidence = (sample_confidence + consistency_confidence) / 2

    margin = (2 * std_dev + READINESS_BASE_MARGIN) / sqrt(len(completed))

    spread = max(std_dev, MIN_SCORE_SPREAD)
    pass_probability = _normal_cdf((score - target_score) / spread) * 100

    return {
        "score": round(score),
        "confidence": round(confidence),
        "confidence_interval": {
            "lower": round(_clamp(score - margin)),
            "upper": round(_clamp(score + margin)),
        },
        "estimated_pass_probability": round(pass_probability),
        "recommendation": _readiness_recommendation(score, target_score),
        "quizzes_analyzed": len(completed),
    }


# ============================================================================
# Performance forecast
# ============================================================================

def _shifted_band(center: float, margin: float) -> Tuple[float, float]:
    """Band of half-width margin around center, moved inside [0, 100] rather than cut."""
    lower, upper = center - margin, center + margin
    if upper > 100:
        return max(0.0, 100 - 2 * margin), 100.0
    if lower < 0:
        return 0.0, min(100.0, 2 * margin)
    return lower, upper


def _required_daily_minutes(current: float, days: int, trend: Trend, target_score: int) -> int:
    gap = max(0.0, target_score - current)
    minutes = ceil(gap * STUDY_MINUTES_PER_POINT * TREND_STUDY_FACTOR[trend] / days)
    return int(_clamp(minutes, MIN_DAILY_STUDY_MINUTES, MAX_DAILY_STUDY_MINUTES))


def forecast_performance(
    quizzes: Iterable,
    period="7days",
    target_score: int = PASSING_SCORE,
    tz: tzinfo = timezone.utc
) -> Dict:
    """
    Forecast the score at a future horizon.

    Extends the learning-curve trend line by the horizon's number of days and
    clamps to [0, 100]. The band half-width is the residual spread around the
    trend (at least MIN_SCORE_SPREAD) times sqrt(days / 7), so longer horizons
    always get wider bands. A band reaching past 0 or 100 is shifted back
    inside the range, keeping its width up to 100. Below MIN_QUIZZES_FOR_ANALYTICS completed quizzes
    the forecast stays flat at the current average.

    Args:
        quizzes: Quiz records
        period: "7days", "30days", "90days" or a positive number of days
        target_score: Score the study-time recommendation aims for
        tz: Zone used to assign quizzes to days

    Returns:
        {"period", "days", "predicted_score", "confidence_interval",
         "trend", "slope", "required_daily_study_minutes"}

    Raises:
        ValueError: If the period is not a supported horizon
    """
    days = _horizon_days(period)
    completed = _completed_quizzes(quizzes)

    if len(completed) < MIN_QUIZZES_FOR_ANALYTICS:
        current = _mean([q.score for q in completed])
        return {
            "period": period,
            "days": days,
            "predicted_score": round(current, 1),
            "confidence_interval": {"lower": round(current), "upper": round(current)},
            "trend": Trend.STABLE,
            "slope": 0.0,
            "required_daily_study_minutes": _required_daily_minutes(
                current, days, Trend.STABLE, target_score
            ),
        }

    scores = [avg for _, avg, _ in _daily_scores(completed, tz)]
    xs = list(range(len(scores)))
    slope, intercept = _linear_regression(xs, scores)

    last_index = len(scores) - 1
    predicted = _clamp(intercept + slope * (last_index + days))

    residuals = [y - (intercept + slope * x) for x, y in zip(xs, scores)]
    spread = max(_std_dev(residuals), MIN_SCORE_SPREAD)
    margin = spread * sqrt(days / 7)

    lower, upper = _shifted_band(predicted, margin)

    trend = _trend_from_slope(slope)
    current = _mean(scores[-MOVING_AVERAGE_WINDOW:])

    return {
        "period": period,
        "days": days,
        "predicted_score": round(predicted, 1),
        "confidence_interval": {
            "lower": round(lower),
            "upper": round(upper),
        },
        "trend": trend,
        "slope": round(slope, 3),
        "required_daily_study_minutes": _required_daily_minutes(
            current, days, trend, target_score
        ),
    }


def forecast_all_periods(quizzes: Iterable, tz: tzinfo = timezone.utc) -> Dict[str, Dict]:
    """Forecasts for every standard horizon keyed by period name."""
    quizzes = list(quizzes or [])
    return {
        period: forecast_performance(quizzes, period, tz=tz)
        for period in FORECAST_PERIODS
    }


# ============================================================================
# Study efficiency
# ============================================================================

def _learning_velocity(completed: List, now: datetime, tz: tzinfo) -> float:
    """Slope of daily average score per calendar day over the trailing window."""
    today = to_local_date(now, tz)
    window_start = today - timedelta(days=LEARNING_VELOCITY_WINDOW_DAYS - 1)

    recent = [
        (day, avg) for day, avg, _ in _daily_scores(completed, tz)
        if window_start <= day <= today
    ]
    if len(recent) < 2:
        return 0.0

    first_day = recent[0][0]
    xs = [(day - first_day).days for day, _ in recent]
    ys = [avg for _, avg in recent]
    slope, _ = _linear_regression(xs, ys)
    return slope


def _optimal_study_duration(timed: List[Tuple]) -> int:
    """
    Median session length (minutes) of quizzes scoring at or above the
    user's own average, rounded to 5 minutes.
    """
    if not timed:
        return DEFAULT_STUDY_SESSION_MINUTES

    average = _mean([q.score for q, _ in timed])
    good_sessions = [seconds / 60 for q, seconds in timed if q.score >= average]
    if not good_sessions:
        # equal fractional scores can all sit just below their float mean
        good_sessions = [seconds / 60 for _, seconds in timed]
    minutes = 5 * round(median(good_sessions) / 5)
    return int(_clamp(minutes, MIN_STUDY_SESSION_MINUTES, MAX_STUDY_SESSION_MINUTES))


def calculate_study_efficiency(
    quizzes: Iterable,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc
) -> Dict:
    """
    Calculate study efficiency metrics.

    Timing metrics use completed_at - started_at and are 0 when no quiz has
    usable timestamps; the efficiency score then falls back to accuracy.

    Args:
        quizzes: Quiz records
        now: Reference time for the learning velocity window
        tz: Zone used to assign quizzes to days

    Returns:
        {"accuracy_rate", "average_time_per_question", "points_per_hour",
         "learning_velocity", "efficiency_score", "optimal_study_duration",
         "quizzes_analyzed"}
    """
    completed = _completed_quizzes(quizzes)

    if not completed:
        return {
            "accuracy_rate": 0.0,
            "average_time_per_question": 0.0,
            "points_per_hour": 0.0,
            "learning_velocity": 0.0,
            "efficiency_score": 0.0,
            "optimal_study_duration": DEFAULT_STUDY_SESSION_MINUTES,
            "quizzes_analyzed": 0,
        }

    total_questions = sum(_question_total(q) for q in completed)
    total_correct = sum(_correct_count(q) for q in completed)
    accuracy_rate = total_correct / total_questions * 100 if total_questions else 0.0

    timed = [(q, _duration_seconds(q)) for q in completed]
    timed = [(q, seconds) for q, seconds in timed if seconds > 0]

    average_time_per_question = 0.0
    points_per_hour = 0.0
    if timed:
        timed_seconds = sum(seconds for _, seconds in timed)
        timed_questions = sum(_question_total(q) for q, _ in timed)
        if timed_questions:
            average_time_per_question = timed_seconds / timed_questions
        timed_points = sum(calculate_quiz_points(q) for q, _ in timed)
        points_per_hour = timed_points / (timed_seconds / 3600)

    if average_time_per_question > 0:
        speed_score = _clamp(100 - (average_time_per_question - OPTIMAL_SECONDS_PER_QUESTION))
        efficiency_score = (
            EFFICIENCY_ACCURACY_WEIGHT * accuracy_rate
            + (1 - EFFICIENCY_ACCURACY_WEIGHT) * speed_score
        )
    else:
        efficiency_score = accuracy_rate

    velocity = _learning_velocity(completed, resolve_now(now), tz)

    return {
        "accuracy_rate": round(accuracy_rate, 1),
        "average_time_per_question": round(average_time_per_question, 1),
        "points_per_hour": round(points_per_hour, 1),
        "learning_velocity": round(velocity, 2),
        "efficiency_score": round(_clamp(efficiency_score), 1),
        "optimal_study_duration": _optimal_study_duration(timed),
        "quizzes_analyzed": len(completed),
    }


# ============================================================================
# Skill gaps
# ============================================================================

def identify_skill_gaps(
    mastery_scores: Iterable,
    user_progress: Optional[Iterable] = None,
    categories=None,
    target_mastery: int = TARGET_MASTERY
) -> List[Dict]:
    """
    Identify categories whose mastery is below target.

    Mastery per category is the average rolling_average of its
    subcategories. Priority: high for a gap over 30, medium over 15, else low.

    Args:
        mastery_scores: MasteryScore records
        user_progress: UserProgress records (adds questions answered)
        categories: {id: name} mapping or Category records
        target_mastery: Mastery considered sufficient

    Returns:
        Gaps sorted worst first; categories at or above target are omitted
    """
    names = _category_names(categories)
    progress_by_category = {p.category_id: p for p in (user_progress or [])}

    mastery_by_category = defaultdict(list)
    for mastery in mastery_scores or []:
        mastery_by_category[mastery.category_id].append(mastery.rolling_average or 0)

    gaps = []
    for category_id, values in mastery_by_category.items():
        current = _mean(values)
        gap = round(max(0.0, target_mastery - current), 1)
        if gap <= 0:
            continue

        if gap > SKILL_GAP_HIGH_THRESHOLD:
            priority = Priority.HIGH
        elif gap > SKILL_GAP_MEDIUM_THRESHOLD:
            priority = Priority.MEDIUM
        else:
            priority = Priority.LOW

        progress = progress_by_category.get(category_id)
        gaps.append({
            "category_id": category_id,
            "category_name": names.get(category_id, f"Category {category_id}"),
            "current_mastery": round(current, 1),
            "target_mastery": target_mastery,
            "gap": gap,
            "priority": priority,
            "estimated_study_hours": ceil(gap / MASTERY_POINTS_PER_STUDY_HOUR),
            "questions_answered": progress.questions_completed if progress else 0,
        })

    return sorted(gaps, key=lambda g: (-g["gap"], g["category_id"]))


# ============================================================================
# Burnout risk
# ============================================================================

def _consecutive_study_days(completed: List, today, tz: tzinfo) -> int:
    """
    Unbroken run of study days ending today or yesterday.

    A run whose last day is older than yesterday has already been broken by
    rest, so it counts as 0.
    """
    study_days = sorted({to_local_date(q.completed_at, tz) for q in completed}, reverse=True)
    if not study_days or (today - study_days[0]).days > 1:
        return 0

    count = 0
    expected = study_days[0]
    for day in study_days:
        if day != expected:
            break
        count += 1
        expected -= timedelta(days=1)
    return count


def _burnout_recommendations(
    risk_level: RiskLevel,
    consecutive_days: int,
    performance_decline: bool,
    long_sessions: bool
) -> List[str]:
    recommendations = []

    if risk_level == RiskLevel.HIGH:
        recommendations.append("Take a break! Consider a rest day to avoid burnout.")
    if consecutive_days >= 7:
        recommendations.append(
            f"You've studied {consecutive_days} days in a row. "
            f"Schedule at least one rest day this week."
        )
    if performance_decline:
        recommendations.append(
            "Your recent scores are below your earlier average. "
            "Start with easier topics to rebuild confidence."
        )
    if long_sessions:
        recommendations.append("Try shorter study sessions (20-30 minutes) with frequent breaks.")

    if risk_level == RiskLevel.MEDIUM:
        recommendations.append("Vary your study activities to maintain engagement.")

    if not recommendations:
        recommendations.append("Your study pattern is healthy! Keep maintaining balance.")

    return recommendations


def detect_burnout_risk(
    quizzes: Iterable,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc
) -> Dict:
    """
    Score burnout risk from study streaks, score decline and session length.

    Score components: consecutive days (up to 50, saturating at 21 days),
    performance decline (30) and 10 per stress indicator, capped at 100.
    Risk level is high at >= 70 and medium at >= 40.

    Args:
        quizzes: Quiz records
        now: Reference time (defaults to the current time)
        tz: Zone used to assign quizzes to days

    Returns:
        {"risk_level", "score", "factors": {...}, "recommendations": [...]}
    """
    completed = sorted(
        (q for q in (quizzes or []) if q.completed_at is not None),
        key=lambda q: as_utc(q.completed_at),
        reverse=True
    )

    if len(completed) < MIN_QUIZZES_FOR_ANALYTICS:
        return {
            "risk_level": RiskLevel.LOW,
            "score": 0,
            "factors": {
                "consecutive_days": 0,
                "average_session_duration": 0.0,
                "performance_decline": False,
                "stress_indicators": 0,
            },
            "recommendations": ["Keep up the good work! Maintain a consistent study schedule."],
        }

    today = to_local_date(resolve_now(now), tz)
    consecutive_days = _consecutive_study_days(completed, today, tz)

    scores = [q.score for q in completed if q.score is not None]
    recent = scores[:BURNOUT_RECENT_QUIZZES]
    baseline = scores[BURNOUT_RECENT_QUIZZES:2 * BURNOUT_RECENT_QUIZZES]
    performance_decline = bool(recent and baseline) and (
        _mean(recent) < _mean(baseline) - BURNOUT_DECLINE_THRESHOLD
    )

    session_minutes = [
        seconds / 60 for seconds in
        (_duration_seconds(q) for q in completed[:BURNOUT_RECENT_QUIZZES])
        if seconds > 0
    ]
    average_session = _mean(session_minutes)
    long_sessions = average_session > LONG_SESSION_MINUTES

    stress_indicators = sum([
        consecutive_days > 14,
        performance_decline,
        len(completed) > 50 and consecutive_days > 7,
        long_sessions,
    ])

    score = (
        min(50.0, consecutive_days / BURNOUT_STREAK_SATURATION_DAYS * 50)
        + (30 if performance_decline else 0)
        + stress_indicators * 10
    )
    score = round(_clamp(score))

    if score >= BURNOUT_HIGH_RISK:
        risk_level = RiskLevel.HIGH
    elif score >= BURNOUT_MEDIUM_RISK:
        risk_level = RiskLevel.MEDIUM
    else:
        risk_level = RiskLevel.LOW

    return {
        "risk_level": risk_level,
        "score": score,
        "factors": {
            "consecutive_days": consecutive_days,
            "average_session_duration": round(average_session, 1),
            "performance_decline": performance_decline,
            "stress_indicators": stress_indicators,
        },
        "recommendations": _burnout_recommendations(
            risk_level, consecutive_days, performance_decline, long_sessions
        ),
    }


# ============================================================================
# Peak performance times
# ============================================================================

def _format_hour(hour: int) -> str:
    if hour == 0:
        return "12 AM"
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"


def identify_peak_performance_times(quizzes: Iterable, tz: tzinfo = timezone.utc) -> List[Dict]:
    """
    Average score per hour of day (0-23) of completion, best hours first.

    Returns:
        List of {"hour", "average_score", "quiz_count", "recommendation"};
        only the best hour carries a recommendation. Empty below
        MIN_QUIZZES_FOR_ANALYTICS completed quizzes.
    """
    completed = _completed_quizzes(quizzes)
    if len(completed) < MIN_QUIZZES_FOR_ANALYTICS:
        return []

    by_hour = defaultdict(list)
    for quiz in completed:
        by_hour[to_local(quiz.completed_at, tz).hour].append(quiz.score)

    peaks = sorted(
        (
            {
                "hour": hour,
                "average_score": round(_mean(scores), 1),
                "quiz_count": len(scores),
                "recommendation": "",
            }
            for hour, scores in by_hour.items()
        ),
        key=lambda p: (-p["average_score"], p["hour"])
    )

    best = peaks[0]
    best["recommendation"] = (
        f"Your best performance is around {_format_hour(best['hour'])}. "
        f"Try scheduling important study sessions at this time."
    )
    return peaks


# ============================================================================
# Retention (forgetting curve)
# ============================================================================

def project_retention(days_since_study: float) -> float:
    """
    Projected retention (%) after a number of days.

    R = floor + (100 - floor) * exp(-t / S): 100 at t = 0, strictly
    decreasing, approaching RETENTION_FLOOR from above.
    """
    t = max(0.0, days_since_study)
    return RETENTION_FLOOR + (100 - RETENTION_FLOOR) * exp(-t / RETENTION_MEMORY_STRENGTH_DAYS)


def generate_retention_curve(
    last_study_date: Optional[datetime],
    now: Optional[datetime] = None,
    days: int = RETENTION_CURVE_DAYS
) -> List[Dict]:
    """
    Project retention for each day since the last study session.

    The curve covers day 0 through max(days, days already elapsed).

    Args:
        last_study_date: Most recent quiz completion (None means today)
        now: Reference time
        days: Minimum number of days to project

    Returns:
        List of {"days_since_study", "retention_rate", "review_recommended",
        "is_today"}
    """
    elapsed = 0
    if last_study_date is not None:
        elapsed = max(0, (resolve_now(now) - as_utc(last_study_date)).days)

    curve = []
    for day in range(max(days, elapsed) + 1):
        retention = round(project_retention(day), 1)
        curve.append({
            "days_since_study": day,
            "retention_rate": retention,
            "review_recommended": retention < RETENTION_REVIEW_THRESHOLD,
            "is_today": day == elapsed,
        })
    return curve


def get_retention_status(quizzes: Iterable, now: Optional[datetime] = None) -> Dict:
    """
    Retention projection anchored on the most recent completed quiz.

    Returns:
        {"last_study_date", "days_since_study", "current_retention",
         "review_recommended", "curve"}; curve is empty with no history
    """
    completed = [q for q in (quizzes or []) if q.completed_at is not None]
    if not completed:
        return {
            "last_study_date": None,
            "days_since_study": 0,
            "current_retention": 0.0,
            "review_recommended": False,
            "curve": [],
        }

    last_study = max(as_utc(q.completed_at) for q in completed)
    curve = generate_retention_curve(last_study, now=now)
    today_point = next(p for p in curve if p["is_today"])

    return {
        "last_study_date": last_study.isoformat(),
        "days_since_study": today_point["days_since_study"],
        "current_retention": today_point["retention_rate"],
        "review_recommended": today_point["review_recommended"],
        "curve": curve,
    }


# ============================================================================
# Insights
# ============================================================================

def _insight(
    insight_id: str,
    insight_type: InsightType,
    priority: Priority,
    title: str,
    message: str,
    metric: Optional[str] = None,
    progress: Optional[float] = None,
    action_text: Optional[str] = None,
    action_url: Optional[str] = None
) -> Dict:
    return {
        "id": insight_id,
        "type": insight_type,
        "priority": priority,
        "title": title,
        "message": message,
        "metric": metric,
        "progress": progress,
        "action_text": action_text,
        "action_url": action_url,
    }


def generate_insights(
    quizzes: Iterable,
    mastery_scores: Optional[Iterable] = None,
    user_progress: Optional[Iterable] = None,
    categories=None,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
    limit: int = MAX_INSIGHTS
) -> List[Dict]:
    """
    Turn the analytics results into a ranked list of insights.

    Ranking is by priority (high, medium, low) and then by generation order,
    so identical inputs always give the same list.

    Returns:
        At most `limit` insight dictionaries
    """
    quizzes = list(quizzes or [])
    mastery_scores = list(mastery_scores or [])
    completed = _completed_quizzes(quizzes)

    if len(completed) < MIN_QUIZZES_FOR_ANALYTICS:
        remaining = MIN_QUIZZES_FOR_ANALYTICS - len(completed)
        return [_insight(
            "unlock-analytics",
            InsightType.RECOMMENDATION,
            Priority.HIGH,
            "Unlock Your Analytics",
            f"Complete {remaining} more quiz{'zes' if remaining != 1 else ''} "
            f"to see trends, forecasts and readiness.",
            progress=round(len(completed) / MIN_QUIZZES_FOR_ANALYTICS * 100, 1),
            action_text="Start Quiz",
            action_url="/app/dashboard",
        )][:limit]

    insights = []

    readiness = predict_exam_readiness(completed, mastery_scores)
    if readiness["score"] >= PASSING_SCORE:
        insights.append(_insight(
            "exam-ready", InsightType.ACHIEVEMENT, Priority.HIGH,
            "Exam Ready!",
            f"Your predicted exam score is {readiness['score']}% with "
            f"{readiness['confidence']}% confidence. You're well-prepared!",
            metric=f"{readiness['estimated_pass_probability']}% pass probability",
            progress=readiness["score"],
            action_text="Take Practice Test",
            action_url="/app/practice-tests",
        ))
    elif readiness["score"] >= 70:
        insights.append(_insight(
            "almost-ready", InsightType.RECOMMENDATION, Priority.HIGH,
            "Almost There!", readiness["recommendation"],
            metric=f"Current: {readiness['score']}% | Target: {PASSING_SCORE}%",
            progress=readiness["score"],
            action_text="Focus Study",
            action_url="/app/dashboard",
        ))
    else:
        insights.append(_insight(
            "more-practice", InsightType.WEAKNESS, Priority.HIGH,
            "More Practice Needed", readiness["recommendation"],
            metric=f"Current: {readiness['score']}% | Target: {PASSING_SCORE}%",
            progress=readiness["score"],
            action_text="Start Quiz",
            action_url="/app/dashboard",
        ))

    burnout = detect_burnout_risk(completed, now=now, tz=tz)
    if burnout["risk_level"] == RiskLevel.HIGH:
        insights.append(_insight(
            "burnout-risk", InsightType.WARNING, Priority.HIGH,
            "High Burnout Risk", burnout["recommendations"][0],
            metric=f"Risk Score: {burnout['score']}/100",
        ))
    elif burnout["risk_level"] == RiskLevel.MEDIUM:
        insights.append(_insight(
            "burnout-caution", InsightType.RECOMMENDATION, Priority.MEDIUM,
            "Balance Your Study", burnout["recommendations"][0],
            metric=f"{burnout['factors']['consecutive_days']} consecutive days",
        ))

    forecast = forecast_performance(completed, "7days", tz=tz)
    if forecast["trend"] == Trend.IMPROVING:
        expected_gain = round(forecast["predicted_score"] - readiness["score"])
        insights.append(_insight(
            "improving-trend", InsightType.STRENGTH, Priority.MEDIUM,
            "Great Progress!",
            f"Your scores are trending upward. Predicted score in 7 days: "
            f"{round(forecast['predicted_score'])}%",
            metric=f"{expected_gain:+d} points expected",
        ))
    elif forecast["trend"] == Trend.DECLINING:
        insights.append(_insight(
            "declining-trend", InsightType.WEAKNESS, Priority.HIGH,
            "Performance Dip",
            "Your recent scores show a decline. Review fundamentals and take breaks.",
            metric="Trend: Declining",
            action_text="Review Topics",
            action_url="/app/study-notes",
        ))

    skill_gaps = identify_skill_gaps(mastery_scores, user_progress, categories)
    if skill_gaps and skill_gaps[0]["priority"] == Priority.HIGH:
        worst = skill_gaps[0]
        insights.append(_insight(
            "skill-gap", InsightType.RECOMMENDATION, Priority.HIGH,
            "Focus Area Identified",
            f"{worst['category_name']} needs attention. "
            f"Current mastery: {round(worst['current_mastery'])}%",
            metric=f"{worst['estimated_study_hours']} hours of study recommended",
            progress=worst["current_mastery"],
            action_text="Practice Category",
            action_url="/app/dashboard",
        ))

    names = _category_names(categories)
    strong = sorted(
        (m for m in mastery_scores if (m.rolling_average or 0) >= TARGET_MASTERY),
        key=lambda m: (-m.rolling_average, m.category_id)
    )
    if strong:
        best = strong[0]
        name = names.get(best.category_id, f"Category {best.category_id}")
        insights.append(_insight(
            "category-strength", InsightType.STRENGTH, Priority.LOW,
            "Strong Area",
            f"You've mastered {name} at {best.rolling_average}%.",
            progress=best.rolling_average,
        ))

    efficiency = calculate_study_efficiency(completed, now=now, tz=tz)
    if efficiency["efficiency_score"] >= 80:
        insights.append(_insight(
            "efficient-study", InsightType.STRENGTH, Priority.LOW,
            "Efficient Learner",
            f"Your study efficiency is excellent at {round(efficiency['efficiency_score'])}%. Keep it up!",
            metric=f"{round(efficiency['points_per_hour'])} points per hour",
        ))

    insights.sort(key=lambda i: PRIORITY_RANK[i["priority"]])
    return insights[:limit]


# ============================================================================
# Full report
# ============================================================================

def build_analytics_report(
    quizzes: Iterable,
    mastery_scores: Optional[Iterable] = None,
    user_progress: Optional[Iterable] = None,
    categories=None,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc
) -> Dict:
    """
    Compute every analytics view for one user in a single pass.

    Args:
        quizzes: Quiz records
        mastery_scores: MasteryScore records
        user_progress: UserProgress records
        categories: {id: name} mapping or Category records
        now: Reference time
        tz: Zone used for day and hour bucketing

    Returns:
        Dictionary with one key per analytics view plus the weekly XP chart
    """
    quizzes = list(quizzes or [])
    mastery_scores = list(mastery_scores or [])
    user_progress = list(user_progress or [])
    now = resolve_now(now)

    completed_count = len(_completed_quizzes(quizzes))
    if completed_count < MIN_QUIZZES_FOR_ANALYTICS:
        logger.debug(f"Analytics requested with {completed_count} completed quizzes; results degraded")

    daily_xp = calculate_daily_experience(quizzes, today=to_local_date(now, tz), tz=tz)

    return {
        "generated_at": now.isoformat(),
        "completed_quizzes": completed_count,
        "has_sufficient_data": completed_count >= MIN_QUIZZES_FOR_ANALYTICS,
        "learning_curve": calculate_learning_curve(quizzes, tz=tz),
        "learning_trend": calculate_learning_trend(quizzes, tz=tz),
        "exam_readiness": predict_exam_readiness(quizzes, mastery_scores),
        "forecasts": forecast_all_periods(quizzes, tz=tz),
        "study_efficiency": calculate_study_efficiency(quizzes, now=now, tz=tz),
        "skill_gaps": identify_skill_gaps(mastery_scores, user_progress, categories),
        "burnout_risk": detect_burnout_risk(quizzes, now=now, tz=tz),
        "peak_performance_times": identify_peak_performance_times(quizzes, tz=tz),
        "retention": get_retention_status(quizzes, now=now),
        "insights": generate_insights(
            quizzes, mastery_scores, user_progress, categories, now=now, tz=tz
        ),
        "daily_experience": {
            "points": daily_xp,
            "percentages": daily_experience_percentages(daily_xp),
        },
    }
