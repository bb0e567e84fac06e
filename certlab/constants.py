"""Application-wide constants and configuration values.

This module centralizes the point tariff, level curve and analytics tuning
values used throughout the application, making them easier to maintain and
adjust.
"""

# Points Tariff
QUIZ_COMPLETION = 10
"""Base points for completing any quiz."""

CORRECT_ANSWER = 5
"""Points per correctly answered question."""

PASSING_BONUS = 25
"""Bonus points for a passing quiz."""

PERFECT_SCORE_BONUS = 50
"""Bonus points for a score of exactly 100."""

PASSING_SCORE = 85
"""Canonical passing threshold (percentage)."""

# Leveling
POINTS_PER_LEVEL = 100
"""Level n takes n * POINTS_PER_LEVEL points to complete."""

# Analytics Configuration
MIN_QUIZZES_FOR_ANALYTICS = 3
"""Completed quizzes required before analytics are considered meaningful."""

TARGET_MASTERY = 85
"""Mastery (0-100) a category must reach to stop counting as a skill gap."""

MOVING_AVERAGE_WINDOW = 7
"""Learning-curve moving average spans this many days with data."""

READINESS_RECENT_QUIZZES = 10
"""Number of most recent quizzes weighted into the readiness score."""

READINESS_RECENT_WEIGHT = 0.7
"""Share of the readiness score taken from recent quiz performance."""

READINESS_FULL_CONFIDENCE_QUIZZES = 20
"""Quiz count at which sample-size confidence reaches 100%."""

READINESS_BASE_MARGIN = 10.0
"""Half-width added to the readiness interval before scaling by 1/sqrt(n)."""

MIN_SCORE_SPREAD = 5.0
"""Floor for the score standard deviation used in probability and forecast bands."""

TREND_DEADBAND = 0.5
"""Slopes within +/- this many points per day are reported as stable."""

FORECAST_PERIODS = {"7days": 7, "30days": 30, "90days": 90}
"""Supported forecast horizons mapped to their length in days."""

STUDY_MINUTES_PER_POINT = 30
"""Daily study minutes recommended per point of gap, spread over the horizon."""

MIN_DAILY_STUDY_MINUTES = 15
MAX_DAILY_STUDY_MINUTES = 120

LEARNING_VELOCITY_WINDOW_DAYS = 14
"""Trailing window (calendar days) for the learning velocity slope."""

OPTIMAL_SECONDS_PER_QUESTION = 60
"""Pace that earns a full speed score in the efficiency blend."""

EFFICIENCY_ACCURACY_WEIGHT = 0.7
"""Accuracy share of the efficiency score (pace gets the remainder)."""

DEFAULT_STUDY_SESSION_MINUTES = 45
MIN_STUDY_SESSION_MINUTES = 20
MAX_STUDY_SESSION_MINUTES = 90

SKILL_GAP_HIGH_THRESHOLD = 30
SKILL_GAP_MEDIUM_THRESHOLD = 15

MASTERY_POINTS_PER_STUDY_HOUR = 5
"""Mastery points a category is expected to gain per hour of study."""

# Burnout Detection
BURNOUT_RECENT_QUIZZES = 5
"""Quizzes in the recent window compared against the earlier baseline."""

BURNOUT_DECLINE_THRESHOLD = 5
"""Recent average must fall this many points below baseline to count as a decline."""

BURNOUT_STREAK_SATURATION_DAYS = 21
"""Consecutive study days at which the streak component maxes out."""

BURNOUT_HIGH_RISK = 70
BURNOUT_MEDIUM_RISK = 40

LONG_SESSION_MINUTES = 90
"""Average session length above which long sessions count as a stress indicator."""

# Retention (forgetting curve)
RETENTION_MEMORY_STRENGTH_DAYS = 5.0
"""Decay constant S in R = floor + (100 - floor) * exp(-t / S)."""

RETENTION_FLOOR = 20.0
"""Long-term retention the curve approaches but never crosses."""

RETENTION_REVIEW_THRESHOLD = 50.0
"""Projected retention below which a review is recommended."""

RETENTION_CURVE_DAYS = 30
"""Minimum number of days projected by the retention curve."""

# Insights
MAX_INSIGHTS = 5
"""Insights returned by generate_insights unless the caller asks for fewer."""

# Rate Limiting
QUIZ_START_RATE_LIMIT = "10/minute"
"""Maximum number of quiz starts allowed per minute per client."""

QUIZ_COMPLETION_RATE_LIMIT = "30/minute"
"""Maximum number of quiz completions allowed per minute per client."""

ANALYTICS_RATE_LIMIT = "30/minute"
"""Maximum number of analytics requests allowed per minute per client."""

# Request identity
USER_ID_HEADER = "X-User-Id"
TENANT_ID_HEADER = "X-Tenant-Id"
