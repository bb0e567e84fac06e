"""Level calculation from accumulated points.

Level 1 starts at 0 points and level n takes n * 100 points to complete, so
level L begins at 100 * (L - 1) * L / 2 points:

    level:      1    2    3    4     5
    threshold:  0  100  300  600  1000
"""
import logging
from math import isqrt
from typing import Dict, Optional
from certlab.constants import POINTS_PER_LEVEL

logger = logging.getLogger(__name__)


def _normalize_points(total_points) -> int:
    """Missing, negative or fractional totals collapse to a non-negative int."""
    if total_points is None:
        return 0
    return max(0, int(total_points))


def calculate_points_for_level(level: int) -> int:
    """
    Get the cumulative point threshold at which a level begins.

    Args:
        level: Level number (values below 1 are treated as 1)

    Returns:
        Points needed to reach the start of the level
    """
    level = max(1, int(level))
    return POINTS_PER_LEVEL * (level - 1) * level // 2


def calculate_level_from_points(total_points: Optional[int]) -> int:
    """
    Get the level for a point total.

    Returns the unique L >= 1 with threshold(L) <= points < threshold(L + 1).
    threshold(L) <= p reduces to L * (L - 1) <= p // 50, which has the exact
    integer solution L = (1 + isqrt(4m + 1)) // 2 for m = p // 50.

    Args:
        total_points: Accumulated points (None or negative counts as 0)

    Returns:
        Level number, always >= 1
    """
    points = _normalize_points(total_points)
    m = points // (POINTS_PER_LEVEL // 2)
    return (1 + isqrt(4 * m + 1)) // 2


def get_level_progress(total_points: Optional[int]) -> Dict:
    """
    Get level and progress toward the next level for a point total.

    Args:
        total_points: Accumulated points

    Returns:
        Dictionary with level progress:
        {
            "level": 4,
            "total_points": 650,
            "current_level_start_points": 600,
            "next_level_points": 1000,
            "points_in_current_level": 50,
            "points_needed_for_level": 400,
            "points_to_next_level": 350,
            "progress_percentage": 12.5
        }
    """
    points = _normalize_points(total_points)
    level = calculate_level_from_points(points)
    level_start = calculate_points_for_level(level)
    next_level_start = calculate_points_for_level(level + 1)

    points_in_level = points - level_start
    points_needed = level * POINTS_PER_LEVEL

    return {
        "level": level,
        "total_points": points,
        "current_level_start_points": level_start,
        "next_level_points": next_level_start,
        "points_in_current_level": points_in_level,
        "points_needed_for_level": points_needed,
        "points_to_next_level": next_level_start - points,
        "progress_percentage": round(points_in_level / points_needed * 100, 2),
    }


def summarize_game_stats(
    total_points: Optional[int],
    current_streak: Optional[int] = 0,
    longest_streak: Optional[int] = 0,
    total_badges_earned: Optional[int] = 0,
    stored_level: Optional[int] = None,
) -> Dict:
    """
    Build the displayed game stats, deriving level data from total_points.

    A stored level (from an older record or another client) is only
    compared for logging; it never reaches the output.

    Args:
        total_points: Authoritative point total
        current_streak: Current day streak
        longest_streak: Longest day streak
        total_badges_earned: Number of badges earned
        stored_level: Level persisted alongside the points, if any

    Returns:
        Level progress dictionary extended with the streak and badge counters
    """
    progress = get_level_progress(total_points)

    if stored_level is not None and stored_level != progress["level"]:
        logger.debug(
            f"Stored level {stored_level} disagrees with {progress['total_points']} points; "
            f"using computed level {progress['level']}"
        )

    progress.update({
        "current_streak": current_streak or 0,
        "longest_streak": max(longest_streak or 0, current_streak or 0),
        "total_badges_earned": total_badges_earned or 0,
    })
    return progress
