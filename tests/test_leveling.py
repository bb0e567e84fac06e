"""
Unit tests for level calculation from points.

Tests cover:
1. calculate_points_for_level() thresholds
2. calculate_level_from_points() inverse law and boundaries
3. get_level_progress() progress numbers
4. summarize_game_stats() derived fields
5. UserGameStats.level derived property
"""
import pytest
from certlab.db.models import UserGameStats
from certlab.services.leveling import (
    calculate_points_for_level,
    calculate_level_from_points,
    get_level_progress,
    summarize_game_stats,
)


class TestPointsForLevel:
    """Test calculate_points_for_level function."""

    @pytest.mark.parametrize("level,threshold", [
        (1, 0), (2, 100), (3, 300), (4, 600), (5, 1000), (6, 1500),
    ])
    def test_triangular_thresholds(self, level, threshold):
        """Level L should begin at 100 * (L - 1) * L / 2 points."""
        assert calculate_points_for_level(level) == threshold

    def test_level_below_one_treated_as_one(self):
        """Levels below 1 should map to the level 1 threshold."""
        assert calculate_points_for_level(0) == 0
        assert calculate_points_for_level(-3) == 0


class TestLevelFromPoints:
    """Test calculate_level_from_points function."""

    def test_zero_points_is_level_one(self):
        """A new user should be level 1."""
        assert calculate_level_from_points(0) == 1

    def test_boundaries(self):
        """Level should change exactly at each threshold."""
        assert calculate_level_from_points(99) == 1
        assert calculate_level_from_points(100) == 2
        assert calculate_level_from_points(299) == 2
        assert calculate_level_from_points(300) == 3
        assert calculate_level_from_points(599) == 3
        assert calculate_level_from_points(600) == 4

    def test_inverse_law(self):
        """threshold(L) <= p < threshold(L + 1) for every point total."""
        for points in range(0, 20000, 7):
            level = calculate_level_from_points(points)
            assert calculate_points_for_level(level) <= points < calculate_points_for_level(level + 1)

    def test_exact_for_large_totals(self):
        """Integer arithmetic should stay exact at large thresholds."""
        assert calculate_level_from_points(505000) == 101
        assert calculate_level_from_points(504999) == 100

    def test_monotonic(self):
        """Adding points should never lower the level."""
        levels = [calculate_level_from_points(p) for p in range(0, 5000, 13)]
        assert levels == sorted(levels)

    def test_negative_and_missing_points(self):
        """Negative or missing totals should count as 0 points."""
        assert calculate_level_from_points(-50) == 1
        assert calculate_level_from_points(None) == 1


class TestGetLevelProgress:
    """Test get_level_progress function."""

    def test_mid_level(self):
        """650 points should be level 4 with 50 of 400 points done."""
        progress = get_level_progress(650)

        assert progress["level"] == 4
        assert progress["current_level_start_points"] == 600
        assert progress["next_level_points"] == 1000
        assert progress["points_in_current_level"] == 50
        assert progress["points_needed_for_level"] == 400
        assert progress["points_to_next_level"] == 350
        assert progress["progress_percentage"] == 12.5

    @pytest.mark.parametrize("points,percentage", [
        (100, 0.0), (200, 50.0), (299, 99.5),
    ])
    def test_progress_percentage(self, points, percentage):
        """Progress should be measured against the points the level requires."""
        assert get_level_progress(points)["progress_percentage"] == percentage

    def test_progress_in_range(self):
        """Progress should always be within [0, 100)."""
        for points in range(0, 3000, 11):
            progress = get_level_progress(points)
            assert 0 <= progress["progress_percentage"] < 100
            assert 0 <= progress["points_in_current_level"] < progress["points_needed_for_level"]

    def test_new_user(self):
        """Zero points should be level 1 with 100 points to go."""
        progress = get_level_progress(0)

        assert progress["level"] == 1
        assert progress["points_to_next_level"] == 100
        assert progress["progress_percentage"] == 0.0

    def test_negative_points_clamped(self):
        """Negative totals should render as a fresh level 1."""
        progress = get_level_progress(-20)

        assert progress["total_points"] == 0
        assert progress["level"] == 1


class TestSummarizeGameStats:
    """Test summarize_game_stats function."""

    def test_stored_level_ignored(self):
        """A stale stored level should never reach the output."""
        summary = summarize_game_stats(650, stored_level=9)

        assert summary["level"] == 4
        assert summary["next_level_points"] == 1000

    def test_counters_included(self):
        """Streak and badge counters should be passed through."""
        summary = summarize_game_stats(120, current_streak=3, longest_streak=5, total_badges_earned=2)

        assert summary["current_streak"] == 3
        assert summary["longest_streak"] == 5
        assert summary["total_badges_earned"] == 2

    def test_longest_streak_never_below_current(self):
        """Longest streak should be at least the current streak."""
        summary = summarize_game_stats(0, current_streak=4, longest_streak=2)
        assert summary["longest_streak"] == 4

    def test_missing_counters(self):
        """None counters should be reported as 0."""
        summary = summarize_game_stats(None, None, None, None)

        assert summary["level"] == 1
        assert summary["current_streak"] == 0
        assert summary["total_badges_earned"] == 0


class TestGameStatsModel:
    """Test the derived level on UserGameStats."""

    def test_level_follows_points(self):
        """Level should be recomputed from total_points on every read."""
        stats = UserGameStats(user_id="u", tenant_id=1, total_points=250)
        assert stats.level == 2
        assert stats.next_level_points == 300

        stats.total_points = 1000
        assert stats.level == 5
        assert stats.next_level_points == 1500
