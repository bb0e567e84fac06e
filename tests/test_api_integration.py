"""Integration tests for API endpoints."""
from datetime import datetime, timedelta
from certlab.db.models import Quiz

HEADERS = {"X-User-Id": "user-1"}


def start_quiz(client, question_count=10, headers=HEADERS, **extra):
    response = client.post(
        "/api/quiz/start",
        json={"question_count": question_count, **extra},
        headers=headers
    )
    assert response.status_code == 200
    return response.json()["quiz_id"]


def complete_quiz(client, quiz_id, correct_answers, headers=HEADERS):
    return client.post(
        f"/api/quiz/{quiz_id}/complete",
        json={"correct_answers": correct_answers},
        headers=headers
    )


class TestQuizFlow:
    """Integration tests for the quiz lifecycle."""

    def test_start_quiz(self, test_client):
        """Starting a quiz should return the stored quiz settings."""
        response = test_client.post(
            "/api/quiz/start",
            json={"question_count": 25, "category_ids": [3, 1, 3], "mode": "adaptive", "title": "Domain 1"},
            headers=HEADERS
        )

        assert response.status_code == 200
        data = response.json()
        assert "quiz_id" in data
        assert data["question_count"] == 25
        assert data["category_ids"] == [1, 3]
        assert data["mode"] == "adaptive"
        assert data["title"] == "Domain 1"

    def test_complete_quiz_awards_points(self, test_client):
        """Completing a quiz should score it and award tariff points."""
        quiz_id = start_quiz(test_client)

        response = complete_quiz(test_client, quiz_id, 9)

        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 90
        assert data["is_passing"] is True
        assert data["points_earned"] == 80
        assert data["level_up"] is False
        assert data["current_streak"] == 1
        assert data["level_progress"]["level"] == 1
        assert data["level_progress"]["points_in_current_level"] == 80
        assert {b["name"] for b in data["new_badges"]} == {"First Steps", "Passing Grade"}

    def test_quiz_points_endpoint(self, test_client):
        """Points should be 0 in progress and the tariff once completed."""
        quiz_id = start_quiz(test_client)

        before = test_client.get(f"/api/quiz/{quiz_id}/points", headers=HEADERS).json()
        complete_quiz(test_client, quiz_id, 10)
        after = test_client.get(f"/api/quiz/{quiz_id}/points", headers=HEADERS).json()

        assert before == {"quiz_id": quiz_id, "completed": False, "points": 0}
        assert after == {"quiz_id": quiz_id, "completed": True, "points": 135}

    def test_level_up_across_quizzes(self, test_client):
        """Enough points should raise the level reported by the completion."""
        first = complete_quiz(test_client, start_quiz(test_client), 10).json()
        second = complete_quiz(test_client, start_quiz(test_client), 10).json()

        assert first["level_up"] is True  # 135 points
        assert first["level_progress"]["level"] == 2
        assert second["level_up"] is False  # 270 points
        assert second["level_progress"]["level"] == 2
        assert second["level_progress"]["points_to_next_level"] == 30


class TestUserEndpoints:
    """Integration tests for user stats and badges."""

    def test_stats_for_new_user(self, test_client):
        """A user without activity should get level 1 and zero counters."""
        response = test_client.get("/api/user/stats", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["level"] == 1
        assert data["total_points"] == 0
        assert data["current_streak"] == 0
        assert data["completed_quizzes"] == 0
        assert data["last_activity_date"] is None

    def test_stats_after_quiz(self, test_client):
        """Stats should reflect points, streak and badges after a quiz."""
        complete_quiz(test_client, start_quiz(test_client), 9)

        data = test_client.get("/api/user/stats", headers=HEADERS).json()

        assert data["total_points"] == 80
        assert data["level"] == 1
        assert data["next_level_points"] == 100
        assert data["progress_percentage"] == 80.0
        assert data["current_streak"] == 1
        assert data["longest_streak"] == 1
        assert data["total_badges_earned"] == 2
        assert data["completed_quizzes"] == 1

    def test_badges_listed_earned_first(self, test_client):
        """Earned badges should be listed before unearned ones."""
        complete_quiz(test_client, start_quiz(test_client), 9)

        data = test_client.get("/api/user/badges", headers=HEADERS).json()

        assert data["earned_count"] == 2
        assert [b["earned"] for b in data["badges"][:3]] == [True, True, False]
        assert len(data["badges"]) == 9


class TestAnalyticsEndpoints:
    """Integration tests for analytics endpoints."""

    def test_report_for_new_user(self, test_client):
        """A new user should get a neutral report with an unlock insight."""
        response = test_client.get("/api/analytics", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["has_sufficient_data"] is False
        assert data["completed_quizzes"] == 0
        assert data["insights"][0]["id"] == "unlock-analytics"

    def test_report_reflects_new_quizzes(self, test_client):
        """Completing a quiz should be visible in the next report."""
        test_client.get("/api/analytics", headers=HEADERS)
        for correct in (6, 7, 8):
            complete_quiz(test_client, start_quiz(test_client), correct)

        data = test_client.get("/api/analytics", headers=HEADERS).json()

        assert data["completed_quizzes"] == 3
        assert data["has_sufficient_data"] is True
        assert data["exam_readiness"]["quizzes_analyzed"] == 3
        assert len(data["peak_performance_times"]) >= 1

    def test_report_memoized(self, test_client):
        """Unchanged inputs should return the cached report."""
        complete_quiz(test_client, start_quiz(test_client), 6)

        first = test_client.get("/api/analytics", headers=HEADERS).json()
        second = test_client.get("/api/analytics", headers=HEADERS).json()

        assert first["generated_at"] == second["generated_at"]

    def test_report_uses_stored_history(self, test_client):
        """Quizzes stored directly should feed the learning curve."""
        db = test_client.session_factory()
        now = datetime.utcnow()
        for days_ago, score in ((2, 60), (1, 70), (0, 80)):
            db.add(Quiz(
                user_id="user-1", tenant_id=1, question_count=10, total_questions=10,
                correct_answers=score // 10, score=score, is_passing=False,
                started_at=now - timedelta(days=days_ago, minutes=20),
                completed_at=now - timedelta(days=days_ago),
            ))
        db.commit()
        db.close()

        data = test_client.get("/api/analytics", headers=HEADERS).json()

        assert [p["score"] for p in data["learning_curve"]] == [60.0, 70.0, 80.0]
        assert data["learning_trend"]["trend"] == "improving"
        assert data["study_efficiency"]["average_time_per_question"] == 120.0

    def test_forecast(self, test_client):
        """A single forecast should be available per horizon."""
        response = test_client.get("/api/analytics/forecast/30days", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "30days"
        assert data["days"] == 30

    def test_retention(self, test_client):
        """Retention should start at 100% right after a quiz."""
        complete_quiz(test_client, start_quiz(test_client), 6)

        data = test_client.get("/api/analytics/retention", headers=HEADERS).json()

        assert data["days_since_study"] == 0
        assert data["current_retention"] == 100.0
        assert len(data["curve"]) == 31


class TestHealthEndpoints:
    """Tests for health and readiness probes."""

    def test_health(self, test_client):
        """Health check should report a connected database."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"

    def test_readiness(self, test_client):
        """Readiness check should report ready."""
        response = test_client.get("/readiness")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
