"""Error scenario tests for edge cases and error paths.

Tests various error conditions including:
- Missing or invalid identity headers
- Non-existent and foreign quizzes
- Double submissions
- Body validation failures
- Rate limiting
"""
import pytest

HEADERS = {"X-User-Id": "user-1"}


def start_quiz(client, headers=HEADERS, question_count=10):
    response = client.post("/api/quiz/start", json={"question_count": question_count}, headers=headers)
    assert response.status_code == 200
    return response.json()["quiz_id"]


class TestIdentityErrors:
    """Test requests without a valid identity."""

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/user/stats"),
        ("get", "/api/user/badges"),
        ("get", "/api/analytics"),
        ("get", "/api/analytics/retention"),
        ("post", "/api/quiz/start"),
    ])
    def test_missing_user_header(self, test_client, method, path):
        """Requests without X-User-Id should be rejected with 401."""
        kwargs = {"json": {"question_count": 10}} if method == "post" else {}
        response = getattr(test_client, method)(path, **kwargs)

        assert response.status_code == 401
        assert response.json()["detail"] == "No user session found"

    def test_blank_user_header(self, test_client):
        """A whitespace-only user ID should count as missing."""
        response = test_client.get("/api/user/stats", headers={"X-User-Id": "   "})
        assert response.status_code == 401

    @pytest.mark.parametrize("tenant", ["abc", "0", "-2"])
    def test_invalid_tenant_header(self, test_client, tenant):
        """Non-numeric or non-positive tenant IDs should be rejected with 400."""
        response = test_client.get("/api/user/stats", headers={**HEADERS, "X-Tenant-Id": tenant})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid tenant ID"


class TestQuizErrors:
    """Test quiz lifecycle error paths."""

    def test_complete_nonexistent_quiz(self, test_client):
        """Completing an unknown quiz should return 404."""
        response = test_client.post("/api/quiz/99999/complete", json={"correct_answers": 1}, headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["detail"] == "Quiz not found"

    def test_complete_other_users_quiz(self, test_client):
        """Another user's quiz should look like it does not exist."""
        quiz_id = start_quiz(test_client)

        response = test_client.post(
            f"/api/quiz/{quiz_id}/complete",
            json={"correct_answers": 1},
            headers={"X-User-Id": "intruder"}
        )

        assert response.status_code == 404

    def test_quiz_hidden_across_tenants(self, test_client):
        """A quiz started in one tenant should not be visible from another."""
        quiz_id = start_quiz(test_client, headers={**HEADERS, "X-Tenant-Id": "2"})

        response = test_client.get(f"/api/quiz/{quiz_id}/points", headers=HEADERS)

        assert response.status_code == 404

    def test_double_completion(self, test_client):
        """A quiz should only be completed once."""
        quiz_id = start_quiz(test_client)

        first = test_client.post(f"/api/quiz/{quiz_id}/complete", json={"correct_answers": 5}, headers=HEADERS)
        second = test_client.post(f"/api/quiz/{quiz_id}/complete", json={"correct_answers": 10}, headers=HEADERS)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["detail"] == "Quiz already completed"

        stats = test_client.get("/api/user/stats", headers=HEADERS).json()
        assert stats["total_points"] == 35  # 10 + 5 * 5, no passing bonus

    def test_too_many_correct_answers(self, test_client):
        """More correct answers than questions should be rejected with 422."""
        quiz_id = start_quiz(test_client, question_count=10)

        response = test_client.post(f"/api/quiz/{quiz_id}/complete", json={"correct_answers": 11}, headers=HEADERS)

        assert response.status_code == 422
        points = test_client.get(f"/api/quiz/{quiz_id}/points", headers=HEADERS).json()
        assert points["completed"] is False

    def test_negative_correct_answers(self, test_client):
        """Negative correct answers should fail validation."""
        quiz_id = start_quiz(test_client)

        response = test_client.post(f"/api/quiz/{quiz_id}/complete", json={"correct_answers": -1}, headers=HEADERS)

        assert response.status_code == 422

    def test_missing_correct_answers(self, test_client):
        """The completion body must include correct_answers."""
        quiz_id = start_quiz(test_client)

        response = test_client.post(f"/api/quiz/{quiz_id}/complete", json={}, headers=HEADERS)

        assert response.status_code == 422

    @pytest.mark.parametrize("body", [
        {"question_count": 0},
        {"question_count": 501},
        {"question_count": 10, "mode": "exam"},
        {"question_count": 10, "title": ""},
        {},
    ])
    def test_invalid_start_body(self, test_client, body):
        """Invalid quiz settings should fail validation."""
        response = test_client.post("/api/quiz/start", json=body, headers=HEADERS)
        assert response.status_code == 422

    def test_non_integer_quiz_id(self, test_client):
        """A non-numeric quiz ID should fail path validation."""
        response = test_client.get("/api/quiz/abc/points", headers=HEADERS)
        assert response.status_code == 422


class TestAnalyticsErrors:
    """Test analytics error paths."""

    def test_unknown_forecast_period(self, test_client):
        """Unsupported forecast horizons should return 404."""
        response = test_client.get("/api/analytics/forecast/1year", headers=HEADERS)

        assert response.status_code == 404
        assert "7days" in response.json()["detail"]


class TestRateLimiting:
    """Test request rate limits."""

    def test_quiz_start_rate_limited(self, test_client):
        """Starting more than 10 quizzes a minute should return 429."""
        for _ in range(10):
            start_quiz(test_client)

        response = test_client.post("/api/quiz/start", json={"question_count": 10}, headers=HEADERS)

        assert response.status_code == 429

    def test_rate_limit_per_user(self, test_client):
        """One user's budget should not affect another user."""
        for _ in range(10):
            start_quiz(test_client)

        response = test_client.post(
            "/api/quiz/start", json={"question_count": 10}, headers={"X-User-Id": "user-2"}
        )

        assert response.status_code == 200

    def test_retention_rate_limited(self, test_client):
        """Retention lookups should share the 30/minute analytics limit."""
        for _ in range(30):
            response = test_client.get("/api/analytics/retention", headers=HEADERS)
            assert response.status_code == 200

        response = test_client.get("/api/analytics/retention", headers=HEADERS)

        assert response.status_code == 429
