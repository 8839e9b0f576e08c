"""
Tests for the auth attempt endpoints.
"""

import pytest

from core.limits import AttemptLimiter
import core.limits
from tests.conftest import auth_header

JANE = "aaaaaaaa-0000-4000-8000-0000000000aa"


@pytest.fixture
def clock():
    class Clock:
        now = 1_000_000.0

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture(autouse=True)
def limiter(clock, monkeypatch):
    limiter = AttemptLimiter(clock=clock)
    monkeypatch.setattr(core.limits, "_global_limiter", limiter)
    return limiter


def attempt(client, action, email="jane@example.com", **params):
    return client.post(f"/auth/attempts/{action}", json={"email": email}, params=params)


class TestAttempts:

    def test_counts_down(self, client):
        first = attempt(client, "login")
        second = attempt(client, "LOGIN")

        assert first.status_code == 200
        assert first.json()["remaining_attempts"] == 9
        assert second.json()["remaining_attempts"] == 8

    def test_password_reset_limit(self, client):
        for _ in range(3):
            assert attempt(client, "password_reset").status_code == 200

        response = attempt(client, "password_reset")

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) == 3600
        assert response.json()["error"] == "too_many_requests"

    def test_window_expires(self, client, clock):
        for _ in range(3):
            attempt(client, "password_reset")

        clock.now += 3601
        assert attempt(client, "password_reset").status_code == 200

    def test_check_mode_does_not_record(self, client, limiter):
        response = attempt(client, "sign_up", mode="check")

        assert response.json()["remaining_attempts"] == 5
        assert limiter.check("SIGN_UP", "anything").remaining_attempts == 5
        assert attempt(client, "sign_up", mode="check").json()["remaining_attempts"] == 5

    def test_identifiers_are_separate(self, client):
        for _ in range(3):
            attempt(client, "password_reset", email="a@example.com")

        assert attempt(client, "password_reset", email="b@example.com").status_code == 200

    def test_email_is_case_insensitive(self, client):
        for _ in range(3):
            attempt(client, "password_reset", email="Jane@Example.com")

        assert attempt(client, "password_reset", email="jane@example.com").status_code == 429

    def test_without_email_falls_back_to_ip(self, client):
        response = client.post("/auth/attempts/login")
        assert response.status_code == 200

    def test_clear_own_attempts(self, client):
        for _ in range(3):
            attempt(client, "password_reset")

        cleared = client.delete("/auth/attempts/password_reset", headers=auth_header(JANE, email="Jane@Example.com"))

        assert cleared.json() == {"action": "PASSWORD_RESET", "cleared": True}
        assert attempt(client, "password_reset").status_code == 200

    def test_unknown_action(self, client):
        assert attempt(client, "launch").status_code == 400

    def test_invalid_email(self, client):
        assert attempt(client, "login", email="nope").status_code == 400

    def test_invalid_mode(self, client):
        assert attempt(client, "login", mode="peek").status_code == 422

    def test_disabled_limiter_allows_everything(self, client, limiter):
        limiter.enabled = False
        for _ in range(5):
            assert attempt(client, "password_reset").status_code == 200


class TestClearing:
    """Only a signed-in caller can reset a counter, and only their own."""

    def test_anonymous_clear_is_rejected(self, client):
        for _ in range(3):
            attempt(client, "password_reset")

        response = client.request("DELETE", "/auth/attempts/password_reset", json={"email": "jane@example.com"})

        assert response.status_code == 401
        assert attempt(client, "password_reset").status_code == 429

    def test_clear_ignores_other_email(self, client):
        for _ in range(3):
            attempt(client, "password_reset", email="victim@example.com")

        response = client.request(
            "DELETE",
            "/auth/attempts/password_reset",
            json={"email": "victim@example.com"},
            headers=auth_header(JANE, email="jane@example.com"),
        )

        assert response.status_code == 200
        assert attempt(client, "password_reset", email="victim@example.com").status_code == 429

    def test_repeated_guessing_stays_limited(self, client):
        statuses = []
        for _ in range(5):
            for _ in range(5):
                statuses.append(attempt(client, "login", email="victim@example.com").status_code)
            client.request("DELETE", "/auth/attempts/login", json={"email": "victim@example.com"})

        assert statuses.count(200) == 10
        assert 429 in statuses

    def test_session_without_email(self, client):
        response = client.delete("/auth/attempts/login", headers=auth_header(JANE, email=None))
        assert response.status_code == 400
