"""
Tests for request throttling: one brute-force budget shared by creation,
verification and login, and one general budget shared by every route.
"""

import time

from lockdrop import main, ratelimit
from lockdrop.ratelimit import GENERAL_RATE_LIMIT, RATE_LIMIT_WINDOW, SENSITIVE_RATE_LIMIT

from conftest import create_drop


def _assert_throttled(response):
    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "rate_limited"
    assert body["detail"] == "Too many attempts. Please try again later."
    assert 1 <= body["retry_after"] <= RATE_LIMIT_WINDOW
    assert response.headers["Retry-After"] == str(body["retry_after"])
    return body


def _bad_login(client):
    return client.post("/api/admin/login", json={"username": "admin", "password": "guess"})


class TestSensitiveLimit:

    def test_create_is_throttled(self, client):
        for _ in range(SENSITIVE_RATE_LIMIT):
            assert create_drop(client).status_code == 201
        _assert_throttled(create_drop(client))

    def test_verify_is_throttled_even_with_wrong_passwords(self, client):
        short_id = create_drop(client).json()["shortId"]
        for _ in range(SENSITIVE_RATE_LIMIT - 1):
            assert client.post(f"/api/{short_id}/verify", json={"password": "nope"}).status_code == 401
        # The correct password is refused too once the window is spent
        _assert_throttled(client.post(f"/api/{short_id}/verify", json={"password": "abcd"}))

    def test_login_is_throttled(self, client):
        for _ in range(SENSITIVE_RATE_LIMIT):
            assert _bad_login(client).status_code == 401
        _assert_throttled(_bad_login(client))

    def test_budget_is_shared_across_sensitive_routes(self, client):
        short_id = create_drop(client).json()["shortId"]
        for _ in range(5):
            assert client.post(f"/api/{short_id}/verify", json={"password": "nope"}).status_code == 401
        for _ in range(SENSITIVE_RATE_LIMIT - 6):
            assert _bad_login(client).status_code == 401

        _assert_throttled(create_drop(client))
        _assert_throttled(client.post(f"/api/{short_id}/verify", json={"password": "abcd"}))
        _assert_throttled(_bad_login(client))

    def test_other_routes_are_not_blocked_by_sensitive_budget(self, client):
        for _ in range(SENSITIVE_RATE_LIMIT):
            _bad_login(client)
        assert client.get("/api/search", params={"serial": 1001}).status_code == 404


class TestGeneralLimit:

    def test_budget_is_shared_across_routes(self, client):
        for _ in range(GENERAL_RATE_LIMIT):
            assert client.get("/api/search", params={"serial": 1001}).status_code == 404
        _assert_throttled(client.get("/api/search", params={"serial": 1001}))
        _assert_throttled(client.get("/Zz9_-Zz9"))
        _assert_throttled(client.get("/api/Zz9_-Zz9/download", params={"token": "x"}))

    def test_sensitive_requests_count_toward_general(self, client):
        for _ in range(SENSITIVE_RATE_LIMIT):
            _bad_login(client)
        for _ in range(GENERAL_RATE_LIMIT - SENSITIVE_RATE_LIMIT):
            assert client.get("/Zz9_-Zz9").status_code == 404
        _assert_throttled(client.get("/api/search", params={"serial": 1001}))

    def test_rejected_admin_tokens_are_counted(self, client):
        for _ in range(GENERAL_RATE_LIMIT):
            assert client.get("/api/admin/urls", headers={"Authorization": "Bearer nope"}).status_code == 401
        _assert_throttled(client.get("/api/admin/urls", headers={"Authorization": "Bearer nope"}))

    def test_health_is_not_limited(self, client):
        for _ in range(GENERAL_RATE_LIMIT + 5):
            assert client.get("/health").status_code == 200


class TestRetryAfter:

    def test_reports_time_left_in_window(self, client, monkeypatch):
        for _ in range(SENSITIVE_RATE_LIMIT):
            _bad_login(client)
        # Pretend most of the window has already gone by
        elapsed = RATE_LIMIT_WINDOW - 30
        monkeypatch.setattr(ratelimit, "_clock", lambda: time.time() + elapsed)

        body = _assert_throttled(_bad_login(client))
        assert body["retry_after"] <= 31

    def test_window_reset_lifts_the_limit(self, client):
        for _ in range(SENSITIVE_RATE_LIMIT):
            _bad_login(client)
        _assert_throttled(_bad_login(client))

        main.app.state.limiter.reset()
        assert _bad_login(client).status_code == 401
