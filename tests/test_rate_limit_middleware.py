"""Tests for rate limit middleware and client key extraction."""

import hashlib
from unittest.mock import Mock

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from enhancer.app.core.config import Settings
from enhancer.app.middleware.rate_limit import (
    InvalidSessionIdError,
    RateLimitMiddleware,
    create_limiters,
    get_client_key,
    get_session_key,
)


def _hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:32]


def _build_app(api_limiter, user_limiter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware, api_limiter=api_limiter, user_limiter=user_limiter
    )

    @app.post("/api/enhance")
    async def enhance():
        return {"ok": True}

    @app.get("/api/enhance")
    async def read():
        return {"ok": True}

    @app.post("/api/other")
    async def other():
        return {"ok": True}

    return app


class TestClientKeys:
    """Tests for identifier extraction."""

    def test_client_key_from_ip(self):
        request = Mock()
        request.headers = {}
        request.client.host = "192.168.1.1"

        key = get_client_key(request)
        assert key == f"ratelimit:ip:{_hash('192.168.1.1')}"
        assert "192.168.1.1" not in key

    def test_client_key_from_x_forwarded_for(self):
        request = Mock()
        request.headers = {"X-Forwarded-For": "10.0.0.1, 192.168.1.1"}
        request.client.host = "127.0.0.1"

        assert get_client_key(request) == f"ratelimit:ip:{_hash('10.0.0.1')}"

    def test_client_key_without_client(self):
        request = Mock()
        request.headers = {}
        request.client = None

        assert get_client_key(request) == f"ratelimit:ip:{_hash('unknown')}"

    def test_session_key_from_header(self):
        request = Mock()
        request.headers = {"X-Session-ID": "session-abc"}
        request.client.host = "127.0.0.1"

        key = get_session_key(request)
        assert key == f"ratelimit:session:{_hash('session-abc')}"
        assert "session-abc" not in key

    def test_session_key_falls_back_to_ip(self):
        request = Mock()
        request.headers = {}
        request.client.host = "127.0.0.1"

        assert get_session_key(request) == get_client_key(request)

    def test_session_key_too_long(self):
        request = Mock()
        request.headers = {"X-Session-ID": "s" * 513}

        with pytest.raises(InvalidSessionIdError):
            get_session_key(request)


class TestCreateLimiters:
    def test_limiters_follow_settings(self, clock):
        settings = Settings(
            api_rate_limit_max_requests=10,
            api_rate_limit_window_ms=60_000,
            user_rate_limit_max_requests=50,
            user_rate_limit_window_ms=3_600_000,
        )
        api_limiter, user_limiter = create_limiters(settings, clock=clock)

        assert (api_limiter.max_requests, api_limiter.window_ms) == (10, 60_000)
        assert (user_limiter.max_requests, user_limiter.window_ms) == (50, 3_600_000)
        assert api_limiter.message == settings.api_rate_limit_message
        assert api_limiter is not user_limiter


class TestRateLimitMiddleware:
    """Tests for enforcement over HTTP."""

    def test_rejects_after_api_limit(self, make_limiter):
        app = _build_app(make_limiter(2, 60_000, message="API busy"), make_limiter(10, 60_000))
        client = TestClient(app)

        assert client.post("/api/enhance").status_code == 200
        assert client.post("/api/enhance").status_code == 200

        resp = client.post("/api/enhance")
        assert resp.status_code == 429
        body = resp.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["message"] == "API busy"
        assert body["retry_after"] == 60
        assert resp.headers["Retry-After"] == "60"
        assert resp.headers["X-RateLimit-Remaining"] == "0"
        assert resp.headers["X-RateLimit-Limit"] == "2"
        assert resp.headers["X-RateLimit-Reset"] == "60000"

    def test_success_carries_rate_limit_headers(self, make_limiter):
        app = _build_app(make_limiter(5, 60_000), make_limiter(3, 60_000))
        client = TestClient(app)

        resp = client.post("/api/enhance")
        assert resp.status_code == 200
        # the tighter of the two limiters is reported
        assert resp.headers["X-RateLimit-Limit"] == "3"
        assert resp.headers["X-RateLimit-Remaining"] == "2"

    def test_unprotected_routes_are_not_limited(self, make_limiter):
        api_limiter = make_limiter(1, 60_000)
        app = _build_app(api_limiter, make_limiter(1, 60_000))
        client = TestClient(app)

        for _ in range(3):
            assert client.get("/api/enhance").status_code == 200
            assert client.post("/api/other").status_code == 200
        assert len(api_limiter) == 0

    def test_sessions_are_limited_independently(self, make_limiter):
        app = _build_app(make_limiter(100, 60_000), make_limiter(1, 60_000, message="Hourly"))
        client = TestClient(app)

        assert client.post("/api/enhance", headers={"X-Session-ID": "a"}).status_code == 200
        resp = client.post("/api/enhance", headers={"X-Session-ID": "a"})
        assert resp.status_code == 429
        assert resp.json()["message"] == "Hourly"

        assert client.post("/api/enhance", headers={"X-Session-ID": "b"}).status_code == 200

    def test_api_rejection_does_not_consume_session_slot(self, make_limiter):
        user_limiter = make_limiter(5, 60_000)
        app = _build_app(make_limiter(1, 60_000), user_limiter)
        client = TestClient(app)
        headers = {"X-Session-ID": "s1"}

        client.post("/api/enhance", headers=headers)
        assert client.post("/api/enhance", headers=headers).status_code == 429

        session_key = f"ratelimit:session:{_hash('s1')}"
        assert user_limiter.get_remaining_requests(session_key) == 4

    def test_failed_request_keeps_slot_consumed(self, make_limiter):
        api_limiter = make_limiter(3, 60_000)
        app = FastAPI()
        app.add_middleware(
            RateLimitMiddleware, api_limiter=api_limiter, user_limiter=make_limiter(3, 60_000)
        )

        @app.post("/api/enhance")
        async def fail():
            raise HTTPException(status_code=502, detail="upstream down")

        client = TestClient(app)
        assert client.post("/api/enhance").status_code == 502
        assert api_limiter.get_remaining_requests(f"ratelimit:ip:{_hash('testclient')}") == 2

    def test_window_slide_readmits(self, make_limiter, clock):
        app = _build_app(make_limiter(1, 1000), make_limiter(10, 1000))
        client = TestClient(app)

        assert client.post("/api/enhance").status_code == 200
        assert client.post("/api/enhance").status_code == 429
        clock.advance(1000)
        assert client.post("/api/enhance").status_code == 200

    def test_overlong_session_id_rejected(self, make_limiter):
        api_limiter = make_limiter(5, 60_000)
        app = _build_app(api_limiter, make_limiter(5, 60_000))
        client = TestClient(app)

        resp = client.post("/api/enhance", headers={"X-Session-ID": "x" * 600})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_session"
        assert len(api_limiter) == 0
