"""End-to-end tests for the HTTP API."""

from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from enhancer.app.exceptions import CompletionServiceError, CompletionTimeoutError
from enhancer.app.main import create_app


def _enhance(client, payload, session="session-a"):
    return client.post("/api/enhance", json=payload, headers={"X-Session-ID": session})


class TestEnhanceEndpoint:
    """Tests for POST /api/enhance."""

    def test_success(self, client, prompt_payload):
        response = _enhance(client, prompt_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["primaryResult"] == (
            'Enhanced prompt: Please enhance this image prompt: "a lighthouse at dusk"'
        )
        assert "structuredJSON" not in data
        assert data["id"]
        assert "X-Request-ID" in response.headers

    def test_json_output_structure(self, client, prompt_payload):
        prompt_payload["outputStructure"] = "Simple JSON"
        data = _enhance(client, prompt_payload).json()

        assert data["structuredJSON"]["source"] == "mock"

    def test_records_history_and_analytics(self, client, prompt_payload):
        item_id = _enhance(client, prompt_payload).json()["id"]

        history = client.get("/api/history").json()
        assert len(history) == 1
        assert history[0]["id"] == item_id
        assert history[0]["input"]["corePromptIdea"] == "a lighthouse at dusk"
        assert history[0]["favorite"] is False

        usage = client.get("/api/analytics").json()
        assert usage["stats"]["promptsGenerated"] == 1
        assert usage["stats"]["mostUsedMode"] == "Image"
        assert usage["events"][0]["properties"] == {
            "mode": "Image",
            "outputStructure": "Descriptive Paragraph",
        }

    def test_validation_error(self, client, prompt_payload):
        prompt_payload["promptMode"] = "Hologram"
        response = _enhance(client, prompt_payload)

        assert response.status_code == 422
        assert response.json() == {
            "error": "validation_error",
            "message": "Invalid prompt mode",
        }

    def test_invalid_json(self, client):
        response = client.post(
            "/api/enhance",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert response.json()["message"] == "Invalid JSON in request body"

    def test_body_not_utf8(self, client):
        response = client.post(
            "/api/enhance",
            content=b'{"corePromptIdea": "\xff\xfe"}',
            headers={"Content-Type": "application/json", "X-Session-ID": "session-a"},
        )

        assert response.status_code == 422
        assert response.json() == {
            "error": "validation_error",
            "message": "Invalid JSON in request body",
        }

    def test_completion_failure_maps_to_502(self, client, provider, prompt_payload):
        provider.complete = AsyncMock(side_effect=CompletionServiceError("Completion service error: HTTP 500"))
        response = _enhance(client, prompt_payload)

        assert response.status_code == 502
        assert response.json()["error"] == "completion_failed"
        assert client.get("/api/history").json() == []

    def test_completion_timeout_maps_to_504(self, client, provider, prompt_payload):
        provider.complete = AsyncMock(side_effect=CompletionTimeoutError("Request timeout - please try again"))
        response = _enhance(client, prompt_payload)

        assert response.status_code == 504
        assert response.json()["error"] == "completion_timeout"

    def test_unexpected_error_hides_details(self, client, provider, prompt_payload):
        provider.complete = AsyncMock(side_effect=RuntimeError("secret detail"))
        response = _enhance(client, prompt_payload)

        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"
        assert "secret detail" not in response.text

    def test_options(self, client):
        data = client.get("/api/options").json()

        assert data["promptModes"] == ["Text", "Image", "Video", "Audio", "Code"]
        assert "Simple JSON" in data["outputStructures"]
        assert "Photorealistic" in data["modifiers"]["style"]


class TestRateLimiting:
    """Tests for rate limiting through the full application."""

    def test_headers_report_tighter_limit(self, client, prompt_payload):
        response = _enhance(client, prompt_payload)

        # user limit is 3 per hour, API limit is 5 per minute
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert response.headers["X-RateLimit-Reset"] == "3600000"

    def test_session_limit(self, client, prompt_payload):
        for _ in range(3):
            assert _enhance(client, prompt_payload).status_code == 200

        response = _enhance(client, prompt_payload)

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["retry_after"] == 3600
        assert response.headers["Retry-After"] == "3600"
        assert response.headers["X-RateLimit-Remaining"] == "0"

        # a different session still has its own allowance
        assert _enhance(client, prompt_payload, session="session-b").status_code == 200

    def test_api_limit_checked_first(self, client, app, prompt_payload):
        sessions = ["s1", "s2", "s3", "s4", "s5"]
        for session in sessions:
            assert _enhance(client, prompt_payload, session=session).status_code == 200

        response = _enhance(client, prompt_payload, session="s6")

        assert response.status_code == 429
        assert response.json()["message"] == app.state.settings.api_rate_limit_message
        assert response.headers["Retry-After"] == "60"
        # the rejected request never reached the session limiter
        assert len(app.state.user_limiter) == 5

    def test_window_slides(self, client, clock, prompt_payload):
        for _ in range(3):
            _enhance(client, prompt_payload)
        assert _enhance(client, prompt_payload).status_code == 429

        clock.advance(3_600_000)

        assert _enhance(client, prompt_payload).status_code == 200

    def test_failed_requests_still_count(self, client, provider, prompt_payload):
        provider.complete = AsyncMock(side_effect=CompletionServiceError("down"))
        _enhance(client, prompt_payload)

        status = client.get("/api/rate-limit", headers={"X-Session-ID": "session-a"}).json()
        assert status["user"]["remaining"] == 2

    def test_read_endpoints_not_limited(self, client):
        for _ in range(10):
            assert client.get("/api/history").status_code == 200

    def test_overlong_session_id(self, client, prompt_payload):
        response = _enhance(client, prompt_payload, session="x" * 600)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_session"


class TestRateLimitStatus:
    """Tests for GET /api/rate-limit."""

    def test_fresh_client(self, client):
        data = client.get("/api/rate-limit", headers={"X-Session-ID": "fresh"}).json()

        assert data["api"] == {"limit": 5, "windowMs": 60_000, "remaining": 5, "resetTime": None}
        assert data["user"] == {"limit": 3, "windowMs": 3_600_000, "remaining": 3, "resetTime": None}

    def test_does_not_consume(self, client, prompt_payload):
        _enhance(client, prompt_payload)
        for _ in range(3):
            data = client.get("/api/rate-limit", headers={"X-Session-ID": "session-a"}).json()

        assert data["api"]["remaining"] == 4
        assert data["user"]["remaining"] == 2
        assert data["user"]["resetTime"] == 3_600_000

    def test_overlong_session_id(self, client):
        response = client.get("/api/rate-limit", headers={"X-Session-ID": "x" * 600})
        assert response.status_code == 400


class TestHistoryEndpoints:
    """Tests for history and favorites."""

    def test_toggle_favorite(self, client, prompt_payload):
        item_id = _enhance(client, prompt_payload).json()["id"]

        response = client.post(f"/api/history/{item_id}/favorite")
        assert response.json() == {"id": item_id, "favorite": True}

        favorites = client.get("/api/history/favorites").json()
        assert [item["id"] for item in favorites] == [item_id]
        assert favorites[0]["favorite"] is True
        assert client.get("/api/analytics").json()["stats"]["favoritePrompts"] == 1

        response = client.post(f"/api/history/{item_id}/favorite")
        assert response.json() == {"id": item_id, "favorite": False}
        assert client.get("/api/history/favorites").json() == []
        assert client.get("/api/analytics").json()["stats"]["favoritePrompts"] == 0

    def test_favorite_unknown_item(self, client):
        response = client.post("/api/history/missing/favorite")

        assert response.status_code == 404
        assert response.json() == {
            "error": "not_found",
            "message": "History item 'missing' not found",
        }

    def test_clear_history(self, client, prompt_payload):
        _enhance(client, prompt_payload)

        assert client.delete("/api/history").status_code == 204
        assert client.get("/api/history").json() == []

    def test_history_is_capped(self, test_settings, provider, store, clock, prompt_payload):
        test_settings.max_history_items = 2
        test_settings.user_rate_limit_max_requests = 10
        client = TestClient(create_app(test_settings, provider=provider, store=store, clock=clock))

        ideas = ["first", "second", "third"]
        for idea in ideas:
            prompt_payload["corePromptIdea"] = idea
            _enhance(client, prompt_payload)

        history = client.get("/api/history").json()
        assert [item["input"]["corePromptIdea"] for item in history] == ["third", "second"]


class TestAnalyticsEndpoints:
    def test_events_limit(self, client, prompt_payload):
        for _ in range(3):
            _enhance(client, prompt_payload)

        data = client.get("/api/analytics", params={"limit": 2}).json()
        assert len(data["events"]) == 2
        assert data["stats"]["promptsGenerated"] == 3

    def test_clear(self, client, prompt_payload):
        _enhance(client, prompt_payload)

        assert client.delete("/api/analytics").status_code == 204
        data = client.get("/api/analytics").json()
        assert data["events"] == []
        assert data["stats"]["promptsGenerated"] == 0


class TestSettingsEndpoints:
    """Tests for /api/settings."""

    def test_defaults(self, client):
        data = client.get("/api/settings").json()

        assert data["theme"] == "system"
        assert data["defaultMode"] == "Text"
        assert data["maxHistoryItems"] == 50

    def test_update_merges(self, client):
        client.put("/api/settings", json={"theme": "dark"})
        response = client.put("/api/settings", json={"apiTimeout": 60})

        assert response.status_code == 200
        assert response.json()["theme"] == "dark"
        assert response.json()["apiTimeout"] == 60
        assert client.get("/api/settings").json()["apiTimeout"] == 60

    @pytest.mark.parametrize(
        "body",
        [{"theme": "neon"}, {"maxHistoryItems": 5}, {"defaultOutputStructure": "YAML"}],
    )
    def test_update_rejects_invalid(self, client, body):
        response = client.put("/api/settings", json=body)

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_settings"
        assert client.get("/api/settings").json()["theme"] == "system"

    def test_update_requires_object(self, client):
        response = client.put("/api/settings", json=["dark"])

        assert response.status_code == 422
        assert response.json() == {
            "error": "invalid_settings",
            "message": "Settings must be an object",
        }

    def test_reset(self, client):
        client.put("/api/settings", json={"theme": "dark"})

        response = client.delete("/api/settings")

        assert response.status_code == 200
        assert response.json()["theme"] == "system"
        assert client.get("/api/settings").json()["theme"] == "system"

    def test_cors_preflight_allows_put(self, client):
        response = client.options(
            "/api/settings",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "PUT",
            },
        )
        assert response.status_code == 200


class TestDataEndpoints:
    """Tests for backup export/import and the full reset."""

    def test_export_import_round_trip(self, client, prompt_payload):
        item_id = _enhance(client, prompt_payload).json()["id"]
        client.post(f"/api/history/{item_id}/favorite")
        client.put("/api/settings", json={"theme": "dark"})

        backup = client.get("/api/data/export").json()
        assert backup["favorites"] == [item_id]
        assert backup["analytics"]["promptsGenerated"] == 1
        assert "exportDate" in backup

        assert client.delete("/api/data").status_code == 204
        assert client.delete("/api/settings").status_code == 200

        response = client.post("/api/data/import", json=backup)

        assert response.status_code == 200
        assert response.json() == {"imported": {"settings": True, "history": 1, "favorites": 1}}
        history = client.get("/api/history").json()
        assert [item["id"] for item in history] == [item_id]
        assert history[0]["favorite"] is True
        assert client.get("/api/settings").json()["theme"] == "dark"

    def test_import_invalid_backup(self, client, prompt_payload):
        _enhance(client, prompt_payload)

        response = client.post("/api/data/import", json={"history": [{"id": "broken"}]})

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_backup"
        assert response.json()["message"].startswith("Invalid backup file: history.0.")
        assert len(client.get("/api/history").json()) == 1

    def test_import_not_an_object(self, client):
        response = client.post("/api/data/import", json=[1, 2, 3])

        assert response.status_code == 422
        assert response.json()["message"] == "Invalid backup file: must be an object"

    def test_import_invalid_json(self, client):
        response = client.post(
            "/api/data/import",
            content=b"{oops",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert response.json()["message"] == "Invalid JSON in request body"

    def test_clear_all_keeps_settings(self, client, prompt_payload):
        item_id = _enhance(client, prompt_payload).json()["id"]
        client.post(f"/api/history/{item_id}/favorite")
        client.put("/api/settings", json={"theme": "light"})

        assert client.delete("/api/data").status_code == 204

        assert client.get("/api/history").json() == []
        assert client.get("/api/history/favorites").json() == []
        assert client.get("/api/analytics").json()["stats"]["promptsGenerated"] == 0
        assert client.get("/api/settings").json()["theme"] == "light"


class TestHealth:
    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "ok"
        assert data["components"]["provider"] == {"status": "ok", "name": "mock"}
        assert data["components"]["storage"]["type"] == "InMemoryStore"

    def test_health_reports_unhealthy_provider(self, client, provider):
        provider.health_check = AsyncMock(return_value=False)
        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["components"]["provider"]["status"] == "error"


@pytest.mark.parametrize("path", ["/api/history", "/api/analytics", "/api/options"])
def test_cors_preflight(client, path):
    response = client.options(
        path,
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 200


def test_rate_limit_rejection_has_cors_headers(client, prompt_payload):
    headers = {"Origin": "http://localhost:3000", "X-Session-ID": "session-a"}
    for _ in range(3):
        client.post("/api/enhance", json=prompt_payload, headers=headers)

    response = client.post("/api/enhance", json=prompt_payload, headers=headers)

    assert response.status_code == 429
    assert "access-control-allow-origin" in response.headers
    assert "Retry-After" in response.headers["access-control-expose-headers"]


class TestLifespan:
    """Tests for startup and shutdown wiring."""

    def test_builds_provider_from_settings(self, test_settings, store, clock):
        test_settings.mock_provider = True
        app = create_app(test_settings, store=store, clock=clock)

        with TestClient(app) as client:
            http_client = app.state.enhancer.provider.http_client
            assert isinstance(http_client, httpx.AsyncClient)
            assert client.get("/health").json()["components"]["provider"]["name"] == "mock"

        assert http_client.is_closed

    def test_enhance_before_startup(self, test_settings, store, clock, prompt_payload):
        client = TestClient(create_app(test_settings, store=store, clock=clock))

        response = _enhance(client, prompt_payload)

        assert response.status_code == 502
        assert response.json()["message"] == "Completion service is not initialized"
        assert client.get("/health").json()["status"] == "degraded"
