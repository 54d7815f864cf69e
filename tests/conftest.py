"""Shared fixtures for the enhancer test suite."""

import pytest
from fastapi.testclient import TestClient

from enhancer.app.core.config import Settings
from enhancer.app.main import create_app
from enhancer.app.middleware.rate_limit import RateLimiter
from enhancer.app.providers.mock import MockProvider
from enhancer.app.services.storage import InMemoryStore


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_limiter(clock):
    """Build limiters driven by the shared fake clock."""
    def _make(max_requests: int = 3, window_ms: int = 1000, **kwargs) -> RateLimiter:
        return RateLimiter(max_requests, window_ms, clock=clock, **kwargs)
    return _make


@pytest.fixture
def test_settings():
    return Settings(
        openai_api_key="sk-test",
        api_rate_limit_max_requests=5,
        api_rate_limit_window_ms=60_000,
        user_rate_limit_max_requests=3,
        user_rate_limit_window_ms=3_600_000,
        storage_path="",
        max_history_items=10,
    )


@pytest.fixture
def provider():
    return MockProvider()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def app(test_settings, provider, store, clock):
    return create_app(test_settings, provider=provider, store=store, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def prompt_payload():
    return {
        "corePromptIdea": "  a lighthouse at dusk  ",
        "promptMode": "Image",
        "modifiers": {"style": "Photorealistic", "cameraAngle": "Low Angle"},
        "outputStructure": "Descriptive Paragraph",
    }
