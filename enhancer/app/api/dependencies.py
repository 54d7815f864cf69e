"""FastAPI dependencies resolving the components owned by the application."""

from typing import Any

from fastapi import Request

from enhancer.app.exceptions import CompletionServiceError, PromptValidationError
from enhancer.app.middleware.rate_limit import RateLimiter
from enhancer.app.services.analytics import Analytics
from enhancer.app.services.enhancer import PromptEnhancer
from enhancer.app.services.storage import PromptHistoryRepository, SettingsRepository


def get_enhancer(request: Request) -> PromptEnhancer:
    enhancer = getattr(request.app.state, "enhancer", None)
    if enhancer is None:
        raise CompletionServiceError("Completion service is not initialized")
    return enhancer


def get_history_repository(request: Request) -> PromptHistoryRepository:
    return request.app.state.history


def get_analytics(request: Request) -> Analytics:
    return request.app.state.analytics


def get_api_limiter(request: Request) -> RateLimiter:
    return request.app.state.api_limiter


def get_user_limiter(request: Request) -> RateLimiter:
    return request.app.state.user_limiter


def get_settings_repository(request: Request) -> SettingsRepository:
    return request.app.state.app_settings


async def read_json_body(request: Request) -> Any:
    """Decode the request body as JSON.

    Raises:
        PromptValidationError: If the body is not UTF-8 encoded JSON
    """
    try:
        return await request.json()
    except ValueError:
        raise PromptValidationError("Invalid JSON in request body")
