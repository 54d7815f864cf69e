"""Rate limiting for the enhancer API.

Two independent sliding window limiters guard prompt enhancement: an
API-wide one keyed by client address and a per-session one keyed by the
``X-Session-ID`` header. Both are built by the application factory and
handed to the middleware, never created as module globals.
"""

import hashlib
from typing import Iterable, Optional, Tuple

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from enhancer.app.core.config import Settings
from enhancer.app.core.logging import get_log_context, get_logger
from enhancer.app.exceptions import RateLimitExceededError
from enhancer.app.middleware.rate_limit.limiter import Clock, RateLimiter
from enhancer.app.middleware.rate_limit.models import (
    DEFAULT_MESSAGE,
    RateLimitConfig,
    RateLimitResult,
    RequestRecord,
)

logger = get_logger(__name__)

__all__ = [
    # Models
    "DEFAULT_MESSAGE",
    "RateLimitConfig",
    "RateLimitResult",
    "RequestRecord",
    # Limiter
    "Clock",
    "RateLimiter",
    "create_limiters",
    # HTTP integration
    "RateLimitMiddleware",
    "get_client_key",
    "get_session_key",
    "InvalidSessionIdError",
    "SESSION_HEADER",
    "MAX_SESSION_ID_LENGTH",
]

SESSION_HEADER = "X-Session-ID"
MAX_SESSION_ID_LENGTH = 512


class InvalidSessionIdError(ValueError):
    pass


def _digest(value: str) -> str:
    # 32 hex chars (128 bits) keeps keys short without realistic collisions
    return hashlib.sha256(value.encode()).hexdigest()[:32]


def get_client_key(request: Request) -> str:
    """Rate limit key for the calling address (hashed, never the raw IP)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else "unknown"
    return f"ratelimit:ip:{_digest(client_ip)}"


def get_session_key(request: Request) -> str:
    """Rate limit key for the caller's session, or its address without one.

    Raises:
        InvalidSessionIdError: If the session id is unreasonably long
    """
    session_id = request.headers.get(SESSION_HEADER, "").strip()
    if not session_id:
        return get_client_key(request)
    if len(session_id) > MAX_SESSION_ID_LENGTH:
        raise InvalidSessionIdError(
            f"Session id too long (max {MAX_SESSION_ID_LENGTH} characters)"
        )
    return f"ratelimit:session:{_digest(session_id)}"


def create_limiters(
    config: Settings, clock: Optional[Clock] = None
) -> Tuple[RateLimiter, RateLimiter]:
    """Build the API-wide and per-session limiters from settings."""
    api_limiter = RateLimiter(
        max_requests=config.api_rate_limit_max_requests,
        window_ms=config.api_rate_limit_window_ms,
        message=config.api_rate_limit_message,
        clock=clock,
        max_identifiers=config.rate_limit_max_identifiers,
    )
    user_limiter = RateLimiter(
        max_requests=config.user_rate_limit_max_requests,
        window_ms=config.user_rate_limit_window_ms,
        message=config.user_rate_limit_message,
        clock=clock,
        max_identifiers=config.rate_limit_max_identifiers,
    )
    return api_limiter, user_limiter


def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }
    if result.reset_time is not None:
        headers["X-RateLimit-Reset"] = str(result.reset_time)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on prompt enhancement requests.

    The API-wide limiter is consulted first; a request it rejects never
    reaches the per-session limiter. Slots are not refunded when the
    downstream handler fails.
    """

    def __init__(
        self,
        app,
        api_limiter: RateLimiter,
        user_limiter: RateLimiter,
        protected_paths: Iterable[str] = ("/api/enhance",),
    ):
        super().__init__(app)
        self.api_limiter = api_limiter
        self.user_limiter = user_limiter
        self.protected_paths = frozenset(protected_paths)

    def _is_protected(self, request: Request) -> bool:
        return request.method == "POST" and request.url.path in self.protected_paths

    def _reject(self, limiter: RateLimiter, result: RateLimitResult, key: str) -> Response:
        retry_after = result.retry_after(limiter.now())
        error = RateLimitExceededError(
            limiter.message, retry_after=retry_after, reset_time=result.reset_time
        )
        logger.warning(
            "Rate limit exceeded",
            extra=get_log_context(session_id=key, retry_after=retry_after),
        )
        headers = _rate_limit_headers(result)
        headers["Retry-After"] = str(retry_after)
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_response(),
            headers=headers,
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        if not self._is_protected(request):
            return await call_next(request)

        try:
            session_key = get_session_key(request)
        except InvalidSessionIdError as e:
            return JSONResponse(
                status_code=400,
                content={"error": "invalid_session", "message": str(e)},
            )
        client_key = get_client_key(request)

        api_result = self.api_limiter.is_allowed(client_key)
        if not api_result.allowed:
            return self._reject(self.api_limiter, api_result, client_key)

        user_result = self.user_limiter.is_allowed(session_key)
        if not user_result.allowed:
            return self._reject(self.user_limiter, user_result, session_key)

        request.state.session_key = session_key
        response = await call_next(request)

        tighter = min(api_result, user_result, key=lambda r: r.remaining)
        response.headers.update(_rate_limit_headers(tighter))
        return response
