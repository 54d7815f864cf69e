"""Rate limit status for the calling client."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from enhancer.app.api.dependencies import get_api_limiter, get_user_limiter
from enhancer.app.middleware.rate_limit import (
    InvalidSessionIdError,
    RateLimiter,
    get_client_key,
    get_session_key,
)

router = APIRouter(prefix="/api", tags=["rate-limit"])


def _describe(limiter: RateLimiter, key: str) -> Dict[str, Any]:
    return {
        "limit": limiter.max_requests,
        "windowMs": limiter.window_ms,
        "remaining": limiter.get_remaining_requests(key),
        "resetTime": limiter.get_reset_time(key),
    }


@router.get("/rate-limit")
def rate_limit_status(
    request: Request,
    api_limiter: RateLimiter = Depends(get_api_limiter),
    user_limiter: RateLimiter = Depends(get_user_limiter),
) -> Dict[str, Any]:
    """Report remaining capacity without consuming any."""
    try:
        session_key = get_session_key(request)
    except InvalidSessionIdError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "api": _describe(api_limiter, get_client_key(request)),
        "user": _describe(user_limiter, session_key),
    }
