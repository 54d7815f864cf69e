"""Middleware package for the enhancer."""

from enhancer.app.middleware.rate_limit import RateLimitMiddleware
from enhancer.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "get_request_id",
]
