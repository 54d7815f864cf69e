"""API endpoints package for the enhancer."""

from enhancer.app.api.analytics import router as analytics_router
from enhancer.app.api.enhance import router as enhance_router
from enhancer.app.api.history import router as history_router
from enhancer.app.api.rate_limit import router as rate_limit_router
from enhancer.app.api.settings import router as settings_router

__all__ = [
    "analytics_router",
    "enhance_router",
    "history_router",
    "rate_limit_router",
    "settings_router",
]
