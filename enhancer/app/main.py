import asyncio
import contextlib
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from enhancer.app.api import (
    analytics_router,
    enhance_router,
    history_router,
    rate_limit_router,
    settings_router,
)
from enhancer.app.core.config import Settings, settings as default_settings
from enhancer.app.core.http_client import init_http_client
from enhancer.app.core.logging import get_logger, setup_logging
from enhancer.app.exceptions import EnhancerException
from enhancer.app.middleware.rate_limit import Clock, RateLimitMiddleware, create_limiters
from enhancer.app.middleware.request_id import RequestIdMiddleware, get_request_id
from enhancer.app.providers.base import BaseProvider
from enhancer.app.providers.factory import create_provider
from enhancer.app.services.analytics import Analytics
from enhancer.app.services.enhancer import PromptEnhancer
from enhancer.app.services.storage import (
    KeyValueStore,
    PromptHistoryRepository,
    SettingsRepository,
    create_store,
)


async def _sweep_rate_limits(app: FastAPI, interval: float) -> None:
    """Periodically drop identifiers whose request logs have expired."""
    logger = get_logger(__name__)
    while True:
        await asyncio.sleep(interval)
        removed = app.state.api_limiter.cleanup() + app.state.user_limiter.cleanup()
        if removed:
            logger.info(f"Rate limit sweep evicted {removed} identifiers")


def create_app(
    config: Optional[Settings] = None,
    provider: Optional[BaseProvider] = None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings to use instead of the environment-loaded ones
        provider: Completion provider; built from settings at startup if omitted
        store: Persistence backend; built from ``storage_path`` if omitted
        clock: Millisecond clock for the rate limiters

    Returns:
        Configured FastAPI application instance
    """
    config = config or default_settings
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create the HTTP client and provider on startup, release them on shutdown."""
        sweeper = asyncio.create_task(
            _sweep_rate_limits(app, config.rate_limit_cleanup_interval_seconds)
        )
        async with init_http_client(config) as http_client:
            if app.state.enhancer is None:
                app.state.enhancer = PromptEnhancer(create_provider(config, http_client))
            logger.info(
                "Application startup complete",
                extra={
                    "provider": app.state.enhancer.provider.name,
                    "debug_mode": config.debug,
                },
            )
            try:
                yield
            finally:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Prompt Enhancer",
        description="Prompt enhancement API with sliding window rate limiting and local history",
        version="1.0.0",
        lifespan=lifespan,
    )

    api_limiter, user_limiter = create_limiters(config, clock=clock)
    store = store if store is not None else create_store(config.storage_path)
    app.state.settings = config
    app.state.api_limiter = api_limiter
    app.state.user_limiter = user_limiter
    app.state.history = PromptHistoryRepository(store, max_items=config.max_history_items)
    app.state.app_settings = SettingsRepository(store)
    app.state.analytics = Analytics(store, max_events=config.analytics_max_events)
    app.state.enhancer = PromptEnhancer(provider) if provider is not None else None

    # Add middleware (order matters: last added = first executed).
    # CORS is outermost so rate limit rejections carry CORS headers too.
    app.add_middleware(
        RateLimitMiddleware,
        api_limiter=api_limiter,
        user_limiter=user_limiter,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    app.include_router(enhance_router)
    app.include_router(history_router)
    app.include_router(analytics_router)
    app.include_router(rate_limit_router)
    app.include_router(settings_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with provider and storage status."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}

        enhancer = app.state.enhancer
        if enhancer is None:
            health_status["status"] = "degraded"
            health_status["components"]["provider"] = {"status": "not_initialized"}
        else:
            healthy = await enhancer.provider.health_check()
            if not healthy:
                health_status["status"] = "degraded"
            health_status["components"]["provider"] = {
                "status": "ok" if healthy else "error",
                "name": enhancer.provider.name,
            }

        health_status["components"]["storage"] = {
            "status": "ok",
            "type": type(store).__name__,
        }
        health_status["components"]["rate_limits"] = {
            "api_identifiers": len(api_limiter),
            "user_identifiers": len(user_limiter),
        }
        return health_status

    @app.exception_handler(EnhancerException)
    async def enhancer_error_handler(request: Request, exc: EnhancerException) -> JSONResponse:
        """Map domain errors to their HTTP status and JSON body."""
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"request_id": get_request_id(request)},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global handler for unhandled exceptions.

        Never returns a traceback to the client; debug mode adds the
        exception message and type.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exc(),
            },
        )

        content: dict[str, Any] = {
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if config.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
