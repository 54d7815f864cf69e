"""Shared HTTP client management for connection pooling.

The client is created on application startup and handed to the
completion provider for connection reuse.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx

from enhancer.app.core.config import Settings, settings as default_settings


def build_timeout(config: Settings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.httpx_connect_timeout,
        read=config.httpx_read_timeout,
        write=config.httpx_write_timeout,
        pool=config.httpx_pool_timeout,
    )


def build_limits(config: Settings) -> httpx.Limits:
    return httpx.Limits(
        max_connections=config.httpx_max_connections,
        max_keepalive_connections=config.httpx_max_keepalive_connections,
        keepalive_expiry=config.httpx_keepalive_expiry,
    )


@asynccontextmanager
async def init_http_client(
    config: Optional[Settings] = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create the pooled HTTP client and close it on exit.

    Intended for the FastAPI lifespan:

        async with init_http_client(settings) as client:
            yield
    """
    config = config or default_settings
    async with httpx.AsyncClient(
        timeout=build_timeout(config), limits=build_limits(config)
    ) as client:
        yield client
