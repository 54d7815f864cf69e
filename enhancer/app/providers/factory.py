"""Provider factory: builds the completion provider from settings."""

from typing import Optional

import httpx

from enhancer.app.core.config import Settings
from enhancer.app.core.logging import get_logger
from enhancer.app.exceptions import ConfigError
from enhancer.app.providers.base import BaseProvider
from enhancer.app.providers.mock import MockProvider
from enhancer.app.providers.openai import OpenAIProvider
from enhancer.app.providers.retry import RetryPolicy

logger = get_logger(__name__)


def create_provider(
    config: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BaseProvider:
    """Create the configured completion provider.

    Raises:
        ConfigError: If no API key is configured and the mock provider is off
    """
    common = {
        "model": config.openai_model,
        "max_tokens": config.completion_max_tokens,
        "temperature": config.completion_temperature,
        "http_client": http_client,
        "timeout": config.httpx_read_timeout,
    }

    if config.mock_provider:
        logger.warning("Using mock completion provider")
        return MockProvider(**common)

    if not config.openai_api_key:
        raise ConfigError(
            "OPENAI_API_KEY is not set. Set it in the environment or .env file, "
            "or enable ENHANCER_MOCK_PROVIDER for local development."
        )

    logger.info(f"Using OpenAI provider at {config.openai_base_url} ({config.openai_model})")
    return OpenAIProvider(
        base_url=config.openai_base_url,
        api_key=config.openai_api_key,
        organization=config.openai_organization,
        retry_policy=RetryPolicy(max_retries=config.completion_max_retries),
        **common,
    )
