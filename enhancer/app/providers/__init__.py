"""Completion providers for the enhancer.

This package provides:
- Base provider interface (BaseProvider)
- Provider implementations (OpenAIProvider, MockProvider)
- Provider factory (create_provider)
- Retry mechanism (RetryPolicy, with_retry)
"""

from enhancer.app.providers.base import BaseProvider
from enhancer.app.providers.factory import create_provider
from enhancer.app.providers.mock import MockProvider
from enhancer.app.providers.openai import OpenAIProvider
from enhancer.app.providers.retry import RetryPolicy, with_retry

__all__ = [
    "BaseProvider",
    "MockProvider",
    "OpenAIProvider",
    "create_provider",
    "RetryPolicy",
    "with_retry",
]
