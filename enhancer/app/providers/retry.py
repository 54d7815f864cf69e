"""Retries for completion API calls.

Transport failures, 5xx responses and upstream 429s are retried with
exponential backoff. A 429 that carries ``Retry-After`` waits that long
instead, still bounded by ``max_delay``.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import httpx

from enhancer.app.core.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class RetryPolicy:
    """How often and how long to wait before calling the completion API again.

    Attributes:
        max_retries: Attempts after the first one (default: 3)
        base_delay: Backoff for the first retry in seconds (default: 0.5)
        max_delay: Upper bound for any single wait in seconds (default: 10.0)
        exponential_base: Backoff growth factor (default: 2.0)
        retryable_exceptions: Exception types worth another attempt
    """

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        httpx.HTTPStatusError,
        httpx.NetworkError,
        httpx.TimeoutException,
    )

    def calculate_delay(self, attempt: int) -> float:
        """Backoff for a 0-indexed attempt, capped at ``max_delay``."""
        return min(self.base_delay * (self.exponential_base**attempt), self.max_delay)

    def delay_for(self, exception: Exception, attempt: int) -> float:
        """Wait before the next attempt, preferring the server's Retry-After."""
        if isinstance(exception, httpx.HTTPStatusError) and exception.response.status_code == 429:
            retry_after = _parse_retry_after(exception.response)
            if retry_after is not None:
                return min(retry_after, self.max_delay)
        return self.calculate_delay(attempt)

    def is_retryable(self, exception: Exception) -> bool:
        """Status errors count only for 5xx and 429; other types by class."""
        if isinstance(exception, httpx.HTTPStatusError):
            status = exception.response.status_code
            return status >= 500 or status == 429

        return isinstance(exception, self.retryable_exceptions)


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        # HTTP-date form is not used by completion APIs
        return None
    return max(0.0, seconds)


def with_retry(policy: Optional[RetryPolicy] = None) -> Callable[[F], F]:
    """Retry an async callable according to ``policy``.

    The last exception is re-raised once retries run out, or at once when
    it is not retryable.
    """
    retry_policy = policy or RetryPolicy()

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(retry_policy.max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not retry_policy.is_retryable(e):
                        raise

                    if attempt >= retry_policy.max_retries:
                        logger.warning(
                            f"Giving up on {func.__name__} after {attempt + 1} attempts: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    delay = retry_policy.delay_for(e, attempt)
                    logger.warning(
                        f"Completion call failed ({type(e).__name__}), "
                        f"retry {attempt + 1}/{retry_policy.max_retries} in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

        return wrapper  # type: ignore

    return decorator
