"""In-memory sliding window rate limiter.

Each identifier keeps an ordered log of admitted requests. Records older
than the window are pruned before anything is counted, so capacity frees
up continuously as the window slides instead of resetting at fixed
boundaries.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, List, Optional

from enhancer.app.core.logging import get_logger
from enhancer.app.exceptions import ConfigError
from enhancer.app.middleware.rate_limit.models import (
    RateLimitConfig,
    RateLimitResult,
    RequestRecord,
)

logger = get_logger(__name__)

Clock = Callable[[], int]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class RateLimiter:
    """Sliding window rate limiter keyed by opaque identifiers.

    Memory is bounded two ways:
    - an identifier whose log prunes down to nothing is dropped on the spot
    - the identifier map is an LRU capped at ``max_identifiers``

    All public methods hold one lock, so the read-prune-append sequence in
    ``is_allowed`` is atomic even when called from a thread pool.
    """

    DEFAULT_MAX_IDENTIFIERS = 10000

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        message: Optional[str] = None,
        clock: Optional[Clock] = None,
        max_identifiers: int = DEFAULT_MAX_IDENTIFIERS,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Requests admitted per window, must be positive
            window_ms: Window length in milliseconds, must be positive
            message: Message shown to rejected callers
            clock: Returns the current time in milliseconds
            max_identifiers: Maximum identifiers to track (LRU eviction)

        Raises:
            ConfigError: If any limit is not positive
        """
        self.config = RateLimitConfig(max_requests, window_ms, message or "")
        if max_identifiers < 1:
            raise ConfigError(f"max_identifiers must be positive, got {max_identifiers}")

        self._clock: Clock = clock or _now_ms
        self._max_identifiers = max_identifiers
        self._requests: OrderedDict[str, List[RequestRecord]] = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RateLimitConfig, **kwargs) -> "RateLimiter":
        return cls(config.max_requests, config.window_ms, config.message, **kwargs)

    @property
    def max_requests(self) -> int:
        return self.config.max_requests

    @property
    def window_ms(self) -> int:
        return self.config.window_ms

    @property
    def message(self) -> str:
        return self.config.message

    def now(self) -> int:
        return self._clock()

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._requests

    def _active(self, identifier: str, now: int) -> List[RequestRecord]:
        window_start = now - self.config.window_ms
        return [r for r in self._requests.get(identifier, ()) if r.timestamp > window_start]

    def _store(self, identifier: str, records: List[RequestRecord]) -> None:
        if not records:
            self._requests.pop(identifier, None)
            return
        self._requests[identifier] = records
        self._requests.move_to_end(identifier)
        self._enforce_lru_limit()

    def _enforce_lru_limit(self) -> None:
        """Drop the least recently used 20% once the map is over capacity."""
        if len(self._requests) <= self._max_identifiers:
            return
        remove_count = max(1, int(self._max_identifiers * 0.2))
        for _ in range(min(remove_count, len(self._requests) - 1)):
            evicted, _records = self._requests.popitem(last=False)
            logger.debug(f"Evicted rate limit state for {evicted}")

    def is_allowed(self, identifier: str) -> RateLimitResult:
        """Check whether a new request may proceed, consuming a slot if so."""
        with self._lock:
            now = self._clock()
            max_requests = self.config.max_requests
            window_ms = self.config.window_ms

            records = self._active(identifier, now)
            total_requests = sum(r.count for r in records)

            if total_requests >= max_requests:
                reset_time = records[0].timestamp + window_ms if records else now + window_ms
                self._store(identifier, records)
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_time=reset_time,
                    limit=max_requests,
                )

            records.append(RequestRecord(timestamp=now, count=1))
            self._store(identifier, records)
            return RateLimitResult(
                allowed=True,
                remaining=max(0, max_requests - total_requests - 1),
                reset_time=records[0].timestamp + window_ms,
                limit=max_requests,
            )

    def get_remaining_requests(self, identifier: str) -> int:
        """Remaining capacity for an identifier. Never mutates state."""
        with self._lock:
            records = self._active(identifier, self._clock())
            return max(0, self.config.max_requests - sum(r.count for r in records))

    def get_reset_time(self, identifier: str) -> Optional[int]:
        """When the oldest active request leaves the window, or None.

        Expired records are ignored, as in the other queries, but the
        stored log is left untouched.
        """
        with self._lock:
            records = self._active(identifier, self._clock())
            if not records:
                return None
            return records[0].timestamp + self.config.window_ms

    def clear(self, identifier: Optional[str] = None) -> None:
        """Forget one identifier, or every identifier when none is given."""
        with self._lock:
            if identifier is None:
                self._requests.clear()
            else:
                self._requests.pop(identifier, None)

    def cleanup(self) -> int:
        """Evict identifiers whose logs have fully expired.

        Returns:
            Number of identifiers removed
        """
        with self._lock:
            window_start = self._clock() - self.config.window_ms
            expired = [
                key for key, records in self._requests.items()
                if not records or records[-1].timestamp <= window_start
            ]
            for key in expired:
                del self._requests[key]
        if expired:
            logger.debug(f"Rate limit cleanup removed {len(expired)} identifiers")
        return len(expired)
