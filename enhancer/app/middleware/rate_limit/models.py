"""Rate limiting data models.

Timestamps and durations are integer milliseconds.
"""

from dataclasses import dataclass
from typing import Optional

from enhancer.app.exceptions import ConfigError

DEFAULT_MESSAGE = "Too many requests. Please wait before trying again."


@dataclass(frozen=True)
class RateLimitConfig:
    """Capacity-per-window policy for one limiter instance."""
    max_requests: int
    window_ms: int
    message: str = DEFAULT_MESSAGE

    def __post_init__(self) -> None:
        if isinstance(self.max_requests, bool) or not isinstance(self.max_requests, int):
            raise ConfigError("max_requests must be an integer")
        if isinstance(self.window_ms, bool) or not isinstance(self.window_ms, int):
            raise ConfigError("window_ms must be an integer")
        if self.max_requests <= 0:
            raise ConfigError(f"max_requests must be positive, got {self.max_requests}")
        if self.window_ms <= 0:
            raise ConfigError(f"window_ms must be positive, got {self.window_ms}")
        if not self.message:
            object.__setattr__(self, "message", DEFAULT_MESSAGE)


@dataclass(frozen=True)
class RequestRecord:
    """One admitted request (or batch) at a point in time."""
    timestamp: int
    count: int = 1


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    reset_time: Optional[int]
    limit: int

    def retry_after(self, now: int) -> int:
        """Whole seconds until capacity frees up, at least 1 when rejected."""
        if self.allowed or self.reset_time is None:
            return 0
        return max(1, -(-(self.reset_time - now) // 1000))
