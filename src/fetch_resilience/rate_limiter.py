"""
Fixed-window request budget.
"""
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from .config import RateLimitConfig
from .errors import RateLimitError

T = TypeVar("T")

logger = logging.getLogger("fetch_resilience.rate_limiter")


class RateLimiter:
    """
    Rejects work once `limit` requests were admitted within the current
    window of `interval_seconds`. Rejection is immediate; callers are never
    queued or retried.

    Example:
        limiter = RateLimiter(RateLimitConfig(limit=5, interval_seconds=1.0))
        response = await limiter(lambda: transport("/users", RequestConfig()))
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or RateLimitConfig()
        if self._config.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self._config.limit}")
        self._clock = clock
        self._window_start = clock()
        self._count = 0

    def _roll_window(self, now: float) -> None:
        if now - self._window_start > self._config.interval_seconds:
            self._window_start = now
            self._count = 0

    def acquire(self) -> None:
        """Consume one unit of budget or raise RateLimitError."""
        now = self._clock()
        self._roll_window(now)

        if self._count >= self._config.limit:
            retry_after = max(0.0, self._config.interval_seconds - (now - self._window_start))
            logger.debug(f"rate limit exceeded, retry after {retry_after:.3f}s")
            raise RateLimitError(
                limit=self._config.limit,
                interval_seconds=self._config.interval_seconds,
                retry_after_seconds=retry_after,
            )
        self._count += 1

    async def __call__(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn if budget remains."""
        self.acquire()
        return await fn()

    @property
    def remaining(self) -> int:
        """Budget left in the current window."""
        self._roll_window(self._clock())
        return self._config.limit - self._count

    def reset(self) -> None:
        self._window_start = self._clock()
        self._count = 0


def create_rate_limiter(limit: int, interval_seconds: float) -> RateLimiter:
    """Create a rate limiter."""
    return RateLimiter(RateLimitConfig(limit=limit, interval_seconds=interval_seconds))
