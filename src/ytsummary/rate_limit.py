import logging
import math
import time

from cachetools import TTLCache

logger = logging.getLogger(__name__)

RATE_LIMIT_MAX_CLIENTS = 10000


class RateLimitExceeded(Exception):
    """Raised when a client has used up its calls for the current window."""

    def __init__(self, key: str, limit: int, window_seconds: int, retry_after: int):
        self.key = key
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded: {limit} requests per {window_seconds} seconds."
        )


class RateLimiter:
    """Fixed-window call counter per client key."""

    def __init__(self, limit: int = 2, window_seconds: int = 60, timer=time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self.timer = timer
        # key -> (window start, calls in window); idle keys expire with the window
        self.windows = TTLCache(
            maxsize=RATE_LIMIT_MAX_CLIENTS, ttl=window_seconds, timer=timer
        )

    def hit(self, key: str) -> int:
        """Counts one call for ``key`` and returns the calls left in the window."""
        now = self.timer()
        window_start, count = self.windows.get(key, (now, 0))
        if now - window_start >= self.window_seconds:
            window_start, count = now, 0

        if count >= self.limit:
            retry_after = max(1, math.ceil(window_start + self.window_seconds - now))
            logger.warning(f"Rate limit exceeded for {key}, retry in {retry_after}s")
            raise RateLimitExceeded(key, self.limit, self.window_seconds, retry_after)

        # The stored start, not the cache expiry, bounds the window
        self.windows[key] = (window_start, count + 1)
        return self.limit - count - 1
