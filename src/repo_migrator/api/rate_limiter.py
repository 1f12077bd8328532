"""Rate limiting for API calls."""

import asyncio
import time


class RateLimiter:
    """Token bucket rate limiter for API requests."""

    def __init__(self, requests_per_second: float = 10.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
        """
        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self, now: float) -> None:
        elapsed = now - self.last_update
        self.tokens = min(
            self.requests_per_second,
            self.tokens + elapsed * self.requests_per_second,
        )
        self.last_update = now

    async def acquire(self) -> None:
        """Acquire a token, waiting until one is available."""
        async with self._lock:
            self._refill(time.monotonic())

            if self.tokens >= 1:
                self.tokens -= 1
                return

            sleep_time = (1 - self.tokens) / self.requests_per_second
            await asyncio.sleep(sleep_time)
            self._refill(time.monotonic())
            self.tokens = max(0.0, self.tokens - 1)

    def acquire_sync(self) -> None:
        """Acquire a token for a synchronous request, blocking if needed."""
        self._refill(time.monotonic())

        if self.tokens >= 1:
            self.tokens -= 1
            return

        time.sleep((1 - self.tokens) / self.requests_per_second)
        self._refill(time.monotonic())
        self.tokens = max(0.0, self.tokens - 1)

    def can_proceed(self) -> bool:
        """Check if a request can proceed without blocking.

        Returns:
            True if a token is available, False otherwise
        """
        elapsed = time.monotonic() - self.last_update
        tokens = min(
            self.requests_per_second, self.tokens + elapsed * self.requests_per_second
        )
        return tokens >= 1
