"""Rate Limiter - throttles API calls to prevent hitting rate limits."""

import asyncio
import time
from collections import defaultdict
from typing import Optional


class RateLimiter:
    """Sliding-window rate limiter for coroutines sharing one event loop."""

    def __init__(
        self,
        max_calls: int = 60,
        time_window: float = 60.0,
    ):
        """
        Initialize rate limiter.

        Args:
            max_calls: Maximum number of calls allowed in time_window
            time_window: Time window in seconds (default: 60 seconds)
        """
        self.max_calls = max_calls
        self.time_window = time_window

        # Track calls per endpoint
        self.calls = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, endpoint: str) -> asyncio.Lock:
        lock = self._locks.get(endpoint)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[endpoint] = lock
        return lock

    def _prune(self, endpoint: str, now: float) -> list[float]:
        calls = self.calls[endpoint]
        calls[:] = [call_time for call_time in calls if now - call_time < self.time_window]
        return calls

    async def wait_if_needed(self, endpoint: str = "default") -> None:
        """
        Wait if rate limit would be exceeded.

        Only callers of the same endpoint queue behind each other; other
        coroutines keep running while this one sleeps.

        Args:
            endpoint: Endpoint identifier (for per-endpoint limiting)
        """
        async with self._lock_for(endpoint):
            now = time.monotonic()
            calls = self._prune(endpoint, now)

            if len(calls) >= self.max_calls:
                wait_time = (calls[0] + self.time_window) - now
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
                    now = time.monotonic()
                    calls = self._prune(endpoint, now)

            calls.append(now)

    def can_proceed(self, endpoint: str = "default") -> bool:
        """
        Check if a call can proceed without waiting.

        Args:
            endpoint: Endpoint identifier

        Returns:
            True if call can proceed immediately
        """
        return len(self._prune(endpoint, time.monotonic())) < self.max_calls

    def reset(self, endpoint: Optional[str] = None) -> None:
        """
        Reset rate limiter for an endpoint or all endpoints.

        Args:
            endpoint: Endpoint identifier, or None for all endpoints
        """
        if endpoint:
            self.calls[endpoint] = []
        else:
            self.calls.clear()


# Global rate limiters for different APIs
_elevenlabs_limiter: Optional[RateLimiter] = None
_google_limiter: Optional[RateLimiter] = None


def get_elevenlabs_limiter(max_calls: int = 100, time_window: float = 60.0) -> RateLimiter:
    """Get or create ElevenLabs rate limiter."""
    global _elevenlabs_limiter
    if _elevenlabs_limiter is None:
        _elevenlabs_limiter = RateLimiter(max_calls=max_calls, time_window=time_window)
    return _elevenlabs_limiter


def get_google_limiter(max_calls: int = 10, time_window: float = 60.0) -> RateLimiter:
    """Get or create the Google rate limiter (callers use one endpoint per API key)."""
    global _google_limiter
    if _google_limiter is None:
        _google_limiter = RateLimiter(max_calls=max_calls, time_window=time_window)
    return _google_limiter
