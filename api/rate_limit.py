"""In-process sliding-window rate limiting.

Counts calls per client address within a rolling window. State lives in the
process, so limits apply per server instance.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import Request


class RateLimitExceeded(Exception):
    """Raised when a client exceeds its call budget."""

    def __init__(self, retry_after: float):
        super().__init__(f"Rate limit exceeded, retry in {retry_after:.0f}s")
        self.retry_after = retry_after


class SlidingWindowRateLimiter:
    """Allow at most ``max_calls`` per ``window_seconds`` for each key."""

    def __init__(
        self,
        max_calls: int = 30,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._calls: Dict[str, Deque[float]] = {}
        self._last_sweep = self._clock()
        self._lock = threading.Lock()

    def tracked_keys(self) -> int:
        """Number of client keys currently held in memory."""
        with self._lock:
            return len(self._calls)

    def _sweep(self, now: float) -> None:
        # drop keys whose newest call has left the window; at most once per window
        if now - self._last_sweep < self.window_seconds:
            return
        stale = [k for k, calls in self._calls.items() if not calls or now - calls[-1] >= self.window_seconds]
        for key in stale:
            del self._calls[key]
        self._last_sweep = now

    def hit(self, key: str) -> None:
        """Record a call for ``key``.

        Raises:
            RateLimitExceeded: If the call would exceed the budget
        """
        now = self._clock()
        with self._lock:
            self._sweep(now)
            calls = self._calls.setdefault(key, deque())
            while calls and now - calls[0] >= self.window_seconds:
                calls.popleft()
            if len(calls) >= self.max_calls:
                raise RateLimitExceeded(self.window_seconds - (now - calls[0]))
            calls.append(now)

    def remaining(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            calls = self._calls.get(key, deque())
            live = sum(1 for t in calls if now - t < self.window_seconds)
            return max(self.max_calls - live, 0)

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def init_rate_limit(request: Request) -> None:
    """FastAPI dependency guarding /init."""
    request.app.state.init_limiter.hit(client_key(request))
