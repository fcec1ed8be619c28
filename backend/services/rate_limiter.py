"""Fixed-window request counter held in process memory.

Each ``(user, operation)`` key gets ``limit`` requests per window. A
window resets by wall-clock comparison against its reset time rather
than a rolling count, so a caller can burst up to ``2 * limit`` across
a window boundary. State is per process and lost on restart.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from config import settings
from services.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Fixed-window rate limiter keyed by arbitrary strings."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """Count one request for ``key``; return False if over the limit."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.reset_at < now:
                self._prune(now)
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True
            if window.count >= self.limit:
                return False
            window.count += 1
            return True

    def _prune(self, now: float) -> None:
        """Drop windows that have already reset. Caller holds the lock."""
        expired = [k for k, w in self._windows.items() if w.reset_at < now]
        for k in expired:
            del self._windows[k]

    def retry_after(self, key: str) -> int:
        """Seconds until ``key``'s current window resets (0 if none)."""
        with self._lock:
            window = self._windows.get(key)
        if window is None:
            return 0
        return max(0, math.ceil(window.reset_at - self._clock()))

    def enforce(self, user_id: str, operation: str) -> None:
        """Raise RateLimitExceededError if the user is over the limit for operation."""
        key = f"{user_id}:{operation}"
        if not self.check(key):
            retry_after = self.retry_after(key)
            logger.warning(
                "Rate limit hit: user %s, operation %s (retry in %ds)",
                user_id, operation, retry_after,
            )
            raise RateLimitExceededError(operation, retry_after)

    def reset(self) -> None:
        """Forget all windows."""
        with self._lock:
            self._windows.clear()


link_rate_limiter = FixedWindowRateLimiter(
    limit=settings.LINK_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
sync_rate_limiter = FixedWindowRateLimiter(
    limit=settings.SYNC_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
