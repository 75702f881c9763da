import threading
import time
from collections import deque
from typing import Callable, Deque, Optional


class SlidingWindowRateLimiter:
    """
    Fixed request quota over a rolling time window.

    Thread safe; a rejected call does not consume quota.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Deque[float] = deque()
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._hits and self._hits[0] <= cutoff:
            self._hits.popleft()

    def acquire(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        with self._lock:
            self._evict(now)
            if len(self._hits) >= self.limit:
                return False
            self._hits.append(now)
            return True

    def retry_after(self, now: Optional[float] = None) -> float:
        """Seconds until the next call would be admitted (0 when it would be now)."""
        now = self._clock() if now is None else now
        with self._lock:
            self._evict(now)
            if len(self._hits) < self.limit:
                return 0.0
            return max(0.0, self._hits[0] + self.window_seconds - now)
