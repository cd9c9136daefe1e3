"""Rate limiters: a token bucket per WebSocket, a sliding window per HTTP client."""

import time
from collections import deque
from collections.abc import Callable

TimeFunc = Callable[[], float]

# Sweep idle clients once the table grows past this many keys.
_SWEEP_THRESHOLD = 10_000


class TokenBucket:
    """Rate limiter using the token bucket algorithm.

    Tokens are added at a constant rate up to a maximum burst capacity.
    Each consume() call removes one token; returns False when the bucket
    is empty (caller should throttle).
    """

    def __init__(self, rate: float, burst: int, time_func: TimeFunc = time.monotonic) -> None:
        self._rate = rate
        self._burst = burst
        self._time = time_func
        self._tokens = float(burst)
        self._last_refill = time_func()

    def consume(self) -> bool:
        """Try to consume one token. Returns True if allowed, False if rate-limited."""
        now = self._time()
        elapsed = now - self._last_refill
        self._tokens = min(self._burst, self._tokens + elapsed * self._rate)
        self._last_refill = now

        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False


class SlidingWindowLimiter:
    """Allow at most `limit` hits per key within any `window_seconds` span."""

    def __init__(self, limit: int, window_seconds: float, time_func: TimeFunc = time.monotonic) -> None:
        self._limit = limit
        self._window = window_seconds
        self._time = time_func
        self._hits: dict[str, deque[float]] = {}

    def hit(self, key: str) -> bool:
        """Record a hit for key. Returns False (and records nothing) when over the limit."""
        now = self._time()
        hits = self._hits.setdefault(key, deque())
        self._prune(hits, now)
        if len(hits) >= self._limit:
            return False
        hits.append(now)
        if len(self._hits) > _SWEEP_THRESHOLD:
            self._sweep(now)
        return True

    def retry_after(self, key: str) -> float:
        """Seconds until key may hit again; 0 if it may hit now."""
        hits = self._hits.get(key)
        if not hits or len(hits) < self._limit:
            return 0.0
        return max(0.0, hits[0] + self._window - self._time())

    def _prune(self, hits: deque[float], now: float) -> None:
        cutoff = now - self._window
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            self._prune(hits, now)
            if not hits:
                del self._hits[key]
