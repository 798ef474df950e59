"""
Fixed-window request counters for the public endpoints.

Two interchangeable backends:
- RedisRateLimiter: shared across API processes, atomic via a Lua script
- InMemoryRateLimiter: single-process fallback used in development and tests

One limiter is built at startup (``build_rate_limiter``) and kept on
``app.state.rate_limiter``.

Redis Keys:
- ratelimit:{key} - request count for the current window, expires with it
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis

from extstore.config import settings
from extstore.core.redis import get_redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"

SYNC_WINDOW_MS = 60 * 1000
SUBMISSION_WINDOW_MS = 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int  # epoch milliseconds

    @property
    def retry_after_seconds(self) -> int:
        return max(1, -(-(self.reset_at - _now_ms()) // 1000))

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at // 1000),
        }


class RateLimiter(Protocol):
    def check_and_increment(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        """Count one request against ``key`` and report whether it is allowed."""
        ...


class RedisRateLimiter:
    """
    Fixed window counter in Redis.

    The first hit in a window sets the expiry, so the window starts at the
    first request rather than at a clock boundary.
    """

    def __init__(self, client: Optional[redis.Redis] = None, key_prefix: str = KEY_PREFIX):
        self._redis: redis.Redis = client or get_redis()
        self._key_prefix = key_prefix

        # Lua script for atomic increment and window bookkeeping
        self._incr_script = self._redis.register_script("""
            local key = KEYS[1]
            local window_ms = tonumber(ARGV[1])

            local count = redis.call('INCR', key)
            if count == 1 then
                redis.call('PEXPIRE', key, window_ms)
            end

            local ttl = redis.call('PTTL', key)
            if ttl < 0 then
                -- Key lost its expiry (e.g. restored from a snapshot)
                redis.call('PEXPIRE', key, window_ms)
                ttl = window_ms
            end

            return {count, ttl}
        """)

    def check_and_increment(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        count, ttl = self._incr_script(
            keys=[f"{self._key_prefix}:{key}"], args=[window_ms]
        )
        count, ttl = int(count), int(ttl)
        return RateLimitDecision(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=_now_ms() + ttl,
        )


class InMemoryRateLimiter:
    """Process-local fixed window counter."""

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[int, int]] = {}  # key -> (count, reset_at)

    def check_and_increment(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0))
            if reset_at <= now:
                count, reset_at = 0, now + window_ms
            count += 1
            self._windows[key] = (count, reset_at)
            self._evict_expired(now)

        return RateLimitDecision(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
        )

    def _evict_expired(self, now: int) -> None:
        # Caller holds the lock
        if len(self._windows) < 10_000:
            return
        expired = [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]
        for k in expired:
            del self._windows[k]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def build_rate_limiter(backend: Optional[str] = None) -> RateLimiter:
    """Create the limiter selected by ``RATE_LIMIT_BACKEND``."""
    backend = (backend or settings.RATE_LIMIT_BACKEND).lower()
    if backend == "memory":
        logger.info("Using in-memory rate limiter")
        return InMemoryRateLimiter()
    if backend == "redis":
        logger.info("Using Redis rate limiter")
        return RedisRateLimiter()
    raise ValueError(f"Unknown RATE_LIMIT_BACKEND: {backend}")
