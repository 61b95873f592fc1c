"""
Fixed-window request counters keyed by client address.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import redis

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    count: int
    reset_time: float


class InMemoryRateLimiter:
    """Process-local limiter. Counters are not shared between worker processes."""

    def __init__(self, limit: int = 100, window_seconds: float = 15 * 60, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> Tuple[bool, float]:
        """Count one request for ``key``.

        Returns ``(allowed, retry_after_seconds)``.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None or now > record.reset_time:
                self._records[key] = RateLimitRecord(count=1, reset_time=now + self.window_seconds)
                return True, 0.0
            record.count += 1
            if record.count > self.limit:
                return False, max(record.reset_time - now, 0.0)
            return True, 0.0

    def reset(self) -> None:
        with self._lock:
            self._records.clear()


class RedisRateLimiter:
    """Shared limiter for multi-instance deployments, one INCR per request."""

    def __init__(self, client, limit: int = 100, window_seconds: int = 15 * 60, prefix: str = "rate_limit"):
        self.redis = client
        self.limit = limit
        self.window_seconds = int(window_seconds)
        self.prefix = prefix

    def hit(self, key: str) -> Tuple[bool, float]:
        rkey = f"{self.prefix}:{key}"
        try:
            pipe = self.redis.pipeline()
            pipe.incr(rkey, 1)
            pipe.expire(rkey, self.window_seconds, nx=True)
            pipe.ttl(rkey)
            count, _, ttl = pipe.execute()
        except Exception as e:
            # deterrence only, an unreachable store lets traffic through
            logger.error(f"Rate limit check error: {e}")
            return True, 0.0
        if int(count) > self.limit:
            return False, float(max(int(ttl), 0))
        return True, 0.0

    def reset(self) -> None:
        for k in self.redis.scan_iter(f"{self.prefix}:*"):
            self.redis.delete(k)


def build_rate_limiter(settings):
    if settings.RATE_LIMIT_BACKEND == "redis":
        client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return RedisRateLimiter(client, settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
    return InMemoryRateLimiter(settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
