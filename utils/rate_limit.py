"""
Per-client token bucket rate limiting

One TokenBucketLimiter instance is created by the app factory and injected
where it is used; nothing here is module-level state. Tracked keys are kept
in an LRU map bounded by `max_keys`; buckets idle longer than `idle_seconds`
are dropped on access. No background timers.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional

from config import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    remaining: int


@dataclass
class _Bucket:
    tokens: float
    updated: float


class TokenBucketLimiter:
    def __init__(
        self,
        rate: float = 5.0,
        burst: int = 10,
        max_keys: int = 10_000,
        idle_seconds: float = 180.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if rate <= 0 or burst < 1 or max_keys < 1:
            raise ValueError("rate must be > 0, burst and max_keys must be >= 1")
        self.rate = rate
        self.burst = burst
        self.max_keys = max_keys
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._buckets: "OrderedDict[str, _Bucket]" = OrderedDict()
        self._lock = Lock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "TokenBucketLimiter":
        return cls(
            rate=config.rate,
            burst=config.burst,
            max_keys=config.max_keys,
            idle_seconds=config.idle_seconds,
        )

    def _evict(self, now: float):
        # Oldest-touched keys sit at the front
        while self._buckets:
            key, bucket = next(iter(self._buckets.items()))
            if now - bucket.updated <= self.idle_seconds and len(self._buckets) <= self.max_keys:
                break
            del self._buckets[key]
            logger.debug(f"Evicted rate limit bucket for {key}")

    def hit(self, key: str, cost: float = 1.0) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            bucket = self._buckets.pop(key, None)
            if bucket is None or now - bucket.updated > self.idle_seconds:
                bucket = _Bucket(tokens=float(self.burst), updated=now)
            else:
                bucket.tokens = min(float(self.burst), bucket.tokens + (now - bucket.updated) * self.rate)
                bucket.updated = now

            allowed = bucket.tokens >= cost
            if allowed:
                bucket.tokens -= cost
                retry_after = 0
            else:
                retry_after = max(1, int((cost - bucket.tokens) / self.rate + 0.999))

            self._buckets[key] = bucket
            self._evict(now)
            remaining = int(bucket.tokens)

        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}")
        return RateLimitResult(allowed=allowed, retry_after_seconds=retry_after, remaining=remaining)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def reset(self, key: Optional[str] = None):
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)
