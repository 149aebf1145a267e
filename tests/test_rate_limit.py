"""
Tests for the token bucket rate limiter
"""

import pytest

from config import RateLimitConfig
from utils.rate_limit import TokenBucketLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestBucket:
    def test_burst_then_reject(self, clock):
        limiter = TokenBucketLimiter(rate=1.0, burst=3, clock=clock)

        assert [limiter.hit("a").allowed for _ in range(4)] == [True, True, True, False]

    def test_retry_after_reflects_refill_rate(self, clock):
        limiter = TokenBucketLimiter(rate=0.25, burst=1, clock=clock)
        limiter.hit("a")
        result = limiter.hit("a")

        assert not result.allowed
        assert result.retry_after_seconds == 4

    def test_refill(self, clock):
        limiter = TokenBucketLimiter(rate=2.0, burst=2, clock=clock)
        limiter.hit("a")
        limiter.hit("a")
        assert not limiter.hit("a").allowed

        clock.advance(0.5)
        assert limiter.hit("a").allowed

    def test_refill_is_capped_at_burst(self, clock):
        limiter = TokenBucketLimiter(rate=10.0, burst=2, clock=clock)
        limiter.hit("a")
        clock.advance(60)
        assert limiter.hit("a").remaining == 1

    def test_keys_are_independent(self, clock):
        limiter = TokenBucketLimiter(rate=1.0, burst=1, clock=clock)
        assert limiter.hit("a").allowed
        assert limiter.hit("b").allowed
        assert not limiter.hit("a").allowed


class TestEviction:
    def test_least_recently_used_key_is_dropped(self, clock):
        limiter = TokenBucketLimiter(rate=1.0, burst=1, max_keys=2, clock=clock)
        limiter.hit("a")
        limiter.hit("b")
        limiter.hit("a")
        limiter.hit("c")

        assert len(limiter) == 2
        # "b" was evicted so it starts over with a full bucket
        assert limiter.hit("b").allowed

    def test_idle_keys_are_dropped_on_access(self, clock):
        limiter = TokenBucketLimiter(rate=1.0, burst=1, idle_seconds=180, clock=clock)
        limiter.hit("a")
        limiter.hit("b")
        clock.advance(181)
        limiter.hit("c")

        assert len(limiter) == 1

    def test_reset(self, clock):
        limiter = TokenBucketLimiter(rate=1.0, burst=1, clock=clock)
        limiter.hit("a")
        limiter.reset("a")
        assert limiter.hit("a").allowed
        limiter.reset()
        assert len(limiter) == 0


class TestConstruction:
    @pytest.mark.parametrize("kwargs", [{"rate": 0}, {"burst": 0}, {"max_keys": 0}])
    def test_rejects_bad_parameters(self, kwargs):
        with pytest.raises(ValueError):
            TokenBucketLimiter(**kwargs)

    def test_from_config(self):
        limiter = TokenBucketLimiter.from_config(RateLimitConfig(rate=2.0, burst=4, max_keys=50))
        assert (limiter.rate, limiter.burst, limiter.max_keys) == (2.0, 4, 50)
