"""Unit tests for the token bucket throttle."""

from __future__ import annotations

import pytest

from ecs_kubelet.provider.throttle import TokenBucket


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestTokenBucket:
    """Test token bucket acquisition and refill."""

    def test_rejects_non_positive_rate(self):
        """Test that a zero rate is rejected."""
        with pytest.raises(ValueError):
            TokenBucket(0)

    def test_default_capacity_is_at_least_one(self):
        """Test that slow buckets still allow one call at a time."""
        bucket = TokenBucket(0.2)
        assert bucket.capacity == 1.0

    def test_burst_then_wait(self):
        """Test that a full bucket serves a burst before throttling."""
        clock = FakeClock()
        bucket = TokenBucket(2.0, clock=clock, sleep=clock.sleep)

        bucket.acquire()
        bucket.acquire()
        assert clock.sleeps == []

        bucket.acquire()
        assert clock.sleeps == [pytest.approx(0.5)]

    def test_refills_over_time(self):
        """Test that idle time refills tokens without sleeping."""
        clock = FakeClock()
        bucket = TokenBucket(2.0, capacity=1, clock=clock, sleep=clock.sleep)

        bucket.acquire()
        clock.now += 0.5
        bucket.acquire()

        assert clock.sleeps == []

    def test_capacity_caps_refill(self):
        """Test that a long idle period refills no more than capacity."""
        clock = FakeClock()
        bucket = TokenBucket(1.0, capacity=2, clock=clock, sleep=clock.sleep)
        clock.now += 60

        bucket.acquire()
        bucket.acquire()
        assert clock.sleeps == []

        bucket.acquire()
        assert clock.sleeps == [pytest.approx(1.0)]

    def test_acquire_blocks_until_token(self):
        """Test that an empty bucket sleeps for one refill interval."""
        clock = FakeClock()
        bucket = TokenBucket(4.0, capacity=1, clock=clock, sleep=clock.sleep)

        bucket.acquire()
        bucket.acquire()

        assert clock.sleeps == [pytest.approx(0.25)]
