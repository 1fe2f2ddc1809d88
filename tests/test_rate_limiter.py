"""Unit tests for the rate-limited schedulers (fake clock, no real sleeping)."""
import pydantic
import pytest

from photomatch.config import Settings
from photomatch.services.rate_limiter import (
    FixedDelayScheduler,
    TokenBucketScheduler,
    build_scheduler,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestFixedDelayScheduler:

    @pytest.mark.asyncio
    async def test_first_acquire_does_not_wait(self):
        clock = FakeClock()
        scheduler = FixedDelayScheduler(0.1, clock=clock, sleep=clock.sleep)
        await scheduler.acquire()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_back_to_back_acquires_are_spaced(self):
        clock = FakeClock()
        scheduler = FixedDelayScheduler(0.1, clock=clock, sleep=clock.sleep)
        for _ in range(3):
            await scheduler.acquire()
        assert clock.sleeps == [pytest.approx(0.1), pytest.approx(0.1)]

    @pytest.mark.asyncio
    async def test_elapsed_time_counts_towards_delay(self):
        clock = FakeClock()
        scheduler = FixedDelayScheduler(0.1, clock=clock, sleep=clock.sleep)
        await scheduler.acquire()
        clock.now += 0.25
        await scheduler.acquire()
        assert clock.sleeps == []

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            FixedDelayScheduler(-1.0)


class TestTokenBucketScheduler:

    @pytest.mark.asyncio
    async def test_burst_up_to_capacity_then_waits(self):
        clock = FakeClock()
        scheduler = TokenBucketScheduler(rate=2.0, capacity=2, clock=clock, sleep=clock.sleep)
        await scheduler.acquire()
        await scheduler.acquire()
        assert clock.sleeps == []
        await scheduler.acquire()
        assert sum(clock.sleeps) == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_refills_over_time(self):
        clock = FakeClock()
        scheduler = TokenBucketScheduler(rate=1.0, capacity=1, clock=clock, sleep=clock.sleep)
        await scheduler.acquire()
        clock.now += 1.0
        await scheduler.acquire()
        assert clock.sleeps == []

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            TokenBucketScheduler(rate=0)
        with pytest.raises(ValueError):
            TokenBucketScheduler(rate=1.0, capacity=0)


class TestBuildScheduler:

    def test_fixed_delay_by_default(self):
        scheduler = build_scheduler(Settings(_env_file=None, EMBEDDING_BATCH_DELAY_SECONDS=0.5))
        assert isinstance(scheduler, FixedDelayScheduler)
        assert scheduler.delay_seconds == 0.5

    def test_token_bucket_from_settings(self):
        settings = Settings(
            _env_file=None,
            EMBEDDING_SCHEDULER="token_bucket",
            EMBEDDING_RATE_PER_SECOND=2.0,
            EMBEDDING_BURST=3,
        )
        scheduler = build_scheduler(settings)
        assert isinstance(scheduler, TokenBucketScheduler)
        assert (scheduler.rate, scheduler.capacity) == (2.0, 3)

    def test_unknown_scheduler_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None, EMBEDDING_SCHEDULER="leaky")
