"""
photomatch — Rate-limited schedulers for outbound provider calls.

The embedding batch loop calls ``await scheduler.acquire()`` before every
provider request.  Schedulers own the spacing policy; callers never sleep
inline.  Clock and sleep are injectable so tests run without real delays.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Protocol

import structlog

from photomatch.config import Settings

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class Scheduler(Protocol):
    async def acquire(self) -> None: ...


class FixedDelayScheduler:
    """Guarantee at least ``delay_seconds`` between successive acquisitions.

    The first acquisition returns immediately.
    """

    def __init__(
        self,
        delay_seconds: float,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be non-negative, got {delay_seconds}")
        self.delay_seconds = delay_seconds
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._last is not None:
                wait = self._last + self.delay_seconds - now
                if wait > 0:
                    await self._sleep(wait)
                    now = self._clock()
            self._last = now


class TokenBucketScheduler:
    """Allow bursts of up to ``capacity`` calls, refilled at ``rate`` per second."""

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated = now

    async def acquire(self) -> None:
        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                wait = (1.0 - self._tokens) / self.rate
                logger.debug("token_bucket_wait", wait_seconds=round(wait, 4))
                await self._sleep(wait)
                self._refill()
            self._tokens -= 1.0


class NoDelayScheduler:
    """Scheduler that never waits."""

    async def acquire(self) -> None:
        return None


def build_scheduler(settings: Settings) -> Scheduler:
    """Pick the spacing policy named by ``EMBEDDING_SCHEDULER``."""
    if settings.EMBEDDING_SCHEDULER == "token_bucket":
        return TokenBucketScheduler(
            rate=settings.EMBEDDING_RATE_PER_SECOND, capacity=settings.EMBEDDING_BURST
        )
    return FixedDelayScheduler(settings.EMBEDDING_BATCH_DELAY_SECONDS)
