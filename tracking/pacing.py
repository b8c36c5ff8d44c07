"""
Pacing of market data requests

The daily refresh walks the tracked symbols one by one and waits on a pacer
before each fetch. The pacer is a separate object so the policy can change
without touching the refresh loop.
"""
import asyncio
import time
import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Pacer(Protocol):
    """Throttle for calls to a rate-limited data source."""

    async def wait(self) -> None:
        ...


class FixedDelayPacer:
    """
    Keeps at least `delay` seconds between consecutive calls.
    The first call passes immediately.
    """
    def __init__(self, delay: float = 0.5):
        self.delay = delay
        self.last_call: Optional[float] = None
        self.lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self.lock:
            now = time.monotonic()
            if self.last_call is not None:
                remaining = self.delay - (now - self.last_call)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self.last_call = time.monotonic()


class TokenBucketPacer:
    """
    Allows bursts of up to `burst` calls, then `rate_per_second` calls per second.
    """
    def __init__(self, rate_per_second: float, burst: Optional[float] = None):
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        self.rate = rate_per_second
        self.capacity = burst or rate_per_second
        self.available = self.capacity
        self.updated_at = time.monotonic()
        self.lock = asyncio.Lock()

    def _top_up(self):
        now = time.monotonic()
        self.available = min(self.capacity, self.available + (now - self.updated_at) * self.rate)
        self.updated_at = now

    async def wait(self) -> None:
        async with self.lock:
            self._top_up()
            if self.available < 1:
                await asyncio.sleep((1 - self.available) / self.rate)
                self._top_up()
            self.available = max(0.0, self.available - 1)


def build_pacer(delay: float, rate_per_second: Optional[float] = None) -> Pacer:
    """Token bucket when a rate is configured, fixed delay otherwise."""
    if rate_per_second:
        logger.info(f"Refresh pacing: {rate_per_second:g} requests/s")
        return TokenBucketPacer(rate_per_second)
    logger.info(f"Refresh pacing: fixed delay of {delay:g}s")
    return FixedDelayPacer(delay)
