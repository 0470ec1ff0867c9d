"""
Per-provider request spacing

Third-party product APIs throttle aggressively, so every outbound request
to one provider waits until `min_interval` seconds have passed since the
previous one. One RateLimiter per provider instance; the lock serializes
concurrent callers so the spacing holds under asyncio.gather too.
"""
import asyncio
import time
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger()


class RateLimiter:
    """Minimum interval between consecutive calls"""

    def __init__(
        self,
        min_interval: float,
        name: str = "provider",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._last_call: float = float("-inf")
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Block until the next request to this provider may be sent"""
        async with self._lock:
            elapsed = self._clock() - self._last_call
            if elapsed < self.min_interval:
                delay = self.min_interval - elapsed
                logger.debug("rate_limit_wait", provider=self.name, delay=round(delay, 3))
                await self._sleep(delay)
            self._last_call = self._clock()

    async def __aenter__(self) -> "RateLimiter":
        await self.wait()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None
