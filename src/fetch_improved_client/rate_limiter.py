"""
Token bucket admission gate.
"""
import logging
import threading
from typing import Optional

from .clock import Clock, RealClock


logger = logging.getLogger("fetch_improved_client.rate_limiter")

# Burst credit, in requests, that idle time can accumulate.
DEFAULT_SLACK = 10


class RateLimiter:
    """
    Rate limiter bounding how often requests may start.

    Each admission reserves the next free slot (one slot every 1/rate
    seconds) under a lock, then waits outside the lock until that slot
    arrives. Idle time builds up credit so short bursts after a quiet
    period go through without waiting, capped at `slack` requests.

    Example:
        limiter = RateLimiter(10)
        limiter.take()              # blocking
        await limiter.take_async()  # asyncio
    """

    def __init__(
        self,
        rate: int,
        *,
        clock: Optional[Clock] = None,
        slack: int = DEFAULT_SLACK,
    ) -> None:
        """
        Create a new RateLimiter.

        Args:
            rate: Admitted requests per second, must be positive
            clock: Time source. Default: RealClock
            slack: Maximum burst credit in requests. Default: 10
        """
        if isinstance(rate, bool) or not isinstance(rate, int) or rate <= 0:
            raise ValueError(f"rate must be a positive integer, got {rate!r}")
        if slack < 0:
            raise ValueError(f"slack must not be negative, got {slack!r}")

        self._rate = rate
        self._clock = clock or RealClock()
        self._per_request = 1.0 / rate
        self._max_slack = -slack * self._per_request

        self._lock = threading.Lock()
        self._last: Optional[float] = None
        self._sleep_for = 0.0

    def _reserve(self) -> float:
        """Reserve the next slot and return how long to wait for it."""
        with self._lock:
            now = self._clock.now()

            if self._last is None:
                self._last = now
                return 0.0

            self._sleep_for += self._per_request - (now - self._last)
            if self._sleep_for < self._max_slack:
                self._sleep_for = self._max_slack

            if self._sleep_for > 0:
                wait = self._sleep_for
                self._last = now + wait
                self._sleep_for = 0.0
                return wait

            self._last = now
            return 0.0

    def take(self) -> None:
        """Block the calling thread until a request may be issued."""
        wait = self._reserve()
        if wait > 0:
            logger.debug(f"RateLimiter.take: waiting {wait:.3f}s for admission")
            self._clock.sleep(wait)

    async def take_async(self) -> None:
        """Wait, without blocking the event loop, until a request may be issued."""
        wait = self._reserve()
        if wait > 0:
            logger.debug(f"RateLimiter.take_async: waiting {wait:.3f}s for admission")
            await self._clock.asleep(wait)

    @property
    def rate(self) -> int:
        """Admitted requests per second."""
        return self._rate

    @property
    def clock(self) -> Clock:
        """Time source used for admission decisions."""
        return self._clock
