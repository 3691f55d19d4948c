"""
Time sources for the rate limiter.
"""
import asyncio
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Clock protocol: current instant plus blocking and async sleep."""

    def now(self) -> float:
        """Current instant in seconds."""
        ...

    def sleep(self, seconds: float) -> None:
        """Block the calling thread for the given duration."""
        ...

    async def asleep(self, seconds: float) -> None:
        """Suspend the calling task for the given duration."""
        ...


class RealClock:
    """Wall clock backed by time.monotonic."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    async def asleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class MockClock:
    """
    Test clock that only moves when told to.

    sleep() and asleep() advance the clock by the requested duration and
    return immediately, so time-based behaviour can be asserted without
    waiting in real time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self._now += seconds

    async def asleep(self, seconds: float) -> None:
        self.sleep(seconds)
        # yield once so concurrent tasks still interleave
        await asyncio.sleep(0)

    def add(self, seconds: float) -> float:
        """Advance the clock and return the new instant."""
        self._now += seconds
        return self._now

    def set(self, instant: float) -> None:
        """Move the clock to an absolute instant."""
        self._now = instant
