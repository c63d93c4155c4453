"""Async pacing primitive for upstream rate limits."""

import asyncio
import time


class RateGate:
    """Minimum-interval gate: successive ``wait()`` calls return at least ``interval`` seconds apart.

    Waiters are served in arrival order.  An interval of 0 makes the gate a no-op.
    """

    def __init__(self, interval: float) -> None:
        if interval < 0:
            msg = "interval must be >= 0"
            raise ValueError(msg)
        self.interval = float(interval)
        self._next_time = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Suspend until the next slot is available."""
        if self.interval == 0:
            return
        async with self._lock:
            now = time.monotonic()
            delay = self._next_time - now
            if delay > 0:
                await asyncio.sleep(delay)
                now = time.monotonic()
            self._next_time = now + self.interval
