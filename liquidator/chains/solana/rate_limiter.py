"""Minimum-spacing rate limiter for one rate-limited resource."""
from __future__ import annotations

import asyncio
import time


class RateLimiter:
    """Enforce at least ``min_interval`` seconds between successive calls.

    Keep one instance per logical resource (an RPC endpoint, the quote
    service). Not safe for concurrent callers; the owner calls it
    sequentially.
    """

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval
        self._last_call: float | None = None

    async def wait(self) -> None:
        if self._last_call is not None:
            remaining = self.min_interval - (time.monotonic() - self._last_call)
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_call = time.monotonic()
