"""In-process stand-ins for the HTTP layer used by the drive-strategy tests."""

from __future__ import annotations

import asyncio
import random

from common.models import LatencySample, Order


class FakeDispatcher:
    """Sleeps `delay` per submission, tracking outstanding calls, keys seen and start times."""

    def __init__(self, delay: float = 0.001, jitter: float = 0.0, fail_every: int = 0, seed: int = 7) -> None:
        self.delay = delay
        self.jitter = jitter
        self.fail_every = fail_every
        self._rng = random.Random(seed)
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls: list[tuple[Order, str]] = []
        self.started_at: list[float] = []

    async def submit(self, order: Order, idempotency_key: str) -> LatencySample:
        self.calls.append((order, idempotency_key))
        self.started_at.append(asyncio.get_running_loop().time())
        call_number = len(self.calls)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delay + self._rng.random() * self.jitter
            await asyncio.sleep(delay)
        finally:
            self.in_flight -= 1
        ok = not (self.fail_every and call_number % self.fail_every == 0)
        return LatencySample(latency_ms=delay * 1000, ok=ok, status_code=200 if ok else 503)
