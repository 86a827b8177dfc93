"""
Closed-loop driver: replay a fixed batch of orders with bounded concurrency.

A slot must be free before the next order is issued; each completion frees
its slot and records its sample. Issuance follows the order sequence,
completions may arrive in any order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable

from common.ids import idempotency_key
from common.models import LatencySample, Order, RunReport
from loadgen.dispatcher import Dispatcher
from loadgen.errors import ConfigurationError
from loadgen.stats import LatencyRecorder

logger = logging.getLogger(__name__)


@dataclass
class ClosedLoopResult:
    issued: int
    samples: list[LatencySample]
    max_in_flight: int
    report: RunReport | None
    elapsed_s: float
    keys: list[str] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return len(self.samples)

    @property
    def failures(self) -> int:
        return sum(1 for s in self.samples if not s.ok)


class _ClosedLoopRun:
    """Single-owner run state; every mutation happens on the event loop thread."""

    def __init__(self, dispatcher: Dispatcher, concurrency: int, key_prefix: str) -> None:
        self.dispatcher = dispatcher
        self.concurrency = concurrency
        self.key_prefix = key_prefix
        self.slots = asyncio.Semaphore(concurrency)
        self.recorder = LatencyRecorder()
        self.idx = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.keys: list[str] = []
        self.tasks: set[asyncio.Task] = set()

    async def admit(self, order: Order) -> None:
        await self.slots.acquire()
        self.idx += 1
        key = idempotency_key(self.key_prefix, self.idx)
        self.keys.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        task = asyncio.create_task(self._dispatch(order, key))
        self.tasks.add(task)
        task.add_done_callback(self._on_done)

    async def _dispatch(self, order: Order, key: str) -> LatencySample:
        start = time.perf_counter()
        try:
            return await self.dispatcher.submit(order, key)
        except Exception as e:
            # Dispatchers resolve failures into samples; anything escaping is
            # still timed and counted as a failed attempt.
            logger.warning("Dispatch of %s raised %r; recording as failure", key, e)
            latency = (time.perf_counter() - start) * 1000
            return LatencySample(latency_ms=latency, ok=False, error=f"error:{type(e).__name__}:{e}")

    def _on_done(self, task: asyncio.Task) -> None:
        self.tasks.discard(task)
        self.in_flight -= 1
        self.slots.release()
        if not task.cancelled():
            self.recorder.record(task.result())

    async def drain(self) -> None:
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)


async def run_closed_loop(
    dispatcher: Dispatcher,
    orders: Iterable[Order],
    concurrency: int,
    key_prefix: str = "load",
) -> ClosedLoopResult:
    """
    Issue every order exactly once with at most `concurrency` outstanding.

    Orders are pulled lazily from `orders`, so a generator works as well as a
    pre-built list. The run ends when all orders are issued and nothing is in
    flight. `report` is None when no samples were recorded (empty batch).
    """
    if concurrency < 1:
        raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")

    run = _ClosedLoopRun(dispatcher, concurrency, key_prefix)
    t0 = time.perf_counter()
    try:
        for order in orders:
            await run.admit(order)
        await run.drain()
    finally:
        for task in list(run.tasks):
            task.cancel()
    elapsed = time.perf_counter() - t0

    report = run.recorder.report()
    logger.info(
        "Closed-loop run finished: issued=%d completed=%d failures=%d max_in_flight=%d elapsed=%.2fs",
        run.idx,
        len(run.recorder),
        run.recorder.failures,
        run.max_in_flight,
        elapsed,
    )
    return ClosedLoopResult(
        issued=run.idx,
        samples=run.recorder.samples,
        max_in_flight=run.max_in_flight,
        report=report,
        elapsed_s=elapsed,
        keys=run.keys,
    )
