"""
Open-loop driver: constant arrival rate for a fixed duration.

Arrival k fires at start + k / rate on the event loop's monotonic clock,
whether or not earlier requests have completed. Each arrival is served by an
idle virtual caller; the pool grows on demand from `pre_allocated_callers` up
to `max_callers`. When every caller is busy and the ceiling is reached, the
arrival is dropped and counted, never queued, so the offered schedule is not
silently stretched.

Issuance stops once `duration` has elapsed on that clock. In-flight iterations get `graceful_stop`
seconds to drain; whatever is still running after that is cancelled and
counted as abandoned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field

from common.ids import idempotency_key
from common.models import CheckTally, LatencySample, RunReport
from loadgen.config import OpenLoopConfig
from loadgen.dispatcher import Dispatcher
from loadgen.generator import OrderGenerator
from loadgen.stats import LatencyRecorder

logger = logging.getLogger(__name__)

STATUS_CHECK = "status is 200"


@dataclass
class VirtualCaller:
    number: int
    iteration: int = 0

    def next_key(self) -> str:
        key = idempotency_key(self.number, self.iteration)
        self.iteration += 1
        return key


@dataclass
class OpenLoopResult:
    scheduled: int
    issued: int
    dropped: int
    abandoned: int
    callers_allocated: int
    max_in_flight: int
    samples: list[LatencySample]
    checks: list[CheckTally]
    report: RunReport | None
    elapsed_s: float
    keys: list[str] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return len(self.samples)

    @property
    def achieved_rate(self) -> float:
        return self.issued / self.elapsed_s if self.elapsed_s > 0 else 0.0


class _OpenLoopRun:
    """Single-owner run state; arrivals and completions both run on the event loop."""

    def __init__(self, dispatcher: Dispatcher, generator: OrderGenerator, config: OpenLoopConfig) -> None:
        self.dispatcher = dispatcher
        self.generator = generator
        self.config = config
        self.idle: deque[VirtualCaller] = deque(
            VirtualCaller(n) for n in range(1, config.pre_allocated_callers + 1)
        )
        self.allocated = config.pre_allocated_callers
        self.recorder = LatencyRecorder()
        self.status_check = CheckTally(name=STATUS_CHECK)
        self.tasks: set[asyncio.Task] = set()
        self.scheduled = 0
        self.issued = 0
        self.dropped = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.keys: list[str] = []

    def _acquire_caller(self) -> VirtualCaller | None:
        if self.idle:
            return self.idle.popleft()
        if self.allocated < self.config.max_callers:
            self.allocated += 1
            logger.debug("Allocating virtual caller %d", self.allocated)
            return VirtualCaller(self.allocated)
        return None

    def arrive(self, index: int) -> None:
        self.scheduled += 1
        caller = self._acquire_caller()
        if caller is None:
            self.dropped += 1
            if self.dropped == 1:
                logger.warning(
                    "All %d callers busy; dropping arrivals (raise max_callers to sustain %.0f/s)",
                    self.config.max_callers,
                    self.config.rate,
                )
            return
        self.issued += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        key = caller.next_key()
        self.keys.append(key)
        task = asyncio.create_task(self._iterate(index, key))
        self.tasks.add(task)
        task.add_done_callback(lambda t, c=caller: self._on_done(t, c))

    async def _iterate(self, index: int, key: str) -> LatencySample:
        order = self.generator.generate(index)
        start = time.perf_counter()
        try:
            return await self.dispatcher.submit(order, key)
        except Exception as e:
            logger.warning("Dispatch of %s raised %r; recording as failure", key, e)
            latency = (time.perf_counter() - start) * 1000
            return LatencySample(latency_ms=latency, ok=False, error=f"error:{type(e).__name__}:{e}")

    def _on_done(self, task: asyncio.Task, caller: VirtualCaller) -> None:
        self.tasks.discard(task)
        self.in_flight -= 1
        if task.cancelled():
            return
        sample = task.result()
        self.recorder.record(sample)
        self.status_check.observe(sample.status_code == 200)
        self.idle.append(caller)

    async def drain(self, timeout: float) -> int:
        """Wait up to `timeout` for in-flight iterations; cancel the rest and return how many."""
        if not self.tasks:
            return 0
        _, pending = await asyncio.wait(set(self.tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)


async def run_open_loop(
    dispatcher: Dispatcher,
    generator: OrderGenerator,
    config: OpenLoopConfig,
) -> OpenLoopResult:
    """Drive `config.rate` arrivals per second for `config.duration` seconds."""
    loop = asyncio.get_running_loop()
    run = _OpenLoopRun(dispatcher, generator, config)
    t0 = time.perf_counter()
    start = loop.time()
    logger.info(
        "Open-loop run: rate=%.1f/s duration=%.1fs callers=%d..%d",
        config.rate,
        config.duration,
        config.pre_allocated_callers,
        config.max_callers,
    )
    try:
        for k in range(config.expected_arrivals):
            delay = start + k / config.rate - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            run.arrive(k)
        # The last arrival is due at (n-1)/rate; issuance still spans the full duration.
        remaining = start + config.duration - loop.time()
        while remaining > 0:
            await asyncio.sleep(remaining)
            remaining = start + config.duration - loop.time()
        abandoned = await run.drain(config.graceful_stop)
    finally:
        for task in list(run.tasks):
            task.cancel()
    elapsed = time.perf_counter() - t0

    if abandoned:
        logger.warning("%d in-flight requests abandoned after %.1fs graceful stop", abandoned, config.graceful_stop)
    report = run.recorder.report()
    logger.info(
        "Open-loop run finished: scheduled=%d issued=%d completed=%d dropped=%d abandoned=%d callers=%d elapsed=%.2fs",
        run.scheduled,
        run.issued,
        len(run.recorder),
        run.dropped,
        abandoned,
        run.allocated,
        elapsed,
    )
    return OpenLoopResult(
        scheduled=run.scheduled,
        issued=run.issued,
        dropped=run.dropped,
        abandoned=abandoned,
        callers_allocated=run.allocated,
        max_in_flight=run.max_in_flight,
        samples=run.recorder.samples,
        checks=[run.status_check],
        report=report,
        elapsed_s=elapsed,
        keys=run.keys,
    )
