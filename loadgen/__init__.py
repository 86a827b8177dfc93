"""
Load generation and latency measurement for an order-intake HTTP service.

Closed-loop (bounded concurrency) and open-loop (fixed arrival rate) drivers
share one generator, dispatcher and rank-based latency aggregator.
"""

from loadgen.closed_loop import ClosedLoopResult, run_closed_loop
from loadgen.config import ClosedLoopConfig, OpenLoopConfig
from loadgen.dispatcher import Dispatcher, OrderDispatcher
from loadgen.errors import ConfigurationError, LoadgenError, NoSamplesError, ReportError
from loadgen.generator import OrderGenerator
from loadgen.open_loop import OpenLoopResult, run_open_loop
from loadgen.stats import LatencyRecorder, percentile, summarize

__all__ = [
    "OrderGenerator",
    "Dispatcher",
    "OrderDispatcher",
    "run_closed_loop",
    "ClosedLoopResult",
    "run_open_loop",
    "OpenLoopResult",
    "ClosedLoopConfig",
    "OpenLoopConfig",
    "LatencyRecorder",
    "percentile",
    "summarize",
    "LoadgenError",
    "ConfigurationError",
    "ReportError",
    "NoSamplesError",
]
