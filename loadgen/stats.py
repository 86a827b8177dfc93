"""
Latency aggregation: rank-based percentiles over a run's samples.

The percentile estimator is deliberately simple and not interpolated: the
value for q is the sample at index floor(q * n) of the ascending sort. For
n=100 that is index 50 for p50, 90 for p90 and 99 for p99.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from common.models import LatencySample, RunReport
from loadgen.errors import NoSamplesError

PERCENTILES = (("p50", 0.5), ("p90", 0.9), ("p99", 0.99))


def percentile(sorted_values: Sequence[float], q: float) -> float:
    """
    Value at rank floor(q * n) of an ascending sequence.

    >>> percentile(list(range(1, 101)), 0.5)
    51
    """
    n = len(sorted_values)
    if n == 0:
        raise NoSamplesError()
    if not 0 <= q < 1:
        raise ValueError(f"percentile must be in [0, 1), got {q}")
    idx = min(math.floor(q * n), n - 1)
    return sorted_values[idx]


def summarize_latencies(latencies: Iterable[float], failures: int = 0) -> RunReport:
    """Build a RunReport from raw durations (ms). Raises NoSamplesError when empty."""
    ordered = sorted(latencies)
    if not ordered:
        raise NoSamplesError()
    values = {name: percentile(ordered, q) for name, q in PERCENTILES}
    return RunReport(
        count=len(ordered),
        failures=failures,
        min=ordered[0],
        max=ordered[-1],
        mean=sum(ordered) / len(ordered),
        **values,
    )


def summarize(samples: Iterable[LatencySample]) -> RunReport:
    """Summarize samples; failed requests count toward the percentiles too."""
    samples = list(samples)
    failures = sum(1 for s in samples if not s.ok)
    return summarize_latencies((s.latency_ms for s in samples), failures=failures)


class LatencyRecorder:
    """
    Run-scoped sample collection.

    Owned by a single driver; only callbacks on the driver's event loop
    append to it, so no locking is needed.
    """

    def __init__(self) -> None:
        self._samples: list[LatencySample] = []

    def record(self, sample: LatencySample) -> None:
        self._samples.append(sample)

    @property
    def samples(self) -> list[LatencySample]:
        return list(self._samples)

    @property
    def failures(self) -> int:
        return sum(1 for s in self._samples if not s.ok)

    def __len__(self) -> int:
        return len(self._samples)

    def report(self) -> RunReport | None:
        """RunReport for what was recorded, or None when there is no data."""
        try:
            return summarize(self._samples)
        except NoSamplesError:
            return None


def format_report(report: RunReport | None) -> list[str]:
    """Report lines for stdout; a single 'no data' line when nothing was recorded."""
    if report is None:
        return ["no data"]
    return [
        f"Completed {report.count} orders",
        f"Failures {report.failures}",
        f"p50 latency ms: {report.p50:.2f}",
        f"p90 latency ms: {report.p90:.2f}",
        f"p99 latency ms: {report.p99:.2f}",
    ]
