# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Lightweight timing and latency counters collected during a run.

One collector belongs to one run. Samples are grouped by metric name and
summarized into count/min/max/mean/p95 for the report.
"""

import logging
import statistics
import time
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Metric names recorded by the execution engine
STEP_DURATION = "step.duration"
ACTION_DURATION = "action.duration"
OPERATION_PREFIX = "operation."
VALIDATION_POLLS = "validation.polls"
TIME_TO_CONSISTENCY = "validation.time_to_consistency"


@dataclass(frozen=True)
class MetricSample:
    """Single metric data point."""

    name: str
    value: float
    timestamp: float
    step: int | None = None


class MetricsCollector:
    """Collects samples for one run.

    The engine records step, action and per-participant operation timings and
    validation convergence. Callers may add their own samples (e.g. network
    latency or frame rate reported by the application) via ``record_sample``.
    """

    def __init__(self) -> None:
        self._samples: list[MetricSample] = []
        self._by_name: dict[str, list[float]] = defaultdict(list)
        self.current_step: int | None = None

    def record_sample(self, name: str, value: float, step: int | None = None) -> None:
        """Record one sample, attributed to the current step unless given."""
        sample = MetricSample(
            name=name,
            value=float(value),
            timestamp=time.time(),
            step=self.current_step if step is None else step,
        )
        self._samples.append(sample)
        self._by_name[name].append(sample.value)

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Record the wall time spent inside the block under ``name``."""
        start = time.monotonic()
        try:
            yield
        finally:
            self.record_sample(name, time.monotonic() - start)

    @property
    def samples(self) -> tuple[MetricSample, ...]:
        return tuple(self._samples)

    def values(self, name: str) -> list[float]:
        return list(self._by_name.get(name, []))

    def summary(self) -> dict[str, dict[str, float]]:
        """Per-metric statistics: count, min, max, mean and p95."""
        result: dict[str, dict[str, float]] = {}
        for name in sorted(self._by_name):
            values = self._by_name[name]
            result[name] = {
                "count": len(values),
                "min": min(values),
                "max": max(values),
                "mean": statistics.fmean(values),
                "p95": _percentile(values, 95),
            }
        return result


def _percentile(values: list[float], percentile: int) -> float:
    """Nearest-rank percentile."""
    ordered = sorted(values)
    if len(ordered) == 1:
        return ordered[0]
    rank = max(1, -(-percentile * len(ordered) // 100))
    return ordered[min(rank, len(ordered)) - 1]
