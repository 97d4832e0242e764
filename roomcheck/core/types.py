# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Core types for roomcheck orchestration."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from roomcheck.core.constants import EXIT_FAILURE_CAP


class StepStatus(str, Enum):
    """Lifecycle status of a single test step.

    Transition table:
        PENDING -> RUNNING (orchestrator dispatch)
        RUNNING -> PASSED | FAILED
        PENDING -> SKIPPED (a prior required step failed)
    PASSED, FAILED and SKIPPED are terminal.
    """

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.PASSED, StepStatus.FAILED, StepStatus.SKIPPED)


ALLOWED_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.RUNNING, StepStatus.SKIPPED}),
    StepStatus.RUNNING: frozenset({StepStatus.PASSED, StepStatus.FAILED}),
    StepStatus.PASSED: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}


class RunMode(str, Enum):
    """How the orchestrator advances between steps.

        UNATTENDED: Dispatch the next step as soon as the previous one resolves
        STEPPED: Wait for an explicit advance signal between steps
    """

    UNATTENDED = "unattended"
    STEPPED = "stepped"


@dataclass(frozen=True)
class StepReport:
    """Outcome of one step as recorded in the final report."""

    index: int
    name: str
    status: StepStatus
    duration: float | None = None
    reason: str | None = None
    polls: int = 0


@dataclass(frozen=True)
class TestReport:
    """Structured, immutable result of one scenario run.

    Attributes:
        scenario: Name of the scenario that was run
        timestamp: Wall-clock start time of the run
        mode: Run mode used
        steps: Per-step outcomes in plan order
        failures: Ordered failure causes, one per failed step
        metrics: Summary statistics from the metrics collector

    Properties:
        total/passed/failed/skipped: Counts derived from ``steps``
    """

    __test__ = False  # not a pytest test class

    scenario: str
    timestamp: datetime
    mode: RunMode
    steps: tuple[StepReport, ...] = ()
    failures: tuple[str, ...] = ()
    metrics: Mapping[str, Mapping[str, float]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {
            name: MappingProxyType(dict(stats)) for name, stats in self.metrics.items()
        }
        object.__setattr__(self, "metrics", MappingProxyType(frozen))

    def _count(self, status: StepStatus) -> int:
        return sum(1 for step in self.steps if step.status == status)

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def passed(self) -> int:
        return self._count(StepStatus.PASSED)

    @property
    def failed(self) -> int:
        return self._count(StepStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(StepStatus.SKIPPED)

    @property
    def duration(self) -> float:
        """Sum of the recorded step durations."""
        return sum(step.duration or 0.0 for step in self.steps)

    @property
    def success_rate(self) -> float:
        """Success rate excluding skipped steps (0.0-100.0)."""
        executed = self.total - self.skipped
        if executed > 0:
            return (self.passed / executed) * 100
        return 0.0

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    @property
    def exit_code(self) -> int:
        """Exit code per Robot Framework convention.

        Exit codes:
            0: All executed steps passed
            1-250: Number of failed steps (capped at 250)
        """
        if self.has_failures:
            return min(self.failed, EXIT_FAILURE_CAP)
        return 0

    def to_dict(self) -> dict[str, Any]:
        """Plain-data representation suitable for JSON serialization."""
        return {
            "scenario": self.scenario,
            "timestamp": self.timestamp.isoformat(),
            "mode": self.mode.value,
            "summary": {
                "total": self.total,
                "passed": self.passed,
                "failed": self.failed,
                "skipped": self.skipped,
                "success_rate": round(self.success_rate, 2),
                "duration": round(self.duration, 4),
            },
            "steps": [
                {
                    "index": step.index,
                    "name": step.name,
                    "status": step.status.value,
                    "duration": step.duration,
                    "reason": step.reason,
                    "polls": step.polls,
                }
                for step in self.steps
            ],
            "failures": list(self.failures),
            "metrics": {name: dict(stats) for name, stats in self.metrics.items()},
        }

    def __str__(self) -> str:
        """Concise string representation: total/passed/failed/skipped."""
        return f"{self.total}/{self.passed}/{self.failed}/{self.skipped}"
