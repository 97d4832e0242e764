# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Report generation from a finished test plan."""

import logging
from datetime import datetime

from roomcheck.core.types import RunMode, StepReport, StepStatus, TestReport
from roomcheck.reporting.metrics import MetricsCollector
from roomcheck.scenario.plan import TestPlan

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Builds the immutable TestReport of a run.

    Generation is a pure aggregation over the plan's final step statuses
    and the metrics collector's samples; the same inputs always give the
    same report.
    """

    @staticmethod
    def generate(
        plan: TestPlan,
        metrics: MetricsCollector,
        started_at: datetime,
        mode: RunMode = RunMode.UNATTENDED,
    ) -> TestReport:
        """Aggregate ``plan`` and ``metrics`` into a report.

        Args:
            plan: Plan whose steps have reached their final statuses
            metrics: Collector holding the run's samples
            started_at: Wall-clock start of the run
            mode: Run mode that was used

        Returns:
            TestReport with one StepReport per step, in plan order
        """
        unresolved = [step for step in plan if not step.status.is_terminal]
        if unresolved:
            logger.warning(
                f"Generating report with {len(unresolved)} unresolved step(s): "
                f"{', '.join(str(step.index) for step in unresolved)}"
            )

        steps = tuple(
            StepReport(
                index=step.index,
                name=step.name,
                status=step.status,
                duration=step.duration,
                reason=step.reason,
                polls=step.polls,
            )
            for step in plan
        )
        failures = tuple(
            f"Step {step.index} ({step.name}): {step.reason}"
            for step in plan
            if step.status == StepStatus.FAILED
        )
        return TestReport(
            scenario=plan.name,
            timestamp=started_at,
            mode=mode,
            steps=steps,
            failures=failures,
            metrics=metrics.summary(),
        )
