# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Step orchestration for roomcheck scenario runs."""

import asyncio
import logging
from datetime import datetime
from typing import Protocol

from roomcheck.clients.interfaces import RoomDirectory, SessionTransport
from roomcheck.core.errors import InvalidStateError, RoomCheckError
from roomcheck.core.settings import RunSettings
from roomcheck.core.types import RunMode, StepStatus, TestReport
from roomcheck.execution.action_executor import ActionExecutor, ActionOutcome
from roomcheck.execution.context import RunContext
from roomcheck.execution.gates import StepGate
from roomcheck.execution.validation_engine import ValidationEngine
from roomcheck.reporting.metrics import STEP_DURATION, MetricsCollector
from roomcheck.reporting.report_generator import ReportGenerator
from roomcheck.scenario.loader import check_steps
from roomcheck.scenario.plan import Scenario, TestPlan, TestStep

logger = logging.getLogger(__name__)


class StepListener(Protocol):
    """Receives step lifecycle notifications, e.g. for progress output."""

    def step_started(self, step: TestStep) -> None: ...

    def step_finished(self, step: TestStep) -> None: ...


class StepOrchestrator:
    """Drives a test plan through its steps in strict declared order.

    Each step goes Pending -> Running -> Passed/Failed: the action is
    executed, then the step's validations are polled until they hold or
    time out. When a step fails and continue-on-failure is disabled, all
    remaining pending steps are skipped. In stepped mode the orchestrator
    waits on a gate between steps.

    One orchestrator holds no per-run state; every run gets its own
    RunContext, so separate runs never share mutable fields.
    """

    def __init__(
        self,
        transport: SessionTransport,
        directory: RoomDirectory,
        settings: RunSettings | None = None,
        gate: StepGate | None = None,
        listener: StepListener | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            transport: Session transport shared by all client adaptors
            directory: Room directory used for validations
            settings: Run settings; defaults to the scenario's own settings
            gate: Advance signal source, required for stepped mode
            listener: Optional step lifecycle listener
        """
        self.transport = transport
        self.directory = directory
        self.settings = settings
        self.gate = gate
        self.listener = listener

    def run_tests(self, scenario: Scenario) -> TestReport:
        """Synchronous entry point - runs the scenario in a new event loop."""
        return asyncio.run(self.run_scenario(scenario))

    async def run_scenario(self, scenario: Scenario) -> TestReport:
        """Check ``scenario``, build a fresh plan from it and run it.

        Raises:
            ScenarioError: If the scenario is malformed (before anything runs)
        """
        settings = self.settings or scenario.settings
        return await self.run(scenario.build_plan(), settings)

    async def run(
        self, plan: TestPlan, settings: RunSettings | None = None
    ) -> TestReport:
        """Execute ``plan`` and return its report.

        Args:
            plan: A plan that has not been executed yet
            settings: Overrides the orchestrator settings for this run

        Raises:
            ScenarioError: If the plan references undeclared clients or rooms,
                or a step has no validations
            InvalidStateError: If the plan was already executed, or stepped
                mode is requested without a gate
        """
        settings = settings or self.settings or RunSettings()
        if settings.mode == RunMode.STEPPED and self.gate is None:
            raise InvalidStateError("Stepped mode requires an advance gate")
        check_steps(plan.clients, [step.spec for step in plan])
        plan.mark_started()

        metrics = MetricsCollector()
        context = RunContext.for_plan(
            plan, self.transport, self.directory, settings, metrics
        )
        executor = ActionExecutor(context)
        engine = ValidationEngine(context)
        started_at = datetime.now()

        logger.info(
            f"Running plan '{plan.name}' with {len(plan)} steps "
            f"({settings.mode.value} mode, "
            f"continue_on_failure={settings.continue_on_failure})"
        )
        try:
            for step in plan:
                if step.status != StepStatus.PENDING:
                    continue
                await self._run_step(step, executor, engine, context)

                if step.status == StepStatus.FAILED and not settings.continue_on_failure:
                    self._skip_remaining(plan, step)
                    break

                upcoming = plan.pending_after(step)
                if upcoming and settings.mode == RunMode.STEPPED:
                    assert self.gate is not None
                    await self.gate.wait(step, upcoming[0])
        finally:
            await self._teardown(context, executor)

        report = ReportGenerator.generate(plan, metrics, started_at, settings.mode)
        logger.info(f"Plan '{plan.name}' finished: {report}")
        return report

    async def _run_step(
        self,
        step: TestStep,
        executor: ActionExecutor,
        engine: ValidationEngine,
        context: RunContext,
    ) -> None:
        step.transition(StepStatus.RUNNING)
        context.metrics.current_step = step.index
        logger.info(f"Step {step.index}: {step.name} - {step.description}")
        if self.listener is not None:
            self.listener.step_started(step)

        try:
            outcome = await executor.execute(step.action)
            failure = self._check_action(step, outcome)
            if failure is None:
                validation = await engine.wait_until_satisfied(step.validations)
                step.polls = validation.polls
                validation.raise_for_failure()
        except RoomCheckError as e:
            failure = str(e)
        except Exception as e:
            logger.error(
                f"Unexpected error in step {step.index} ({step.name}): {e}",
                exc_info=True,
            )
            failure = f"internal error: {type(e).__name__}: {e}"

        if failure is None:
            step.transition(StepStatus.PASSED)
        else:
            step.transition(StepStatus.FAILED, failure)
            logger.warning(f"Step {step.index} ({step.name}) failed: {failure}")

        if step.duration is not None:
            context.metrics.record_sample(STEP_DURATION, step.duration)
        context.metrics.current_step = None
        if self.listener is not None:
            self.listener.step_finished(step)

    @staticmethod
    def _check_action(step: TestStep, outcome: ActionOutcome) -> str | None:
        """Failure reason for the action part of a step, None if acceptable."""
        expected = step.spec.expect_error
        if expected is None:
            if outcome.succeeded:
                return None
            return f"action failed: {outcome.detail}"

        if outcome.succeeded:
            wanted = f" containing '{expected}'" if expected else ""
            return f"action succeeded but an error{wanted} was expected"
        if expected not in (outcome.detail or ""):
            return f"action failed with an unexpected error: {outcome.detail}"
        logger.info(f"Step {step.index}: action failed as expected: {outcome.detail}")
        return None

    def _skip_remaining(self, plan: TestPlan, failed: TestStep) -> None:
        remaining = plan.pending_after(failed)
        for step in remaining:
            step.transition(
                StepStatus.SKIPPED, f"step {failed.index} ({failed.name}) failed"
            )
            if self.listener is not None:
                self.listener.step_finished(step)
        if remaining:
            logger.info(f"Skipped {len(remaining)} remaining step(s)")

    @staticmethod
    async def _teardown(context: RunContext, executor: ActionExecutor) -> None:
        """Drain in-flight operations, then disconnect connected clients."""
        timeout = context.settings.teardown_timeout
        await executor.drain(timeout)
        connected = [a for a in context.adaptors.values() if a.connected]
        if not connected:
            return
        logger.debug(f"Disconnecting {len(connected)} client(s) at teardown")
        results = await asyncio.gather(
            *(asyncio.wait_for(adaptor.disconnect(), timeout) for adaptor in connected),
            return_exceptions=True,
        )
        for adaptor, result in zip(connected, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Teardown disconnect of {adaptor.client_id} failed: "
                    f"{type(result).__name__}: {result}"
                )
