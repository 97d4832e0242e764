# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Scenario templates, test steps and test plans.

A ``Scenario`` is the immutable, declarative template. Each run calls
``Scenario.build_plan()`` to get a fresh ``TestPlan`` whose ``TestStep``
objects carry the mutable status, so statuses never leak between runs.
"""

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass, field

from roomcheck.core.errors import InvalidStateError, StatusTransitionError
from roomcheck.core.settings import RunSettings
from roomcheck.core.types import ALLOWED_TRANSITIONS, StepStatus
from roomcheck.scenario.actions import Action, describe_action
from roomcheck.scenario.validations import Validation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientSpec:
    """A participant declared by the scenario."""

    client_id: str
    display_name: str = ""

    def __post_init__(self) -> None:
        if not self.display_name:
            object.__setattr__(self, "display_name", self.client_id)


@dataclass(frozen=True)
class StepSpec:
    """Declarative definition of one step.

    Attributes:
        name: Short human-readable name
        action: The scripted action to perform
        validations: Conjunction of assertions that must all hold
        description: Optional longer description
        expect_error: If set, the action is expected to fail with an error
            containing this text (empty string matches any error)
    """

    name: str
    action: Action
    validations: tuple[Validation, ...]
    description: str = ""
    expect_error: str | None = None


@dataclass(frozen=True)
class Scenario:
    """Immutable scenario template from which run plans are built."""

    name: str
    clients: tuple[ClientSpec, ...]
    steps: tuple[StepSpec, ...]
    settings: RunSettings = field(default_factory=RunSettings)

    def build_plan(self) -> "TestPlan":
        """Create a fresh plan instance for a new run."""
        steps = tuple(TestStep(index, spec) for index, spec in enumerate(self.steps, 1))
        return TestPlan(self.name, self.clients, steps)


class TestStep:
    """One step of a plan with its mutable execution status."""

    __test__ = False  # not a pytest test class

    def __init__(self, index: int, spec: StepSpec):
        self.index = index
        self.spec = spec
        self._status = StepStatus.PENDING
        self.reason: str | None = None
        self.started_at: float | None = None
        self.finished_at: float | None = None
        self.polls = 0

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def description(self) -> str:
        return self.spec.description or describe_action(self.spec.action)

    @property
    def action(self) -> Action:
        return self.spec.action

    @property
    def validations(self) -> tuple[Validation, ...]:
        return self.spec.validations

    @property
    def status(self) -> StepStatus:
        return self._status

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def transition(self, new_status: StepStatus, reason: str | None = None) -> None:
        """Move to ``new_status``, enforcing the transition table.

        Raises:
            StatusTransitionError: If the transition is not allowed
        """
        if new_status not in ALLOWED_TRANSITIONS[self._status]:
            raise StatusTransitionError(
                f"Step {self.index} ({self.name}): illegal transition "
                f"{self._status.value} -> {new_status.value}"
            )
        now = time.monotonic()
        if new_status == StepStatus.RUNNING:
            self.started_at = now
        elif new_status in (StepStatus.PASSED, StepStatus.FAILED):
            self.finished_at = now
        logger.debug(
            f"Step {self.index} ({self.name}): {self._status.value} -> {new_status.value}"
        )
        self._status = new_status
        self.reason = reason

    def __repr__(self) -> str:
        return f"TestStep({self.index}, {self.name!r}, {self._status.value})"


class TestPlan:
    """Ordered, run-scoped sequence of steps.

    The step structure is fixed at construction; only step statuses change.
    A plan can be executed once.
    """

    __test__ = False

    def __init__(
        self, name: str, clients: tuple[ClientSpec, ...], steps: tuple[TestStep, ...]
    ):
        self.name = name
        self.clients = clients
        self.steps = steps
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def mark_started(self) -> None:
        """Claim the plan for execution.

        Raises:
            InvalidStateError: If the plan was already executed
        """
        if self._started:
            raise InvalidStateError(
                f"Plan '{self.name}' was already executed; build a fresh plan for a new run"
            )
        self._started = True

    def pending_after(self, step: TestStep) -> list[TestStep]:
        """Steps after ``step`` that are still pending."""
        return [
            s
            for s in self.steps
            if s.index > step.index and s.status == StepStatus.PENDING
        ]

    def count(self, status: StepStatus) -> int:
        return sum(1 for step in self.steps if step.status == status)

    def __iter__(self) -> Iterator[TestStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)
