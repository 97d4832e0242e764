# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Execution engine: action fan-out, validation polling and step orchestration."""

from roomcheck.execution.action_executor import (
    ActionExecutor,
    ActionOutcome,
    ParticipantResult,
)
from roomcheck.execution.context import RunContext
from roomcheck.execution.gates import AdvanceGate, PromptGate, StepGate
from roomcheck.execution.orchestrator import StepListener, StepOrchestrator
from roomcheck.execution.validation_engine import (
    PredicateResult,
    ValidationEngine,
    ValidationOutcome,
)

__all__ = [
    "ActionExecutor",
    "ActionOutcome",
    "ParticipantResult",
    "RunContext",
    "AdvanceGate",
    "PromptGate",
    "StepGate",
    "StepListener",
    "StepOrchestrator",
    "PredicateResult",
    "ValidationEngine",
    "ValidationOutcome",
]
