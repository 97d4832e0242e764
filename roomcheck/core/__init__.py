# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Core components shared across the roomcheck framework."""

from roomcheck.core.constants import (
    # Timeouts
    DEFAULT_ACTION_TIMEOUT,
    # Room lifecycle
    DEFAULT_MAX_MEMBERS,
    # Polling
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TEARDOWN_TIMEOUT,
    DEFAULT_VALIDATION_TIMEOUT,
)
from roomcheck.core.errors import (
    ActionTimeoutError,
    ClientConnectionError,
    InvalidStateError,
    RoomCheckError,
    ScenarioError,
    StatusTransitionError,
    ValidationTimeoutError,
)
from roomcheck.core.models import ClientSession, Direction, MemberSummary, Position
from roomcheck.core.types import RunMode, StepReport, StepStatus, TestReport

__all__ = [
    # Constants
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_VALIDATION_TIMEOUT",
    "DEFAULT_ACTION_TIMEOUT",
    "DEFAULT_TEARDOWN_TIMEOUT",
    "DEFAULT_MAX_MEMBERS",
    # Errors
    "RoomCheckError",
    "ClientConnectionError",
    "InvalidStateError",
    "ActionTimeoutError",
    "ValidationTimeoutError",
    "ScenarioError",
    "StatusTransitionError",
    # Models
    "ClientSession",
    "Direction",
    "MemberSummary",
    "Position",
    # Types
    "RunMode",
    "StepReport",
    "StepStatus",
    "TestReport",
]
