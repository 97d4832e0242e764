# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Scenario model: actions, validations, steps, plans and the YAML loader."""

from roomcheck.scenario.actions import (
    Action,
    BulkJoin,
    CreateRoom,
    Disconnect,
    JoinRoom,
    Move,
    Reconnect,
    RoomRef,
    Wait,
)
from roomcheck.scenario.loader import ScenarioLoader, check_scenario, check_steps
from roomcheck.scenario.plan import ClientSpec, Scenario, StepSpec, TestPlan, TestStep
from roomcheck.scenario.validations import (
    ConnectionState,
    MemberCount,
    MemberVisible,
    PositionNear,
    RoomAbsent,
    RoomExists,
    Validation,
)

__all__ = [
    # Actions
    "Action",
    "BulkJoin",
    "CreateRoom",
    "Disconnect",
    "JoinRoom",
    "Move",
    "Reconnect",
    "RoomRef",
    "Wait",
    # Validations
    "Validation",
    "ConnectionState",
    "MemberCount",
    "MemberVisible",
    "PositionNear",
    "RoomAbsent",
    "RoomExists",
    # Plans
    "ClientSpec",
    "Scenario",
    "StepSpec",
    "TestPlan",
    "TestStep",
    "ScenarioLoader",
    "check_scenario",
    "check_steps",
]
