# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Unit tests for scenario loading and pre-run checks."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from roomcheck.core.errors import ScenarioError
from roomcheck.core.models import Direction, Position
from roomcheck.core.types import RunMode
from roomcheck.scenario.actions import BulkJoin, CreateRoom, JoinRoom, Move, RoomRef, Wait
from roomcheck.scenario.loader import ScenarioLoader, check_scenario
from roomcheck.scenario.plan import ClientSpec, Scenario, StepSpec
from roomcheck.scenario.validations import (
    ConnectionState,
    MemberCount,
    PositionNear,
    RoomAbsent,
    RoomExists,
)

CREATE_LOBBY = {
    "name": "alice creates a room",
    "action": {"create_room": {"client": "alice", "room": "lobby"}},
    "validations": [{"room_exists": {"room": "lobby"}}],
}


class TestScenarioLoaderFromDict:
    def test_minimal_scenario(self, make_scenario: Callable[..., Scenario]) -> None:
        scenario = make_scenario([CREATE_LOBBY])

        assert scenario.name == "test scenario"
        assert [c.client_id for c in scenario.clients] == ["alice", "bob"]
        step = scenario.steps[0]
        assert step.action == CreateRoom("alice", RoomRef("lobby"))
        assert step.validations == (RoomExists(RoomRef("lobby")),)
        assert step.expect_error is None

    def test_client_display_names(self, make_scenario: Callable[..., Scenario]) -> None:
        scenario = make_scenario(
            [CREATE_LOBBY], clients=["alice", {"name": "bob", "display_name": "Bobby"}]
        )
        assert scenario.clients == (ClientSpec("alice", "alice"), ClientSpec("bob", "Bobby"))

    def test_settings_block(self, make_scenario: Callable[..., Scenario]) -> None:
        scenario = make_scenario(
            [CREATE_LOBBY], settings={"validation_timeout": 2, "mode": "stepped"}
        )
        assert scenario.settings.validation_timeout == 2
        assert scenario.settings.mode == RunMode.STEPPED

    @pytest.mark.parametrize(
        "value,expected", [("false", False), ("No", False), ("true", True), (True, True)]
    )
    def test_boolean_settings_are_parsed(
        self, make_scenario: Callable[..., Scenario], value: Any, expected: bool
    ) -> None:
        scenario = make_scenario([CREATE_LOBBY], settings={"continue_on_failure": value})
        assert scenario.settings.continue_on_failure is expected

    def test_numeric_strings_are_accepted(
        self, make_scenario: Callable[..., Scenario]
    ) -> None:
        scenario = make_scenario([CREATE_LOBBY], settings={"validation_timeout": "2.5"})
        assert scenario.settings.validation_timeout == 2.5

    @pytest.mark.parametrize(
        "settings,message",
        [
            ({"validation_timeout": "5s"}, "validation_timeout must be a number"),
            ({"poll_interval": [1]}, "poll_interval must be a number"),
            ({"action_timeout": True}, "action_timeout must be a number"),
            ({"continue_on_failure": "maybe"}, "continue_on_failure must be true or false"),
            ({"require_all_participants": 1}, "require_all_participants must be true or false"),
        ],
    )
    def test_mistyped_settings_rejected(
        self,
        make_scenario: Callable[..., Scenario],
        settings: dict[str, Any],
        message: str,
    ) -> None:
        with pytest.raises(ScenarioError, match=message):
            make_scenario([CREATE_LOBBY], settings=settings)

    def test_generated_group_expands_in_order(
        self, make_scenario: Callable[..., Scenario]
    ) -> None:
        scenario = make_scenario(
            [
                CREATE_LOBBY,
                {
                    "name": "bots join",
                    "action": {"bulk_join": {"clients": ["@bots"], "room": "lobby"}},
                    "validations": [
                        {"member_count": {"room": "lobby", "expected": 4, "observers": "@bots"}}
                    ],
                },
            ],
            clients=["alice"],
            groups={"bots": {"prefix": "bot", "count": 3}},
        )

        bots = ("bot01", "bot02", "bot03")
        assert [c.client_id for c in scenario.clients] == ["alice", *bots]
        assert scenario.steps[1].action == BulkJoin(bots, RoomRef("lobby"))
        assert scenario.steps[1].validations[0] == MemberCount(RoomRef("lobby"), 4, bots)

    def test_listed_group(self, make_scenario: Callable[..., Scenario]) -> None:
        scenario = make_scenario(
            [
                CREATE_LOBBY,
                {
                    "name": "everyone moves",
                    "action": {"move": {"clients": "@all", "direction": "UP", "duration": 0.5}},
                    "validations": [{"room_exists": {"room": "lobby"}}],
                },
            ],
            groups={"all": ["alice", "bob"]},
        )
        assert scenario.steps[1].action == Move(("alice", "bob"), Direction.UP, 0.5)

    def test_action_and_validation_variants(
        self, make_scenario: Callable[..., Scenario]
    ) -> None:
        scenario = make_scenario(
            [
                CREATE_LOBBY,
                {
                    "name": "bob joins by code and waits",
                    "action": {"join_room": {"client": "bob", "code": "ABC234"}},
                    "validations": [
                        {"room_absent": {"code": "ABC234"}},
                        {"position_near": {"client": "bob", "expected": [1, 2], "tolerance": 0.5}},
                        {
                            "position_near": {
                                "client": "bob",
                                "expected": {"x": 3, "y": 4},
                                "tolerance": 1,
                                "observer": "alice",
                            }
                        },
                        {"connection_state": {"client": "bob", "expected": True}},
                    ],
                    "expect_error": "not found",
                },
                {
                    "name": "pause",
                    "action": {"wait": 0.1},
                    "validations": [{"room_exists": {"room": "lobby"}}],
                },
            ]
        )

        join = scenario.steps[1]
        assert join.action == JoinRoom("bob", RoomRef.code("ABC234"))
        assert join.expect_error == "not found"
        assert join.validations == (
            RoomAbsent(RoomRef.code("ABC234")),
            PositionNear("bob", Position(1, 2), 0.5),
            PositionNear("bob", Position(3, 4), 1.0, observer="alice"),
            ConnectionState("bob", True),
        )
        assert scenario.steps[2].action == Wait(0.1)

    def test_expect_error_true_matches_any_error(
        self, make_scenario: Callable[..., Scenario]
    ) -> None:
        step = dict(CREATE_LOBBY, expect_error=True)
        assert make_scenario([step]).steps[0].expect_error == ""

    @pytest.mark.parametrize("value,expected", [(False, False), ("false", False), ("Yes", True)])
    def test_connection_state_expected_is_parsed(
        self, make_scenario: Callable[..., Scenario], value: Any, expected: bool
    ) -> None:
        step = dict(
            CREATE_LOBBY,
            validations=[{"connection_state": {"client": "alice", "expected": value}}],
        )
        validation = make_scenario([step]).steps[0].validations[0]
        assert validation == ConnectionState("alice", expected)

    @pytest.mark.parametrize("value", ["offline", 0, None])
    def test_connection_state_rejects_non_boolean(
        self, make_scenario: Callable[..., Scenario], value: Any
    ) -> None:
        step = dict(
            CREATE_LOBBY,
            validations=[{"connection_state": {"client": "alice", "expected": value}}],
        )
        with pytest.raises(ScenarioError, match=r"Step 1 .*expected must be true or false"):
            make_scenario([step])

    @pytest.mark.parametrize(
        "steps,message",
        [
            ([], "non-empty list of steps"),
            ([{"name": "x", "action": {"fly": {}}, "validations": []}], "Unknown action 'fly'"),
            (
                [dict(CREATE_LOBBY, validations=[{"teleported": {}}])],
                "Unknown validation 'teleported'",
            ),
            ([dict(CREATE_LOBBY, validations=[])], "at least one validation"),
            (
                [
                    {
                        "name": "join",
                        "action": {"join_room": {"client": "bob", "room": "lobby"}},
                        "validations": [{"room_exists": {"room": "lobby"}}],
                    }
                ],
                "room 'lobby' is not created by an earlier step",
            ),
            ([CREATE_LOBBY, CREATE_LOBBY], "created twice"),
            (
                [dict(CREATE_LOBBY, action={"create_room": {"client": "zed", "room": "lobby"}})],
                "undeclared client 'zed'",
            ),
            (
                [
                    dict(
                        CREATE_LOBBY,
                        validations=[{"connection_state": {"client": "zed", "expected": True}}],
                    )
                ],
                "undeclared client 'zed'",
            ),
            (
                [dict(CREATE_LOBBY, action={"create_room": {"client": "alice", "code": "ABC"}})],
                "needs a room alias",
            ),
            (
                [
                    CREATE_LOBBY,
                    dict(
                        CREATE_LOBBY,
                        action={"bulk_join": {"clients": ["bob", "bob"], "room": "lobby"}},
                    ),
                ],
                "more than once",
            ),
            (
                [dict(CREATE_LOBBY, action={"move": {"clients": [], "direction": "up", "duration": 1}})],
                "at least one client",
            ),
            (
                [dict(CREATE_LOBBY, action={"move": {"client": "alice", "direction": "sideways", "duration": 1}})],
                "invalid value",
            ),
            ([dict(CREATE_LOBBY, action={"wait": -1})], "must not be negative"),
        ],
    )
    def test_malformed_scenarios_are_rejected(
        self,
        make_scenario: Callable[..., Scenario],
        steps: list[dict[str, Any]],
        message: str,
    ) -> None:
        with pytest.raises(ScenarioError, match=message):
            make_scenario(steps)

    def test_errors_name_the_step(self, make_scenario: Callable[..., Scenario]) -> None:
        bad = {"name": "broken", "action": {"fly": {}}, "validations": []}
        with pytest.raises(ScenarioError, match=r"Step 2 \(broken\)"):
            make_scenario([CREATE_LOBBY, bad])

    def test_duplicate_clients_rejected(self, make_scenario: Callable[..., Scenario]) -> None:
        with pytest.raises(ScenarioError, match="declared twice"):
            make_scenario([CREATE_LOBBY], clients=["alice", "alice"])

    def test_unknown_group_rejected(self, make_scenario: Callable[..., Scenario]) -> None:
        step = dict(
            CREATE_LOBBY,
            validations=[{"member_count": {"room": "lobby", "expected": 1, "observers": "@nobody"}}],
        )
        with pytest.raises(ScenarioError, match="Unknown client group 'nobody'"):
            make_scenario([step])


class TestScenarioLoaderLoad:
    def test_load_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "create_room.yaml"
        path.write_text(
            "clients: [alice]\n"
            "steps:\n"
            "  - name: create\n"
            "    action:\n"
            "      create_room: {client: alice, room: lobby}\n"
            "    validations:\n"
            "      - room_exists: {room: lobby}\n"
        )

        scenario = ScenarioLoader.load(path)

        assert scenario.name == "create_room"
        assert len(scenario.steps) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ScenarioError, match="Cannot read scenario file"):
            ScenarioLoader.load(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("steps: [unclosed\n")
        with pytest.raises(ScenarioError, match="Invalid YAML"):
            ScenarioLoader.load(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ScenarioError, match="must contain a mapping"):
            ScenarioLoader.load(path)


class TestCheckScenario:
    def test_rejects_hand_built_scenario_with_undeclared_client(self) -> None:
        scenario = Scenario(
            name="manual",
            clients=(ClientSpec("alice"),),
            steps=(
                StepSpec(
                    "create",
                    CreateRoom("mallory", RoomRef("lobby")),
                    (RoomExists(RoomRef("lobby")),),
                ),
            ),
        )
        with pytest.raises(ScenarioError, match="undeclared client 'mallory'"):
            check_scenario(scenario)

    def test_same_step_creation_satisfies_validation(self) -> None:
        scenario = Scenario(
            name="manual",
            clients=(ClientSpec("alice"),),
            steps=(
                StepSpec(
                    "create",
                    CreateRoom("alice", RoomRef("lobby")),
                    (MemberCount(RoomRef("lobby"), 1),),
                ),
            ),
        )
        check_scenario(scenario)
