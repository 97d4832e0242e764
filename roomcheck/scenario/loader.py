# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Declarative scenario loading and pre-run checks.

Scenario files are YAML documents of the form::

    name: four players join
    settings:
      validation_timeout: 5
    clients:
      - alice
      - {name: bob, display_name: Bob}
    groups:
      bots: {prefix: bot, count: 3}
    steps:
      - name: alice creates a room
        action:
          create_room: {client: alice, room: lobby}
        validations:
          - room_exists: {room: lobby}
      - name: bots join
        action:
          bulk_join: {clients: ["@bots"], room: lobby}
        validations:
          - member_count: {room: lobby, expected: 4, observers: [alice, "@bots"]}

Every problem found while loading or checking raises ScenarioError, which is
the only error that prevents a run from starting.
"""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from roomcheck.core.errors import ScenarioError
from roomcheck.core.models import Direction, Position
from roomcheck.core.settings import RunSettings, parse_bool
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
from roomcheck.scenario.plan import ClientSpec, Scenario, StepSpec
from roomcheck.scenario.validations import (
    ConnectionState,
    MemberCount,
    MemberVisible,
    PositionNear,
    RoomAbsent,
    RoomExists,
    Validation,
    validation_clients,
    validation_room,
)

logger = logging.getLogger(__name__)

GROUP_PREFIX = "@"


class ScenarioLoader:
    """Builds Scenario templates from YAML files or already-parsed data."""

    @classmethod
    def load(cls, path: Path) -> Scenario:
        """Load and check a scenario file.

        Args:
            path: Path to the scenario YAML file

        Returns:
            The checked Scenario template

        Raises:
            ScenarioError: If the file cannot be read or the scenario is malformed
        """
        logger.info(f"Loading scenario from {path}")
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ScenarioError(f"Cannot read scenario file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ScenarioError(f"Invalid YAML in scenario file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ScenarioError(f"Scenario file {path} must contain a mapping")
        data.setdefault("name", path.stem)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scenario:
        """Build and check a Scenario from parsed data."""
        name = str(data.get("name") or "scenario")
        settings = RunSettings().merged(_mapping(data.get("settings"), "settings"))

        clients = _parse_clients(data.get("clients") or [])
        groups = _parse_groups(data.get("groups") or {}, clients)

        raw_steps = data.get("steps")
        if not isinstance(raw_steps, list) or not raw_steps:
            raise ScenarioError("Scenario must define a non-empty list of steps")

        parser = _StepParser(groups)
        steps = tuple(
            parser.parse(index, raw) for index, raw in enumerate(raw_steps, 1)
        )

        scenario = Scenario(
            name=name, clients=tuple(clients.values()), steps=steps, settings=settings
        )
        check_scenario(scenario)
        logger.debug(
            f"Loaded scenario '{name}': {len(scenario.clients)} clients, {len(steps)} steps"
        )
        return scenario


def check_scenario(scenario: Scenario) -> None:
    """Reject scenarios that cannot be run.

    Raises:
        ScenarioError: On the first problem found
    """
    check_steps(scenario.clients, scenario.steps)


def check_steps(
    clients: Sequence[ClientSpec], steps: Sequence[StepSpec]
) -> None:
    """Check declared clients and step definitions before a run.

    Checks that every referenced client is declared, that every room alias
    is created by an earlier step (or the same step's action), that no alias
    is created twice and that every step has at least one validation.

    Raises:
        ScenarioError: On the first problem found
    """
    declared = {client.client_id for client in clients}
    if len(declared) != len(clients):
        raise ScenarioError("Client ids must be unique")

    created_rooms: set[str] = set()
    for index, step in enumerate(steps, 1):
        where = f"Step {index} ({step.name})"
        if not step.validations:
            raise ScenarioError(f"{where}: at least one validation is required")

        action = step.action
        for client in action.participants:
            if client not in declared:
                raise ScenarioError(f"{where}: undeclared client '{client}'")
        if action.concurrent and not action.participants:
            raise ScenarioError(f"{where}: action needs at least one client")
        if len(set(action.participants)) != len(action.participants):
            raise ScenarioError(f"{where}: a client is listed more than once")

        if isinstance(action, CreateRoom):
            if action.room.literal:
                raise ScenarioError(f"{where}: create_room needs a room alias")
            if action.room.name in created_rooms:
                raise ScenarioError(
                    f"{where}: room '{action.room.name}' is created twice"
                )
            created_rooms.add(action.room.name)
        elif isinstance(action, (JoinRoom, BulkJoin)):
            _check_room(action.room, created_rooms, where)

        for validation in step.validations:
            for client in validation_clients(validation):
                if client not in declared:
                    raise ScenarioError(f"{where}: undeclared client '{client}'")
            room = validation_room(validation)
            if room is not None:
                _check_room(room, created_rooms, where)


def _check_room(room: RoomRef, created: set[str], where: str) -> None:
    if not room.literal and room.name not in created:
        raise ScenarioError(
            f"{where}: room '{room.name}' is not created by an earlier step"
        )


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ScenarioError(f"'{what}' must be a mapping")
    return value


def _parse_clients(raw: Any) -> dict[str, ClientSpec]:
    if not isinstance(raw, list):
        raise ScenarioError("'clients' must be a list")
    clients: dict[str, ClientSpec] = {}
    for entry in raw:
        if isinstance(entry, str):
            spec = ClientSpec(entry)
        elif isinstance(entry, dict) and "name" in entry:
            spec = ClientSpec(str(entry["name"]), str(entry.get("display_name") or ""))
        else:
            raise ScenarioError(f"Invalid client declaration: {entry!r}")
        if spec.client_id in clients:
            raise ScenarioError(f"Client '{spec.client_id}' is declared twice")
        clients[spec.client_id] = spec
    return clients


def _parse_groups(
    raw: Any, clients: dict[str, ClientSpec]
) -> dict[str, tuple[str, ...]]:
    """Parse client groups, declaring generated clients as a side effect."""
    groups: dict[str, tuple[str, ...]] = {}
    for name, definition in _mapping(raw, "groups").items():
        if isinstance(definition, list):
            members = tuple(str(member) for member in definition)
        elif isinstance(definition, dict) and "prefix" in definition:
            count = definition.get("count")
            if not isinstance(count, int) or count < 1:
                raise ScenarioError(f"Group '{name}': count must be a positive integer")
            width = max(2, len(str(count)))
            prefix = str(definition["prefix"])
            members = tuple(f"{prefix}{i:0{width}d}" for i in range(1, count + 1))
            for member in members:
                if member in clients:
                    raise ScenarioError(f"Client '{member}' is declared twice")
                clients[member] = ClientSpec(member)
        else:
            raise ScenarioError(f"Invalid group definition for '{name}'")
        groups[str(name)] = members
    return groups


class _StepParser:
    """Parses step entries, resolving ``@group`` references."""

    def __init__(self, groups: dict[str, tuple[str, ...]]):
        self.groups = groups

    def parse(self, index: int, raw: Any) -> StepSpec:
        if not isinstance(raw, dict):
            raise ScenarioError(f"Step {index} must be a mapping")
        name = str(raw.get("name") or f"step {index}")
        try:
            action = self._action(raw.get("action"))
            validations = tuple(
                self._validation(entry) for entry in raw.get("validations") or []
            )
        except ScenarioError as e:
            raise ScenarioError(f"Step {index} ({name}): {e}") from e
        except (TypeError, ValueError, KeyError) as e:
            raise ScenarioError(f"Step {index} ({name}): invalid value: {e}") from e

        expect_error = raw.get("expect_error")
        if expect_error is True:
            expect_error = ""
        return StepSpec(
            name=name,
            action=action,
            validations=validations,
            description=str(raw.get("description") or ""),
            expect_error=None if expect_error in (None, False) else str(expect_error),
        )

    def _action(self, raw: Any) -> Action:
        kind, args = _single_entry(raw, "action")
        if kind == "wait" and not isinstance(args, dict):
            return Wait(_duration(args))
        args = _mapping(args, kind)
        match kind:
            case "create_room":
                return CreateRoom(str(args["client"]), self._room(args))
            case "join_room":
                return JoinRoom(str(args["client"]), self._room(args))
            case "move":
                return Move(
                    self._clients(args),
                    Direction(str(args["direction"]).lower()),
                    _duration(args["duration"]),
                )
            case "disconnect":
                return Disconnect(str(args["client"]))
            case "reconnect":
                return Reconnect(str(args["client"]))
            case "wait":
                return Wait(_duration(args["duration"]))
            case "bulk_join":
                return BulkJoin(self._clients(args), self._room(args))
        raise ScenarioError(f"Unknown action '{kind}'")

    def _validation(self, raw: Any) -> Validation:
        kind, args = _single_entry(raw, "validation")
        args = _mapping(args, kind)
        match kind:
            case "member_count":
                expected = int(args["expected"])
                if expected < 0:
                    raise ScenarioError("member_count expected must not be negative")
                observers = self._names(args.get("observers") or [])
                return MemberCount(self._room(args), expected, observers)
            case "member_visible":
                return MemberVisible(str(args["observer"]), str(args["target"]))
            case "position_near":
                tolerance = float(args["tolerance"])
                if tolerance < 0:
                    raise ScenarioError("position_near tolerance must not be negative")
                return PositionNear(
                    str(args["client"]),
                    _position(args["expected"]),
                    tolerance,
                    _optional_str(args.get("observer")),
                )
            case "room_exists":
                return RoomExists(self._room(args))
            case "room_absent":
                return RoomAbsent(self._room(args))
            case "connection_state":
                return ConnectionState(
                    str(args["client"]),
                    parse_bool(args["expected"], "connection_state expected"),
                    _optional_str(args.get("observer")),
                )
        raise ScenarioError(f"Unknown validation '{kind}'")

    def _room(self, args: dict[str, Any]) -> RoomRef:
        if "code" in args:
            return RoomRef.code(str(args["code"]))
        if "room" in args:
            return RoomRef(str(args["room"]))
        raise ScenarioError("a 'room' alias or literal 'code' is required")

    def _clients(self, args: dict[str, Any]) -> tuple[str, ...]:
        if "client" in args:
            return (str(args["client"]),)
        return self._names(args.get("clients") or [])

    def _names(self, raw: Any) -> tuple[str, ...]:
        if isinstance(raw, str):
            raw = [raw]
        names: list[str] = []
        for name in raw:
            name = str(name)
            if name.startswith(GROUP_PREFIX):
                group = name[len(GROUP_PREFIX) :]
                if group not in self.groups:
                    raise ScenarioError(f"Unknown client group '{group}'")
                names.extend(self.groups[group])
            else:
                names.append(name)
        return tuple(names)


def _single_entry(raw: Any, what: str) -> tuple[str, Any]:
    if isinstance(raw, str):
        return raw, {}
    if not isinstance(raw, dict) or len(raw) != 1:
        raise ScenarioError(f"Each {what} must be a mapping with exactly one key")
    ((kind, args),) = raw.items()
    return str(kind), args


def _duration(raw: Any) -> float:
    duration = float(raw)
    if duration < 0:
        raise ScenarioError("durations must not be negative")
    return duration


def _position(raw: Any) -> Position:
    if isinstance(raw, dict):
        return Position(float(raw["x"]), float(raw["y"]))
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return Position(float(raw[0]), float(raw[1]))
    raise ScenarioError(f"Invalid position: {raw!r}")


def _optional_str(raw: Any) -> str | None:
    return None if raw is None else str(raw)
