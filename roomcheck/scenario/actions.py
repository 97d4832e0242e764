# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Scripted actions a step can perform.

Actions form a closed set: ``Action`` is a union of frozen dataclasses and
the executor dispatches over it with an exhaustive ``match``. Every action
declares its participants (the client adaptors it drives) and whether they
are driven concurrently.
"""

from dataclasses import dataclass
from typing import Union, assert_never

from roomcheck.core.models import Direction


@dataclass(frozen=True)
class RoomRef:
    """Reference to a room by scenario alias or by literal join code.

    An alias is bound to a real join code by the CreateRoom action that
    names it. A literal code is used as-is, which allows referencing rooms
    that were never created in this run.
    """

    name: str
    literal: bool = False

    @classmethod
    def code(cls, code: str) -> "RoomRef":
        return cls(name=code, literal=True)

    def __str__(self) -> str:
        return f"code {self.name}" if self.literal else self.name


@dataclass(frozen=True)
class CreateRoom:
    client: str
    room: RoomRef

    kind = "create_room"

    @property
    def participants(self) -> tuple[str, ...]:
        return (self.client,)

    @property
    def concurrent(self) -> bool:
        return False


@dataclass(frozen=True)
class JoinRoom:
    client: str
    room: RoomRef

    kind = "join_room"

    @property
    def participants(self) -> tuple[str, ...]:
        return (self.client,)

    @property
    def concurrent(self) -> bool:
        return False


@dataclass(frozen=True)
class Move:
    """Hold a direction for ``duration`` seconds on one or more clients."""

    clients: tuple[str, ...]
    direction: Direction
    duration: float

    kind = "move"

    @property
    def participants(self) -> tuple[str, ...]:
        return self.clients

    @property
    def concurrent(self) -> bool:
        return True


@dataclass(frozen=True)
class Disconnect:
    client: str

    kind = "disconnect"

    @property
    def participants(self) -> tuple[str, ...]:
        return (self.client,)

    @property
    def concurrent(self) -> bool:
        return False


@dataclass(frozen=True)
class Reconnect:
    client: str

    kind = "reconnect"

    @property
    def participants(self) -> tuple[str, ...]:
        return (self.client,)

    @property
    def concurrent(self) -> bool:
        return False


@dataclass(frozen=True)
class Wait:
    """Suspend the run without touching any client."""

    duration: float

    kind = "wait"

    @property
    def participants(self) -> tuple[str, ...]:
        return ()

    @property
    def concurrent(self) -> bool:
        return False


@dataclass(frozen=True)
class BulkJoin:
    clients: tuple[str, ...]
    room: RoomRef

    kind = "bulk_join"

    @property
    def participants(self) -> tuple[str, ...]:
        return self.clients

    @property
    def concurrent(self) -> bool:
        return True


Action = Union[CreateRoom, JoinRoom, Move, Disconnect, Reconnect, Wait, BulkJoin]


def describe_action(action: Action) -> str:
    """One-line human readable description used in logs and progress output."""
    match action:
        case CreateRoom(client=client, room=room):
            return f"{client} creates room {room}"
        case JoinRoom(client=client, room=room):
            return f"{client} joins room {room}"
        case Move(clients=clients, direction=direction, duration=duration):
            return f"{', '.join(clients)} move {direction.value} for {duration:g}s"
        case Disconnect(client=client):
            return f"{client} disconnects"
        case Reconnect(client=client):
            return f"{client} reconnects"
        case Wait(duration=duration):
            return f"wait {duration:g}s"
        case BulkJoin(clients=clients, room=room):
            return f"{len(clients)} clients join room {room}"
        case _:
            assert_never(action)
