# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Assertions evaluated against the replicated room state.

Like actions, validations are a closed union of frozen dataclasses. They
only describe what must hold; evaluation lives in the validation engine,
which re-polls them until they hold or a deadline elapses.
"""

from dataclasses import dataclass
from typing import Union, assert_never

from roomcheck.core.models import Position
from roomcheck.scenario.actions import RoomRef


@dataclass(frozen=True)
class MemberCount:
    """The room has exactly ``expected`` members.

    With no observers the authoritative view is used; otherwise every
    listed observer must see the expected count.
    """

    room: RoomRef
    expected: int
    observers: tuple[str, ...] = ()

    kind = "member_count"


@dataclass(frozen=True)
class MemberVisible:
    """``target`` appears in the member list of ``observer``'s room."""

    observer: str
    target: str

    kind = "member_visible"


@dataclass(frozen=True)
class PositionNear:
    """``client`` is within ``tolerance`` of ``expected`` (absolute distance)."""

    client: str
    expected: Position
    tolerance: float
    observer: str | None = None

    kind = "position_near"


@dataclass(frozen=True)
class RoomExists:
    room: RoomRef

    kind = "room_exists"


@dataclass(frozen=True)
class RoomAbsent:
    room: RoomRef

    kind = "room_absent"


@dataclass(frozen=True)
class ConnectionState:
    """The client's connection flag equals ``expected``."""

    client: str
    expected: bool
    observer: str | None = None

    kind = "connection_state"


Validation = Union[
    MemberCount, MemberVisible, PositionNear, RoomExists, RoomAbsent, ConnectionState
]


def validation_clients(validation: Validation) -> tuple[str, ...]:
    """Client ids a validation refers to, used to check scenario references."""
    match validation:
        case MemberCount(observers=observers):
            return observers
        case MemberVisible(observer=observer, target=target):
            return (observer, target)
        case PositionNear(client=client, observer=observer):
            return (client,) if observer is None else (client, observer)
        case RoomExists() | RoomAbsent():
            return ()
        case ConnectionState(client=client, observer=observer):
            return (client,) if observer is None else (client, observer)
        case _:
            assert_never(validation)


def validation_room(validation: Validation) -> RoomRef | None:
    """Room reference of a validation, if it names one."""
    if isinstance(validation, (MemberCount, RoomExists, RoomAbsent)):
        return validation.room
    return None
