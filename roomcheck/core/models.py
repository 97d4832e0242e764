# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Participant and room data models shared across the roomcheck framework.

This module contains the value types exchanged between client adaptors,
backends and validations. All of them are immutable so that a snapshot
handed to a reader can never be used to mutate a session.
"""

import math
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Position:
    """Avatar position in the shared 2-D space."""

    x: float = 0.0
    y: float = 0.0

    def distance_to(self, other: "Position") -> float:
        """Euclidean distance to another position."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(self.x + dx, self.y + dy)

    def __str__(self) -> str:
        return f"({self.x:.2f}, {self.y:.2f})"


class Direction(str, Enum):
    """Movement directions; UP is +y."""

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def vector(self) -> tuple[float, float]:
        return _DIRECTION_VECTORS[self]


_DIRECTION_VECTORS: dict[Direction, tuple[float, float]] = {
    Direction.UP: (0.0, 1.0),
    Direction.DOWN: (0.0, -1.0),
    Direction.LEFT: (-1.0, 0.0),
    Direction.RIGHT: (1.0, 0.0),
}


@dataclass(frozen=True)
class ClientSession:
    """One simulated participant as seen from its own client.

    Attributes:
        client_id: Scenario-level identity of the participant
        display_name: Name shown to other players
        color: Avatar color assigned by the server, None before the first join
        position: Last-known local position
        room_code: Join code of the current room, None when not in a room
        connected: Whether the session is currently connected
    """

    client_id: str
    display_name: str
    color: str | None = None
    position: Position = Position()
    room_code: str | None = None
    connected: bool = False


@dataclass(frozen=True)
class MemberSummary:
    """Per-member record of a room as returned by the room directory."""

    client_id: str
    display_name: str
    color: str | None
    position: Position
    connected: bool
    is_creator: bool = False
