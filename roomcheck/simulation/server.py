# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""In-memory room server with observable replication lag.

SimulatedRoomServer implements both SessionTransport and RoomDirectory so
scenarios can run without a real game server. The authoritative state is
published as a timestamped, immutable snapshot on every change. Each
observer reads the newest snapshot that is at least its replication delay
old, so observers converge on the server state only eventually.
"""

import asyncio
import bisect
import logging
import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from roomcheck.core.constants import (
    AVATAR_PALETTE,
    DEFAULT_MAX_MEMBERS,
    DEFAULT_MOVE_SPEED,
    DEFAULT_OPERATION_DELAY,
    DEFAULT_REPLICATION_DELAY,
    DEFAULT_SEED,
    JOIN_CODE_ALPHABET,
    JOIN_CODE_LENGTH,
)
from roomcheck.core.errors import ClientConnectionError, InvalidStateError
from roomcheck.core.models import ClientSession, Direction, MemberSummary, Position

logger = logging.getLogger(__name__)

RoomTable = Mapping[str, "RoomRecord"]

_EMPTY_ROOMS: RoomTable = MappingProxyType({})


@dataclass(frozen=True)
class RoomRecord:
    """Immutable state of one room inside a published snapshot."""

    code: str
    creator: str
    members: tuple[MemberSummary, ...] = ()

    def member(self, client_id: str) -> MemberSummary | None:
        for member in self.members:
            if member.client_id == client_id:
                return member
        return None

    def with_member(self, updated: MemberSummary) -> "RoomRecord":
        members = tuple(
            updated if m.client_id == updated.client_id else m for m in self.members
        )
        if updated.client_id not in {m.client_id for m in self.members}:
            members += (updated,)
        return replace(self, members=members)


@dataclass
class _SessionRecord:
    client_id: str
    display_name: str
    connected: bool = True
    room_code: str | None = None
    color: str | None = None
    position: Position = field(default_factory=Position)

    def to_session(self) -> ClientSession:
        return ClientSession(
            client_id=self.client_id,
            display_name=self.display_name,
            color=self.color,
            position=self.position,
            room_code=self.room_code,
            connected=self.connected,
        )


class SimulatedRoomServer:
    """Authoritative in-memory server for rooms and sessions.

    Args:
        max_members: Room capacity; joins beyond it are refused
        replication_delay: Default staleness of every observer's view, in seconds
        operation_delay: Simulated round-trip time of each session operation
        move_speed: Avatar speed in units per second
        seed: Seed for join code generation
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        max_members: int = DEFAULT_MAX_MEMBERS,
        replication_delay: float = DEFAULT_REPLICATION_DELAY,
        operation_delay: float = DEFAULT_OPERATION_DELAY,
        move_speed: float = DEFAULT_MOVE_SPEED,
        seed: int = DEFAULT_SEED,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_members = max_members
        self.replication_delay = replication_delay
        self.operation_delay = operation_delay
        self.move_speed = move_speed
        self.refuse_connections = False
        self.observer_delays: dict[str, float] = {}

        self._clock = clock
        self._rng = random.Random(seed)
        self._sessions: dict[str, _SessionRecord] = {}
        self._stalled: dict[str, asyncio.Event] = {}
        self._timestamps: list[float] = [clock()]
        self._snapshots: list[RoomTable] = [_EMPTY_ROOMS]

    # Fault injection and lifecycle hooks

    def set_observer_delay(self, observer: str, delay: float) -> None:
        """Override the replication delay seen by one observer."""
        self.observer_delays[observer] = delay

    def stall(self, client_id: str) -> None:
        """Make the client's next operations hang until ``release``."""
        self._stalled.setdefault(client_id, asyncio.Event())

    def release(self, client_id: str) -> None:
        event = self._stalled.pop(client_id, None)
        if event is not None:
            event.set()

    def close_room(self, code: str) -> None:
        """Close a room as the lifecycle policy would, removing all members."""
        rooms = dict(self._current)
        if rooms.pop(code, None) is None:
            return
        for session in self._sessions.values():
            if session.room_code == code:
                session.room_code = None
                session.color = None
        self._publish(rooms)
        logger.info(f"Room {code} closed")

    # SessionTransport

    async def connect(self, client_id: str, display_name: str) -> ClientSession:
        await self._latency(client_id)
        if self.refuse_connections:
            raise ClientConnectionError(f"{client_id}: connection refused by server")
        existing = self._sessions.get(client_id)
        if existing is not None and existing.connected:
            raise ClientConnectionError(f"{client_id}: session already connected")
        record = _SessionRecord(client_id=client_id, display_name=display_name)
        self._sessions[client_id] = record
        return record.to_session()

    async def create_room(self, client_id: str) -> ClientSession:
        await self._latency(client_id)
        record = self._connected_session(client_id, ClientConnectionError)
        code = self._new_code()
        member = MemberSummary(
            client_id=client_id,
            display_name=record.display_name,
            color=AVATAR_PALETTE[0],
            position=record.position,
            connected=True,
            is_creator=True,
        )
        rooms = dict(self._current)
        rooms[code] = RoomRecord(code=code, creator=client_id, members=(member,))
        record.room_code = code
        record.color = member.color
        self._publish(rooms)
        logger.debug(f"Room {code} created by {client_id}")
        return record.to_session()

    async def join(self, client_id: str, code: str) -> ClientSession:
        await self._latency(client_id)
        record = self._connected_session(client_id, ClientConnectionError)
        room = self._current.get(code)
        if room is None:
            raise ClientConnectionError(f"{client_id}: room {code} not found")
        if room.member(client_id) is not None:
            raise ClientConnectionError(f"{client_id}: already a member of room {code}")
        if len(room.members) >= self.max_members:
            raise ClientConnectionError(
                f"{client_id}: room {code} is full ({self.max_members} members)"
            )
        member = MemberSummary(
            client_id=client_id,
            display_name=record.display_name,
            color=AVATAR_PALETTE[len(room.members) % len(AVATAR_PALETTE)],
            position=record.position,
            connected=True,
        )
        rooms = dict(self._current)
        rooms[code] = room.with_member(member)
        record.room_code = code
        record.color = member.color
        self._publish(rooms)
        return record.to_session()

    async def move(
        self, client_id: str, direction: Direction, duration: float
    ) -> ClientSession:
        await self._latency(client_id)
        record = self._connected_session(client_id, InvalidStateError)
        if record.room_code is None:
            raise InvalidStateError(f"{client_id}: not in a room")
        await asyncio.sleep(duration)
        dx, dy = direction.vector
        distance = self.move_speed * duration
        record.position = record.position.offset(dx * distance, dy * distance)
        self._update_member(record)
        return record.to_session()

    async def disconnect(self, client_id: str) -> ClientSession:
        await self._latency(client_id)
        record = self._connected_session(client_id, InvalidStateError)
        record.connected = False
        self._update_member(record)
        return record.to_session()

    async def reconnect(self, client_id: str) -> ClientSession:
        await self._latency(client_id)
        if self.refuse_connections:
            raise ClientConnectionError(f"{client_id}: reconnect refused by server")
        record = self._sessions.get(client_id)
        if record is None:
            raise ClientConnectionError(f"{client_id}: no session to resume")
        record.connected = True
        self._update_member(record)
        return record.to_session()

    async def local_state(self, client_id: str) -> ClientSession:
        record = self._sessions.get(client_id)
        if record is None:
            raise ClientConnectionError(f"{client_id}: unknown session")
        return record.to_session()

    # RoomDirectory

    async def room_exists(self, code: str, observer: str | None = None) -> bool:
        await asyncio.sleep(0)
        return code in self._view(observer)

    async def members(
        self, code: str, observer: str | None = None
    ) -> list[MemberSummary]:
        await asyncio.sleep(0)
        room = self._view(observer).get(code)
        return list(room.members) if room is not None else []

    # Internals

    @property
    def _current(self) -> RoomTable:
        return self._snapshots[-1]

    def _view(self, observer: str | None) -> RoomTable:
        """Snapshot visible to ``observer`` at the current time."""
        if observer is None:
            return self._current
        delay = self.observer_delays.get(observer, self.replication_delay)
        cutoff = self._clock() - delay
        index = bisect.bisect_right(self._timestamps, cutoff) - 1
        if index < 0:
            return _EMPTY_ROOMS
        return self._snapshots[index]

    def _publish(self, rooms: dict[str, RoomRecord]) -> None:
        self._timestamps.append(self._clock())
        self._snapshots.append(MappingProxyType(rooms))

    def _update_member(self, record: _SessionRecord) -> None:
        if record.room_code is None:
            return
        room = self._current.get(record.room_code)
        member = room.member(record.client_id) if room is not None else None
        if room is None or member is None:
            return
        rooms = dict(self._current)
        rooms[room.code] = room.with_member(
            replace(member, position=record.position, connected=record.connected)
        )
        self._publish(rooms)

    def _connected_session(
        self, client_id: str, error: type[Exception]
    ) -> _SessionRecord:
        record = self._sessions.get(client_id)
        if record is None or not record.connected:
            raise error(f"{client_id}: not connected")
        return record

    def _new_code(self) -> str:
        while True:
            code = "".join(
                self._rng.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH)
            )
            if code not in self._current:
                return code

    async def _latency(self, client_id: str) -> None:
        stalled = self._stalled.get(client_id)
        if stalled is not None:
            logger.debug(f"{client_id}: operation stalled")
            await stalled.wait()
        await asyncio.sleep(self.operation_delay)
