# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Unit tests for the simulated room server."""

import asyncio
from dataclasses import replace

import pytest

from roomcheck.core.constants import AVATAR_PALETTE
from roomcheck.core.errors import ClientConnectionError, InvalidStateError
from roomcheck.core.models import Direction, Position
from roomcheck.simulation.server import RoomRecord, SimulatedRoomServer


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


async def _room_with(server: SimulatedRoomServer, *joiners: str) -> str:
    await server.connect("alice", "Alice")
    session = await server.create_room("alice")
    assert session.room_code is not None
    for client_id in joiners:
        await server.connect(client_id, client_id.title())
        await server.join(client_id, session.room_code)
    return session.room_code


class TestSessions:
    def test_connect_twice_is_refused(self) -> None:
        server = SimulatedRoomServer()

        async def scenario() -> None:
            await server.connect("alice", "Alice")
            with pytest.raises(ClientConnectionError, match="already connected"):
                await server.connect("alice", "Alice")

        asyncio.run(scenario())

    def test_create_room_requires_connection(self) -> None:
        server = SimulatedRoomServer()
        with pytest.raises(ClientConnectionError, match="not connected"):
            asyncio.run(server.create_room("alice"))

    def test_move_applies_speed_and_direction(self) -> None:
        server = SimulatedRoomServer(move_speed=10.0)

        async def scenario() -> Position:
            await _room_with(server)
            session = await server.move("alice", Direction.DOWN, 0.05)
            return session.position

        assert asyncio.run(scenario()).distance_to(Position(0.0, -0.5)) < 1e-9

    def test_move_outside_room_is_invalid(self) -> None:
        server = SimulatedRoomServer()

        async def scenario() -> None:
            await server.connect("alice", "Alice")
            with pytest.raises(InvalidStateError, match="not in a room"):
                await server.move("alice", Direction.UP, 0.01)

        asyncio.run(scenario())

    def test_reconnect_unknown_session(self) -> None:
        server = SimulatedRoomServer()
        with pytest.raises(ClientConnectionError, match="no session to resume"):
            asyncio.run(server.reconnect("ghost"))


class TestRooms:
    def test_join_codes_are_deterministic_per_seed(self) -> None:
        first = asyncio.run(_room_with(SimulatedRoomServer(seed=7)))
        second = asyncio.run(_room_with(SimulatedRoomServer(seed=7)))

        assert first == second
        assert len(first) == 6

    def test_colors_follow_join_order(self) -> None:
        server = SimulatedRoomServer(replication_delay=0)

        async def scenario() -> list[str | None]:
            code = await _room_with(server, "bob", "carol")
            return [m.color for m in await server.members(code)]

        assert asyncio.run(scenario()) == list(AVATAR_PALETTE[:3])

    def test_full_room_refuses_join(self) -> None:
        server = SimulatedRoomServer(max_members=2, replication_delay=0)

        async def scenario() -> None:
            code = await _room_with(server, "bob")
            await server.connect("carol", "Carol")
            with pytest.raises(ClientConnectionError, match=r"is full \(2 members\)"):
                await server.join("carol", code)
            assert len(await server.members(code)) == 2

        asyncio.run(scenario())

    def test_join_unknown_room(self) -> None:
        server = SimulatedRoomServer()

        async def scenario() -> None:
            await server.connect("bob", "Bob")
            with pytest.raises(ClientConnectionError, match="room NOPE42 not found"):
                await server.join("bob", "NOPE42")

        asyncio.run(scenario())

    def test_disconnect_keeps_member_flagged(self) -> None:
        server = SimulatedRoomServer(replication_delay=0)

        async def scenario() -> None:
            code = await _room_with(server, "bob")
            await server.disconnect("bob")
            bob = [m for m in await server.members(code) if m.client_id == "bob"][0]
            assert not bob.connected

            await server.reconnect("bob")
            bob = [m for m in await server.members(code) if m.client_id == "bob"][0]
            assert bob.connected

        asyncio.run(scenario())

    def test_close_room(self) -> None:
        server = SimulatedRoomServer(replication_delay=0)

        async def scenario() -> None:
            code = await _room_with(server, "bob")
            server.close_room(code)

            assert not await server.room_exists(code)
            assert (await server.local_state("bob")).room_code is None

        asyncio.run(scenario())

    def test_room_record_with_member_replaces_in_place(self) -> None:
        server = SimulatedRoomServer(replication_delay=0)

        async def scenario() -> None:
            code = await _room_with(server, "bob")
            members = await server.members(code)
            record = RoomRecord(code, "alice", tuple(members))

            moved = record.with_member(replace(members[0], connected=False))
            assert [m.client_id for m in moved.members] == ["alice", "bob"]
            assert moved.member("alice") is not None
            assert not moved.member("alice").connected  # type: ignore[union-attr]
            assert record.member("alice").connected  # type: ignore[union-attr]

        asyncio.run(scenario())


class TestReplication:
    def test_observers_see_state_after_their_delay(self) -> None:
        clock = FakeClock()
        server = SimulatedRoomServer(replication_delay=1.0, clock=clock)

        async def scenario() -> None:
            code = await _room_with(server)

            assert await server.room_exists(code)
            assert not await server.room_exists(code, observer="bob")

            clock.now += 0.5
            assert not await server.room_exists(code, observer="bob")

            clock.now += 0.6
            assert await server.room_exists(code, observer="bob")

        asyncio.run(scenario())

    def test_per_observer_delay_override(self) -> None:
        clock = FakeClock()
        server = SimulatedRoomServer(replication_delay=1.0, clock=clock)
        server.set_observer_delay("carol", 0.0)

        async def scenario() -> None:
            code = await _room_with(server)
            assert await server.room_exists(code, observer="carol")
            assert not await server.room_exists(code, observer="bob")

        asyncio.run(scenario())

    def test_stalled_client_waits_for_release(self) -> None:
        server = SimulatedRoomServer()

        async def scenario() -> None:
            server.stall("alice")
            task = asyncio.create_task(server.connect("alice", "Alice"))
            await asyncio.sleep(0.05)
            assert not task.done()

            server.release("alice")
            session = await asyncio.wait_for(task, 1.0)
            assert session.connected

        asyncio.run(scenario())
