# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Interfaces of the external networked application.

roomcheck never implements the game's transport or room persistence. It
drives them through these two protocols. ``roomcheck.simulation`` and
``roomcheck.clients.http_backend`` provide implementations.
"""

from typing import Protocol

from roomcheck.core.models import ClientSession, Direction, MemberSummary


class SessionTransport(Protocol):
    """Per-client session operations.

    Every operation returns the client's locally observed session after the
    operation completed. Refusals and timeouts raise ClientConnectionError.
    """

    async def connect(self, client_id: str, display_name: str) -> ClientSession: ...

    async def create_room(self, client_id: str) -> ClientSession: ...

    async def join(self, client_id: str, code: str) -> ClientSession: ...

    async def move(
        self, client_id: str, direction: Direction, duration: float
    ) -> ClientSession: ...

    async def disconnect(self, client_id: str) -> ClientSession: ...

    async def reconnect(self, client_id: str) -> ClientSession: ...

    async def local_state(self, client_id: str) -> ClientSession: ...


class RoomDirectory(Protocol):
    """Read-only room queries, optionally from one observer's perspective.

    ``observer=None`` asks for the authoritative server view. Observer views
    may be stale.
    """

    async def room_exists(self, code: str, observer: str | None = None) -> bool: ...

    async def members(
        self, code: str, observer: str | None = None
    ) -> list[MemberSummary]: ...
