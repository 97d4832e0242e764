# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Client adaptor wrapping one simulated participant's session."""

import asyncio
import logging
from collections.abc import Awaitable

from roomcheck.clients.interfaces import SessionTransport
from roomcheck.core.errors import ClientConnectionError, InvalidStateError
from roomcheck.core.models import ClientSession, Direction

logger = logging.getLogger(__name__)


class ClientAdaptor:
    """Drives one participant against the external application.

    The adaptor exclusively owns its ClientSession. Readers get immutable
    snapshots; the session only changes as the result of an operation issued
    through this adaptor. Operations on one adaptor are serialized, so an
    operation left in flight by a timed-out action finishes before the next
    one on the same client starts.
    """

    def __init__(
        self, client_id: str, display_name: str, transport: SessionTransport
    ):
        self.client_id = client_id
        self.transport = transport
        self._session = ClientSession(client_id=client_id, display_name=display_name)
        self._has_session = False
        self._lock = asyncio.Lock()

    def snapshot(self) -> ClientSession:
        """Return the last-known session state."""
        return self._session

    @property
    def connected(self) -> bool:
        return self._session.connected

    async def connect(self) -> ClientSession:
        """Open a session with the external application.

        Raises:
            InvalidStateError: If the session is already connected
            ClientConnectionError: If the connection is refused or times out
        """
        async with self._lock:
            return await self._connect()

    async def create_room(self) -> str:
        """Create a room, connecting first if needed, and return its join code.

        Raises:
            InvalidStateError: If the client is already in a room
            ClientConnectionError: If the external application refuses
        """
        async with self._lock:
            if not self._session.connected:
                await self._connect()
            if self._session.room_code is not None:
                raise InvalidStateError(
                    f"{self.client_id} is already in room {self._session.room_code}"
                )
            session = await self._call(
                "create_room", self.transport.create_room(self.client_id)
            )
            if session.room_code is None:
                raise ClientConnectionError(f"{self.client_id}: no join code returned")
            logger.info(f"{self.client_id} created room {session.room_code}")
            return session.room_code

    async def join(self, code: str) -> ClientSession:
        """Join the room with the given join code, connecting first if needed.

        Raises:
            InvalidStateError: If the client is already in a room
            ClientConnectionError: If the join is refused (unknown room, room full)
        """
        async with self._lock:
            if not self._session.connected:
                await self._connect()
            if self._session.room_code is not None:
                raise InvalidStateError(
                    f"{self.client_id} is already in room {self._session.room_code}"
                )
            session = await self._call(
                "join", self.transport.join(self.client_id, code)
            )
            logger.info(f"{self.client_id} joined room {code}")
            return session

    async def move(self, direction: Direction, duration: float) -> ClientSession:
        """Hold ``direction`` for ``duration`` seconds.

        Raises:
            InvalidStateError: If the session is disconnected or not in a room
        """
        async with self._lock:
            if not self._session.connected:
                raise InvalidStateError(
                    f"{self.client_id} cannot move while disconnected"
                )
            if self._session.room_code is None:
                raise InvalidStateError(f"{self.client_id} cannot move outside a room")
            return await self._call(
                "move", self.transport.move(self.client_id, direction, duration)
            )

    async def disconnect(self) -> ClientSession:
        """Close the session, keeping its room membership on the server side.

        Raises:
            InvalidStateError: If the session is not connected
        """
        async with self._lock:
            if not self._session.connected:
                raise InvalidStateError(f"{self.client_id} is not connected")
            session = await self._call(
                "disconnect", self.transport.disconnect(self.client_id)
            )
            logger.info(f"{self.client_id} disconnected")
            return session

    async def reconnect(self) -> ClientSession:
        """Resume a previously disconnected session.

        Raises:
            InvalidStateError: If the session is connected or never existed
            ClientConnectionError: If the reconnect is refused or times out
        """
        async with self._lock:
            if self._session.connected:
                raise InvalidStateError(f"{self.client_id} is already connected")
            if not self._has_session:
                raise InvalidStateError(f"{self.client_id} has no session to resume")
            session = await self._call(
                "reconnect", self.transport.reconnect(self.client_id)
            )
            logger.info(f"{self.client_id} reconnected")
            return session

    async def refresh(self) -> ClientSession:
        """Re-read the locally observed state from the external application."""
        if not self._has_session:
            return self._session
        async with self._lock:
            return await self._call(
                "local_state", self.transport.local_state(self.client_id)
            )

    async def _connect(self) -> ClientSession:
        if self._session.connected:
            raise InvalidStateError(f"{self.client_id} is already connected")
        session = await self._call(
            "connect",
            self.transport.connect(self.client_id, self._session.display_name),
        )
        self._has_session = True
        logger.info(f"{self.client_id} connected as '{session.display_name}'")
        return session

    async def _call(
        self, operation: str, pending: Awaitable[ClientSession]
    ) -> ClientSession:
        """Await a transport operation and adopt the session it returns."""
        try:
            session: ClientSession = await pending
        except asyncio.TimeoutError as e:
            raise ClientConnectionError(
                f"{self.client_id}: {operation} timed out"
            ) from e
        self._session = session
        return session

    def __repr__(self) -> str:
        return f"ClientAdaptor({self.client_id!r}, connected={self._session.connected})"
