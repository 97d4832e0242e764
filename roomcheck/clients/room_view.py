# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Read-only view over the replicated room state seen by one observer."""

from roomcheck.clients.interfaces import RoomDirectory
from roomcheck.core.models import MemberSummary


class RoomStateView:
    """Side-effect-free room queries from one observer's perspective.

    Results may be stale: replication to each observer is asynchronous,
    which is why validations poll this view instead of asserting once.
    Instances hold no mutable state and may be queried concurrently.

    Attributes:
        directory: The room directory to query
        observer: Client id whose view is queried, None for the server view
    """

    def __init__(self, directory: RoomDirectory, observer: str | None = None):
        self.directory = directory
        self.observer = observer

    async def members(self, code: str) -> list[MemberSummary]:
        """Members of the room in join order."""
        return await self.directory.members(code, observer=self.observer)

    async def room_exists(self, code: str) -> bool:
        return await self.directory.room_exists(code, observer=self.observer)

    async def member(self, code: str, client_id: str) -> MemberSummary | None:
        """Summary of one member, or None if not visible in the room."""
        for member in await self.members(code):
            if member.client_id == client_id:
                return member
        return None

    @property
    def perspective(self) -> str:
        return self.observer if self.observer is not None else "server"
