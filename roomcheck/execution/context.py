# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Run-scoped state shared by the executor and the validation engine."""

import logging

from roomcheck.clients.adaptor import ClientAdaptor
from roomcheck.clients.interfaces import RoomDirectory, SessionTransport
from roomcheck.clients.room_view import RoomStateView
from roomcheck.core.errors import InvalidStateError
from roomcheck.core.settings import RunSettings
from roomcheck.reporting.metrics import MetricsCollector
from roomcheck.scenario.actions import RoomRef
from roomcheck.scenario.plan import TestPlan

logger = logging.getLogger(__name__)


class RunContext:
    """Everything one run owns: adaptors, room bindings, settings and metrics.

    A context is never shared between runs; concurrent runs each build
    their own.
    """

    def __init__(
        self,
        adaptors: dict[str, ClientAdaptor],
        directory: RoomDirectory,
        settings: RunSettings,
        metrics: MetricsCollector | None = None,
    ):
        self.adaptors = adaptors
        self.directory = directory
        self.settings = settings
        self.metrics = metrics or MetricsCollector()
        self.rooms: dict[str, str] = {}

    @classmethod
    def for_plan(
        cls,
        plan: TestPlan,
        transport: SessionTransport,
        directory: RoomDirectory,
        settings: RunSettings,
        metrics: MetricsCollector | None = None,
    ) -> "RunContext":
        """Create one adaptor per declared client of ``plan``."""
        adaptors = {
            client.client_id: ClientAdaptor(
                client.client_id, client.display_name, transport
            )
            for client in plan.clients
        }
        return cls(adaptors, directory, settings, metrics)

    def adaptor(self, client_id: str) -> ClientAdaptor:
        """Adaptor of a declared client.

        Raises:
            InvalidStateError: If the client is not declared for this run
        """
        try:
            return self.adaptors[client_id]
        except KeyError:
            raise InvalidStateError(
                f"client '{client_id}' is not declared for this run"
            ) from None

    def bind_room(self, alias: str, code: str) -> None:
        logger.debug(f"Room alias '{alias}' bound to join code {code}")
        self.rooms[alias] = code

    def resolve_room(self, room: RoomRef) -> str:
        """Join code for a room reference.

        Raises:
            InvalidStateError: If the alias was never bound (its create step failed)
        """
        if room.literal:
            return room.name
        try:
            return self.rooms[room.name]
        except KeyError:
            raise InvalidStateError(
                f"room '{room.name}' has no join code (it was not created)"
            ) from None

    def view(self, observer: str | None = None) -> RoomStateView:
        return RoomStateView(self.directory, observer)
