# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Fixtures for unit tests of the execution engine."""

from collections.abc import Callable

import pytest

from roomcheck.clients.adaptor import ClientAdaptor
from roomcheck.core.settings import RunSettings
from roomcheck.execution.context import RunContext
from roomcheck.simulation.server import SimulatedRoomServer


@pytest.fixture
def make_context(
    server: SimulatedRoomServer, fast_settings: RunSettings
) -> Callable[..., RunContext]:
    """Build a RunContext with one adaptor per client id.

    Call it from inside the coroutine under test so adaptor locks belong
    to the running event loop.
    """

    def factory(
        *client_ids: str,
        settings: RunSettings | None = None,
        backend: SimulatedRoomServer | None = None,
    ) -> RunContext:
        backend = backend or server
        adaptors = {
            client_id: ClientAdaptor(client_id, client_id.title(), backend)
            for client_id in client_ids
        }
        return RunContext(adaptors, backend, settings or fast_settings)

    return factory
