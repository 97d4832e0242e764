# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Global pytest fixtures shared across all test modules.

- A fresh simulated room server per test (never shared between runs)
- Fast run settings so polling and timeouts stay in the sub-second range
- A factory for scenarios built from plain data, as a YAML file would be
"""

from collections.abc import Callable
from typing import Any

import pytest

from roomcheck.core.settings import RunSettings
from roomcheck.scenario.loader import ScenarioLoader
from roomcheck.scenario.plan import Scenario
from roomcheck.simulation.server import SimulatedRoomServer


@pytest.fixture
def server() -> SimulatedRoomServer:
    """Simulated server with a short, but observable, replication delay."""
    return SimulatedRoomServer(replication_delay=0.02)


@pytest.fixture
def fast_settings() -> RunSettings:
    return RunSettings(
        poll_interval=0.01,
        validation_timeout=1.0,
        action_timeout=1.0,
        teardown_timeout=0.5,
    )


@pytest.fixture
def make_scenario() -> Callable[..., Scenario]:
    """Build a Scenario from step dicts in the scenario file format."""

    def factory(
        steps: list[dict[str, Any]],
        clients: list[Any] | None = None,
        settings: dict[str, Any] | None = None,
        **extra: Any,
    ) -> Scenario:
        data: dict[str, Any] = {
            "name": extra.pop("name", "test scenario"),
            "clients": clients if clients is not None else ["alice", "bob"],
            "steps": steps,
            **extra,
        }
        if settings:
            data["settings"] = settings
        return ScenarioLoader.from_dict(data)

    return factory
