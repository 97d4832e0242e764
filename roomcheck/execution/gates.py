# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Advance signals for stepped runs.

In stepped mode the orchestrator suspends after each resolved step and
waits on a gate before dispatching the next one, giving an operator time
to inspect the room state.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from roomcheck.scenario.plan import TestStep

logger = logging.getLogger(__name__)


class StepGate(Protocol):
    async def wait(self, resolved: TestStep, upcoming: TestStep) -> None:
        """Return when the run may dispatch ``upcoming``."""
        ...


class AdvanceGate:
    """Gate opened by calling ``advance()`` from another task.

    Each ``advance()`` releases exactly one waiting step boundary; signals
    given before the orchestrator reaches a boundary are remembered.
    """

    def __init__(self) -> None:
        self._signals = 0
        self._event = asyncio.Event()
        self.waiting_for: TestStep | None = None

    def advance(self) -> None:
        self._signals += 1
        self._event.set()

    async def wait(self, resolved: TestStep, upcoming: TestStep) -> None:
        self.waiting_for = upcoming
        logger.info(
            f"Step {resolved.index} resolved as {resolved.status.value}; "
            f"waiting for advance signal before step {upcoming.index}"
        )
        while self._signals == 0:
            self._event.clear()
            await self._event.wait()
        self._signals -= 1
        self.waiting_for = None


class PromptGate:
    """Gate that blocks on an interactive prompt in a worker thread."""

    def __init__(self, prompt: Callable[[str], object] = input):
        self.prompt = prompt

    async def wait(self, resolved: TestStep, upcoming: TestStep) -> None:
        message = (
            f"Step {resolved.index} {resolved.status.value}. "
            f"Press Enter to run step {upcoming.index} ({upcoming.name})... "
        )
        await asyncio.to_thread(self.prompt, message)
