# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Unit tests for stepped-mode advance gates."""

import asyncio
from unittest.mock import Mock

from roomcheck.execution.gates import AdvanceGate, PromptGate
from roomcheck.scenario.actions import RoomRef, Wait
from roomcheck.scenario.plan import StepSpec, TestStep
from roomcheck.scenario.validations import RoomAbsent


def _step(index: int, name: str) -> TestStep:
    return TestStep(index, StepSpec(name, Wait(0), (RoomAbsent(RoomRef.code("X")),)))


class TestAdvanceGate:
    def test_blocks_until_advanced(self) -> None:
        async def scenario() -> None:
            gate = AdvanceGate()
            waiter = asyncio.create_task(gate.wait(_step(1, "a"), _step(2, "b")))
            await asyncio.sleep(0.02)

            assert not waiter.done()
            assert gate.waiting_for is not None
            assert gate.waiting_for.index == 2

            gate.advance()
            await asyncio.wait_for(waiter, 1.0)
            assert gate.waiting_for is None

        asyncio.run(scenario())

    def test_early_signals_are_remembered(self) -> None:
        async def scenario() -> None:
            gate = AdvanceGate()
            gate.advance()
            gate.advance()

            await asyncio.wait_for(gate.wait(_step(1, "a"), _step(2, "b")), 1.0)
            await asyncio.wait_for(gate.wait(_step(2, "b"), _step(3, "c")), 1.0)

            third = asyncio.create_task(gate.wait(_step(3, "c"), _step(4, "d")))
            await asyncio.sleep(0.02)
            assert not third.done()
            third.cancel()

        asyncio.run(scenario())


class TestPromptGate:
    def test_prompts_with_next_step(self) -> None:
        prompt = Mock(return_value="")

        asyncio.run(PromptGate(prompt).wait(_step(1, "create"), _step(2, "join")))

        message = prompt.call_args.args[0]
        assert "Step 1 pending" in message
        assert "run step 2 (join)" in message
