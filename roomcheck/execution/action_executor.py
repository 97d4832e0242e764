# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Execution of scripted actions across one or many client adaptors.

Concurrent actions (Move, BulkJoin) start one task per participant before
awaiting any of them and join them at a barrier bounded by the action
timeout. Participants that miss the deadline are reported as stragglers
and left running: the external system may already have observed part of
their effect, so they are allowed to finish instead of being cancelled.
The executor keeps track of them until ``drain`` is called at run end.
"""

import asyncio
import logging
import time
from collections.abc import Coroutine
from dataclasses import dataclass, replace
from typing import Any, assert_never

from roomcheck.clients.adaptor import ClientAdaptor
from roomcheck.core.errors import (
    ActionTimeoutError,
    ClientConnectionError,
    InvalidStateError,
)
from roomcheck.execution.context import RunContext
from roomcheck.reporting.metrics import ACTION_DURATION, OPERATION_PREFIX
from roomcheck.scenario.actions import (
    Action,
    BulkJoin,
    CreateRoom,
    Disconnect,
    JoinRoom,
    Move,
    Reconnect,
    RoomRef,
    Wait,
    describe_action,
)

logger = logging.getLogger(__name__)

# Errors that mean "this participant's operation failed" rather than a bug
PARTICIPANT_ERRORS = (ClientConnectionError, InvalidStateError)


@dataclass(frozen=True)
class ParticipantResult:
    """Outcome of one participant's operation within an action."""

    client_id: str
    succeeded: bool
    detail: str | None = None


@dataclass(frozen=True)
class ActionOutcome:
    """Result of executing one action.

    Attributes:
        succeeded: Whether the action as a whole succeeded
        detail: Failure description (or partial-failure note), None on clean success
        participants: Results of participants that completed, in declared order
        stragglers: Participants still in flight when the timeout elapsed
        duration: Wall time spent in the action, in seconds
    """

    succeeded: bool
    detail: str | None = None
    participants: tuple[ParticipantResult, ...] = ()
    stragglers: tuple[str, ...] = ()
    duration: float = 0.0

    @property
    def failed_participants(self) -> list[str]:
        return [p.client_id for p in self.participants if not p.succeeded]


class ActionExecutor:
    """Executes actions for one run."""

    def __init__(self, context: RunContext):
        self.context = context
        self._in_flight: set[asyncio.Task[Any]] = set()

    @property
    def in_flight(self) -> int:
        """Number of participant operations still running."""
        return len(self._in_flight)

    def timeout_for(self, action: Action) -> float | None:
        """Deadline for ``action`` in seconds; None disables the timeout."""
        timeout = self.context.settings.action_timeout
        if timeout == 0:
            return None
        if isinstance(action, Move):
            return timeout + action.duration
        return timeout

    async def execute(self, action: Action) -> ActionOutcome:
        """Perform ``action`` and report how it went. Never raises for
        participant failures or timeouts; those are part of the outcome."""
        logger.info(f"Executing action: {describe_action(action)}")
        start = time.monotonic()

        if isinstance(action, Wait):
            await asyncio.sleep(action.duration)
            outcome = ActionOutcome(succeeded=True)
        else:
            operations = {
                client_id: self._operation(action, self.context.adaptor(client_id))
                for client_id in action.participants
            }
            timeout = self.timeout_for(action)
            if action.concurrent:
                outcome = await self._fan_out(action, operations, timeout)
            else:
                outcome = await self._sequential(action, operations, timeout)

        duration = time.monotonic() - start
        self.context.metrics.record_sample(ACTION_DURATION, duration)
        outcome = replace(outcome, duration=duration)
        if outcome.succeeded:
            logger.debug(f"Action completed in {duration:.3f}s")
        else:
            logger.info(f"Action failed after {duration:.3f}s: {outcome.detail}")
        return outcome

    async def drain(self, timeout: float) -> None:
        """Wait for in-flight operations to finish, cancelling what remains."""
        if not self._in_flight:
            return
        pending_tasks = set(self._in_flight)
        logger.info(
            f"Waiting up to {timeout:.1f}s for {len(pending_tasks)} in-flight operation(s)"
        )
        _, pending = await asyncio.wait(pending_tasks, timeout=timeout)
        if pending:
            logger.warning(
                f"Cancelling {len(pending)} operation(s) still in flight at teardown: "
                f"{', '.join(sorted(task.get_name() for task in pending))}"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    def _operation(
        self, action: Action, adaptor: ClientAdaptor
    ) -> Coroutine[Any, Any, Any]:
        """Build the coroutine performing ``action`` for one participant."""
        match action:
            case CreateRoom(room=room):
                return self._create_room(adaptor, room)
            case JoinRoom(room=room) | BulkJoin(room=room):
                return self._join(adaptor, room)
            case Move(direction=direction, duration=duration):
                return adaptor.move(direction, duration)
            case Disconnect():
                return adaptor.disconnect()
            case Reconnect():
                return adaptor.reconnect()
            case Wait():
                raise TypeError("Wait actions have no participants")
            case _:
                assert_never(action)

    async def _create_room(self, adaptor: ClientAdaptor, room: RoomRef) -> None:
        code = await adaptor.create_room()
        self.context.bind_room(room.name, code)

    async def _join(self, adaptor: ClientAdaptor, room: RoomRef) -> None:
        code = self.context.resolve_room(room)
        await adaptor.join(code)

    async def _timed(self, kind: str, operation: Coroutine[Any, Any, Any]) -> None:
        with self.context.metrics.timer(f"{OPERATION_PREFIX}{kind}"):
            await operation

    def _start(
        self, action: Action, client_id: str, operation: Coroutine[Any, Any, Any]
    ) -> asyncio.Task[Any]:
        task = asyncio.create_task(
            self._timed(action.kind, operation), name=f"{action.kind}:{client_id}"
        )
        self._in_flight.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Operation {task.get_name()} ended with: {error}")

    async def _fan_out(
        self,
        action: Action,
        operations: dict[str, Coroutine[Any, Any, Any]],
        timeout: float | None,
    ) -> ActionOutcome:
        tasks = {
            client_id: self._start(action, client_id, operation)
            for client_id, operation in operations.items()
        }
        logger.debug(f"Fanned out {len(tasks)} operation(s) for {action.kind}")
        _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
        stragglers = [client for client, task in tasks.items() if task in pending]
        results = [
            self._result(client, task)
            for client, task in tasks.items()
            if task not in pending
        ]
        return self._combine(results, stragglers, timeout)

    async def _sequential(
        self,
        action: Action,
        operations: dict[str, Coroutine[Any, Any, Any]],
        timeout: float | None,
    ) -> ActionOutcome:
        deadline = None if timeout is None else time.monotonic() + timeout
        results: list[ParticipantResult] = []
        stragglers: list[str] = []
        items = list(operations.items())
        for position, (client_id, operation) in enumerate(items):
            remaining = (
                None if deadline is None else max(0.0, deadline - time.monotonic())
            )
            task = self._start(action, client_id, operation)
            _, pending = await asyncio.wait({task}, timeout=remaining)
            if pending:
                stragglers.append(client_id)
                for _, unstarted in items[position + 1 :]:
                    unstarted.close()
                break
            result = self._result(client_id, task)
            results.append(result)
            if not result.succeeded:
                for _, unstarted in items[position + 1 :]:
                    unstarted.close()
                break
        return self._combine(results, stragglers, timeout)

    def _result(self, client_id: str, task: asyncio.Task[Any]) -> ParticipantResult:
        error = task.exception()
        if error is None:
            return ParticipantResult(client_id, succeeded=True)
        if isinstance(error, PARTICIPANT_ERRORS):
            return ParticipantResult(client_id, succeeded=False, detail=str(error))
        logger.error(
            f"Unexpected error in {task.get_name()}: {error}",
            exc_info=(type(error), error, error.__traceback__),
        )
        return ParticipantResult(
            client_id,
            succeeded=False,
            detail=f"{client_id}: unexpected {type(error).__name__}: {error}",
        )

    def _combine(
        self,
        results: list[ParticipantResult],
        stragglers: list[str],
        timeout: float | None,
    ) -> ActionOutcome:
        failures = [r for r in results if not r.succeeded]
        details = [r.detail or r.client_id for r in failures]

        if stragglers:
            timeout_error = ActionTimeoutError(stragglers, timeout or 0.0)
            return ActionOutcome(
                succeeded=False,
                detail="; ".join([str(timeout_error), *details]),
                participants=tuple(results),
                stragglers=tuple(timeout_error.stragglers),
            )

        if not failures:
            return ActionOutcome(succeeded=True, participants=tuple(results))

        partial_ok = (
            not self.context.settings.require_all_participants
            and len(failures) < len(results)
        )
        if partial_ok:
            logger.warning(
                f"{len(failures)} of {len(results)} participant(s) failed: "
                f"{'; '.join(details)}"
            )
        return ActionOutcome(
            succeeded=partial_ok,
            detail="; ".join(details),
            participants=tuple(results),
        )
