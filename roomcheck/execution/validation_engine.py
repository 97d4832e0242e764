# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Polling evaluation of validations against replicated room state.

Replication from the authoritative server to each observer is
asynchronous, so a check right after an action would flake. Instead, the
engine samples every predicate of a step on a fixed interval until all of
them hold in the same pass, or until the validation deadline elapses. A
failure is only reported after the full deadline.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import assert_never

from roomcheck.core.errors import ValidationTimeoutError
from roomcheck.execution.context import RunContext
from roomcheck.reporting.metrics import TIME_TO_CONSISTENCY, VALIDATION_POLLS
from roomcheck.scenario.validations import (
    ConnectionState,
    MemberCount,
    MemberVisible,
    PositionNear,
    RoomAbsent,
    RoomExists,
    Validation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredicateResult:
    """One evaluation of one validation."""

    description: str
    holds: bool
    observed: str
    expected: str

    @property
    def reason(self) -> str:
        return f"{self.description}: observed {self.observed}, expected {self.expected}"


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of polling a validation set.

    Attributes:
        succeeded: All predicates held in one evaluation pass
        polls: Number of evaluation passes performed
        elapsed: Seconds from the first pass to the deciding pass
        reason: First unsatisfied predicate at the deadline, None on success
        results: Predicate results of the deciding pass
    """

    succeeded: bool
    polls: int
    elapsed: float
    reason: str | None = None
    results: tuple[PredicateResult, ...] = ()

    def raise_for_failure(self) -> None:
        """Raise ValidationTimeoutError if the validation set failed."""
        if not self.succeeded:
            raise ValidationTimeoutError(self.reason or "validation failed")


class ValidationEngine:
    """Evaluates validation sets for one run."""

    def __init__(self, context: RunContext):
        self.context = context

    async def wait_until_satisfied(
        self,
        validations: tuple[Validation, ...],
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> ValidationOutcome:
        """Poll ``validations`` until all hold in one pass or the deadline elapses.

        Args:
            validations: Conjunction of predicates to satisfy
            timeout: Deadline in seconds (defaults to the run setting)
            poll_interval: Seconds between passes (defaults to the run setting)

        Returns:
            ValidationOutcome describing the deciding pass
        """
        settings = self.context.settings
        timeout = settings.validation_timeout if timeout is None else timeout
        poll_interval = settings.poll_interval if poll_interval is None else poll_interval

        start = time.monotonic()
        deadline = start + timeout
        polls = 0
        while True:
            polls += 1
            results = await self.evaluate(validations)
            elapsed = time.monotonic() - start
            if all(result.holds for result in results):
                self.context.metrics.record_sample(VALIDATION_POLLS, polls)
                self.context.metrics.record_sample(TIME_TO_CONSISTENCY, elapsed)
                logger.debug(f"Validations satisfied after {polls} poll(s), {elapsed:.3f}s")
                return ValidationOutcome(
                    succeeded=True, polls=polls, elapsed=elapsed, results=tuple(results)
                )

            now = time.monotonic()
            if now >= deadline:
                break
            await asyncio.sleep(min(poll_interval, deadline - now))

        self.context.metrics.record_sample(VALIDATION_POLLS, polls)
        unmet = next(result for result in results if not result.holds)
        reason = (
            f"validation not satisfied within {timeout:.2f}s "
            f"({polls} polls): {unmet.reason}"
        )
        logger.info(reason)
        return ValidationOutcome(
            succeeded=False,
            polls=polls,
            elapsed=elapsed,
            reason=reason,
            results=tuple(results),
        )

    async def evaluate(self, validations: tuple[Validation, ...]) -> list[PredicateResult]:
        """One evaluation pass; predicates are read concurrently."""
        return list(await asyncio.gather(*(self.check(v) for v in validations)))

    async def check(self, validation: Validation) -> PredicateResult:
        """Evaluate a single predicate once.

        Errors while reading state count as "not satisfied yet" and are
        reported as the observed value.
        """
        try:
            return await self._check(validation)
        except Exception as e:
            logger.debug(f"Error while evaluating {validation.kind}: {e}")
            return PredicateResult(
                description=_describe(validation),
                holds=False,
                observed=f"error ({type(e).__name__}: {e})",
                expected=_expected(validation),
            )

    async def _check(self, validation: Validation) -> PredicateResult:
        match validation:
            case MemberCount():
                return await self._member_count(validation)
            case MemberVisible():
                return await self._member_visible(validation)
            case PositionNear():
                return await self._position_near(validation)
            case RoomExists() | RoomAbsent():
                return await self._room_existence(validation)
            case ConnectionState():
                return await self._connection_state(validation)
            case _:
                assert_never(validation)

    async def _member_count(self, validation: MemberCount) -> PredicateResult:
        code = self.context.resolve_room(validation.room)
        views = [self.context.view(o) for o in validation.observers] or [
            self.context.view()
        ]
        counts = await asyncio.gather(*(view.members(code) for view in views))
        for view, members in zip(views, counts):
            if len(members) != validation.expected:
                return PredicateResult(
                    description=f"member_count({validation.room}) seen by {view.perspective}",
                    holds=False,
                    observed=str(len(members)),
                    expected=str(validation.expected),
                )
        return PredicateResult(
            description=_describe(validation),
            holds=True,
            observed=str(validation.expected),
            expected=str(validation.expected),
        )

    async def _member_visible(self, validation: MemberVisible) -> PredicateResult:
        description = _describe(validation)
        code = self.context.adaptor(validation.observer).snapshot().room_code
        if code is None:
            return PredicateResult(
                description, False, f"{validation.observer} not in a room", "visible"
            )
        members = await self.context.view(validation.observer).members(code)
        visible = any(member.client_id == validation.target for member in members)
        return PredicateResult(
            description, visible, "visible" if visible else "not visible", "visible"
        )

    async def _position_near(self, validation: PositionNear) -> PredicateResult:
        description = _describe(validation)
        expected = f"within {validation.tolerance:g} of {validation.expected}"
        session = self.context.adaptor(validation.client).snapshot()
        if session.room_code is None:
            position = session.position
        else:
            view = self.context.view(validation.observer)
            member = await view.member(session.room_code, validation.client)
            if member is None:
                return PredicateResult(description, False, "not visible", expected)
            position = member.position
        distance = position.distance_to(validation.expected)
        return PredicateResult(
            description,
            distance <= validation.tolerance,
            f"{position} (distance {distance:.3f})",
            expected,
        )

    async def _room_existence(
        self, validation: RoomExists | RoomAbsent
    ) -> PredicateResult:
        code = self.context.resolve_room(validation.room)
        exists = await self.context.view().room_exists(code)
        wanted = isinstance(validation, RoomExists)
        return PredicateResult(
            _describe(validation),
            exists == wanted,
            "exists" if exists else "absent",
            "exists" if wanted else "absent",
        )

    async def _connection_state(self, validation: ConnectionState) -> PredicateResult:
        description = _describe(validation)
        expected = _connection_word(validation.expected)
        session = self.context.adaptor(validation.client).snapshot()
        if session.room_code is None:
            connected = session.connected
        else:
            view = self.context.view(validation.observer)
            member = await view.member(session.room_code, validation.client)
            if member is None:
                return PredicateResult(description, False, "not visible", expected)
            connected = member.connected
        return PredicateResult(
            description,
            connected == validation.expected,
            _connection_word(connected),
            expected,
        )


def _connection_word(connected: bool) -> str:
    return "connected" if connected else "disconnected"


def _describe(validation: Validation) -> str:
    match validation:
        case MemberCount(room=room):
            return f"member_count({room})"
        case MemberVisible(observer=observer, target=target):
            return f"member_visible({observer} sees {target})"
        case PositionNear(client=client):
            return f"position_near({client})"
        case RoomExists(room=room):
            return f"room_exists({room})"
        case RoomAbsent(room=room):
            return f"room_absent({room})"
        case ConnectionState(client=client):
            return f"connection_state({client})"
        case _:
            assert_never(validation)


def _expected(validation: Validation) -> str:
    match validation:
        case MemberCount(expected=expected):
            return str(expected)
        case MemberVisible():
            return "visible"
        case PositionNear(expected=expected, tolerance=tolerance):
            return f"within {tolerance:g} of {expected}"
        case RoomExists():
            return "exists"
        case RoomAbsent():
            return "absent"
        case ConnectionState(expected=expected):
            return _connection_word(expected)
        case _:
            assert_never(validation)
