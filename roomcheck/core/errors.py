# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Error taxonomy for scenario execution.

Only ScenarioError is allowed to stop a run before it starts. Every other
error raised while a plan executes is converted into the failure reason of
the step that raised it, so a failed run still produces a complete report.
"""


class RoomCheckError(Exception):
    """Base class for all roomcheck errors."""


class ClientConnectionError(RoomCheckError):
    """The external system refused or timed out a connect, join or reconnect.

    Attributes:
        detail: Human-readable description of the refusal.
    """

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidStateError(RoomCheckError):
    """An operation was attempted against an adaptor in an incompatible state."""


class ActionTimeoutError(RoomCheckError):
    """One or more fan-out participants did not complete within the action timeout.

    Attributes:
        stragglers: Client ids whose operations were still in flight.
        timeout: The timeout that elapsed, in seconds.
    """

    def __init__(self, stragglers: list[str], timeout: float):
        self.stragglers = sorted(stragglers)
        self.timeout = timeout
        super().__init__(
            f"action timed out after {timeout:.2f}s waiting for: "
            f"{', '.join(self.stragglers)}"
        )


class ValidationTimeoutError(RoomCheckError):
    """A validation set was not satisfied before its deadline."""


class ScenarioError(RoomCheckError):
    """The scenario description is malformed and cannot be run."""


class StatusTransitionError(RoomCheckError):
    """A step status change violated the transition table."""
