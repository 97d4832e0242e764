# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Per-run configuration."""

from dataclasses import dataclass, fields, replace
from typing import Any

from roomcheck.core.constants import (
    DEFAULT_ACTION_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TEARDOWN_TIMEOUT,
    DEFAULT_VALIDATION_TIMEOUT,
)
from roomcheck.core.errors import ScenarioError
from roomcheck.core.types import RunMode

TRUE_WORDS = ("true", "yes", "on")
FALSE_WORDS = ("false", "no", "off")


@dataclass(frozen=True)
class RunSettings:
    """Tunables for one scenario run.

    Attributes:
        poll_interval: Seconds between validation evaluation passes
        validation_timeout: Seconds a validation set may be re-polled
        action_timeout: Seconds a single action may take (Move adds its duration)
        continue_on_failure: Keep dispatching steps after a failed step
        require_all_participants: Fail a fan-out action if any participant fails
        teardown_timeout: Seconds to drain in-flight operations at run end
        mode: Unattended or stepped execution
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL
    validation_timeout: float = DEFAULT_VALIDATION_TIMEOUT
    action_timeout: float = DEFAULT_ACTION_TIMEOUT
    continue_on_failure: bool = False
    require_all_participants: bool = True
    teardown_timeout: float = DEFAULT_TEARDOWN_TIMEOUT
    mode: RunMode = RunMode.UNATTENDED

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ScenarioError("poll_interval must be positive")
        for name in ("validation_timeout", "action_timeout", "teardown_timeout"):
            if getattr(self, name) < 0:
                raise ScenarioError(f"{name} must not be negative")

    def merged(self, overrides: dict[str, Any]) -> "RunSettings":
        """Return a copy with the non-None values of ``overrides`` applied.

        Values are converted to the field types, so numbers and booleans may
        also be given as strings (e.g. from YAML or environment variables).

        Raises:
            ScenarioError: On unknown keys or values of the wrong type
        """
        types = {f.name: f.type for f in fields(self)}
        unknown = set(overrides) - set(types)
        if unknown:
            raise ScenarioError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if value is None:
                continue
            field_type = types[key]
            if field_type is RunMode:
                try:
                    changes[key] = RunMode(value)
                except ValueError as e:
                    raise ScenarioError(f"Unknown run mode: {value}") from e
            elif field_type is bool:
                changes[key] = parse_bool(value, key)
            else:
                changes[key] = parse_float(value, key)
        return replace(self, **changes)


def parse_bool(value: Any, what: str) -> bool:
    """Convert a YAML boolean or one of a fixed set of words to bool.

    Raises:
        ScenarioError: For any other value
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
    raise ScenarioError(f"{what} must be true or false, got {value!r}")


def parse_float(value: Any, what: str) -> float:
    """Convert a number or numeric string to float.

    Raises:
        ScenarioError: For booleans and non-numeric values
    """
    if isinstance(value, bool):
        raise ScenarioError(f"{what} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ScenarioError(f"{what} must be a number, got {value!r}") from None
