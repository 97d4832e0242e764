# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Retry of game server requests with exponential backoff and jitter.

Room queries are safe to repeat, so any transient failure is retried.
Session operations change server state (a join that timed out may still
have been applied), so they are only retried when the server cannot have
processed them: the connection was never established, or the server
answered 429/503.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from roomcheck.core.constants import (
    RETRY_EXPONENTIAL_BASE,
    RETRY_INITIAL_DELAY,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Any request may be retried after these
QUERY_RETRY_STATUS_CODES = {429, 502, 503, 504}
QUERY_RETRY_EXCEPTIONS = (httpx.TransportError, asyncio.TimeoutError)

# State-changing requests only after these: the server never acted on them
UPDATE_RETRY_STATUS_CODES = {429, 503}
UPDATE_RETRY_EXCEPTIONS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for one backend."""

    max_attempts: int = RETRY_MAX_ATTEMPTS
    initial_delay: float = RETRY_INITIAL_DELAY
    max_delay: float = RETRY_MAX_DELAY
    exponential_base: float = RETRY_EXPONENTIAL_BASE

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``, with +/-50% jitter."""
        delay = min(self.initial_delay * self.exponential_base**attempt, self.max_delay)
        return delay * (0.5 + random.random())


class SmartRetry:
    """Runs request coroutines under a RetryPolicy."""

    def __init__(self, policy: RetryPolicy | None = None):
        self.policy = policy or RetryPolicy()

    async def call(
        self,
        send: Callable[[], Awaitable[T]],
        description: str,
        idempotent: bool = True,
    ) -> T:
        """Await ``send()`` until it succeeds or retrying is no longer allowed.

        Args:
            send: Zero-argument coroutine function performing one attempt
            description: Request description for log messages
            idempotent: Whether repeating the request cannot change server state

        Returns:
            Result of the first successful attempt

        Raises:
            The error of the last attempt
        """
        status_codes = QUERY_RETRY_STATUS_CODES if idempotent else UPDATE_RETRY_STATUS_CODES
        exceptions = QUERY_RETRY_EXCEPTIONS if idempotent else UPDATE_RETRY_EXCEPTIONS
        attempts = self.policy.max_attempts

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            try:
                return await send()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status not in status_codes or last_attempt:
                    raise
                delay = self._server_delay(e.response, attempt)
                logger.warning(
                    f"{description}: HTTP {status} on attempt {attempt + 1}/{attempts}, "
                    f"retrying in {delay:.2f}s"
                )
            except exceptions as e:
                if last_attempt:
                    logger.warning(f"{description}: giving up after {attempts} attempts: {e}")
                    raise
                delay = self.policy.backoff(attempt)
                logger.warning(
                    f"{description}: {type(e).__name__} on attempt "
                    f"{attempt + 1}/{attempts}, retrying in {delay:.2f}s"
                )
            await asyncio.sleep(delay)

        raise RuntimeError(f"{description}: retry policy allows no attempts")

    def _server_delay(self, response: httpx.Response, attempt: int) -> float:
        """Honour Retry-After on 429/503, else back off."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return min(float(retry_after), self.policy.max_delay)
            except ValueError:
                logger.debug(f"Ignoring non-numeric Retry-After: {retry_after}")
        return self.policy.backoff(attempt)
