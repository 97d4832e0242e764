# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""HTTP backend for game servers exposing a test-control REST surface.

Implements both SessionTransport and RoomDirectory over a shared
``httpx.AsyncClient``. Transient failures are retried by SmartRetry;
state-changing requests only when the server cannot have applied them;
refusals are translated into the roomcheck error taxonomy.

Endpoints:
    POST /sessions                      connect {client_id, display_name}
    POST /rooms                         create room {client_id}
    POST /rooms/{code}/members          join {client_id}
    POST /sessions/{id}/move            move {direction, duration}
    POST /sessions/{id}/disconnect
    POST /sessions/{id}/reconnect
    GET  /sessions/{id}                 local state
    GET  /rooms/{code}?observer=        room existence (404 = absent)
    GET  /rooms/{code}/members?observer=
"""

import logging
from types import TracebackType
from typing import Any

import httpx

from roomcheck.clients.retry_strategy import RetryPolicy, SmartRetry
from roomcheck.core.constants import HTTP_REQUEST_TIMEOUT
from roomcheck.core.errors import ClientConnectionError, InvalidStateError
from roomcheck.core.models import ClientSession, Direction, MemberSummary, Position

logger = logging.getLogger(__name__)

# Status codes meaning "the server refused this operation"
REFUSAL_STATUS_CODES = {403, 409}
HTTP_NOT_FOUND = 404


class HttpGameBackend:
    """Session transport and room directory backed by HTTP calls.

    Example:
        async with HttpGameBackend("http://127.0.0.1:8080") as backend:
            session = await backend.connect("alice", "Alice")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize the backend.

        Args:
            base_url: Base URL of the game server's test-control API
            timeout: Per-request timeout in seconds
            client: Pre-built client (e.g. with a mock transport); owned by the caller
            retry_policy: Backoff parameters for transient failures
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self.retry = SmartRetry(retry_policy)

    async def __aenter__(self) -> "HttpGameBackend":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # SessionTransport

    async def connect(self, client_id: str, display_name: str) -> ClientSession:
        data = await self._session_call(
            "connect",
            client_id,
            "POST",
            "/sessions",
            json={"client_id": client_id, "display_name": display_name},
        )
        return _parse_session(data)

    async def create_room(self, client_id: str) -> ClientSession:
        data = await self._session_call(
            "create_room", client_id, "POST", "/rooms", json={"client_id": client_id}
        )
        return _parse_session(data)

    async def join(self, client_id: str, code: str) -> ClientSession:
        data = await self._session_call(
            "join",
            client_id,
            "POST",
            f"/rooms/{code}/members",
            json={"client_id": client_id},
        )
        return _parse_session(data)

    async def move(
        self, client_id: str, direction: Direction, duration: float
    ) -> ClientSession:
        data = await self._session_call(
            "move",
            client_id,
            "POST",
            f"/sessions/{client_id}/move",
            json={"direction": direction.value, "duration": duration},
        )
        return _parse_session(data)

    async def disconnect(self, client_id: str) -> ClientSession:
        data = await self._session_call(
            "disconnect", client_id, "POST", f"/sessions/{client_id}/disconnect"
        )
        return _parse_session(data)

    async def reconnect(self, client_id: str) -> ClientSession:
        data = await self._session_call(
            "reconnect", client_id, "POST", f"/sessions/{client_id}/reconnect"
        )
        return _parse_session(data)

    async def local_state(self, client_id: str) -> ClientSession:
        data = await self._session_call(
            "local_state", client_id, "GET", f"/sessions/{client_id}"
        )
        return _parse_session(data)

    # RoomDirectory

    async def room_exists(self, code: str, observer: str | None = None) -> bool:
        try:
            await self._request("GET", f"/rooms/{code}", params=_observer(observer))
        except httpx.HTTPStatusError as e:
            if e.response.status_code == HTTP_NOT_FOUND:
                return False
            raise
        return True

    async def members(
        self, code: str, observer: str | None = None
    ) -> list[MemberSummary]:
        try:
            data = await self._request(
                "GET", f"/rooms/{code}/members", params=_observer(observer)
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == HTTP_NOT_FOUND:
                return []
            raise
        return [_parse_member(entry) for entry in data.get("members", [])]

    async def _session_call(
        self, operation: str, client_id: str, method: str, path: str, **kwargs: Any
    ) -> dict[str, Any]:
        """Perform a session operation and map failures to roomcheck errors."""
        try:
            return await self._request(method, path, **kwargs)
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            status = e.response.status_code
            logger.debug(f"{operation} for {client_id} failed: HTTP {status}: {detail}")
            if status in REFUSAL_STATUS_CODES and operation in ("move", "disconnect"):
                raise InvalidStateError(f"{client_id}: {operation} refused: {detail}") from e
            raise ClientConnectionError(
                f"{client_id}: {operation} refused (HTTP {status}): {detail}"
            ) from e
        except httpx.TransportError as e:
            raise ClientConnectionError(
                f"{client_id}: {operation} failed: {e.__class__.__name__}: {e}"
            ) from e

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        async def send() -> dict[str, Any]:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            if not response.content:
                return {}
            body: dict[str, Any] = response.json()
            return body

        return await self.retry.call(
            send, f"{method} {path}", idempotent=method == "GET"
        )


def _observer(observer: str | None) -> dict[str, str]:
    return {} if observer is None else {"observer": observer}


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


def _parse_position(data: Any) -> Position:
    if not data:
        return Position()
    return Position(float(data.get("x", 0.0)), float(data.get("y", 0.0)))


def _parse_session(data: dict[str, Any]) -> ClientSession:
    return ClientSession(
        client_id=str(data["client_id"]),
        display_name=str(data.get("display_name") or data["client_id"]),
        color=data.get("color"),
        position=_parse_position(data.get("position")),
        room_code=data.get("room_code"),
        connected=bool(data.get("connected", False)),
    )


def _parse_member(data: dict[str, Any]) -> MemberSummary:
    return MemberSummary(
        client_id=str(data["client_id"]),
        display_name=str(data.get("display_name") or data["client_id"]),
        color=data.get("color"),
        position=_parse_position(data.get("position")),
        connected=bool(data.get("connected", False)),
        is_creator=bool(data.get("is_creator", False)),
    )
