# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Client-side collaborators: adaptors, room views and backends."""

from roomcheck.clients.adaptor import ClientAdaptor
from roomcheck.clients.http_backend import HttpGameBackend
from roomcheck.clients.interfaces import RoomDirectory, SessionTransport
from roomcheck.clients.room_view import RoomStateView

__all__ = [
    "ClientAdaptor",
    "HttpGameBackend",
    "RoomDirectory",
    "RoomStateView",
    "SessionTransport",
]
