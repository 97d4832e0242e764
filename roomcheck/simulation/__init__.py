# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""In-memory simulation of the external networked application."""

from roomcheck.simulation.server import RoomRecord, SimulatedRoomServer

__all__ = ["RoomRecord", "SimulatedRoomServer"]
