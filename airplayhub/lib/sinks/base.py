# AirPlay Hub
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base classes for AirPlay Hub audio sinks.

A sink takes the hub's upstream audio and fans it out to receivers.  The
hub core only ever calls the synchronous methods below; adapters schedule
their own I/O so a slow receiver never stalls the event loop.
"""

from abc import ABC, abstractmethod


class DeviceHandle(ABC):
    """One live stream to one receiver."""

    @abstractmethod
    def set_volume(self, volume: int) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...


class AudioSink(ABC):
    """Interface every sink adapter must implement."""

    @abstractmethod
    def add(self, host: str, port: int, volume: int) -> DeviceHandle: ...

    @abstractmethod
    def stop_all(self) -> None: ...

    # -- Optional: override in adapters that need setup / teardown --

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @property
    def input_target(self) -> str | None:
        """Name raw-PCM inputs (pipe / loopback / tcp) should play into."""
        return None
