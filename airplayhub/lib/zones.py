# AirPlay Hub
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Zone model & registry.

A zone is one AirPlay receiver the hub can stream to.  Zones are identified
by name (case-insensitive); host and port may change whenever discovery
re-resolves the receiver.  Zones are never removed once learned.

Every mutation calls the registry's ``on_change`` hook, which the hub wires
to the config store so the zone list on disk is always current.
"""

import logging
from typing import Callable, NamedTuple

from .volume import clamp_volume

logger = logging.getLogger("airplayhub.zones")


class Zone:
    """A configured or discovered audio receiver."""

    def __init__(self, name: str, host: str, port: int, volume: int = 0,
                 enabled: bool = False, hidden: bool = False):
        self.name = name
        self.host = host
        self.port = port
        self.volume = volume     # zone's own volume 0-100, independent of master
        self.enabled = enabled   # meant to be streaming
        self.hidden = hidden     # web UI only

    @property
    def key(self) -> str:
        return self.name.lower()

    @classmethod
    def from_dict(cls, data: dict) -> "Zone":
        port = data.get("port")
        try:
            port = int(port)
        except (TypeError, ValueError):
            port = 0
        return cls(
            name=str(data["name"]),
            host=data.get("host") or "",
            port=port,
            volume=clamp_volume(data.get("volume", 0)),
            enabled=bool(data.get("enabled", False)),
            hidden=bool(data.get("hidden", False)),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "host": self.host,
            "port": self.port,
            "volume": self.volume,
            "enabled": self.enabled,
            "hidden": self.hidden,
        }

    def __repr__(self):
        return f"Zone({self.name!r}, {self.host}:{self.port}, vol={self.volume}, enabled={self.enabled})"


class UpsertResult(NamedTuple):
    zone: Zone
    created: bool
    changed: bool


class ZoneRegistry:
    """Ordered, name-unique collection of zones."""

    def __init__(self, server_name: str = "", on_change: Callable[[], None] | None = None):
        self._zones: list[Zone] = []
        self.server_name = server_name
        self.on_change = on_change

    def load(self, entries: list) -> None:
        """Populate from persisted config; later duplicates of a name are dropped."""
        self._zones = []
        for entry in entries or []:
            try:
                zone = Zone.from_dict(entry)
            except (KeyError, TypeError, AttributeError):
                logger.warning("Skipping malformed zone entry in config: %r", entry)
                continue
            if self.find_by_name(zone.name):
                logger.warning("Duplicate zone '%s' in config, keeping the first", zone.name)
                continue
            self._zones.append(zone)
        logger.info("Loaded %d zone(s) from config", len(self._zones))

    def __iter__(self):
        return iter(list(self._zones))

    def __len__(self):
        return len(self._zones)

    def _changed(self):
        if self.on_change:
            self.on_change()

    def find_by_name(self, name: str) -> Zone | None:
        if name is None:
            return None
        key = str(name).lower()
        for zone in self._zones:
            if zone.key == key:
                return zone
        return None

    def is_self(self, name: str) -> bool:
        return bool(self.server_name) and name.lower() == self.server_name.lower()

    def upsert_from_discovery(self, name: str, host: str, port: int) -> UpsertResult | None:
        """Add a newly seen receiver or refresh the address of a known one.

        Returns None for our own announcement.  Writes config only when a
        zone was created or its address actually changed.
        """
        if self.is_self(name):
            logger.debug("Ignoring self-announcement '%s'", name)
            return None

        zone = self.find_by_name(name)
        if zone is None:
            zone = Zone(name, host, port)
            self._zones.append(zone)
            logger.info("New zone added: %s (%s:%s)", name, host, port)
            self._changed()
            return UpsertResult(zone, created=True, changed=False)

        changed = False
        if zone.host != host:
            zone.host = host
            changed = True
        if zone.port != port:
            zone.port = port
            changed = True
        if changed:
            logger.info("Zone %s moved to %s:%s", zone.name, host, port)
            self._changed()
        return UpsertResult(zone, created=False, changed=changed)

    def set_enabled(self, name: str, enabled: bool) -> Zone | None:
        zone = self.find_by_name(name)
        if zone is None:
            return None
        zone.enabled = enabled
        self._changed()
        return zone

    def set_volume(self, name: str, volume) -> Zone | None:
        zone = self.find_by_name(name)
        if zone is None:
            return None
        zone.volume = clamp_volume(volume)
        self._changed()
        return zone

    def set_hidden(self, name: str, hidden: bool) -> Zone | None:
        zone = self.find_by_name(name)
        if zone is None:
            return None
        zone.hidden = hidden
        self._changed()
        return zone

    def disable_all(self) -> None:
        """Mark every zone disabled (one config write)."""
        for zone in self._zones:
            if zone.enabled:
                logger.info("Disabled zone %s", zone.name)
            zone.enabled = False
        self._changed()

    def list_visible(self) -> list[Zone]:
        return [z for z in self._zones if not z.hidden]

    def to_list(self) -> list[dict]:
        return [z.to_dict() for z in self._zones]
