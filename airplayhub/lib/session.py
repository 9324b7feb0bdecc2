# AirPlay Hub
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Session lifecycle — which zones are streaming right now.

The manager is the only thing that talks to the audio sink and the only
owner of the active-session map (zone -> live device handle).  Invariant:
a zone with a live handle always has ``enabled == True``; both are updated
together before control returns to the event loop.

State machine:

    Idle ──connect──> Streaming ──disconnect──> Draining ──timeout──> Idle
                          ^                         │
                          └───────connect───────────┘

Draining keeps zones playing until the idle timer fires.  An idle timeout
of 0 or less disables auto-expiry entirely.

A note on volumes: ``zone.volume`` is the zone's own configured level and is
never sent to a receiver as-is.  What the receiver gets is always
``effective_zone_volume(zone.volume, master)``, so a master change rescales
every active zone without touching their stored levels.

All public methods are synchronous and never await, so callers on the
event loop get total ordering for free.
"""

import asyncio
import logging
from typing import Callable

from .publisher import StatusPublisher
from .sinks.base import AudioSink, DeviceHandle
from .state import HubState, SessionState
from .volume import effective_zone_volume, normalize_percent_volume, normalize_sender_volume
from .zones import Zone

logger = logging.getLogger("airplayhub.session")


class SessionLifecycleManager:
    def __init__(self, state: HubState, sink: AudioSink, publisher: StatusPublisher,
                 persist: Callable[[], None]):
        self.state = state
        self.sink = sink
        self.publisher = publisher
        self.persist = persist
        self._active: dict[str, DeviceHandle] = {}
        self._idle_timer: asyncio.TimerHandle | None = None

    # -- Introspection --

    @property
    def active(self) -> dict[str, DeviceHandle]:
        return dict(self._active)

    def is_active(self, name: str) -> bool:
        return name.lower() in self._active

    @property
    def idle_timer_armed(self) -> bool:
        return self._idle_timer is not None

    # -- Idle timer --

    def _cancel_idle_timer(self):
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def _arm_idle_timer(self):
        self._cancel_idle_timer()
        timeout = self.state.idle_timeout
        loop = asyncio.get_running_loop()
        self._idle_timer = loop.call_later(timeout, self._on_idle_timeout)
        logger.info("Idle timer armed (%.0fs)", timeout)

    def _on_idle_timeout(self):
        self._idle_timer = None
        logger.info("Idle timeout, stopping stream to all zones")
        self.stop_all()
        self.state.session_state = SessionState.IDLE

    # -- Sender events --

    def sender_connected(self):
        logger.info("New connection on airplayhub")
        self._cancel_idle_timer()
        self.state.session_state = SessionState.STREAMING
        for zone in self.state.registry:
            if zone.enabled and not self.is_active(zone.name):
                logger.info("Starting to stream to enabled zone %s", zone.name)
                self._open(zone)

    def sender_disconnected(self):
        logger.info("Client disconnected from airplayhub")
        self._cancel_idle_timer()
        if self.state.idle_timeout > 0:
            self.state.session_state = SessionState.DRAINING
            self._arm_idle_timer()
        else:
            logger.debug("Idle timeout disabled, zones keep streaming")

    def sender_volume_changed(self, raw):
        """Volume change from the sender (AirPlay dB scale)."""
        logger.info("Volume change requested from sender: %s", raw)
        volume = normalize_sender_volume(raw)
        logger.debug("Sender volume %r -> master %d", raw, volume)
        self._cancel_idle_timer()
        if self.state.session_state is SessionState.DRAINING:
            self.state.session_state = SessionState.STREAMING
        self._apply_master_volume(volume)

    # -- Explicit requests --

    def start_zone(self, name: str) -> Zone | None:
        zone = self.state.registry.find_by_name(name)
        if zone is None:
            logger.info("Zone %s not found - ignoring start", name)
            return None
        if self.is_active(zone.name):
            logger.debug("Zone already enabled - %s", zone.name)
        else:
            logger.info("Starting zone %s", zone.name)
            self._open(zone)
            self.state.registry.set_enabled(zone.name, True)
        self._rearm_if_draining()
        self.publish_zone_enabled(zone)
        return zone

    def stop_zone(self, name: str) -> Zone | None:
        zone = self.state.registry.find_by_name(name)
        if zone is None:
            logger.info("Zone %s not found - ignoring stop", name)
            return None
        handle = self._active.pop(zone.key, None)
        if handle is not None:
            logger.info("Stopping zone %s", zone.name)
            handle.stop()
            self.state.registry.set_enabled(zone.name, False)
        elif zone.enabled:
            # enabled in config but never got a handle (no sender yet)
            logger.info("Disabling idle zone %s", zone.name)
            self.state.registry.set_enabled(zone.name, False)
        else:
            logger.debug("Zone already disabled - %s", zone.name)
        self.publish_zone_enabled(zone)
        return zone

    def set_zone_volume(self, name: str, volume) -> Zone | None:
        zone = self.state.registry.set_volume(name, volume)
        if zone is None:
            logger.info("Zone %s not found - ignoring volume request", name)
            return None
        logger.info("Set volume for zone %s to %d", zone.name, zone.volume)
        handle = self._active.get(zone.key)
        if handle is not None:
            scaled = effective_zone_volume(zone.volume, self.state.master_volume)
            logger.info("Speaker active - scaling volume with master to %d for %s", scaled, zone.name)
            handle.set_volume(scaled)
        self.publish_zone_volume(zone)
        return zone

    def set_master_volume(self, raw):
        """Master volume from the bus or web UI (0-100 scale)."""
        volume = normalize_percent_volume(raw)
        logger.info("Setting master volume to %d (requested %r)", volume, raw)
        self._apply_master_volume(volume)

    def stop_all(self):
        """Stop every stream and mark every zone disabled (one config write)."""
        self.sink.stop_all()
        self._active.clear()
        self.state.registry.disable_all()
        for zone in self.state.registry:
            self.publish_zone_enabled(zone)

    def shutdown(self):
        self._cancel_idle_timer()
        self.stop_all()
        self.state.session_state = SessionState.IDLE

    # -- Status publishing --

    def publish_zone_enabled(self, zone: Zone):
        self.publisher.publish(f"status/{zone.name}/enabled", "1" if zone.enabled else "0")

    def publish_zone_volume(self, zone: Zone):
        self.publisher.publish(f"status/{zone.name}/volume", str(zone.volume))

    def publish_master_volume(self):
        self.publisher.publish("status/GLOBAL/volume", str(self.state.master_volume))

    def publish_all(self):
        """Full resync for stateful subscribers (e.g. Home Assistant)."""
        for zone in self.state.registry:
            self.publish_zone_enabled(zone)
            self.publish_zone_volume(zone)
        self.publish_master_volume()

    # -- Internals --

    def _open(self, zone: Zone):
        volume = effective_zone_volume(zone.volume, self.state.master_volume)
        self._active[zone.key] = self.sink.add(zone.host, zone.port, volume)
        logger.debug("Opened %s:%s for %s at %d", zone.host, zone.port, zone.name, volume)

    def _rearm_if_draining(self):
        if self.state.session_state is SessionState.DRAINING and self.state.idle_timeout > 0:
            self._arm_idle_timer()

    def _apply_master_volume(self, volume: int):
        self.state.master_volume = volume
        self.persist()
        for zone in self.state.registry:
            handle = self._active.get(zone.key)
            if handle is None:
                continue
            scaled = effective_zone_volume(zone.volume, volume)
            logger.info("Rescale volume for zone %s to %d", zone.name, scaled)
            handle.set_volume(scaled)
            self.publish_zone_volume(zone)
        self.publish_master_volume()
