#!/usr/bin/env python3
# AirPlay Hub
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
AirPlay Hub (airplayhub)

Sits between an audio sender (AirPlay via shairport-sync, a capture
process or a TCP client) and any number of AirPlay receivers ("zones").
Zones are discovered over mDNS, controlled over MQTT and a small HTTP API,
and everything about them is persisted in one JSON config file.

Event flow: discovery, MQTT and the audio input never mutate hub state
themselves.  They post typed events on the controller's queue, and a
single dispatch task applies them in order.  HTTP handlers call the same
synchronous controller methods, which never await, so no two mutations
ever interleave.

Port: 8089 (webuiport)
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys

import aiohttp
from aiohttp import web

from .http_api import create_app
from .lib.artwork import lookup_artwork
from .lib.bridge import MqttBridge
from .lib.config import ConfigError, ConfigStore, resolve_config_path
from .lib.control import ControlProtocolBridge
from .lib.discovery import DiscoveryIngester, RaopBrowser
from .lib.events import (
    BusConnected,
    BusMessage,
    InputStatusChanged,
    MetadataChanged,
    SenderConnected,
    SenderDisconnected,
    SenderVolumeChanged,
    ServiceDown,
    ServiceUp,
)
from .lib.publisher import NullPublisher, StatusPublisher
from .lib.session import SessionLifecycleManager
from .lib.sinks import AudioSink, create_audio_sink
from .lib.sources import create_session_source
from .lib.state import GENERIC_ART, HubState
from .lib.watchdog import sd_notify, watchdog_loop

logger = logging.getLogger("airplayhub")

NOT_FOUND = {"error": "zone not found"}

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------
class HubController:
    """Owns the one HubState and wires every component to it."""

    def __init__(self, config: dict, store: ConfigStore | None, sink: AudioSink,
                 publisher: StatusPublisher | None = None):
        self.state = HubState(config)
        self.state.registry.load(config.get("zones"))
        self.state.registry.on_change = self.persist
        self.store = store
        self.sink = sink
        self.publisher = publisher or NullPublisher()
        self.session = SessionLifecycleManager(self.state, sink, self.publisher, self.persist)
        self.control = ControlProtocolBridge(config.get("mqttTopic", "airplayhub"), self.session)
        self.discovery = DiscoveryIngester(self.state.registry)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._dispatch_task: asyncio.Task | None = None
        self._artwork_task: asyncio.Task | None = None
        self._http: aiohttp.ClientSession | None = None

    def set_publisher(self, publisher: StatusPublisher):
        self.publisher = publisher
        self.session.publisher = publisher

    def persist(self):
        """Write the full config, zones included.  Runs on every mutation."""
        if self.store is None:
            return
        try:
            self.store.save(self.state.snapshot())
        except OSError as e:
            logger.error("Could not write config to %s: %s", self.store.path, e)

    # -- Event queue --

    def post(self, event):
        """Called by producers (discovery, MQTT, audio input) from the loop."""
        self._queue.put_nowait(event)

    async def start(self):
        self._http = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=5.0))
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())
        self.publisher.publish("status/input", self.state.input_type)
        logger.info("Hub started (%d zones, master volume %d, input %s)",
                    len(self.state.registry), self.state.master_volume, self.state.input_type)

    async def stop(self):
        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None
        if self._artwork_task:
            self._artwork_task.cancel()
        if self._http:
            await self._http.close()
            self._http = None

    async def drain(self):
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def _dispatch_loop(self):
        while True:
            event = await self._queue.get()
            try:
                self.handle_event(event)
            except Exception:
                logger.exception("Error handling %r", event)
            finally:
                self._queue.task_done()

    def handle_event(self, event):
        if isinstance(event, BusMessage):
            self.control.handle_message(event.topic, event.payload)
        elif isinstance(event, BusConnected):
            self.control.handle_connected()
        elif isinstance(event, ServiceUp):
            self.discovery.service_up(event)
        elif isinstance(event, ServiceDown):
            self.discovery.service_down(event)
        elif isinstance(event, SenderConnected):
            self.session.sender_connected()
        elif isinstance(event, SenderDisconnected):
            self.session.sender_disconnected()
        elif isinstance(event, SenderVolumeChanged):
            self.session.sender_volume_changed(event.raw)
        elif isinstance(event, MetadataChanged):
            self.set_trackinfo(event)
        elif isinstance(event, InputStatusChanged):
            self.set_input_active(event.active)
        else:
            logger.warning("Unknown event %r", event)

    # -- Track info / input status --

    def set_trackinfo(self, event: MetadataChanged):
        logger.info("Metadata changed: %s - %s", event.artist, event.title)
        self.state.trackinfo = {
            "artist": event.artist,
            "album": event.album,
            "title": event.title,
            "albumart": GENERIC_ART,
        }
        if self._artwork_task:
            self._artwork_task.cancel()
        if self._http is None:
            self._publish_trackinfo()
            return
        self._artwork_task = asyncio.ensure_future(self._resolve_artwork(self.state.trackinfo))

    async def _resolve_artwork(self, trackinfo: dict):
        url = await lookup_artwork(self._http, trackinfo.get("artist"), trackinfo.get("album"))
        # A newer track may have replaced this one while we waited
        if self.state.trackinfo is trackinfo:
            trackinfo["albumart"] = url
            self._publish_trackinfo()

    def _publish_trackinfo(self):
        self.publisher.publish("status/GLOBAL/trackinfo", json.dumps(self.state.trackinfo))

    def set_input_active(self, active: bool):
        self.state.input_active = active
        logger.info("%s input %s", self.state.input_type, "connected" if active else "disconnected")
        self.publisher.publish("status/connected", "2" if active else "1", retain=True)

    # -- Operations used by the HTTP API --

    def start_zone(self, name: str) -> dict:
        zone = self.session.start_zone(name)
        return zone.to_dict() if zone else dict(NOT_FOUND)

    def stop_zone(self, name: str) -> dict:
        zone = self.session.stop_zone(name)
        return zone.to_dict() if zone else dict(NOT_FOUND)

    def set_zone_volume(self, name: str, volume):
        zone = self.session.set_zone_volume(name, volume)
        return zone.volume if zone else dict(NOT_FOUND)

    def hide_zone(self, name: str) -> dict:
        zone = self.state.registry.set_hidden(name, True)
        if zone is None:
            logger.info("Zone %s not found - ignoring hide", name)
            return dict(NOT_FOUND)
        logger.info("Zone %s hidden", zone.name)
        return zone.to_dict()

    def show_zone(self, name: str) -> dict:
        zone = self.state.registry.set_hidden(name, False)
        if zone is None:
            logger.info("Zone %s not found - ignoring show", name)
            return dict(NOT_FOUND)
        logger.info("Zone %s shown", zone.name)
        return zone.to_dict()

    def visible_zones(self) -> list[dict]:
        return [z.to_dict() for z in self.state.registry.list_visible()]

    def trackinfo(self) -> dict:
        return dict(self.state.trackinfo)

    def status(self) -> dict:
        return {
            "servername": self.state.config.get("servername"),
            "session": self.state.session_state.value,
            "mastervolume": self.state.master_volume,
            "input": self.state.input_type,
            "input_active": self.state.input_active,
            "idle_timer": self.session.idle_timer_armed,
            "active_zones": sorted(z.name for z in self.state.registry if self.session.is_active(z.name)),
            "zones": len(self.state.registry),
        }

    def shutdown(self):
        """Stop every zone, mark all disabled and write config."""
        logger.info("Stopping stream to all zones")
        self.session.shutdown()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def _default_webroot(config: dict, config_path: str) -> str:
    return config.get("webroot") or os.path.join(os.path.dirname(config_path), "root")


async def run_hub(config_path: str) -> int:
    store = ConfigStore(config_path)
    try:
        config = store.load()
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    logging.getLogger().setLevel(LOG_LEVELS.get(str(config.get("verbosity", "info")).lower(), logging.INFO))

    sink = create_audio_sink(config)
    await sink.start()

    controller = HubController(config, store, sink)
    bridge = None
    if config.get("mqtt"):
        bridge = MqttBridge(config, controller.post)
        controller.set_publisher(bridge)
    source = create_session_source(config, bridge, sink.input_target, controller.post)
    browser = RaopBrowser(controller.post)

    app = create_app(controller, webroot=_default_webroot(config, config_path))
    runner = web.AppRunner(app)
    await runner.setup()
    port = int(config.get("webuiport", 8089))
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    logger.info("Web UI on port %d", port)

    await controller.start()
    if bridge:
        await bridge.start()
    if source:
        await source.start()
    await browser.start()
    watchdog = asyncio.create_task(watchdog_loop())

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)
    try:
        await stop_event.wait()
    finally:
        logger.info("Termination requested - writing config to %s", config_path)
        sd_notify("STOPPING=1")
        watchdog.cancel()
        await browser.stop()
        if source:
            await source.stop()
        await controller.drain()
        controller.shutdown()
        if bridge:
            await bridge.stop()
        await sink.close()
        await controller.stop()
        await runner.cleanup()
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="airplayhub", description="Multi-zone AirPlay hub")
    parser.add_argument("-c", "--config", default=None,
                        help="Path to config file (default ./config.json next to the executable)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Application starting")
    config_path = resolve_config_path(args.config)
    sys.exit(asyncio.run(run_hub(config_path)))


if __name__ == "__main__":
    main()
