"""
AirPlay input via shairport-sync's MQTT metadata feed.

shairport-sync receives the AirPlay stream (and plays it into the hub sink);
with ``mqtt.enabled`` and ``publish_parsed`` it also reports session events
under its own topic, which this source turns into hub events:

    <topic>/active_start, play_start, play_resume  -> SenderConnected
    <topic>/active_end                              -> SenderDisconnected
    <topic>/volume  "-15.00,50.00,-30.00,0.00"      -> SenderVolumeChanged("-15.00")
    <topic>/artist | album | title                  -> MetadataChanged

Metadata fields arrive one message each; they are collected and emitted as
one MetadataChanged after a short quiet period.
"""

import asyncio
import logging
from typing import Callable

from ..bridge import MqttBridge
from ..events import MetadataChanged, SenderConnected, SenderDisconnected, SenderVolumeChanged
from .base import SessionSource

logger = logging.getLogger("airplayhub.source.shairport")

CONNECT_TOPICS = ("active_start", "play_start", "play_resume")
DISCONNECT_TOPICS = ("active_end",)
METADATA_FIELDS = ("artist", "album", "title")


class ShairportSource(SessionSource):
    input_type = "airplay"

    def __init__(self, bridge: MqttBridge, topic: str, on_event: Callable[[object], None]):
        super().__init__(on_event)
        self.topic = topic.rstrip("/")
        self.connected = False
        self._bridge = bridge
        self._metadata: dict[str, str | None] = dict.fromkeys(METADATA_FIELDS)
        # Debounce state
        self._metadata_handle: asyncio.TimerHandle | None = None
        self._metadata_debounce_ms = 200

    async def start(self):
        self._bridge.add_subscription(f"{self.topic}/#", self.handle_message)
        logger.info("Airplay hub input mode (shairport-sync on %s/#)", self.topic)

    async def stop(self):
        if self._metadata_handle is not None:
            self._metadata_handle.cancel()
            self._metadata_handle = None

    def handle_message(self, topic: str, payload: bytes):
        event = topic.rsplit("/", 1)[-1]
        text = payload.decode("utf-8", errors="replace").strip()

        if event in CONNECT_TOPICS:
            if not self.connected:
                self.connected = True
                self._on_event(SenderConnected())
        elif event in DISCONNECT_TOPICS:
            if self.connected:
                self.connected = False
                self._on_event(SenderDisconnected())
        elif event == "volume":
            airplay_volume = text.split(",")[0]
            self._on_event(SenderVolumeChanged(airplay_volume))
        elif event in METADATA_FIELDS:
            self._metadata[event] = text or None
            self._schedule_metadata()
        else:
            logger.debug("shairport %s ignored", event)

    def _schedule_metadata(self):
        if self._metadata_handle is not None:
            self._metadata_handle.cancel()
        loop = asyncio.get_running_loop()
        self._metadata_handle = loop.call_later(
            self._metadata_debounce_ms / 1000, self._flush_metadata
        )

    def _flush_metadata(self):
        self._metadata_handle = None
        self._on_event(MetadataChanged(**self._metadata))
