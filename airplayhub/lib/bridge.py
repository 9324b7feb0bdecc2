"""
MQTT bridge for the AirPlay Hub.

Owns the single broker connection.  Inbound messages under ``<root>/#`` are
handed to the hub as BusMessage events; everything the hub publishes goes
through a bounded outbox so publishing never blocks the caller.

Connection handling:
  - will message ``<root>/status/connected = 0`` (retained)
  - on connect: publish ``<root>/status/connected = 1`` (retained),
    subscribe ``<root>/#``, then emit BusConnected so the hub can dump
    the status of every zone
  - on loss: reconnect with exponential backoff (1s .. 30s)

Other components (the shairport-sync session source) can add their own
topic filters with ``add_subscription``; they ride the same connection.

Usage:
    bridge = MqttBridge(config, on_event=controller.post)
    await bridge.start()
    bridge.publish("status/GLOBAL/volume", "50")
    await bridge.stop()
"""

import asyncio
import logging
import os
import ssl
from typing import Callable
from urllib.parse import urlparse

import aiomqtt

from .events import BusConnected, BusMessage
from .publisher import StatusPublisher

logger = logging.getLogger("airplayhub.mqtt")

OUTBOX_SIZE = 1000


def parse_broker_url(url: str) -> tuple[str, int, bool]:
    """'mqtt://broker:1883' -> ('broker', 1883, False); mqtts implies TLS."""
    if "://" not in url:
        url = f"mqtt://{url}"
    parsed = urlparse(url)
    tls = parsed.scheme in ("mqtts", "ssl", "tls")
    port = parsed.port or (8883 if tls else 1883)
    return parsed.hostname or "localhost", port, tls


class MqttBridge(StatusPublisher):
    """Unified MQTT connection: status out, commands and metadata in."""

    def __init__(self, config: dict, on_event: Callable[[object], None]):
        self.root = str(config.get("mqttTopic", "airplayhub")).rstrip("/")
        self._on_event = on_event

        options = config.get("mqttOptions") or {}
        host, port, tls = parse_broker_url(config.get("mqttUrl") or "mqtt://localhost:1883")
        self.broker = options.get("host") or host
        self.port = int(options.get("port") or port)
        self.tls = tls
        self.client_id = options.get("clientId") or None
        # Credentials from env vars take precedence over the config file
        self.username = os.getenv("MQTT_USER") or options.get("username") or None
        self.password = os.getenv("MQTT_PASSWORD") or options.get("password") or None

        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=OUTBOX_SIZE)
        self._subscriptions: list[tuple[str, Callable[[str, bytes], None]]] = []
        self._client: aiomqtt.Client | None = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def connected(self) -> bool:
        return self._client is not None

    def topic(self, path: str) -> str:
        return f"{self.root}/{path}"

    def add_subscription(self, topic_filter: str, handler: Callable[[str, bytes], None]):
        """Route messages matching *topic_filter* to *handler(topic, payload)*."""
        self._subscriptions.append((topic_filter, handler))

    # -- Publishing --

    def publish(self, path: str, payload: str, retain: bool = False) -> None:
        topic = self.topic(path)
        logger.debug("mqtt > %s %s", topic, payload)
        try:
            self._outbox.put_nowait((topic, payload, retain))
        except asyncio.QueueFull:
            # Keep the newest state; drop the oldest queued publication
            dropped = self._outbox.get_nowait()
            logger.warning("MQTT outbox full, dropping %s", dropped[0])
            self._outbox.put_nowait((topic, payload, retain))

    # -- Lifecycle --

    async def start(self):
        self._running = True
        self._task = asyncio.create_task(self._mqtt_loop())
        logger.info("MQTT enabled, connecting to %s:%d", self.broker, self.port)

    async def stop(self):
        self._running = False
        if self._client is not None:
            try:
                # Flush final zone status before going offline
                while not self._outbox.empty():
                    topic, payload, retain = self._outbox.get_nowait()
                    await self._client.publish(topic, payload, qos=0, retain=retain)
                await self._client.publish(self.topic("status/connected"), "0", qos=1, retain=True)
            except Exception as e:
                logger.warning("Could not publish offline status: %s", e)
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("MQTT closed %s:%d", self.broker, self.port)

    async def _mqtt_loop(self):
        """Connect with auto-reconnect and exponential backoff."""
        backoff = 1  # seconds
        max_backoff = 30

        while self._running:
            try:
                will = aiomqtt.Will(
                    topic=self.topic("status/connected"),
                    payload="0",
                    qos=1,
                    retain=True,
                )
                async with aiomqtt.Client(
                    hostname=self.broker,
                    port=self.port,
                    username=self.username,
                    password=self.password,
                    identifier=self.client_id,
                    will=will,
                    tls_context=ssl.create_default_context() if self.tls else None,
                ) as client:
                    self._client = client
                    backoff = 1  # reset on successful connect
                    logger.info("MQTT connected to %s:%d", self.broker, self.port)

                    await client.publish(self.topic("status/connected"), "1", qos=1, retain=True)
                    await client.subscribe(f"{self.root}/#")
                    logger.info("MQTT subscribed to %s/#", self.root)
                    for topic_filter, _ in self._subscriptions:
                        await client.subscribe(topic_filter)
                        logger.info("MQTT subscribed to %s", topic_filter)

                    self._on_event(BusConnected())

                    sender = asyncio.create_task(self._drain_outbox(client))
                    try:
                        async for message in client.messages:
                            self._route(message)
                    finally:
                        sender.cancel()

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("MQTT connection lost (%s), reconnecting in %ds", e, backoff)
            finally:
                self._client = None
            if self._running:
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, max_backoff)

    def _route(self, message):
        topic = str(message.topic)
        payload = message.payload if isinstance(message.payload, bytes) else str(message.payload or "").encode()
        for topic_filter, handler in self._subscriptions:
            if message.topic.matches(topic_filter):
                try:
                    handler(topic, payload)
                except Exception as e:
                    logger.error("MQTT handler error on %s: %s", topic, e)
                return
        if message.topic.matches(f"{self.root}/#"):
            self._on_event(BusMessage(topic, payload.decode(errors="replace")))

    async def _drain_outbox(self, client: aiomqtt.Client):
        while True:
            topic, payload, retain = await self._outbox.get()
            try:
                await client.publish(topic, payload, qos=0, retain=retain)
            except Exception as e:
                logger.warning("MQTT publish error on %s: %s", topic, e)
