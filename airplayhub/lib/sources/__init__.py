"""
Audio inputs for the AirPlay Hub.

``create_session_source`` reads the config's "input" section:

  - ``airplay``  – shairport-sync MQTT feed (default; needs MQTT)
  - ``loopback`` – arecord from an ALSA loopback device (input.device)
  - ``pipe``     – sox from a named pipe of cd-format audio (input.device)
  - ``tcp``      – raw PCM TCP listener (input.port, default 5000)
"""

import logging
from typing import Callable

from ..bridge import MqttBridge
from .base import SessionSource
from .process import ProcessSource
from .shairport import ShairportSource
from .tcp import TcpSource

logger = logging.getLogger("airplayhub.source")

__all__ = [
    "SessionSource",
    "ProcessSource",
    "ShairportSource",
    "TcpSource",
    "create_session_source",
]

DEFAULT_TCP_PORT = 5000


def create_session_source(config: dict, bridge: MqttBridge | None, target: str | None,
                          on_event: Callable[[object], None]) -> SessionSource | None:
    """Build the configured input, or None when it cannot run."""
    input_cfg = config.get("input") or {}
    input_type = str(input_cfg.get("type", "airplay")).lower()

    if input_type in ("loopback", "pipe"):
        device = input_cfg.get("device")
        if not device:
            logger.error("%s input configured without input.device, no audio input", input_type)
            return None
        return ProcessSource(input_type, device, target, on_event)
    if input_type == "tcp":
        port = int(input_cfg.get("port") or DEFAULT_TCP_PORT)
        return TcpSource(port, target, on_event)

    if bridge is None:
        logger.error("AirPlay input needs MQTT for shairport-sync events, sender events disabled")
        return None
    topic = (config.get("shairport") or {}).get("topic", "shairport")
    return ShairportSource(bridge, topic, on_event)
