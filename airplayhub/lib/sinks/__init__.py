"""
Pluggable audio sinks for the AirPlay Hub.

A sink turns "stream to host:port at volume N" into real audio.  The factory
``create_audio_sink`` reads the config's "sink" section and returns the
right adapter.

Supported types:
  - ``pipewire`` (or ``pulseaudio``) – null sink + per-receiver RAOP sinks
    via pactl (default)
"""

import logging

from .base import AudioSink, DeviceHandle
from .pipewire import PipeWireSink

logger = logging.getLogger("airplayhub.sink")

__all__ = [
    "AudioSink",
    "DeviceHandle",
    "PipeWireSink",
    "create_audio_sink",
]


def create_audio_sink(config: dict) -> AudioSink:
    """Create the sink adapter named by config["sink"]["type"].

    Reads from the "sink" section:
      type       – "pipewire" (also accepts "pulseaudio")
      sink_name  – name of the hub's null sink (default "airplayhub")
    """
    sink_cfg = config.get("sink") or {}
    sink_type = str(sink_cfg.get("type", "pipewire")).lower()
    sink_name = sink_cfg.get("sink_name", "airplayhub")

    if sink_type not in ("pipewire", "pulseaudio"):
        logger.warning("Unknown sink type '%s', using pipewire", sink_type)
    logger.info("Audio sink: PipeWire/PulseAudio RAOP fan-out via '%s'", sink_name)
    return PipeWireSink(sink_name)
