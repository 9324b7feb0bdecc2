"""
Typed events fed into the hub's single dispatch queue.

Discovery, the MQTT bridge and the inbound session source never touch hub
state directly; they put one of these on the controller's queue and the
dispatch loop applies them one at a time.
"""

from dataclasses import dataclass, field


@dataclass
class SenderConnected:
    """A sender started streaming into the hub."""


@dataclass
class SenderDisconnected:
    """The sender went away; the idle timer may start."""


@dataclass
class SenderVolumeChanged:
    raw: str  # sender-native units, e.g. "-15.00"


@dataclass
class MetadataChanged:
    artist: str | None = None
    album: str | None = None
    title: str | None = None


@dataclass
class InputStatusChanged:
    """Upstream pipe / loopback / tcp input started (True) or ended (False)."""
    active: bool


@dataclass
class ServiceUp:
    name: str
    addresses: list[str] = field(default_factory=list)
    port: int = 0


@dataclass
class ServiceDown:
    name: str


@dataclass
class BusConnected:
    """MQTT (re)connected; stateful subscribers need a full status dump."""


@dataclass
class BusMessage:
    topic: str
    payload: str
