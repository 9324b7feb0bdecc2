"""
HubState — everything mutable the hub owns, in one place.

The controller creates exactly one of these per process and hands the same
reference to every component.  Tests build a fresh one per case.
"""

import enum

from .volume import clamp_volume
from .zones import ZoneRegistry

GENERIC_ART = "/genericart.png"


class SessionState(enum.Enum):
    IDLE = "idle"           # no sender, no idle timer
    STREAMING = "streaming"  # sender connected
    DRAINING = "draining"    # sender gone, idle timer armed, zones still playing


class HubState:
    def __init__(self, config: dict, registry: ZoneRegistry | None = None):
        self.config = config
        self.registry = registry or ZoneRegistry(config.get("servername", ""))
        self.session_state = SessionState.IDLE
        self.trackinfo: dict = {}
        self.input_type = (config.get("input") or {}).get("type", "airplay")
        self.input_active = False

    @property
    def master_volume(self) -> int:
        return clamp_volume(self.config.get("mastervolume", 0))

    @master_volume.setter
    def master_volume(self, value: int):
        self.config["mastervolume"] = clamp_volume(value)

    @property
    def idle_timeout(self) -> float:
        try:
            return float(self.config.get("idletimeout", 0) or 0)
        except (TypeError, ValueError):
            return 0

    def snapshot(self) -> dict:
        """Config document with the live zone list folded back in."""
        self.config["zones"] = self.registry.to_list()
        return self.config
