# AirPlay Hub
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
ControlProtocolBridge — applies parsed MQTT commands to the hub.

Principle for every message:
  1. debug log of the full inbound message
  2. perform the action (session manager)
  3. info log of the action performed (session manager)
  4. status publication of the result (session manager)

A ``get`` never mutates; it only re-publishes current state.
"""

import logging

from .commands import (
    Command,
    DisableZone,
    EnableZone,
    GetMasterVolume,
    GetZoneVolume,
    SetMasterVolume,
    SetZoneVolume,
    is_global,
    parse_message,
)
from .session import SessionLifecycleManager

logger = logging.getLogger("airplayhub.control")


class ControlProtocolBridge:
    def __init__(self, root: str, session: SessionLifecycleManager):
        self.root = root.rstrip("/")
        self.session = session

    @property
    def registry(self):
        return self.session.state.registry

    def _is_known(self, speaker: str) -> bool:
        return self.registry.find_by_name(speaker) is not None

    def handle_message(self, topic: str, payload: str) -> list[Command]:
        logger.debug("incoming mqtt message < %s %s", topic, payload)
        commands = parse_message(self.root, topic, payload, self._is_known)
        for command in commands:
            self.dispatch(command)
        return commands

    def handle_connected(self):
        """Broker (re)connected: resync every stateful subscriber."""
        logger.info("Publishing status of all zones")
        self.session.publish_all()

    def dispatch(self, command: Command):
        if isinstance(command, GetMasterVolume):
            logger.info("MQTT requesting status of global volume")
            self.session.publish_master_volume()
        elif isinstance(command, SetMasterVolume):
            logger.info("MQTT requesting setting of global volume: %s", command.raw)
            self.session.set_master_volume(command.raw)
        elif isinstance(command, EnableZone):
            logger.debug("Enable message received via MQTT for zone %s", command.zone)
            self.session.start_zone(command.zone)
        elif isinstance(command, DisableZone):
            logger.debug("Disable message received via MQTT for zone %s", command.zone)
            self.session.stop_zone(command.zone)
        elif isinstance(command, GetZoneVolume):
            zone = None if is_global(command.zone) else self.registry.find_by_name(command.zone)
            if zone is None:
                logger.info("Zone %s not found - ignoring volume request", command.zone)
            else:
                logger.info("Zone get volume called for %s", zone.name)
                self.session.publish_zone_volume(zone)
        elif isinstance(command, SetZoneVolume):
            self.session.set_zone_volume(command.zone, command.volume)
        else:
            logger.warning("Unhandled command %r", command)
