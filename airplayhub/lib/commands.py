# AirPlay Hub
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
MQTT command parser.

Topic grammar:  <root>/<msgtype>/<speaker>/<command>

    airplayhub/set/Kitchen/volume    "40" or {"val": 40}
    airplayhub/set/Kitchen/enable    "true" / "1" / "false" / "0" / {"val": 1}
    airplayhub/set/Kitchen/disable   payload ignored
    airplayhub/get/Kitchen/volume    payload ignored
    airplayhub/get/GLOBAL/volume     payload ignored
    airplayhub/set/GLOBAL/volume     "75"

Status echoes go out on <root>/status/<speaker>/<enabled|volume> and come
straight back in through our own subscription, so msgtype "status" is
dropped first.

``parse_message`` is pure: it turns one topic + payload into a list of
command objects and never touches hub state.  A GLOBAL message produces the
master-volume command *and* whatever its command segment produces, because
downstream automations already rely on that fall-through.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Union

logger = logging.getLogger("airplayhub.commands")

GLOBAL = "GLOBAL"
VALID_MSGTYPES = ("get", "set")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_NUMBER = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)\s*$")


@dataclass(frozen=True)
class EnableZone:
    zone: str


@dataclass(frozen=True)
class DisableZone:
    zone: str


@dataclass(frozen=True)
class SetZoneVolume:
    zone: str
    volume: int


@dataclass(frozen=True)
class GetZoneVolume:
    zone: str


@dataclass(frozen=True)
class SetMasterVolume:
    raw: int | None  # integer prefix of the payload; None normalizes to 0


@dataclass(frozen=True)
class GetMasterVolume:
    pass


Command = Union[EnableZone, DisableZone, SetZoneVolume, GetZoneVolume,
                SetMasterVolume, GetMasterVolume]


def is_global(speaker: str) -> bool:
    return speaker.lower() == GLOBAL.lower()


def _leading_int(text: str) -> int | None:
    """Integer prefix of a string: '12abc' -> 12, 'abc' -> None."""
    m = _LEADING_INT.match(text)
    return int(m.group(1)) if m else None


def _json_val(text: str):
    """(ok, val) from a {"val": ...} payload; ok is False when it is not JSON."""
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None
    if obj is None:
        # {"val"} lookup on null cannot succeed, treat like unparsable
        return False, None
    if isinstance(obj, dict):
        return True, obj.get("val")
    return True, None


def _truthy(value) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and value == value
    if isinstance(value, str):
        return value != ""
    return True


def parse_enable(zone: str, payload: str) -> Command:
    """Enable payload -> EnableZone or DisableZone.

    Attempts in order: literal false/0, literal true or positive integer,
    JSON {"val": x} by truthiness, and finally "enable" when nothing parses.
    """
    if payload in ("false", "0"):
        return DisableZone(zone)
    number = _leading_int(payload)
    if payload == "true" or (number is not None and number > 0):
        return EnableZone(zone)
    ok, val = _json_val(payload)
    if not ok:
        return EnableZone(zone)
    return EnableZone(zone) if _truthy(val) else DisableZone(zone)


def parse_volume(payload: str) -> int | None:
    """Volume payload -> int, trying a plain number first, then {"val": n}."""
    if _NUMBER.match(payload):
        return int(float(payload))
    ok, val = _json_val(payload)
    if ok and isinstance(val, (int, float)) and not isinstance(val, bool):
        return int(val)
    if ok and isinstance(val, str) and _NUMBER.match(val):
        return int(float(val))
    return None


def split_topic(root: str, topic: str) -> tuple[str, str, str] | None:
    """'<root>/set/Kitchen/volume' -> ('set', 'Kitchen', 'volume')."""
    prefix = root.rstrip("/") + "/"
    if not topic.startswith(prefix):
        return None
    parts = topic[len(prefix):].split("/")
    msgtype = parts[0] if parts else ""
    speaker = parts[1] if len(parts) > 1 else ""
    command = parts[2] if len(parts) > 2 else ""
    return msgtype, speaker, command


def parse_message(root: str, topic: str, payload: str,
                  is_known: Callable[[str], bool]) -> list[Command]:
    """Turn one inbound MQTT message into zero or more commands."""
    split = split_topic(root, topic)
    if split is None:
        logger.debug("Ignoring message outside %s: %s", root, topic)
        return []
    msgtype, speaker, command = split

    if msgtype.lower() == "status":
        logger.debug("Status message received: <%s> - %s", speaker, payload)
        return []

    if msgtype not in VALID_MSGTYPES:
        logger.info("Message type invalid: %s", msgtype)
        return []

    if not speaker or not (is_global(speaker) or is_known(speaker)):
        logger.info("Unknown speaker %s", speaker)
        return []

    commands: list[Command] = []

    if is_global(speaker):
        logger.debug("Request for global volume (%s)", msgtype)
        if msgtype == "get":
            commands.append(GetMasterVolume())
        else:
            commands.append(SetMasterVolume(_leading_int(payload)))
        # no return: the command segment below is still evaluated

    if command == "enable":
        commands.append(parse_enable(speaker, payload))
    elif command == "disable":
        commands.append(DisableZone(speaker))
    elif command == "volume":
        if msgtype == "get":
            commands.append(GetZoneVolume(speaker))
        else:
            volume = parse_volume(payload)
            if volume is None:
                logger.warning("Dropping unparsable volume for %s: %r", speaker, payload)
            else:
                commands.append(SetZoneVolume(speaker, volume))
    elif command:
        logger.debug("Unknown command '%s' for %s", command, speaker)

    return commands
