"""MQTT command parsing."""

import pytest

from airplayhub.lib.commands import (
    DisableZone,
    EnableZone,
    GetMasterVolume,
    GetZoneVolume,
    SetMasterVolume,
    SetZoneVolume,
    parse_enable,
    parse_message,
    parse_volume,
    split_topic,
)

ROOT = "airplayhub"
KNOWN = {"kitchen", "office"}


def known(name):
    return name.lower() in KNOWN


def parse(topic, payload=""):
    return parse_message(ROOT, f"{ROOT}/{topic}", payload, known)


@pytest.mark.parametrize("payload, expected", [
    ("true", EnableZone),
    ("1", EnableZone),
    ("7", EnableZone),
    ("false", DisableZone),
    ("0", DisableZone),
    ('{"val": 1}', EnableZone),
    ('{"val": true}', EnableZone),
    ('{"val": 0}', DisableZone),
    ('{"val": false}', DisableZone),
    ('{"other": 1}', DisableZone),
    ("[1, 2]", DisableZone),
    ("garbage", EnableZone),
    ("", EnableZone),
    ("null", EnableZone),
])
def test_parse_enable(payload, expected):
    assert parse_enable("Kitchen", payload) == expected("Kitchen")


@pytest.mark.parametrize("payload, expected", [
    ("40", 40),
    ("40.7", 40),
    (" 12 ", 12),
    ('{"val": 55}', 55),
    ('{"val": "60"}', 60),
    ('{"val": "loud"}', None),
    ("loud", None),
    ("", None),
])
def test_parse_volume(payload, expected):
    assert parse_volume(payload) == expected


def test_split_topic():
    assert split_topic(ROOT, "airplayhub/set/Kitchen/volume") == ("set", "Kitchen", "volume")
    assert split_topic(ROOT, "airplayhub/get") == ("get", "", "")
    assert split_topic(ROOT, "elsewhere/set/Kitchen/volume") is None


def test_status_echo_is_ignored():
    assert parse("status/Kitchen/enabled", "1") == []


def test_invalid_msgtype_is_ignored():
    assert parse("put/Kitchen/volume", "10") == []


def test_unknown_speaker_is_ignored():
    assert parse("set/Garage/enable", "true") == []


def test_zone_commands():
    assert parse("set/Kitchen/enable", "true") == [EnableZone("Kitchen")]
    assert parse("set/Kitchen/disable", "whatever") == [DisableZone("Kitchen")]
    assert parse("set/Kitchen/volume", "40") == [SetZoneVolume("Kitchen", 40)]
    assert parse("get/Kitchen/volume") == [GetZoneVolume("Kitchen")]


def test_unparsable_zone_volume_is_dropped():
    assert parse("set/Kitchen/volume", "loud") == []


def test_global_set_falls_through_to_command_segment():
    assert parse("set/GLOBAL/volume", "75") == [
        SetMasterVolume(75),
        SetZoneVolume("GLOBAL", 75),
    ]


def test_global_get():
    assert parse("get/GLOBAL/volume") == [GetMasterVolume(), GetZoneVolume("GLOBAL")]
    assert parse("get/GLOBAL") == [GetMasterVolume()]


@pytest.mark.parametrize("payload, expected", [
    ("60", 60),
    ("60%", 60),
    ("60 dB", 60),
    (" 42.9", 42),
    ("loud", None),
    ("", None),
])
def test_global_set_uses_integer_prefix(payload, expected):
    assert parse("set/GLOBAL", payload) == [SetMasterVolume(expected)]
