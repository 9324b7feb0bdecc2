"""MQTT bridge: settings, outbox and inbound routing (no broker needed)."""

import aiomqtt
import pytest

from airplayhub.lib import bridge as bridge_mod
from airplayhub.lib.bridge import MqttBridge, parse_broker_url
from airplayhub.lib.events import BusMessage


class FakeMessage:
    def __init__(self, topic, payload):
        self.topic = aiomqtt.Topic(topic)
        self.payload = payload


@pytest.fixture
def events():
    return []


@pytest.fixture
def bridge(events, monkeypatch):
    monkeypatch.delenv("MQTT_USER", raising=False)
    monkeypatch.delenv("MQTT_PASSWORD", raising=False)
    return MqttBridge({"mqttTopic": "airplayhub/", "mqttUrl": "mqtt://broker.lan:1884",
                       "mqttOptions": {"clientId": "hub-1", "username": "cfg"}}, events.append)


@pytest.mark.parametrize("url, expected", [
    ("mqtt://broker:1883", ("broker", 1883, False)),
    ("mqtts://broker", ("broker", 8883, True)),
    ("broker.lan", ("broker.lan", 1883, False)),
    ("mqtt://10.0.0.2:2000", ("10.0.0.2", 2000, False)),
])
def test_parse_broker_url(url, expected):
    assert parse_broker_url(url) == expected


def test_settings(bridge):
    assert bridge.root == "airplayhub"
    assert (bridge.broker, bridge.port, bridge.tls) == ("broker.lan", 1884, False)
    assert bridge.client_id == "hub-1"
    assert bridge.username == "cfg"
    assert bridge.topic("status/GLOBAL/volume") == "airplayhub/status/GLOBAL/volume"


def test_env_credentials_win(events, monkeypatch):
    monkeypatch.setenv("MQTT_USER", "envuser")
    monkeypatch.setenv("MQTT_PASSWORD", "secret")
    b = MqttBridge({"mqttOptions": {"username": "cfg", "password": "x"}}, events.append)
    assert (b.username, b.password) == ("envuser", "secret")


def test_publish_queues_full_topic(bridge):
    bridge.publish("status/Kitchen/enabled", "1")
    assert bridge._outbox.get_nowait() == ("airplayhub/status/Kitchen/enabled", "1", False)


def test_full_outbox_drops_oldest(monkeypatch):
    monkeypatch.setattr(bridge_mod, "OUTBOX_SIZE", 2)
    small = MqttBridge({}, lambda e: None)
    small.publish("a", "1")
    small.publish("b", "2")
    small.publish("c", "3")
    assert small._outbox.get_nowait()[0] == "airplayhub/b"
    assert small._outbox.get_nowait()[0] == "airplayhub/c"


def test_route_hub_topics_to_events(bridge, events):
    bridge._route(FakeMessage("airplayhub/set/Kitchen/volume", b"40"))
    assert events == [BusMessage("airplayhub/set/Kitchen/volume", "40")]


def test_route_extra_subscriptions(bridge, events):
    seen = []
    bridge.add_subscription("shairport/#", lambda topic, payload: seen.append((topic, payload)))
    bridge._route(FakeMessage("shairport/volume", b"-15.0,0,0,0"))
    assert seen == [("shairport/volume", b"-15.0,0,0,0")]
    assert events == []


def test_route_handler_errors_are_contained(bridge, events):
    def broken(topic, payload):
        raise ValueError("bad payload")

    bridge.add_subscription("shairport/#", broken)
    bridge._route(FakeMessage("shairport/title", b"x"))
    bridge._route(FakeMessage("airplayhub/get/GLOBAL/volume", b""))
    assert events == [BusMessage("airplayhub/get/GLOBAL/volume", "")]
