"""Shared fixtures: an in-memory sink and publisher, and a ready hub."""

import copy

import pytest

from airplayhub.hub import HubController
from airplayhub.lib.config import DEFAULT_CONFIG, ConfigStore
from airplayhub.lib.publisher import StatusPublisher
from airplayhub.lib.sinks.base import AudioSink, DeviceHandle


class FakeHandle(DeviceHandle):
    def __init__(self, host, port, volume):
        self.host = host
        self.port = port
        self.volumes = [volume]
        self.stopped = False

    @property
    def volume(self):
        return self.volumes[-1]

    def set_volume(self, volume):
        self.volumes.append(volume)

    def stop(self):
        self.stopped = True


class FakeSink(AudioSink):
    def __init__(self):
        self.handles = []
        self.stop_all_calls = 0

    def add(self, host, port, volume):
        handle = FakeHandle(host, port, volume)
        self.handles.append(handle)
        return handle

    def stop_all(self):
        self.stop_all_calls += 1
        for handle in self.handles:
            handle.stopped = True

    def live(self):
        return [h for h in self.handles if not h.stopped]


class RecordingPublisher(StatusPublisher):
    def __init__(self):
        self.messages = []

    def publish(self, path, payload, retain=False):
        self.messages.append((path, payload))

    def last(self, path):
        for p, payload in reversed(self.messages):
            if p == path:
                return payload
        return None

    def clear(self):
        self.messages.clear()


def make_config(**overrides):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["zones"] = [
        {"name": "Kitchen", "host": "192.168.1.20", "port": 7000, "volume": 80,
         "enabled": False, "hidden": False},
        {"name": "Office", "host": "192.168.1.21", "port": 7000, "volume": 30,
         "enabled": False, "hidden": False},
    ]
    config.update(overrides)
    return config


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def store(tmp_path):
    return ConfigStore(str(tmp_path / "config.json"))


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def hub(config, store, sink, publisher):
    return HubController(config, store, sink, publisher)
