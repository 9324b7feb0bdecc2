"""Config file loading and saving."""

import json
import os
import sys

import pytest

from airplayhub.lib.config import ConfigError, ConfigStore, resolve_config_path


def write(path, data):
    path.write_text(data if isinstance(data, str) else json.dumps(data))


def test_missing_file_gives_defaults(tmp_path):
    config = ConfigStore(str(tmp_path / "absent.json")).load()
    assert config["servername"] == "[AirPlay Hub]"
    assert config["webuiport"] == 8089
    assert config["idletimeout"] == 600
    assert config["mastervolume"] == 50
    assert config["zones"] == []
    assert config["input"] == {"type": "airplay"}


def test_file_overrides_defaults(tmp_path):
    path = tmp_path / "config.json"
    write(path, {"servername": "Living Room Hub", "mastervolume": 30,
                 "zones": [{"name": "Kitchen", "host": "10.0.0.2", "port": 7000}]})
    config = ConfigStore(str(path)).load()
    assert config["servername"] == "Living Room Hub"
    assert config["mastervolume"] == 30
    assert config["webuiport"] == 8089
    assert config["zones"][0]["name"] == "Kitchen"


def test_legacy_idle_timeout_key(tmp_path):
    path = tmp_path / "config.json"
    write(path, {"idletimout": 120})
    config = ConfigStore(str(path)).load()
    assert config["idletimeout"] == 120
    assert "idletimout" not in config


def test_legacy_input_flags(tmp_path):
    path = tmp_path / "config.json"
    write(path, {"tcplisten": True, "port": 5001})
    assert ConfigStore(str(path)).load()["input"] == {"type": "tcp", "port": 5001}

    write(path, {"loopback": True, "device": "hw:1,0"})
    assert ConfigStore(str(path)).load()["input"] == {"type": "loopback", "device": "hw:1,0"}


def test_unknown_input_type_falls_back(tmp_path):
    path = tmp_path / "config.json"
    write(path, {"input": {"type": "bluetooth"}})
    assert ConfigStore(str(path)).load()["input"] == {"type": "airplay"}


def test_invalid_json_raises(tmp_path):
    path = tmp_path / "config.json"
    write(path, "{not json")
    with pytest.raises(ConfigError):
        ConfigStore(str(path)).load()


def test_non_object_raises(tmp_path):
    path = tmp_path / "config.json"
    write(path, "[1, 2, 3]")
    with pytest.raises(ConfigError):
        ConfigStore(str(path)).load()


def test_save_is_atomic_and_readable(tmp_path):
    path = tmp_path / "sub" / "config.json"
    store = ConfigStore(str(path))
    config = store.load()
    config["mastervolume"] = 65
    store.save(config)

    assert json.loads(path.read_text())["mastervolume"] == 65
    assert [p.name for p in path.parent.iterdir()] == ["config.json"]


def test_relative_path_resolves_next_to_executable(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "bin" / "airplayhub")])
    assert resolve_config_path(None) == str(tmp_path / "bin" / "config.json")
    assert resolve_config_path("conf/hub.json") == str(tmp_path / "bin" / "conf" / "hub.json")
    assert resolve_config_path("/etc/hub.json") == "/etc/hub.json"
    assert os.path.isabs(resolve_config_path("x.json"))
