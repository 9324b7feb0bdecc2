"""
Configuration store for the AirPlay Hub.

One JSON document holds everything: static settings (server name, MQTT
broker, input type) and the live zone list.  It is read once at startup and
rewritten in full after every mutation, so the file on disk never lags the
running state.

Path resolution:
  1. -c / --config on the command line
  2. ./config.json (default)
  Relative paths are resolved against the directory of the running
  executable, not the CWD.

Secrets (MQTT_USER, MQTT_PASSWORD) may come from environment variables; the
MQTT bridge reads them at connect time so they never land in the file.

Usage:
    store = ConfigStore(resolve_config_path(args.config))
    config = store.load()
    port = config["webuiport"]
    store.save(config)
"""

import copy
import json
import logging
import os
import sys
import tempfile

logger = logging.getLogger("airplayhub.config")

DEFAULT_CONFIG_PATH = "./config.json"

DEFAULT_CONFIG = {
    "servername": "[AirPlay Hub]",
    "webuiport": 8089,
    "verbosity": "debug",
    "idletimeout": 600,
    "mastervolume": 50,
    "zones": [],
    "webroot": None,
    "input": {"type": "airplay"},
    "mqtt": True,
    "mqttUrl": "mqtt://localhost:1883",
    "mqttTopic": "airplayhub",
    "mqttOptions": {
        "clientId": "airplayhub",
    },
    "shairport": {"topic": "shairport"},
    "sink": {"type": "pipewire", "sink_name": "airplayhub"},
}

INPUT_TYPES = ("airplay", "loopback", "pipe", "tcp")


class ConfigError(Exception):
    """Config file exists but cannot be used."""


def resolve_config_path(path: str | None = None) -> str:
    """Make the config path absolute, relative to the executable's directory."""
    path = path or DEFAULT_CONFIG_PATH
    if os.path.isabs(path):
        return path
    base = os.path.dirname(os.path.abspath(sys.argv[0] or "."))
    return os.path.normpath(os.path.join(base, path))


def _input_from_legacy(config: dict) -> dict:
    """Map the old loopback / inputpipe / tcplisten flags onto an input section."""
    if config.get("loopback"):
        return {"type": "loopback", "device": config.get("device")}
    if config.get("inputpipe"):
        return {"type": "pipe", "device": config.get("device")}
    if config.get("tcplisten"):
        return {"type": "tcp", "port": config.get("port")}
    return {"type": "airplay"}


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    if not config.get("servername"):
        logger.warning("Config %s: missing 'servername', self-announcements will not be filtered", path)
    if not isinstance(config.get("zones"), list):
        logger.warning("Config %s: 'zones' is not a list, starting with no zones", path)
        config["zones"] = []
    input_type = (config.get("input") or {}).get("type")
    if input_type not in INPUT_TYPES:
        logger.warning("Config %s: unknown input.type '%s', using airplay", path, input_type)
        config["input"] = {"type": "airplay"}
    elif input_type in ("loopback", "pipe") and not config["input"].get("device"):
        logger.error("Config %s: %s input needs input.device", path, input_type)
    if config.get("mqtt") and not config.get("mqttUrl"):
        logger.warning("Config %s: mqtt enabled but no mqttUrl", path)


class ConfigStore:
    """Load-once, save-on-every-mutation JSON config file."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> dict:
        """Read the config, merged over the defaults.

        A missing file is fine (defaults are used and written on the first
        mutation).  A file that exists but does not parse raises ConfigError
        rather than being silently replaced with defaults.
        """
        config = copy.deepcopy(DEFAULT_CONFIG)
        try:
            with open(self.path) as f:
                loaded = json.load(f)
        except FileNotFoundError:
            logger.warning("No config at %s, using defaults", self.path)
            return config
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {self.path}: {e}") from e

        if not isinstance(loaded, dict):
            raise ConfigError(f"Config {self.path} must hold a JSON object")

        # Older configs spell it "idletimout"
        if "idletimeout" not in loaded and "idletimout" in loaded:
            loaded["idletimeout"] = loaded.pop("idletimout")
        if "input" not in loaded:
            loaded["input"] = _input_from_legacy(loaded)

        config.update(loaded)

        logger.info("Config loaded from %s", self.path)
        logger.debug("Configuration applied:\n%s", json.dumps(config, indent=2))
        _validate(config, self.path)
        return config

    def save(self, config: dict) -> None:
        """Atomically write the whole config (temp file + rename)."""
        d = os.path.dirname(self.path) or "."
        os.makedirs(d, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=d, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(config, f, indent=4)
                f.write("\n")
            os.replace(tmp, self.path)
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
        logger.debug("Synced running config to %s", self.path)
