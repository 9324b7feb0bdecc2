"""AirPlay Hub: multi-zone AirPlay control hub."""

__version__ = "1.0.0"
