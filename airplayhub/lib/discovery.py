"""
AirPlay receiver discovery.

``RaopBrowser`` watches mDNS for ``_raop._tcp`` services with zeroconf and
posts ServiceUp / ServiceDown events.  ``DiscoveryIngester`` turns those
events into zone registry updates:

  - first IPv4 address wins; link-local 169.254.x.x is skipped
  - RAOP instance names look like "A0B1C2D3E4F5@Kitchen": the zone name
    is the part after the "@"
  - our own announcement is ignored
  - "down" events are logged only; zones are never forgotten
"""

import asyncio
import logging
import re
from typing import Callable

from zeroconf import ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .events import ServiceDown, ServiceUp
from .zones import UpsertResult, ZoneRegistry

logger = logging.getLogger("airplayhub.discovery")

RAOP_SERVICE_TYPE = "_raop._tcp.local."

# Dotted quad, no leading zero, no trailing dot, octets 0-255
_IPV4 = re.compile(r"^(?!0)(?!.*\.$)((1?\d?\d|25[0-5]|2[0-4]\d)(\.|$)){4}$")


def first_ipv4(addresses) -> str | None:
    for address in addresses or []:
        address = str(address)
        if _IPV4.match(address) and not address.startswith("169"):
            return address
    return None


def zone_name_from_instance(instance: str) -> str:
    """'A0B1C2D3E4F5@Kitchen' -> 'Kitchen'; names without '@' pass through."""
    if instance.endswith("." + RAOP_SERVICE_TYPE):
        instance = instance[: -len(RAOP_SERVICE_TYPE) - 1]
    if "@" in instance:
        return instance.split("@", 1)[1]
    return instance


class DiscoveryIngester:
    """Discovery events -> zone registry mutations."""

    def __init__(self, registry: ZoneRegistry):
        self.registry = registry

    def service_up(self, event: ServiceUp) -> UpsertResult | None:
        logger.debug("New device detected: %s %s:%s", event.name, event.addresses, event.port)
        name = zone_name_from_instance(event.name)
        if not name:
            logger.info("Ignoring service with empty name: %s", event.name)
            return None
        if self.registry.is_self(name):
            logger.debug("Ignoring our own announcement %s", name)
            return None
        host = first_ipv4(event.addresses)
        if host is None:
            logger.info("No usable IPv4 address for %s (%s), ignoring", name, event.addresses)
            return None
        try:
            port = int(event.port)
        except (TypeError, ValueError):
            logger.info("Invalid port for %s: %r", name, event.port)
            return None
        return self.registry.upsert_from_discovery(name, host, port)

    def service_down(self, event: ServiceDown) -> None:
        logger.debug("Device is down: %s", event.name)


class RaopBrowser:
    """mDNS browser for AirPlay receivers; posts events to the hub queue."""

    def __init__(self, on_event: Callable[[object], None]):
        self._on_event = on_event
        self._azc: AsyncZeroconf | None = None
        self._browser: AsyncServiceBrowser | None = None
        self._tasks: set[asyncio.Task] = set()

    async def start(self):
        self._azc = AsyncZeroconf()
        self._browser = AsyncServiceBrowser(
            self._azc.zeroconf, RAOP_SERVICE_TYPE, handlers=[self._on_change]
        )
        logger.info("Browsing for %s", RAOP_SERVICE_TYPE)

    async def stop(self):
        for task in list(self._tasks):
            task.cancel()
        if self._browser:
            await self._browser.async_cancel()
            self._browser = None
        if self._azc:
            await self._azc.async_close()
            self._azc = None

    def _on_change(self, zeroconf, service_type: str, name: str,
                   state_change: ServiceStateChange) -> None:
        if state_change is ServiceStateChange.Removed:
            self._on_event(ServiceDown(name))
            return
        task = asyncio.ensure_future(self._resolve(service_type, name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve(self, service_type: str, name: str):
        info = AsyncServiceInfo(service_type, name)
        try:
            ok = await info.async_request(self._azc.zeroconf, timeout=3000)
        except Exception as e:
            logger.warning("Could not resolve %s: %s", name, e)
            return
        if not ok:
            logger.debug("No answer resolving %s", name)
            return
        self._on_event(ServiceUp(name, info.parsed_addresses(), info.port or 0))
