"""
Status publishing seam.

The session manager and controller publish status as topic paths relative
to the MQTT root ("status/Kitchen/enabled").  The MQTT bridge is the real
implementation; ``NullPublisher`` stands in when MQTT is switched off.
"""

import logging

logger = logging.getLogger("airplayhub.publisher")


class StatusPublisher:
    """Interface: fire-and-forget publish of one status value."""

    def publish(self, path: str, payload: str, retain: bool = False) -> None:
        raise NotImplementedError


class NullPublisher(StatusPublisher):
    """MQTT disabled, status is only logged."""

    def publish(self, path: str, payload: str, retain: bool = False) -> None:
        logger.debug("status (not published) %s = %s", path, payload)
