"""systemd notify support for the hub service.

READY=1 once startup is done, WATCHDOG=1 every *interval* seconds and
STOPPING=1 on shutdown.  Silently no-ops when NOTIFY_SOCKET is unset (dev
mode, containers without systemd).

Usage:
    from airplayhub.lib.watchdog import watchdog_loop, sd_notify
    asyncio.create_task(watchdog_loop())
    ...
    sd_notify("STOPPING=1")
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger("airplayhub.watchdog")


def sd_notify(msg: str) -> bool:
    """Send *msg* to the systemd notify socket.  Returns False when there is none."""
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    except OSError as e:
        logger.warning("sd_notify %s failed: %s", msg, e)
        return False
    finally:
        sock.close()
    return True


async def watchdog_loop(interval: int = 20):
    """Announce READY=1, then WATCHDOG=1 every *interval* seconds."""
    if not sd_notify("READY=1"):
        logger.debug("No NOTIFY_SOCKET, watchdog disabled")
        return
    logger.info("Watchdog started (interval=%ds)", interval)
    while True:
        sd_notify("WATCHDOG=1")
        await asyncio.sleep(interval)
