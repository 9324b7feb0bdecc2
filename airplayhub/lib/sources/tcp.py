"""
TCP input: any client may connect and send raw 16 bit / 44.1 kHz stereo PCM.

    ffmpeg -i song.flac -f s16le -ar 44100 -ac 2 tcp://hub:5000

One player process per client connection.
"""

import asyncio
import logging
from typing import Callable

from ..events import InputStatusChanged
from .base import SessionSource, close_player, pump, spawn_player

logger = logging.getLogger("airplayhub.source.tcp")


class TcpSource(SessionSource):
    input_type = "tcp"

    def __init__(self, port: int, target: str | None, on_event: Callable[[object], None]):
        super().__init__(on_event)
        self.port = port
        self.target = target
        self._server: asyncio.AbstractServer | None = None

    async def start(self):
        self._server = await asyncio.start_server(self._handle_client, "0.0.0.0", self.port)
        logger.info("tcp listener bound on port %d", self.port)

    async def stop(self):
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        peer = writer.get_extra_info("peername")
        logger.info("tcp client %s connected", peer)
        self._on_event(InputStatusChanged(True))
        player = None
        try:
            player = await spawn_player(self.target)
            await pump(reader, player)
        except (OSError, ConnectionError) as e:
            logger.error("tcp error from %s: %s", peer, e)
        finally:
            await close_player(player)
            writer.close()
            logger.info("tcp client %s disconnected", peer)
            self._on_event(InputStatusChanged(False))
