"""
SessionSource — shared plumbing for the hub's audio inputs.

A source decides what feeds the hub sink and reports what happens to it as
events (sender connect / disconnect / volume / metadata, or raw input
up / down).  Raw PCM inputs (capture process, TCP) play into the sink with
``pacat``; AirPlay input is rendered by shairport-sync itself.

Subclass contract:

    class MySource(SessionSource):
        input_type = "pipe"

        async def start(self): ...
        async def stop(self): ...
"""

import asyncio
import logging
from typing import Callable

log = logging.getLogger("airplayhub.source")

CHUNK_SIZE = 4096

# 16 bit little endian, 44100 Hz, stereo ("cd" quality)
PCM_ARGS = ["--raw", "--format=s16le", "--rate=44100", "--channels=2"]


class SessionSource:
    input_type: str = ""

    def __init__(self, on_event: Callable[[object], None]):
        self._on_event = on_event

    async def start(self):
        raise NotImplementedError

    async def stop(self):
        pass


async def spawn_player(target: str | None) -> asyncio.subprocess.Process:
    """Start pacat reading raw PCM from stdin into the hub sink."""
    args = ["pacat", "--playback", *PCM_ARGS]
    if target:
        args += ["-d", target]
    return await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )


async def pump(reader: asyncio.StreamReader, player: asyncio.subprocess.Process) -> int:
    """Copy PCM from *reader* into the player until EOF.  Returns bytes copied."""
    total = 0
    while True:
        chunk = await reader.read(CHUNK_SIZE)
        if not chunk:
            break
        try:
            player.stdin.write(chunk)
            await player.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            log.warning("Player went away after %d bytes", total)
            break
        total += len(chunk)
    return total


async def close_player(player: asyncio.subprocess.Process | None):
    if player is None:
        return
    if player.stdin and not player.stdin.is_closing():
        player.stdin.close()
    try:
        await asyncio.wait_for(player.wait(), 2)
    except asyncio.TimeoutError:
        player.kill()
        await player.wait()
