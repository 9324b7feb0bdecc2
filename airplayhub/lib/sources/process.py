"""
Capture-process inputs: ALSA loopback (arecord) or a named pipe (sox).

    loopback:  arecord -f cd -D <device>            | pacat -> hub sink
    pipe:      sox -t cdr <device> -t cdr -          | pacat -> hub sink

The input counts as active while the capture process runs; its exit is
reported (and logged) but never takes the hub down.
"""

import asyncio
import logging
from typing import Callable

from ..events import InputStatusChanged
from .base import SessionSource, close_player, pump, spawn_player

logger = logging.getLogger("airplayhub.source.process")


def capture_command(input_type: str, device: str) -> list[str]:
    if input_type == "loopback":
        # -f cd: 16 bit little endian, 44100, stereo
        return ["arecord", "-f", "cd", "-D", device]
    if input_type == "pipe":
        return ["sox", "-t", "cdr", device, "-t", "cdr", "-"]
    raise ValueError(f"not a capture input: {input_type}")


class ProcessSource(SessionSource):
    def __init__(self, input_type: str, device: str, target: str | None,
                 on_event: Callable[[object], None]):
        super().__init__(on_event)
        self.input_type = input_type
        self.device = device
        self.target = target
        self._capture: asyncio.subprocess.Process | None = None
        self._player: asyncio.subprocess.Process | None = None
        self._task: asyncio.Task | None = None

    async def start(self):
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        if self._capture and self._capture.returncode is None:
            self._capture.terminate()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self):
        cmd = capture_command(self.input_type, self.device)
        try:
            self._capture = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.DEVNULL,
            )
            self._player = await spawn_player(self.target)
        except OSError as e:
            logger.error("Could not start %s input (%s): %s", self.input_type, cmd[0], e)
            return

        logger.info("%s connected (%s)", self.input_type.capitalize(), self.device)
        self._on_event(InputStatusChanged(True))
        try:
            copied = await pump(self._capture.stdout, self._player)
            code = await self._capture.wait()
            logger.info("%s disconnected (exit %s, %d bytes)", self.input_type.capitalize(), code, copied)
        finally:
            await close_player(self._player)
            self._player = None
            self._on_event(InputStatusChanged(False))
