"""
PipeWire / PulseAudio sink — fans hub audio out to AirPlay receivers.

Layout inside the sound server:

    upstream (shairport-sync, pacat) -> null sink "<sink_name>"
        <sink_name>.monitor -> module-loopback -> raop sink (receiver A)
        <sink_name>.monitor -> module-loopback -> raop sink (receiver B)

Each receiver is one ``module-raop-sink`` plus one ``module-loopback``;
stopping a receiver unloads both.  Everything goes through ``pactl`` run as
asyncio subprocesses, so the hub core never blocks on the sound server.
"""

import asyncio
import logging
import os
import re

from .base import AudioSink, DeviceHandle

logger = logging.getLogger("airplayhub.sink.pipewire")

PACTL_TIMEOUT = 5


def _module_safe(text: str) -> str:
    """Make a string usable as a sink name: '192.168.1.20' -> '192_168_1_20'."""
    return re.sub(r"[^A-Za-z0-9_]", "_", str(text)) or "receiver"


class PipeWireDevice(DeviceHandle):
    """One RAOP sink + loopback pair for a single receiver."""

    def __init__(self, sink: "PipeWireSink", host: str, port: int):
        self._sink = sink
        self.host = host
        self.port = port
        self.sink_name = f"raop_hub.{_module_safe(host)}.{port}"
        self._raop_module: str | None = None
        self._loopback_module: str | None = None
        self._lock = asyncio.Lock()
        self._stopped = False
        # Debounce state
        self._pending_volume: int | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._debounce_ms = 50

    def open(self, volume: int) -> None:
        self._schedule(self._open(volume))

    def set_volume(self, volume: int) -> None:
        if self._stopped:
            return
        self._pending_volume = int(volume)
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(
            self._debounce_ms / 1000, lambda: self._schedule(self._flush())
        )

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        self._pending_volume = None
        self._schedule(self._close())

    def _schedule(self, coro) -> None:
        task = asyncio.ensure_future(self._locked(coro))
        self._sink._track(task)

    async def _locked(self, coro):
        # Lock waiters are FIFO, so pactl calls for one receiver keep their order
        async with self._lock:
            await coro

    async def _open(self, volume: int):
        self._raop_module = await self._sink.pactl(
            "load-module", "module-raop-sink",
            f"server=[{self.host}]:{self.port}",
            f"sink_name={self.sink_name}",
            f"sink_properties=device.description={self.sink_name}",
        )
        if self._raop_module is None:
            logger.warning("Could not open RAOP sink for %s:%s", self.host, self.port)
            return
        self._loopback_module = await self._sink.pactl(
            "load-module", "module-loopback",
            f"source={self._sink.sink_name}.monitor",
            f"sink={self.sink_name}",
        )
        await self._apply_volume(volume)
        logger.info("-> streaming to %s:%s at %d%%", self.host, self.port, volume)

    async def _flush(self):
        """Send the most recent pending volume to the receiver."""
        vol = self._pending_volume
        if vol is None:
            return
        self._pending_volume = None
        self._debounce_handle = None
        await self._apply_volume(vol)

    async def _apply_volume(self, volume: int):
        if self._raop_module is None:
            return
        result = await self._sink.pactl("set-sink-volume", self.sink_name, f"{int(volume)}%")
        if result is not None:
            logger.info("-> %s volume: %d%%", self.host, volume)

    async def _close(self):
        for module in (self._loopback_module, self._raop_module):
            if module:
                await self._sink.pactl("unload-module", module)
        self._loopback_module = None
        self._raop_module = None
        self._sink._forget(self)
        logger.info("Stopped stream to %s:%s", self.host, self.port)


class PipeWireSink(AudioSink):
    """Null sink + per-receiver RAOP sinks, driven through pactl."""

    def __init__(self, sink_name: str = "airplayhub"):
        self.sink_name = sink_name
        self._null_module: str | None = None
        self._devices: list[PipeWireDevice] = []
        self._tasks: set[asyncio.Task] = set()
        self._env = os.environ.copy()
        self._env.setdefault("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")

    @property
    def input_target(self) -> str | None:
        return self.sink_name

    async def pactl(self, *args: str) -> str | None:
        """Run pactl; return stripped stdout, or None on any failure."""
        try:
            proc = await asyncio.create_subprocess_exec(
                "pactl", *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
            )
            stdout, stderr = await asyncio.wait_for(proc.communicate(), PACTL_TIMEOUT)
        except asyncio.TimeoutError:
            logger.error("pactl %s timed out", args[0])
            return None
        except OSError as e:
            logger.error("pactl unavailable: %s", e)
            return None
        if proc.returncode != 0:
            logger.warning("pactl %s failed: %s", " ".join(args), stderr.decode(errors="replace").strip())
            return None
        return stdout.decode(errors="replace").strip()

    async def start(self) -> None:
        info = await self.pactl("info")
        if info is None:
            logger.error("Sound server not reachable, zones will not play")
            return
        self._null_module = await self.pactl(
            "load-module", "module-null-sink",
            f"sink_name={self.sink_name}",
            f"sink_properties=device.description={self.sink_name}",
        )
        logger.info("Hub sink '%s' ready (module %s)", self.sink_name, self._null_module)

    async def close(self) -> None:
        self.stop_all()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._null_module:
            await self.pactl("unload-module", self._null_module)
            self._null_module = None
        logger.info("Hub sink closed")

    def add(self, host: str, port: int, volume: int) -> DeviceHandle:
        device = PipeWireDevice(self, host, port)
        self._devices.append(device)
        device.open(volume)
        return device

    def stop_all(self) -> None:
        logger.info("Stopping stream to all zones")
        for device in list(self._devices):
            device.stop()

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            logger.error("Sink command failed: %s", task.exception())

    def _forget(self, device: PipeWireDevice) -> None:
        if device in self._devices:
            self._devices.remove(device)
