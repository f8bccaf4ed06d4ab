# -- coding: utf-8 --

import asyncio
import logging
import math

from core.lifecycle import AsyncTaskOwner, LoopRunner
from sensor.base import BaseSensor, SampleCallback, SensorConfig, register_sensor

L = logging.getLogger("scan_runtime.sensor.tcp")

MAX_LINE_BYTES = 64


@register_sensor("tcp")
class TcpSensor(BaseSensor):
    """Accepts newline-terminated distance readings (mm, ASCII) from a range-finder bridge."""

    def __init__(
        self, cfg: SensorConfig, on_sample: SampleCallback, *, loop_runner: LoopRunner
    ):
        super().__init__(cfg, on_sample, loop_runner=loop_runner)
        self._server = None
        self._serve_task = None
        self._clients: set[asyncio.StreamWriter] = set()
        self._tasks = AsyncTaskOwner(loop_runner=loop_runner, owner_name="tcp_sensor")

    def start(self):
        if self._server is not None:
            return
        try:
            self.loop_runner.run_async(self._start_server(), timeout=1.0)
        except Exception:
            self.stop()
            raise

    def stop(self):
        self._serve_task = None
        self._tasks.cancel_and_clear()

        async def _cleanup():
            # wait_closed() also waits for connected feeds
            for writer in list(self._clients):
                writer.close()
            if self._server:
                self._server.close()
                await self._server.wait_closed()
            self._server = None

        self.loop_runner.run_async(_cleanup(), timeout=0.5)
        L.info("TCP sensor socket stopped")

    def raise_if_failed(self):
        self._tasks.raise_if_failed()

    async def _start_server(self):
        self._server = await asyncio.start_server(
            self._handle_client, self.cfg.host, self.cfg.port, reuse_address=True
        )
        L.info("TCP sensor listening on %s:%d", self.cfg.host, self.cfg.port)
        self._serve_task = self._tasks.register(
            asyncio.create_task(self._serve_forever(), name="tcp_sensor.serve_forever")
        )

    async def _serve_forever(self):
        if self._server is None:
            return
        await self._server.serve_forever()

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        peer = writer.get_extra_info("peername")
        L.info("Sensor feed connected from %s", peer)
        self._clients.add(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                sample = parse_sample_line(line)
                if sample is None:
                    L.debug("Ignoring sensor line %r from %s", line[:MAX_LINE_BYTES], peer)
                    continue
                self.on_sample(sample)
        except ConnectionError as e:
            L.warning("Sensor feed from %s failed: %s", peer, e)
        finally:
            self._clients.discard(writer)
            writer.close()
            L.info("Sensor feed from %s closed", peer)


def parse_sample_line(line: bytes) -> float | None:
    text = line.decode("ascii", errors="replace").strip()
    if not text or len(text) > MAX_LINE_BYTES:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


__all__ = ["TcpSensor", "parse_sample_line"]
