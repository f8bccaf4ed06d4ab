# -- coding: utf-8 --
"""asyncio TCP link to an OMRON V430-F style camera (command port 2001).

Each chunk read from the socket is handed over as one result frame; the camera
writes a whole decode result in a single burst after a `< >` trigger.
"""

import asyncio
import logging

from .session import CameraLink, CloseHandler, DataHandler, LinkFactory

L = logging.getLogger("scan_runtime.camera.v430")

DEFAULT_PORT = 2001
MAX_FRAME_BYTES = 4096


class V430Link:
    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        on_data: DataHandler,
        on_closed: CloseHandler,
        *,
        peer: str = "",
    ):
        self._reader = reader
        self._writer = writer
        self._on_data = on_data
        self._on_closed = on_closed
        self.peer = peer
        self._read_task = asyncio.get_running_loop().create_task(
            self._read_loop(), name=f"v430.read.{peer}"
        )

    async def _read_loop(self):
        try:
            while True:
                data = await self._reader.read(MAX_FRAME_BYTES)
                if not data:
                    break
                L.debug("<- %s %r", self.peer, data)
                self._on_data(data)
        except (ConnectionError, OSError) as e:
            L.warning("Read from %s failed: %s", self.peer, e)
        finally:
            self._writer.close()
            self._on_closed(self)

    def write(self, data: bytes) -> None:
        self._writer.write(data)

    def close(self) -> None:
        self._read_task.cancel()
        self._writer.close()

    def is_closing(self) -> bool:
        return self._writer.is_closing()


def v430_link_factory(
    host: str, port: int = DEFAULT_PORT, *, connect_timeout_ms: int = 3000
) -> LinkFactory:
    timeout_s = max(int(connect_timeout_ms), 1) / 1000.0
    peer = f"{host}:{port}"

    async def open_link(on_data: DataHandler, on_closed: CloseHandler) -> CameraLink:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout_s
            )
        except asyncio.TimeoutError as e:
            raise ConnectionError(f"timeout connecting to {peer}") from e
        except OSError as e:
            raise ConnectionError(f"cannot connect to {peer}: {e}") from e
        L.info("Connected to V430-F on %s", peer)
        return V430Link(reader, writer, on_data, on_closed, peer=peer)

    return open_link


__all__ = ["DEFAULT_PORT", "V430Link", "v430_link_factory"]
