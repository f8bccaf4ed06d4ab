# -- coding: utf-8 --
"""Persistent command session with the barcode camera.

The session is driven by named events so the retry logic can be exercised
without a socket:

  connect()              DISCONNECTED -> IDLE
  set_aim_indicator(on)  `<l1>` / `<l0>`, skipped when unchanged or capturing
  trigger_capture()      `< >`, IDLE -> AWAITING_RESULT, arms the watchdog
  on_data(chunk)         result frame, AWAITING_RESULT -> IDLE; captures stay
                         blocked until the image of this frame is fetched
  on_watchdog_expired()  no result in time: resend the same request
  on_connection_closed() -> DISCONNECTED, a pending watchdog stays armed

All handlers run on one event loop; the single pending CaptureRequest is
guarded by a plain attribute check.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Protocol

from core.contracts import CaptureRequest, ScanRecord
from core.lifecycle import AsyncTaskOwner
from decode import ResultParser
from utils.path_time import format_capture_stamp

from .image import ImageFetchError

L = logging.getLogger("scan_runtime.camera.session")

CMD_CAPTURE = b"< >\r\n"
CMD_AIM_ON = b"<l1>\r\n"
CMD_AIM_OFF = b"<l0>\r\n"

DEFAULT_CAPTURE_TIMEOUT_MS = 5000


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    IDLE = "idle"
    AWAITING_RESULT = "awaiting_result"


class CameraLink(Protocol):
    def write(self, data: bytes) -> None: ...
    def close(self) -> None: ...
    def is_closing(self) -> bool: ...


DataHandler = Callable[[bytes], None]
CloseHandler = Callable[["CameraLink"], None]
LinkFactory = Callable[[DataHandler, CloseHandler], Awaitable[CameraLink]]


class ImageSource(Protocol):
    async def fetch(self, decimate: int = 1) -> bytes: ...


class CaptureSink(Protocol):
    async def publish(self, rec: ScanRecord) -> None: ...
    async def publish_image(self, rec: ScanRecord) -> None: ...


class CameraSession:
    def __init__(
        self,
        open_link: LinkFactory,
        *,
        parser: ResultParser | None = None,
        sink: CaptureSink | None = None,
        image_source: ImageSource | None = None,
        capture_timeout_ms: int = DEFAULT_CAPTURE_TIMEOUT_MS,
        image_decimate: int = 1,
        save_noread_image: bool = True,
        name: str = "camera",
    ):
        self._open_link = open_link
        self.parser = parser or ResultParser()
        self.sink = sink
        self.image_source = image_source
        self.capture_timeout_s = max(int(capture_timeout_ms), 1) / 1000.0
        self.image_decimate = int(image_decimate)
        self.save_noread_image = bool(save_noread_image)
        self.name = name

        self._link: CameraLink | None = None
        self._connect_lock = asyncio.Lock()
        self._aim: bool | None = None
        self._request: CaptureRequest | None = None
        self._watchdog: asyncio.TimerHandle | None = None
        self._capture_seq = 0
        self._finishing = 0
        self._tasks = AsyncTaskOwner(owner_name=f"{name}_session")

    # ---- state ----

    @property
    def state(self) -> SessionState:
        if self._link is None or self._link.is_closing():
            return SessionState.DISCONNECTED
        if self._request is not None:
            return SessionState.AWAITING_RESULT
        return SessionState.IDLE

    @property
    def aim_indicator(self) -> bool | None:
        return self._aim

    @property
    def pending_request(self) -> CaptureRequest | None:
        return self._request

    # ---- commands ----

    async def connect(self):
        async with self._connect_lock:
            if self._link is not None and not self._link.is_closing():
                return
            try:
                link = await self._open_link(self.on_data, self.on_connection_closed)
            except ConnectionError:
                raise
            except (OSError, asyncio.TimeoutError) as e:
                raise ConnectionError(f"{self.name} connect failed: {e}") from e
            self._link = link
            L.info("Session to %s established", self.name)

    async def set_aim_indicator(self, enabled: bool) -> bool:
        """Returns True when the command was actually sent."""
        if self._aim == enabled or self._request is not None:
            return False
        link = await self._ensure_link()
        # A capture may have started while connecting.
        if self._aim == enabled or self._request is not None:
            return False
        self._aim = enabled
        self._write(link, CMD_AIM_ON if enabled else CMD_AIM_OFF)
        return True

    async def trigger_capture(self) -> bool:
        """Send one capture command unless a capture is already in flight.

        A capture whose result arrived but whose image is still being fetched
        counts as in flight: the camera only serves its latest image.
        """
        if self._request is not None or self._finishing:
            return False
        self._capture_seq += 1
        req = CaptureRequest(capture_seq=self._capture_seq)
        self._request = req
        try:
            await self._send_capture(req)
        except ConnectionError:
            if self._request is req:
                self._request = None
            raise
        return True

    async def close(self):
        self._cancel_watchdog()
        self._request = None
        self._finishing = 0
        self._tasks.cancel_and_clear()
        link = self._link
        self._link = None
        if link is not None:
            link.close()

    def raise_if_failed(self):
        self._tasks.raise_if_failed()

    # ---- events ----

    def on_data(self, data: bytes):
        self._cancel_watchdog()
        req = self._request
        self._request = None
        if req is None:
            self._capture_seq += 1
            req = CaptureRequest(capture_seq=self._capture_seq)
            L.info("Unsolicited frame from %s (%d bytes)", self.name, len(data))
        result = self.parser.parse(data)
        captured_at = datetime.now(timezone.utc)
        rec = ScanRecord(
            capture_seq=req.capture_seq,
            stamp=format_capture_stamp(req.capture_seq, captured_at),
            captured_at=captured_at,
            result=result,
            attempts=req.attempts,
        )
        if result.identified:
            L.info("%s: code detected (%s)", rec.stamp, result.part_number)
        elif result.success:
            L.info("%s: code read but no part number", rec.stamp)
        else:
            L.info("%s: no code found", rec.stamp)
        self._finishing += 1
        self._tasks.spawn(self._finish_capture(rec))

    def on_watchdog_expired(self):
        self._cancel_watchdog()
        req = self._request
        if req is None:
            return
        L.warning(
            "No result from %s for capture #%d after %.1fs, resending (attempt %d)",
            self.name,
            req.capture_seq,
            self.capture_timeout_s,
            req.attempts + 1,
        )
        retry = CaptureRequest(
            capture_seq=req.capture_seq,
            attempts=req.attempts + 1,
        )
        self._request = retry
        self._tasks.spawn(self._resend_capture(retry))

    def on_connection_closed(self, link: CameraLink):
        if link is not self._link:
            return
        self._link = None
        L.info("Connection to %s closed", self.name)

    # ---- internals ----

    async def _ensure_link(self) -> CameraLink:
        link = self._link
        if link is None or link.is_closing():
            self._link = None
            await self.connect()
            link = self._link
        if link is None:
            raise ConnectionError(f"{self.name} not connected")
        return link

    def _write(self, link: CameraLink, cmd: bytes):
        L.debug("-> %s %r", self.name, cmd)
        link.write(cmd)

    async def _send_capture(self, req: CaptureRequest):
        link = await self._ensure_link()
        if self._request is not req:
            return  # answered or superseded while connecting
        self._write(link, CMD_CAPTURE)
        self._arm_watchdog(req)

    async def _resend_capture(self, req: CaptureRequest):
        try:
            await self._send_capture(req)
        except ConnectionError as e:
            L.warning("Capture resend to %s failed: %s", self.name, e)
            if self._request is req:
                self._arm_watchdog(req)

    def _arm_watchdog(self, req: CaptureRequest):
        self._cancel_watchdog()
        loop = asyncio.get_running_loop()
        req.deadline = loop.time() + self.capture_timeout_s
        self._watchdog = loop.call_at(req.deadline, self.on_watchdog_expired)

    def _cancel_watchdog(self):
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    async def _finish_capture(self, rec: ScanRecord):
        try:
            try:
                await self.set_aim_indicator(False)
            except ConnectionError as e:
                L.warning("Could not switch %s aim indicator off: %s", self.name, e)
            await self._fetch_image(rec)
        finally:
            self._finishing = max(self._finishing - 1, 0)
        if self.sink is None:
            return
        await self.sink.publish(rec)
        if rec.image is not None:
            await self.sink.publish_image(rec)

    async def _fetch_image(self, rec: ScanRecord):
        if self.image_source is None:
            return
        if not rec.result.success and not self.save_noread_image:
            return
        try:
            rec.image = await self.image_source.fetch(self.image_decimate)
        except ImageFetchError as e:
            rec.image_error = str(e)
            L.warning("%s: image download failed: %s", rec.stamp, e)


__all__ = [
    "CMD_AIM_OFF",
    "CMD_AIM_ON",
    "CMD_CAPTURE",
    "CameraLink",
    "CameraSession",
    "CaptureSink",
    "ImageSource",
    "LinkFactory",
    "SessionState",
]
