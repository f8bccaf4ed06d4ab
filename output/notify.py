# -- coding: utf-8 --

import asyncio
import logging

import aiohttp

from core.contracts import ScanRecord

L = logging.getLogger("scan_runtime.output.notify")


class HttpNotifier:
    """Forwards identified part numbers as `GET <url>?search=<mfg_pn>`."""

    def __init__(self, url: str, *, timeout_ms: int = 3000):
        if not url:
            raise ValueError("notify url is required")
        self.url = url
        self.timeout_s = max(int(timeout_ms), 1) / 1000.0
        self.sent = 0
        self.failed = 0

    def start(self):
        return None

    def stop(self):
        return None

    async def publish(self, rec: ScanRecord):
        part_number = rec.part_number
        if not (rec.result and rec.result.identified and part_number):
            return
        await self.notify(part_number)

    async def publish_image(self, rec: ScanRecord):
        _ = rec
        return None

    async def notify(self, part_number: str) -> bool:
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as http:
                async with http.get(self.url, params={"search": part_number}) as resp:
                    if resp.status >= 400:
                        self.failed += 1
                        L.warning(
                            "Notify %s for %s answered HTTP %d",
                            self.url,
                            part_number,
                            resp.status,
                        )
                        return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.failed += 1
            L.warning("Notify %s for %s failed: %s", self.url, part_number, e)
            return False
        self.sent += 1
        L.debug("Notified %s of %s", self.url, part_number)
        return True


__all__ = ["HttpNotifier"]
