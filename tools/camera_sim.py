# -- coding: utf-8 --
"""V430-F simulator: command port (`< >`, `<l1>`, `<l0>`) plus the image web API."""

import argparse
import asyncio
import logging
import os
import random

from aiohttp import web

LOG = logging.getLogger("camera.sim")

GS = b"\x1d"
RS = b"\x1e"
EOT = b"\x04"

# A Digi-Key style ANSI MH10.8 label
DEFAULT_PAYLOAD = (
    b"[)>" + RS + b"06"
    + GS + b"P296-1173-1-ND"
    + GS + b"1PSN74HC595DR"
    + GS + b"K"
    + GS + b"1K74185323"
    + GS + b"10K88907425"
    + GS + b"9D2334"
    + GS + b"1TAB12345"
    + GS + b"11K1"
    + GS + b"4LMY"
    + GS + b"Q10"
    + GS + b"11ZPICK"
    + GS + b"12Z3154890"
    + GS + b"13Z999999"
    + GS + b"20Z000000000000"
    + RS + EOT + b"\r\n"
)

# bare SOI + EOI markers; pass --image for a real picture
PLACEHOLDER_JPEG = b"\xff\xd8\xff\xd9"


class SimCamera:
    def __init__(
        self,
        payload: bytes,
        *,
        delay_ms: int,
        noread_ratio: float,
        drop_ratio: float,
        image_path: str = "",
    ):
        self.payload = payload
        self.delay_s = max(delay_ms, 0) / 1000.0
        self.noread_ratio = noread_ratio
        self.drop_ratio = drop_ratio
        self.image_path = image_path
        self.aim = False
        self.captures = 0

    def answer(self) -> bytes | None:
        roll = random.random()
        if roll < self.drop_ratio:
            return None
        if roll < self.drop_ratio + self.noread_ratio:
            return b"NOREAD\r\n"
        return self.payload

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        peer = writer.get_extra_info("peername")
        LOG.info("CONNECT %s", peer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                cmd = line.strip()
                if cmd == b"< >" or cmd == b"<>":
                    self.captures += 1
                    await asyncio.sleep(self.delay_s)
                    data = self.answer()
                    if data is None:
                        LOG.info("capture #%d: dropping answer", self.captures)
                        continue
                    LOG.info("capture #%d: answering %d bytes", self.captures, len(data))
                    writer.write(data)
                    await writer.drain()
                elif cmd in (b"<l1>", b"<l0>"):
                    self.aim = cmd == b"<l1>"
                    LOG.info("aim pattern %s", "ON" if self.aim else "OFF")
                else:
                    LOG.warning("unknown command %r", cmd)
        finally:
            writer.close()
            LOG.info("DISCONNECT %s", peer)

    async def image(self, request: web.Request) -> web.Response:
        decimate = request.query.get("decimate", "1")
        body = PLACEHOLDER_JPEG
        if self.image_path and os.path.isfile(self.image_path):
            with open(self.image_path, "rb") as f:
                body = f.read()
        LOG.info("image request decimate=%s -> %d bytes", decimate, len(body))
        return web.Response(body=body, content_type="image/jpeg")


async def _serve(args):
    payload = DEFAULT_PAYLOAD
    if args.payload_file:
        with open(args.payload_file, "rb") as f:
            payload = f.read()
    sim = SimCamera(
        payload,
        delay_ms=args.delay_ms,
        noread_ratio=args.noread_ratio,
        drop_ratio=args.drop_ratio,
        image_path=args.image,
    )
    server = await asyncio.start_server(sim.handle_client, args.host, args.port)
    app = web.Application()
    app.router.add_get("/api/v1/image", sim.image)
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, args.host, args.http_port)
    await site.start()
    LOG.info(
        "Simulated V430-F: commands on %s:%d, image API on http://%s:%d/api/v1/image",
        args.host,
        args.port,
        args.host,
        args.http_port,
    )
    try:
        async with server:
            await server.serve_forever()
    finally:
        await runner.cleanup()


def main():
    p = argparse.ArgumentParser(description="Simulate a V430-F barcode camera")
    p.add_argument("--host", default="127.0.0.1", help="Listen host")
    p.add_argument("--port", type=int, default=2001, help="Command port")
    p.add_argument("--http-port", type=int, default=8080, help="Image API port")
    p.add_argument("--delay-ms", type=int, default=150, help="Decode latency")
    p.add_argument("--noread-ratio", type=float, default=0.0, help="Share of NOREAD answers")
    p.add_argument("--drop-ratio", type=float, default=0.0, help="Share of unanswered triggers")
    p.add_argument("--payload-file", default="", help="Raw payload to answer with")
    p.add_argument("--image", default="", help="JPEG served by the image API")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        asyncio.run(_serve(args))
    except KeyboardInterrupt:
        LOG.info("Stopped")


if __name__ == "__main__":
    main()
