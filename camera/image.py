# -- coding: utf-8 --

import asyncio
import logging

import aiohttp

L = logging.getLogger("scan_runtime.camera.image")

DEFAULT_IMAGE_URL = "http://{host}/api/v1/image?decimate={decimate}"


class ImageFetchError(Exception):
    pass


class HttpImageFetcher:
    """Downloads the last acquired image from the camera's web API."""

    def __init__(
        self,
        host: str,
        *,
        timeout_ms: int = 5000,
        url_template: str = DEFAULT_IMAGE_URL,
    ):
        self.host = host
        self.timeout_s = max(int(timeout_ms), 1) / 1000.0
        self.url_template = url_template

    def url_for(self, decimate: int) -> str:
        return self.url_template.format(host=self.host, decimate=int(decimate))

    async def fetch(self, decimate: int = 1) -> bytes:
        url = self.url_for(decimate)
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as http:
                async with http.get(url) as resp:
                    # 304 is what the camera answers when the image did not change
                    if resp.status not in (200, 304):
                        raise ImageFetchError(f"HTTP error {resp.status} for {url}")
                    body = await resp.read()
        except aiohttp.ClientError as e:
            raise ImageFetchError(f"HTTP error: {e}") from e
        except asyncio.TimeoutError as e:
            raise ImageFetchError(f"HTTP timeout after {self.timeout_s:.1f}s for {url}") from e
        L.debug("Fetched %d image bytes from %s", len(body), url)
        return body


__all__ = ["DEFAULT_IMAGE_URL", "HttpImageFetcher", "ImageFetchError"]
