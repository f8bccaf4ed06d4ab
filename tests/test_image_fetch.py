import unittest

from aiohttp import web

from camera import HttpImageFetcher, ImageFetchError

JPEG = b"\xff\xd8\xff\xd9"


class TestHttpImageFetcher(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests = []

        async def image(request: web.Request):
            self.requests.append(dict(request.query))
            return web.Response(body=JPEG, content_type="image/jpeg")

        async def broken(request: web.Request):
            return web.Response(status=500)

        app = web.Application()
        app.router.add_get("/api/v1/image", image)
        app.router.add_get("/broken", broken)
        self.runner = web.AppRunner(app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "127.0.0.1", 0)
        await site.start()
        self.port = self.runner.addresses[0][1]

    async def asyncTearDown(self):
        await self.runner.cleanup()

    async def test_fetch_passes_decimation(self):
        fetcher = HttpImageFetcher(
            "127.0.0.1",
            url_template=f"http://{{host}}:{self.port}/api/v1/image?decimate={{decimate}}",
        )
        self.assertEqual(await fetcher.fetch(4), JPEG)
        self.assertEqual(self.requests, [{"decimate": "4"}])

    async def test_http_error_raises(self):
        fetcher = HttpImageFetcher(
            "127.0.0.1", url_template=f"http://{{host}}:{self.port}/broken"
        )
        with self.assertRaises(ImageFetchError):
            await fetcher.fetch()

    async def test_unreachable_camera_raises(self):
        fetcher = HttpImageFetcher("127.0.0.1:1", timeout_ms=500)
        with self.assertRaises(ImageFetchError):
            await fetcher.fetch()

    def test_default_url(self):
        self.assertEqual(
            HttpImageFetcher("172.17.17.50").url_for(2),
            "http://172.17.17.50/api/v1/image?decimate=2",
        )


if __name__ == "__main__":
    unittest.main()
