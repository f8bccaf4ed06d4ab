import asyncio
import unittest

from camera import CMD_AIM_OFF, CMD_AIM_ON, CMD_CAPTURE, CameraSession, ImageFetchError, SessionState
from decode import ScanStatus

PAYLOAD = b"1PSN74HC595DR\x1dQ10\x1e\x04\r\n"


class FakeLink:
    def __init__(self):
        self.writes: list[bytes] = []
        self.closed = False

    def write(self, data: bytes):
        self.writes.append(data)

    def close(self):
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed


class FakeFactory:
    def __init__(self):
        self.links: list[FakeLink] = []
        self.fail_with: Exception | None = None
        self.on_closed = None

    async def __call__(self, on_data, on_closed):
        if self.fail_with is not None:
            raise self.fail_with
        self.on_closed = on_closed
        link = FakeLink()
        self.links.append(link)
        return link

    @property
    def writes(self) -> list[bytes]:
        return [w for link in self.links for w in link.writes]


class RecordingSink:
    def __init__(self):
        self.records = []
        self.images = []
        self.gate: asyncio.Event | None = None

    async def publish(self, rec):
        if self.gate is not None:
            await self.gate.wait()
        self.records.append(rec)

    async def publish_image(self, rec):
        self.images.append(rec)


class FakeImageSource:
    def __init__(self, data: bytes = b"\xff\xd8\xff\xd9", error: Exception | None = None):
        self.data = data
        self.error = error
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def fetch(self, decimate: int = 1) -> bytes:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.data


async def _drain():
    for _ in range(10):
        await asyncio.sleep(0)


class TestCameraSession(unittest.IsolatedAsyncioTestCase):
    def _make_session(self, **kwargs):
        self.factory = FakeFactory()
        self.sink = RecordingSink()
        kwargs.setdefault("capture_timeout_ms", 5000)
        self.session = CameraSession(self.factory, sink=self.sink, name="test-cam", **kwargs)
        return self.session

    async def asyncTearDown(self):
        await self.session.close()

    async def test_connect_moves_to_idle(self):
        session = self._make_session()
        self.assertIs(session.state, SessionState.DISCONNECTED)
        await session.connect()
        await session.connect()
        self.assertIs(session.state, SessionState.IDLE)
        self.assertEqual(len(self.factory.links), 1)

    async def test_connect_failure_surfaces_connection_error(self):
        session = self._make_session()
        self.factory.fail_with = OSError("refused")
        with self.assertRaises(ConnectionError):
            await session.connect()
        self.assertIs(session.state, SessionState.DISCONNECTED)

    async def test_double_trigger_sends_one_capture(self):
        session = self._make_session()
        self.assertTrue(await session.trigger_capture())
        self.assertFalse(await session.trigger_capture())
        self.assertEqual(self.factory.writes, [CMD_CAPTURE])
        self.assertIs(session.state, SessionState.AWAITING_RESULT)
        self.assertEqual(session.pending_request.capture_seq, 1)

    async def test_failed_trigger_clears_request(self):
        session = self._make_session()
        self.factory.fail_with = ConnectionRefusedError("refused")
        with self.assertRaises(ConnectionError):
            await session.trigger_capture()
        self.assertIsNone(session.pending_request)

    async def test_aim_indicator_is_idempotent(self):
        session = self._make_session()
        self.assertTrue(await session.set_aim_indicator(True))
        self.assertFalse(await session.set_aim_indicator(True))
        self.assertTrue(await session.set_aim_indicator(False))
        self.assertEqual(self.factory.writes, [CMD_AIM_ON, CMD_AIM_OFF])
        self.assertFalse(session.aim_indicator)

    async def test_aim_is_suppressed_during_capture(self):
        session = self._make_session()
        await session.set_aim_indicator(True)
        await session.trigger_capture()
        self.assertFalse(await session.set_aim_indicator(False))
        self.assertEqual(self.factory.writes, [CMD_AIM_ON, CMD_CAPTURE])

    async def test_result_clears_request_and_turns_aim_off(self):
        session = self._make_session()
        await session.set_aim_indicator(True)
        await session.trigger_capture()
        session.on_data(PAYLOAD)
        self.assertIsNone(session.pending_request)
        await _drain()
        self.assertEqual(self.factory.writes, [CMD_AIM_ON, CMD_CAPTURE, CMD_AIM_OFF])
        self.assertEqual(len(self.sink.records), 1)
        rec = self.sink.records[0]
        self.assertEqual(rec.capture_seq, 1)
        self.assertEqual(rec.attempts, 1)
        self.assertIs(rec.status, ScanStatus.IDENTIFIED)
        self.assertEqual(rec.part_number, "SN74HC595DR")
        self.assertTrue(rec.stamp.endswith("_00001"))
        self.assertIs(session.state, SessionState.IDLE)

    async def test_watchdog_resends_same_request(self):
        session = self._make_session()
        await session.trigger_capture()
        session.on_watchdog_expired()
        req = session.pending_request
        self.assertEqual(req.capture_seq, 1)
        self.assertEqual(req.attempts, 2)
        await _drain()
        self.assertEqual(self.factory.writes, [CMD_CAPTURE, CMD_CAPTURE])

        session.on_data(PAYLOAD)
        await _drain()
        self.assertEqual(self.sink.records[0].attempts, 2)
        self.assertEqual(self.sink.records[0].capture_seq, 1)

    async def test_watchdog_fires_on_timeout(self):
        session = self._make_session(capture_timeout_ms=20)
        await session.trigger_capture()
        await asyncio.sleep(0.15)
        self.assertGreaterEqual(self.factory.writes.count(CMD_CAPTURE), 2)
        self.assertGreaterEqual(session.pending_request.attempts, 2)

        session.on_data(PAYLOAD)
        await _drain()
        sent = len(self.factory.writes)
        await asyncio.sleep(0.06)
        self.assertEqual(len(self.factory.writes), sent)

    async def test_watchdog_without_request_is_ignored(self):
        session = self._make_session()
        await session.connect()
        session.on_watchdog_expired()
        await _drain()
        self.assertEqual(self.factory.writes, [])

    async def test_resend_after_failed_reconnect_rearms(self):
        session = self._make_session()
        await session.trigger_capture()
        first_deadline = session.pending_request.deadline
        self.factory.on_closed(self.factory.links[0])
        self.assertIs(session.state, SessionState.DISCONNECTED)

        self.factory.fail_with = OSError("unreachable")
        session.on_watchdog_expired()
        await _drain()
        req = session.pending_request
        self.assertIsNotNone(req)
        self.assertEqual(req.attempts, 2)
        self.assertGreater(req.deadline, first_deadline)

        self.factory.fail_with = None
        session.on_watchdog_expired()
        await _drain()
        self.assertEqual(len(self.factory.links), 2)
        self.assertEqual(self.factory.links[1].writes, [CMD_CAPTURE])
        self.assertEqual(session.pending_request.attempts, 3)

    async def test_stale_link_close_is_ignored(self):
        session = self._make_session()
        await session.connect()
        stale = FakeLink()
        session.on_connection_closed(stale)
        self.assertIs(session.state, SessionState.IDLE)

    async def test_unsolicited_frame_is_published(self):
        session = self._make_session()
        await session.connect()
        session.on_data(b"NOREAD\r\n")
        await _drain()
        self.assertEqual(len(self.sink.records), 1)
        self.assertIs(self.sink.records[0].status, ScanStatus.NOREAD)
        self.assertEqual(self.sink.records[0].capture_seq, 1)

    async def test_image_is_fetched_after_result(self):
        source = FakeImageSource()
        session = self._make_session(image_source=source)
        await session.trigger_capture()
        session.on_data(PAYLOAD)
        await _drain()
        self.assertEqual(source.calls, 1)
        self.assertEqual(len(self.sink.images), 1)
        self.assertEqual(self.sink.images[0].image, b"\xff\xd8\xff\xd9")

    async def test_capture_waits_for_image_of_previous_result(self):
        source = FakeImageSource()
        source.gate = asyncio.Event()
        session = self._make_session(image_source=source)
        await session.set_aim_indicator(True)
        await session.trigger_capture()
        session.on_data(PAYLOAD)
        await _drain()
        self.assertEqual(self.factory.writes, [CMD_AIM_ON, CMD_CAPTURE, CMD_AIM_OFF])
        self.assertEqual(source.calls, 1)
        self.assertIs(session.state, SessionState.IDLE)
        self.assertFalse(await session.trigger_capture())
        self.assertEqual(self.sink.records, [])

        source.gate.set()
        await _drain()
        self.assertEqual(len(self.sink.records), 1)
        self.assertEqual(self.sink.records[0].image, b"\xff\xd8\xff\xd9")
        self.assertEqual(len(self.sink.images), 1)
        self.assertTrue(await session.trigger_capture())
        self.assertEqual(self.factory.writes[-1], CMD_CAPTURE)
        self.assertEqual(session.pending_request.capture_seq, 2)

    async def test_slow_sink_does_not_hold_back_image_or_next_capture(self):
        source = FakeImageSource()
        session = self._make_session(image_source=source)
        self.sink.gate = asyncio.Event()
        await session.trigger_capture()
        session.on_data(PAYLOAD)
        await _drain()
        self.assertEqual(source.calls, 1)
        self.assertEqual(self.sink.records, [])
        self.assertTrue(await session.trigger_capture())

        self.sink.gate.set()
        await _drain()
        self.assertEqual(len(self.sink.records), 1)
        self.assertEqual(len(self.sink.images), 1)

    async def test_close_releases_capture_guard(self):
        source = FakeImageSource()
        source.gate = asyncio.Event()
        session = self._make_session(image_source=source)
        await session.trigger_capture()
        session.on_data(PAYLOAD)
        await _drain()
        self.assertFalse(await session.trigger_capture())
        await session.close()
        self.assertTrue(await session.trigger_capture())
        self.assertEqual(len(self.factory.links), 2)

    async def test_image_failure_is_recorded(self):
        source = FakeImageSource(error=ImageFetchError("HTTP 500"))
        session = self._make_session(image_source=source)
        await session.trigger_capture()
        session.on_data(PAYLOAD)
        await _drain()
        self.assertEqual(self.sink.images, [])
        self.assertEqual(self.sink.records[0].image_error, "HTTP 500")
        session.raise_if_failed()

    async def test_noread_image_can_be_skipped(self):
        source = FakeImageSource()
        session = self._make_session(image_source=source, save_noread_image=False)
        await session.trigger_capture()
        session.on_data(b"NOREAD\r\n")
        await _drain()
        self.assertEqual(source.calls, 0)
        self.assertEqual(len(self.sink.records), 1)


if __name__ == "__main__":
    unittest.main()
