import os
import socket
import tempfile
import time
import unittest

from core.lifecycle import LoopRunner
from sensor import SensorConfig, create_sensor
from sensor.mock import load_samples_file
from sensor.tcp import parse_sample_line


def _wait_until(predicate, timeout_s: float = 2.0):
    start = time.perf_counter()
    while (time.perf_counter() - start) < timeout_s:
        if predicate():
            return
        time.sleep(0.02)
    raise AssertionError("condition not met in time")


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestSampleParsing(unittest.TestCase):
    def test_parse_sample_line(self):
        cases = [
            (b"42\n", 42.0),
            (b" 12.5 \r\n", 12.5),
            (b"-3\n", -3.0),
            (b"\n", None),
            (b"abc\n", None),
            (b"nan\n", None),
            (b"inf\n", None),
            (b"1" * 80 + b"\n", None),
        ]
        for line, expected in cases:
            with self.subTest(line=line):
                self.assertEqual(parse_sample_line(line), expected)

    def test_load_samples_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "feed.txt")
            with open(path, "w", encoding="utf-8") as f:
                f.write("# approach\n120\n\n80.5  # closer\n20\n")
            self.assertEqual(load_samples_file(path), [120.0, 80.5, 20.0])

            with open(path, "w", encoding="utf-8") as f:
                f.write("10\nfar\n")
            with self.assertRaises(RuntimeError) as cm:
                load_samples_file(path)
            self.assertIn(":2:", str(cm.exception))

        with self.assertRaises(RuntimeError):
            load_samples_file(os.path.join(tmp, "missing.txt"))


class TestSensors(unittest.TestCase):
    def setUp(self):
        self.loop_runner = LoopRunner()
        self.samples: list[float] = []

    def tearDown(self):
        self.loop_runner.shutdown_loop()

    def test_unknown_sensor_type(self):
        with self.assertRaises(ValueError):
            create_sensor("laser", SensorConfig(), self.samples.append, loop_runner=self.loop_runner)

    def test_mock_sensor_replays_samples(self):
        cfg = SensorConfig(samples=[1.0, 2.0, 3.0], interval_ms=5, end_mode="stop")
        with create_sensor("mock", cfg, self.samples.append, loop_runner=self.loop_runner) as sensor:
            _wait_until(lambda: sensor.delivered == 3)
            sensor.raise_if_failed()
        self.assertEqual(self.samples, [1.0, 2.0, 3.0])

    def test_mock_sensor_loops(self):
        cfg = SensorConfig(samples=[1.0, 2.0], interval_ms=5, end_mode="loop")
        with create_sensor("mock", cfg, self.samples.append, loop_runner=self.loop_runner):
            _wait_until(lambda: len(self.samples) >= 5)
        self.assertEqual(self.samples[:5], [1.0, 2.0, 1.0, 2.0, 1.0])

    def test_mock_sensor_without_samples_fails_to_start(self):
        sensor = create_sensor("mock", SensorConfig(), self.samples.append, loop_runner=self.loop_runner)
        with self.assertRaises(RuntimeError):
            sensor.start()

    def test_tcp_sensor_receives_lines(self):
        port = _free_port()
        cfg = SensorConfig(host="127.0.0.1", port=port)
        with create_sensor("tcp", cfg, self.samples.append, loop_runner=self.loop_runner):
            with socket.create_connection(("127.0.0.1", port), timeout=2.0) as conn:
                conn.sendall(b"100\n55.5\ngarbage\n20\n")
                _wait_until(lambda: len(self.samples) >= 3)
        self.assertEqual(self.samples, [100.0, 55.5, 20.0])


if __name__ == "__main__":
    unittest.main()
