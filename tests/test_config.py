import os
import tempfile
import unittest

from camera import build_camera_config
from core.config import ConfigError, load_config, validate_config
from sensor import build_sensor_config

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
TEST_CONFIG_DIR = os.path.join(REPO_ROOT, "config", "tests")
MAIN_CONFIG_DIR = os.path.join(REPO_ROOT, "config")


def _write(dir_path: str, name: str, text: str) -> str:
    path = os.path.join(dir_path, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    return path


class TestConfigLoading(unittest.TestCase):
    def test_test_config_loads_and_validates(self):
        cfg = load_config(TEST_CONFIG_DIR)
        validate_config(cfg)
        self.assertEqual(cfg.sensor.type, "mock")
        self.assertEqual(cfg.sensor.samples, [100, 100, 100, 100, 100])
        self.assertEqual(cfg.sensor.interval_ms, 10)
        self.assertEqual(cfg.camera.port, 12001)
        self.assertFalse(cfg.camera.image_enabled)
        self.assertFalse(cfg.notify.enabled)
        self.assertTrue(cfg.paths["main"].endswith("main_test.yaml"))

    def test_shipped_config_loads_and_validates(self):
        cfg = load_config(MAIN_CONFIG_DIR)
        validate_config(cfg)
        self.assertEqual(cfg.sensor.type, "tcp")
        self.assertEqual(cfg.sensor.port, 9100)
        # mock block is ignored while tcp is selected
        self.assertEqual(cfg.sensor.samples_file, "")

        camera_cfg = build_camera_config(cfg.camera, save_noread_image=False)
        self.assertEqual(camera_cfg.port, 2001)
        self.assertFalse(camera_cfg.save_noread_image)

    def test_sensor_block_selection_and_relative_samples_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            _write(
                tmp,
                "main_x.yaml",
                "sensor:\n"
                "  type: mock\n"
                "  common:\n"
                "    interval_ms: 20\n"
                "  mock:\n"
                "    samples_file: feed.txt\n"
                "    end_mode: LOOP\n"
                "  tcp:\n"
                "    port: 9200\n",
            )
            cfg = load_config(tmp)
            self.assertEqual(cfg.sensor.interval_ms, 20)
            self.assertEqual(cfg.sensor.port, 9100)
            self.assertEqual(cfg.sensor.samples_file, os.path.join(tmp, "feed.txt"))
            sensor_cfg = build_sensor_config(cfg.sensor)
            self.assertEqual(sensor_cfg.end_mode, "loop")

    def test_loader_errors(self):
        cases = [
            ("unknown root", "detect:\n  impl: x\n", "<root>.detect"),
            ("unknown field", "camera:\n  exposure_us: 5\n", "camera.exposure_us"),
            ("bad section", "camera: 5\n", "'camera' must be a mapping"),
            ("flat sensor key", "sensor:\n  type: tcp\n  port: 1\n", "sensor.port"),
            ("unknown sensor field", "sensor:\n  type: tcp\n  tcp:\n    baud: 1\n", "sensor.tcp.baud"),
            ("notify url", "notify:\n  enabled: true\n", "notify.url"),
            ("bad import", "imports: [no_such_module_xyz]\n", "no_such_module_xyz"),
            ("bad yaml", "camera: [1,\n", "Invalid YAML"),
            ("non-mapping root", "- 1\n- 2\n", "must be a mapping"),
        ]
        for label, text, expected in cases:
            with self.subTest(case=label), tempfile.TemporaryDirectory() as tmp:
                _write(tmp, "main_x.yaml", text)
                with self.assertRaises(ConfigError) as cm:
                    load_config(tmp)
                self.assertIn(expected, str(cm.exception))

    def test_exactly_one_main_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ConfigError):
                load_config(tmp)
            _write(tmp, "main_a.yaml", "{}\n")
            _write(tmp, "main_b.yaml", "{}\n")
            with self.assertRaises(ConfigError) as cm:
                load_config(tmp)
            self.assertIn("exactly one", str(cm.exception))

    def test_empty_main_file_uses_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            _write(tmp, "main_empty.yaml", "")
            cfg = load_config(tmp)
            validate_config(cfg)
            self.assertEqual(cfg.trigger.threshold_distance_mm, 50.0)
            self.assertEqual(cfg.camera.capture_timeout_ms, 5000)


class TestConfigValidation(unittest.TestCase):
    def test_invalid_values_raise_config_error(self):
        cases = [
            ("runtime.history_size", "runtime", {"history_size": 0}),
            ("runtime.log_level", "runtime", {"log_level": "loud"}),
            ("sensor.port", "sensor", {"port": 70000}),
            ("sensor.end_mode", "sensor", {"end_mode": "rewind"}),
            ("sensor.samples", "sensor", {"samples": ["x"]}),
            ("trigger.threshold_distance_mm", "trigger", {"threshold_distance_mm": 0}),
            ("trigger.threshold_max_deviation", "trigger", {"threshold_max_deviation": -1}),
            ("camera.capture_timeout_ms", "camera", {"capture_timeout_ms": 0}),
            ("camera.image_decimate", "camera", {"image_decimate": "two"}),
            ("notify.timeout_ms", "notify", {"timeout_ms": -5}),
        ]
        for expected_name, target, patch in cases:
            with self.subTest(field=expected_name):
                cfg = load_config(TEST_CONFIG_DIR)
                obj = getattr(cfg, target)
                for k, v in patch.items():
                    setattr(obj, k, v)
                with self.assertRaises(ConfigError) as cm:
                    validate_config(cfg)
                self.assertIn(expected_name, str(cm.exception))


if __name__ == "__main__":
    unittest.main()
