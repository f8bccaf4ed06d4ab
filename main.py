# -- coding: utf-8 --

import argparse
import logging
import time

from camera import build_camera_config
from core.config import ConfigError, load_config, validate_config
from core.runtime import build_runtime, build_runtime_config_from_loaded_config
from sensor import build_sensor_config, create_sensor


def parse_args():
    p = argparse.ArgumentParser(
        description="Proximity-triggered barcode scanner service (config-driven)",
    )
    p.add_argument(
        "--config-dir", default="config", help="Directory containing main_*.yaml"
    )
    p.add_argument("--verbose", action="store_true", help="Debug log")
    p.add_argument(
        "--log-level", default="", help="Override log level (debug/info/warning/error)"
    )
    return p.parse_args()


def setup_logging(verbose: bool, log_level: str = ""):
    if verbose:
        level = logging.DEBUG
    else:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "warn": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(str(log_level or "").strip().lower(), logging.INFO)
    # Use UTC for all %(asctime)s timestamps in logs.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level, format="%(asctime)sZ [%(levelname)s] %(message)s", force=True
    )
    if not verbose:
        for name in ("aiohttp", "aiohttp.access", "aiohttp.client", "asyncio"):
            logging.getLogger(name).setLevel(logging.WARNING)


def main():
    args = parse_args()
    setup_logging(args.verbose, args.log_level)
    try:
        cfg = load_config(args.config_dir)
        validate_config(cfg)
    except ConfigError as e:
        logging.error("Config load failed: %s", e)
        raise SystemExit(1)
    # Config-driven log level (unless overridden by CLI).
    if not args.verbose and not args.log_level:
        setup_logging(args.verbose, getattr(cfg.runtime, "log_level", "info"))

    logging.info(
        "Starting: sensor=%s camera=%s:%d thresholds=%.1fmm/%.2fmm notify=%s runtime=%s",
        cfg.sensor.type,
        cfg.camera.host,
        cfg.camera.port,
        float(cfg.trigger.threshold_distance_mm),
        float(cfg.trigger.threshold_max_deviation),
        cfg.notify.url if cfg.notify.enabled else "off",
        f"{cfg.runtime.max_runtime_s}s" if cfg.runtime.max_runtime_s else "unlimited",
    )
    logging.info("Config file: %s", cfg.paths.get("main"))

    camera_cfg = build_camera_config(
        cfg.camera, save_noread_image=cfg.output.save_noread_image
    )
    try:
        runtime = build_runtime(
            camera_cfg, config=build_runtime_config_from_loaded_config(cfg)
        )
        sensor = create_sensor(
            cfg.sensor.type,
            build_sensor_config(cfg.sensor),
            runtime.handle_sample,
            loop_runner=runtime.loop_runner,
        )
    except ValueError as e:
        logging.error("Config invalid: %s", e)
        raise SystemExit(1) from e

    try:
        runtime.start(sensors=[sensor])
        runtime.run(
            runtime_limit_s=cfg.runtime.max_runtime_s
            if cfg.runtime.max_runtime_s > 0
            else None
        )
        logging.info("Done: %s", runtime.app_context.results.stats())
    except KeyboardInterrupt:
        logging.info("Service STOPPED by user (Ctrl+C)")
        runtime.stop()
    except Exception:
        logging.exception("Error")
        raise


if __name__ == "__main__":
    main()
