"""Runtime config value validation."""

from __future__ import annotations

from typing import Any

from .schema import ConfigError, LoadedConfig

_SENSOR_END_MODES = ("loop", "stop", "hold")
_LOG_LEVELS = ("debug", "info", "warning", "warn", "error", "critical")


def validate_config(cfg: LoadedConfig) -> None:
    # runtime
    _require_float("runtime.max_runtime_s", cfg.runtime.max_runtime_s, min_v=0.0)
    _require_int("runtime.history_size", cfg.runtime.history_size, min_v=1)
    _require_float(
        "runtime.stats_log_interval_s", cfg.runtime.stats_log_interval_s, min_v=0.0
    )
    _require_choice("runtime.log_level", cfg.runtime.log_level, _LOG_LEVELS)

    # sensor
    _require_port("sensor.port", cfg.sensor.port)
    _require_int("sensor.interval_ms", cfg.sensor.interval_ms, min_v=1)
    _require_choice("sensor.end_mode", cfg.sensor.end_mode, _SENSOR_END_MODES)
    _require_float_list("sensor.samples", cfg.sensor.samples)

    # trigger
    _require_positive(
        "trigger.threshold_distance_mm", cfg.trigger.threshold_distance_mm
    )
    _require_positive(
        "trigger.threshold_max_deviation", cfg.trigger.threshold_max_deviation
    )

    # camera
    _require_port("camera.port", cfg.camera.port)
    _require_int("camera.connect_timeout_ms", cfg.camera.connect_timeout_ms, min_v=1)
    _require_int("camera.capture_timeout_ms", cfg.camera.capture_timeout_ms, min_v=1)
    _require_int("camera.image_decimate", cfg.camera.image_decimate, min_v=1)
    _require_int("camera.image_timeout_ms", cfg.camera.image_timeout_ms, min_v=1)

    # notify
    _require_int("notify.timeout_ms", cfg.notify.timeout_ms, min_v=1)


def _require_int(
    name: str, value: Any, *, min_v: int | None = None, max_v: int | None = None
) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if min_v is not None and iv < min_v:
        op = ">=" if min_v != 1 else ">"
        threshold = min_v if min_v != 1 else 0
        raise ConfigError(f"{name} must be {op} {threshold}")
    if max_v is not None and iv > max_v:
        raise ConfigError(f"{name} must be <= {max_v}")
    return iv


def _require_float(
    name: str, value: Any, *, min_v: float | None = None, max_v: float | None = None
) -> float:
    try:
        fv = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number") from e
    if min_v is not None and fv < min_v:
        raise ConfigError(f"{name} must be >= {min_v:g}")
    if max_v is not None and fv > max_v:
        raise ConfigError(f"{name} must be <= {max_v:g}")
    return fv


def _require_positive(name: str, value: Any) -> float:
    fv = _require_float(name, value)
    if fv <= 0:
        raise ConfigError(f"{name} must be > 0")
    return fv


def _require_port(name: str, value: Any) -> int:
    return _require_int(name, value, min_v=1, max_v=65535)


def _require_choice(name: str, value: Any, choices: tuple[str, ...]) -> str:
    sv = str(value or "").strip().lower()
    if sv not in choices:
        raise ConfigError(f"{name} must be one of {', '.join(choices)}")
    return sv


def _require_float_list(name: str, value: Any) -> list[float]:
    if not isinstance(value, list):
        raise ConfigError(f"{name} must be a list of numbers")
    for i, item in enumerate(value):
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise ConfigError(f"{name}[{i}] must be a number")
    return value


__all__ = ["validate_config"]
