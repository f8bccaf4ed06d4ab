"""YAML loader and section builders for runtime configuration."""

from __future__ import annotations

import glob
import importlib
import os
from typing import Any

import yaml

from .schema import (
    CameraConfigBlock,
    ConfigError,
    LoadedConfig,
    NotifyConfigBlock,
    OutputConfigBlock,
    RuntimeConfig,
    SensorConfigBlock,
    TriggerConfigBlock,
)


def load_config(config_dir: str = "config") -> LoadedConfig:
    main_path = _find_main_config(config_dir)
    main_data = _read_yaml(main_path)
    _validate_allowed_keys(
        main_data,
        {"imports", "runtime", "sensor", "trigger", "camera", "notify", "output"},
        "<root>",
        main_path,
    )
    imports = main_data.get("imports") or []
    _import_modules(imports, main_path)

    runtime = _build_section(RuntimeConfig, main_data, "runtime", main_path)
    sensor = _build_sensor_config(main_data.get("sensor"), main_path, config_dir)
    trigger = _build_section(TriggerConfigBlock, main_data, "trigger", main_path)
    camera = _build_section(CameraConfigBlock, main_data, "camera", main_path)
    notify = _build_section(NotifyConfigBlock, main_data, "notify", main_path)
    output = _build_section(OutputConfigBlock, main_data, "output", main_path)

    if notify.enabled and not str(notify.url or "").strip():
        raise ConfigError(f"notify.url is required when notify.enabled in {main_path}")

    return LoadedConfig(
        imports=imports,
        runtime=runtime,
        sensor=sensor,
        trigger=trigger,
        camera=camera,
        notify=notify,
        output=output,
        paths={"main": main_path},
    )


def _find_main_config(config_dir: str) -> str:
    patterns = [
        os.path.join(config_dir, "main_*.yaml"),
        os.path.join(config_dir, "main_*.yml"),
    ]
    candidates: list[str] = []
    for pattern in patterns:
        candidates.extend(glob.glob(pattern))
    if len(candidates) == 0:
        raise ConfigError(f"No main_*.yaml found under {config_dir}")
    if len(candidates) > 1:
        raise ConfigError(
            f"Expected exactly one main_*.yaml, found: {', '.join(sorted(candidates))}"
        )
    return candidates[0]


def _read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


def _build_dataclass(cls, data: dict[str, Any], main_path: str, section: str):
    obj = cls()
    fields = cls.__dataclass_fields__
    for k, v in (data or {}).items():
        if k in fields:
            setattr(obj, k, v)
        else:
            raise ConfigError(f"Unknown field {section}.{k} in {main_path}")
    return obj


def _build_section(cls, main_data: dict[str, Any], section: str, main_path: str):
    data = main_data.get(section)
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"'{section}' must be a mapping in {main_path}")
    return _build_dataclass(cls, data, main_path, section=section)


def _validate_allowed_keys(
    data: dict[str, Any], allowed_keys: set[str], section: str, main_path: str
) -> None:
    for key in data.keys():
        if key not in allowed_keys:
            raise ConfigError(f"Unknown field {section}.{key} in {main_path}")


def _build_sensor_config(
    data: dict[str, Any] | None, main_path: str, config_dir: str
) -> SensorConfigBlock:
    """`sensor.type` selects the block applied on top of `sensor.common`."""
    if data is None:
        return SensorConfigBlock()
    if not isinstance(data, dict):
        raise ConfigError(f"'sensor' must be a mapping in {main_path}")

    cfg = SensorConfigBlock()
    if "type" in data:
        cfg.type = str(data.get("type") or cfg.type)
    selected_type = str(cfg.type or "").strip()
    sensor_fields = SensorConfigBlock.__dataclass_fields__

    def _apply_sensor_fields(block: dict[str, Any], section: str):
        for k, v in block.items():
            if k in sensor_fields and k != "type":
                setattr(cfg, k, v)
            else:
                raise ConfigError(f"Unknown field {section}.{k} in {main_path}")

    for key, value in data.items():
        if key in {"type", "common"}:
            continue
        if isinstance(value, dict):
            continue
        raise ConfigError(
            f"sensor.{key} must be nested under sensor.common or sensor.{selected_type} in {main_path}"
        )

    common_data = data.get("common")
    if common_data is not None:
        if not isinstance(common_data, dict):
            raise ConfigError(f"'sensor.common' must be a mapping in {main_path}")
        _apply_sensor_fields(common_data, "sensor.common")

    selected_block = data.get(selected_type)
    if selected_block is not None:
        if not isinstance(selected_block, dict):
            raise ConfigError(
                f"'sensor.{selected_type}' must be a mapping in {main_path}"
            )
        _apply_sensor_fields(selected_block, f"sensor.{selected_type}")

    if cfg.samples_file and not os.path.isabs(cfg.samples_file):
        cfg.samples_file = os.path.join(config_dir, cfg.samples_file)
    return cfg


def _import_modules(imports: Any, main_path: str):
    if imports is None:
        return
    if not isinstance(imports, list):
        raise ConfigError(f"'imports' must be a list in {main_path}")
    for path in imports:
        if not isinstance(path, str) or not path:
            raise ConfigError(f"Invalid import path {path!r} in {main_path}")
        try:
            importlib.import_module(path)
        except ImportError as e:
            raise ConfigError(f"Cannot import {path!r} listed in {main_path}: {e}") from e


__all__ = ["load_config"]
