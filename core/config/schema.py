"""Typed config schema blocks shared by loader/validator/runtime."""

from dataclasses import dataclass, field
from typing import Dict, List


class ConfigError(Exception):
    pass


@dataclass
class RuntimeConfig:
    save_dir: str = "data"
    max_runtime_s: float = 0.0
    history_size: int = 20
    stats_log_interval_s: float = 3.0
    log_level: str = "info"


@dataclass
class SensorConfigBlock:
    type: str = "mock"
    host: str = "0.0.0.0"
    port: int = 9100
    samples: List[float] = field(default_factory=list)
    samples_file: str = ""
    interval_ms: int = 100
    end_mode: str = "stop"


@dataclass
class TriggerConfigBlock:
    threshold_distance_mm: float = 50.0
    threshold_max_deviation: float = 1.0


@dataclass
class CameraConfigBlock:
    host: str = "127.0.0.1"
    port: int = 2001
    connect_timeout_ms: int = 3000
    capture_timeout_ms: int = 5000
    image_enabled: bool = True
    image_decimate: int = 1
    image_timeout_ms: int = 5000
    image_url: str = ""


@dataclass
class NotifyConfigBlock:
    enabled: bool = False
    url: str = ""
    timeout_ms: int = 3000


@dataclass
class OutputConfigBlock:
    write_files: bool = True
    save_noread_image: bool = True
    feedback: bool = True


@dataclass
class LoadedConfig:
    imports: List[str]
    runtime: RuntimeConfig
    sensor: SensorConfigBlock
    trigger: TriggerConfigBlock
    camera: CameraConfigBlock
    notify: NotifyConfigBlock
    output: OutputConfigBlock
    paths: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "ConfigError",
    "RuntimeConfig",
    "SensorConfigBlock",
    "TriggerConfigBlock",
    "CameraConfigBlock",
    "NotifyConfigBlock",
    "OutputConfigBlock",
    "LoadedConfig",
]
