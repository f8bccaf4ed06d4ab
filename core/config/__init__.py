"""Config package facade: YAML loading, typed blocks and value validation."""

from .loader import load_config
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
from .validate import validate_config

__all__ = [
    "CameraConfigBlock",
    "ConfigError",
    "LoadedConfig",
    "NotifyConfigBlock",
    "OutputConfigBlock",
    "RuntimeConfig",
    "SensorConfigBlock",
    "TriggerConfigBlock",
    "load_config",
    "validate_config",
]
