from .base import (
    BaseSensor,
    SensorConfig,
    build_sensor_config,
    create_sensor,
    register_sensor,
)
from .filter import WINDOW_SIZE, MeasurementFilter, MeasurementStats

__all__ = [
    "BaseSensor",
    "SensorConfig",
    "build_sensor_config",
    "create_sensor",
    "register_sensor",
    "MeasurementFilter",
    "MeasurementStats",
    "WINDOW_SIZE",
]
