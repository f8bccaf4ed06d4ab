from .base import CameraConfig, build_camera_config, create_camera_session
from .image import HttpImageFetcher, ImageFetchError
from .session import (
    CMD_AIM_OFF,
    CMD_AIM_ON,
    CMD_CAPTURE,
    CameraSession,
    SessionState,
)
from .v430 import V430Link, v430_link_factory

__all__ = [
    "CameraConfig",
    "build_camera_config",
    "create_camera_session",
    "HttpImageFetcher",
    "ImageFetchError",
    "CMD_AIM_OFF",
    "CMD_AIM_ON",
    "CMD_CAPTURE",
    "CameraSession",
    "SessionState",
    "V430Link",
    "v430_link_factory",
]
