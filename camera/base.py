# -- coding: utf-8 --

from dataclasses import dataclass

from decode import ResultParser

from .image import HttpImageFetcher
from .session import CameraSession, CaptureSink
from .v430 import DEFAULT_PORT, v430_link_factory


@dataclass
class CameraConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    connect_timeout_ms: int = 3000
    capture_timeout_ms: int = 5000
    image_enabled: bool = True
    image_decimate: int = 1
    image_timeout_ms: int = 5000
    image_url: str = ""
    save_noread_image: bool = True


def build_camera_config(cfg_block, *, save_noread_image: bool = True) -> CameraConfig:
    return CameraConfig(
        host=str(cfg_block.host),
        port=int(cfg_block.port),
        connect_timeout_ms=int(cfg_block.connect_timeout_ms),
        capture_timeout_ms=int(cfg_block.capture_timeout_ms),
        image_enabled=bool(cfg_block.image_enabled),
        image_decimate=int(cfg_block.image_decimate),
        image_timeout_ms=int(cfg_block.image_timeout_ms),
        image_url=str(cfg_block.image_url or ""),
        save_noread_image=bool(save_noread_image),
    )


def create_camera_session(
    cfg: CameraConfig,
    *,
    sink: CaptureSink | None = None,
    parser: ResultParser | None = None,
) -> CameraSession:
    image_source = None
    if cfg.image_enabled:
        kwargs = {"timeout_ms": cfg.image_timeout_ms}
        if cfg.image_url:
            kwargs["url_template"] = cfg.image_url
        image_source = HttpImageFetcher(cfg.host, **kwargs)
    return CameraSession(
        v430_link_factory(cfg.host, cfg.port, connect_timeout_ms=cfg.connect_timeout_ms),
        parser=parser,
        sink=sink,
        image_source=image_source,
        capture_timeout_ms=cfg.capture_timeout_ms,
        image_decimate=cfg.image_decimate,
        save_noread_image=cfg.save_noread_image,
        name=f"V430-F@{cfg.host}:{cfg.port}",
    )


__all__ = [
    "CameraConfig",
    "build_camera_config",
    "create_camera_session",
]
