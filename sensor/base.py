# -- coding: utf-8 --

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Type

from core.lifecycle import LoopRunner
from core.registry import register_named, resolve_registered

SensorFactory = Dict[str, Type["BaseSensor"]]
_registry: SensorFactory = {}

SampleCallback = Callable[[float], None]


@dataclass
class SensorConfig:
    host: str = "0.0.0.0"
    port: int = 9100
    samples: list[float] = field(default_factory=list)
    samples_file: str = ""
    interval_ms: int = 100
    end_mode: str = "stop"


class BaseSensor(ABC):
    """A source of distance samples (millimetres) delivered on the service loop.

    `on_sample` is always invoked from the loop thread, one sample at a time.
    """

    def __init__(
        self, cfg: SensorConfig, on_sample: SampleCallback, *, loop_runner: LoopRunner
    ):
        self.cfg = cfg
        self.on_sample = on_sample
        self.loop_runner = loop_runner

    @abstractmethod
    def start(self):
        pass

    @abstractmethod
    def stop(self):
        pass

    def raise_if_failed(self):
        return None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


def register_sensor(name: str):
    return register_named(_registry, name)


def create_sensor(
    name: str, cfg: SensorConfig, on_sample: SampleCallback, **kwargs
) -> BaseSensor:
    cls = resolve_registered(
        _registry,
        name,
        package=__package__ or "sensor",
        unknown_label="sensor type",
    )
    return cls(cfg, on_sample, **kwargs)


def build_sensor_config(cfg_block) -> SensorConfig:
    return SensorConfig(
        host=str(cfg_block.host),
        port=int(cfg_block.port),
        samples=[float(v) for v in (cfg_block.samples or [])],
        samples_file=str(cfg_block.samples_file or ""),
        interval_ms=int(cfg_block.interval_ms),
        end_mode=str(cfg_block.end_mode or "stop").strip().lower(),
    )


__all__ = [
    "BaseSensor",
    "SampleCallback",
    "SensorConfig",
    "build_sensor_config",
    "create_sensor",
    "register_sensor",
]
