# -- coding: utf-8 --

import asyncio
import logging
import os

from core.lifecycle import AsyncTaskOwner, LoopRunner
from sensor.base import BaseSensor, SampleCallback, SensorConfig, register_sensor

L = logging.getLogger("scan_runtime.sensor.mock")

_END_CHOICES = {"loop", "stop", "hold"}


def load_samples_file(path: str) -> list[float]:
    """One millimetre value per line; blank lines and `#` comments are skipped."""
    if not os.path.isfile(path):
        raise RuntimeError(f"mock samples_file not found: {path}")
    samples = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            text = line.split("#", 1)[0].strip()
            if not text:
                continue
            try:
                samples.append(float(text))
            except ValueError as e:
                raise RuntimeError(f"{path}:{lineno}: not a number: {text!r}") from e
    return samples


@register_sensor("mock")
class MockSensor(BaseSensor):
    """Replays a fixed list of samples at the configured report interval."""

    def __init__(
        self, cfg: SensorConfig, on_sample: SampleCallback, *, loop_runner: LoopRunner
    ):
        super().__init__(cfg, on_sample, loop_runner=loop_runner)
        self._tasks = AsyncTaskOwner(loop_runner=loop_runner, owner_name="mock_sensor")
        self._task = None
        self._samples: list[float] = []
        self.delivered = 0

    def _load(self) -> list[float]:
        if self.cfg.end_mode not in _END_CHOICES:
            raise RuntimeError(
                f"mock end_mode must be one of {sorted(_END_CHOICES)}, got {self.cfg.end_mode!r}"
            )
        samples = list(self.cfg.samples)
        if self.cfg.samples_file:
            samples.extend(load_samples_file(self.cfg.samples_file))
        if not samples:
            raise RuntimeError("mock sensor has no samples (samples / samples_file)")
        return samples

    def start(self):
        if self._task is not None:
            return
        self._samples = self._load()
        self._task = self._tasks.spawn(self._replay())
        L.info(
            "Mock sensor replaying %d samples every %dms (end_mode=%s)",
            len(self._samples),
            self.cfg.interval_ms,
            self.cfg.end_mode,
        )

    def stop(self):
        if self._task is None:
            return
        self._task = None
        self._tasks.cancel_and_clear()
        L.info("Mock sensor stopped")

    def raise_if_failed(self):
        self._tasks.raise_if_failed()

    async def _replay(self):
        interval_s = max(int(self.cfg.interval_ms), 1) / 1000.0
        pos = 0
        while True:
            if pos >= len(self._samples):
                if self.cfg.end_mode == "loop":
                    pos = 0
                elif self.cfg.end_mode == "hold":
                    pos = len(self._samples) - 1
                else:
                    L.info("Mock sensor reached end of samples")
                    return
            self.on_sample(self._samples[pos])
            self.delivered += 1
            pos += 1
            await asyncio.sleep(interval_s)


__all__ = ["MockSensor", "load_samples_file"]
