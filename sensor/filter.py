"""Sliding-window statistics over raw distance samples."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass

import numpy as np

WINDOW_SIZE = 5


@dataclass(frozen=True, slots=True)
class MeasurementStats:
    mean: float
    stddev: float
    samples: tuple[float, ...]


class MeasurementFilter:
    """Mean and population standard deviation of the last `size` samples.

    Nothing is emitted until the window is full. Statistics include the newest
    sample; the oldest one is evicted only after they are computed.
    """

    def __init__(self, size: int = WINDOW_SIZE):
        if size < 1:
            raise ValueError("window size must be >= 1")
        self.size = size
        self._window: deque[float] = deque()

    def ingest(self, sample: float) -> MeasurementStats | None:
        self._window.append(float(sample))
        if len(self._window) < self.size:
            return None
        values = np.fromiter(self._window, dtype=np.float64, count=len(self._window))
        mean = float(values.mean())
        # sqrt(E[x^2] - E[x]^2); round-off can push the difference just below 0
        var = float((values * values).mean()) - mean * mean
        stats = MeasurementStats(
            mean=mean,
            stddev=math.sqrt(max(var, 0.0)),
            samples=tuple(self._window),
        )
        self._window.popleft()
        return stats

    def reset(self):
        self._window.clear()

    @property
    def window(self) -> tuple[float, ...]:
        return tuple(self._window)

    def __len__(self) -> int:
        return len(self._window)


__all__ = ["MeasurementFilter", "MeasurementStats", "WINDOW_SIZE"]
