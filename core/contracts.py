"""Data contracts shared by the camera session and the output channels."""

from dataclasses import dataclass
from datetime import datetime

from decode.fields import ScanResult, ScanStatus


@dataclass(slots=True)
class CaptureRequest:
    capture_seq: int = 0
    deadline: float = 0.0  # loop.time() seconds
    attempts: int = 1


@dataclass(slots=True)
class ScanRecord:
    capture_seq: int = 0
    stamp: str = ""
    captured_at: datetime | None = None
    result: ScanResult | None = None
    attempts: int = 1
    image: bytes | None = None
    image_error: str | None = None

    @property
    def status(self) -> ScanStatus:
        return self.result.status if self.result else ScanStatus.NOREAD

    @property
    def part_number(self) -> str | None:
        return self.result.part_number if self.result else None


__all__ = [
    "CaptureRequest",
    "ScanRecord",
]
