"""Typed field record and result container produced by the payload decoder."""

from __future__ import annotations

import logging
from dataclasses import FrozenInstanceError, dataclass, field
from enum import Enum

L = logging.getLogger("scan_runtime.decode")

DIGIKEY = "Digi-Key"

FIELD_KEYS = (
    "mfg_pn",
    "manufacturer",
    "traceability",
    "coo",
    "product",
    "qty",
    "serial",
    "date_code",
    "distributor",
    "order_no",
    "line_no",
    "invoice_no",
    "pick",
    "part_id",
    "load_id",
    "signature",
    "unknown",
)


@dataclass(slots=True)
class ScanFields:
    mfg_pn: str | None = None
    manufacturer: str | None = None
    traceability: str | None = None
    coo: str | None = None  # country of origin
    product: str | None = None
    qty: str | None = None
    serial: str | None = None
    date_code: str | None = None
    distributor: str | None = None
    order_no: str | None = None
    line_no: str | None = None
    invoice_no: str | None = None
    pick: str | None = None
    part_id: str | None = None
    load_id: str | None = None
    signature: str | None = None
    unknown: str | None = None
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name, value):
        if getattr(self, "_frozen", False):
            raise FrozenInstanceError(f"cannot assign to field {name!r}")
        object.__setattr__(self, name, value)

    def freeze(self):
        """Make the record read-only; done once the decode is complete."""
        object.__setattr__(self, "_frozen", True)

    def set(self, key: str, value: str) -> bool:
        """Store `value` under `key`; known keys keep their first value.

        Returns False when the write was dropped because the key was already set.
        """
        if key not in FIELD_KEYS:
            raise KeyError(f"unknown scan field {key!r}")
        if self._frozen:
            raise FrozenInstanceError(f"cannot assign to field {key!r}")
        if key != "unknown" and getattr(self, key) is not None:
            L.debug("Field %s already set, dropping %r", key, value)
            return False
        setattr(self, key, value)
        return True

    @property
    def is_digikey(self) -> bool:
        return self.distributor == DIGIKEY

    def as_dict(self) -> dict[str, str]:
        """Flat key -> string mapping with unset keys omitted."""
        out: dict[str, str] = {}
        for key in FIELD_KEYS:
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


class ScanStatus(str, Enum):
    NOREAD = "NOREAD"
    PARTIAL = "PARTIAL"
    IDENTIFIED = "IDENTIFIED"


@dataclass(frozen=True, slots=True)
class ScanResult:
    raw: bytes
    fields: ScanFields = field(default_factory=ScanFields)
    status: ScanStatus = ScanStatus.NOREAD

    def __post_init__(self):
        self.fields.freeze()

    @property
    def success(self) -> bool:
        return self.status is not ScanStatus.NOREAD

    @property
    def identified(self) -> bool:
        return self.status is ScanStatus.IDENTIFIED

    @property
    def part_number(self) -> str | None:
        return self.fields.mfg_pn


__all__ = [
    "DIGIKEY",
    "FIELD_KEYS",
    "ScanFields",
    "ScanResult",
    "ScanStatus",
]
