# -- coding: utf-8 --
"""Decoder for the GS-delimited payload returned by the camera after a capture.

A payload mixes several labelling conventions in one byte stream: TT Electronics
pipe-delimited fields, ANSI/MH10.8 data identifiers and distributor specific
prefixes (Digi-Key, Mouser, Farnell). Each segment is matched against RULES
top-down and the first rule whose predicate accepts it extracts the value.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from .fields import DIGIKEY, ScanFields, ScanResult, ScanStatus

L = logging.getLogger("scan_runtime.decode.parser")

EOT = 0x04
LF = 0x0A
CR = 0x0D
GS = 0x1D
RS = 0x1E

TRAILER_BYTES = frozenset((EOT, CR, LF, RS))
RS_MARKER = "<RS>"
NOREAD = "NOREAD"

# ASCII whitespace only; str.strip() would also eat GS/RS.
_TRIM_CHARS = " \t\r\n\x0b\x0c"

_DATE_2 = re.compile(r"[4-9]D")
_DATE_3 = re.compile(r"1[0-6]D")

# Prefixes that only carry meaning after a bare "K" segment announced a
# Digi-Key label: prefix -> (field, value offset). None means padding.
DIGIKEY_PREFIXES: dict[str, tuple[str, int] | None] = {
    "1K": ("order_no", 2),
    "4K": ("line_no", 2),
    "10K": ("invoice_no", 3),
    "11K": ("line_no", 3),
    "11Z": ("pick", 3),
    "12Z": ("part_id", 3),
    "13Z": ("load_id", 3),
    "20Z": None,
}

Predicate = Callable[[str, ScanFields], bool]
Extractor = Callable[[str, ScanFields], None]


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Predicate
    extract: Extractor


def _prefix(p: str) -> Predicate:
    return lambda seg, _fields: seg.startswith(p)


def _take(key: str, offset: int) -> Extractor:
    def extract(seg: str, out: ScanFields):
        out.set(key, seg[offset:])

    return extract


def _extract_gwcr(seg: str, out: ScanFields):
    # GWCR<pn>|<qty>|<date code>|<5 chars><coo 2 chars><traceability>
    parts = seg.split("|")
    out.set("mfg_pn", parts[0])
    if len(parts) > 1:
        out.set("qty", parts[1])
    if len(parts) > 2:
        out.set("date_code", parts[2])
    if len(parts) > 3:
        out.set("coo", parts[3][5:7])
        out.set("traceability", parts[3][7:])
    else:
        L.debug("GWCR segment with %d parts: %r", len(parts), seg)


def _extract_k(seg: str, out: ScanFields):
    if len(seg) == 1:
        # Empty customer order number: Digi-Key labels start their block this way
        out.set("distributor", DIGIKEY)
    else:
        out.set("order_no", seg[1:])


def _digikey_prefix(seg: str) -> str | None:
    for prefix in DIGIKEY_PREFIXES:
        if seg.startswith(prefix):
            return prefix
    return None


def _is_digikey_segment(seg: str, out: ScanFields) -> bool:
    return out.is_digikey and _digikey_prefix(seg) is not None


def _extract_digikey(seg: str, out: ScanFields):
    prefix = _digikey_prefix(seg)
    target = DIGIKEY_PREFIXES.get(prefix) if prefix else None
    if target is None:
        return  # 20Z zero padding
    key, offset = target
    out.set(key, seg[offset:])


RULES: tuple[Rule, ...] = (
    Rule("gwcr", _prefix("GWCR"), _extract_gwcr),
    Rule("signature", lambda seg, _f: "[)>" in seg, lambda seg, out: out.set("signature", seg)),
    Rule("1P", _prefix("1P"), _take("mfg_pn", 2)),
    Rule("1V", _prefix("1V"), _take("manufacturer", 2)),
    Rule("1T", _prefix("1T"), _take("traceability", 2)),
    Rule("4L", _prefix("4L"), _take("coo", 2)),
    Rule("P", _prefix("P"), _take("product", 1)),
    Rule("Q", _prefix("Q"), _take("qty", 1)),
    Rule("S", _prefix("S"), _take("serial", 1)),
    Rule("nD", lambda seg, _f: bool(_DATE_2.fullmatch(seg[:2])), _take("date_code", 2)),
    Rule("1nD", lambda seg, _f: bool(_DATE_3.fullmatch(seg[:3])), _take("date_code", 3)),
    Rule("K", _prefix("K"), _extract_k),
    Rule("digikey", _is_digikey_segment, _extract_digikey),
    Rule("11K", _prefix("11K"), _take("invoice_no", 3)),  # Mouser
    Rule("14K", _prefix("14K"), _take("line_no", 3)),  # Mouser
    Rule("unknown", lambda _seg, _f: True, lambda seg, out: out.set("unknown", seg)),
)


def strip_trailer(raw: bytes) -> bytes:
    end = len(raw)
    while end > 0 and raw[end - 1] in TRAILER_BYTES:
        end -= 1
    return raw[:end]


def split_segments(raw: bytes) -> list[str]:
    """Split on GS, trim each segment and make embedded RS bytes printable."""
    body = strip_trailer(raw)
    segments = []
    for chunk in body.split(bytes((GS,))):
        text = chunk.decode("utf-8", errors="replace").strip(_TRIM_CHARS)
        if not text:
            continue
        segments.append(text.replace(chr(RS), RS_MARKER))
    return segments


def match_rule(segment: str, out: ScanFields, rules=RULES) -> Rule:
    for rule in rules:
        if rule.matches(segment, out):
            return rule
    raise LookupError(f"no rule matched {segment!r}")  # pragma: no cover


class ResultParser:
    def __init__(self, rules: tuple[Rule, ...] = RULES):
        self.rules = rules

    def parse(self, raw: bytes) -> ScanResult:
        raw = bytes(raw)
        segments = split_segments(raw)
        if not segments or NOREAD in segments:
            return ScanResult(raw=raw, fields=ScanFields(), status=ScanStatus.NOREAD)

        out = ScanFields()
        for seg in segments:
            rule = match_rule(seg, out, self.rules)
            L.debug("segment %r -> rule %s", seg, rule.name)
            rule.extract(seg, out)

        status = ScanStatus.IDENTIFIED if out.mfg_pn else ScanStatus.PARTIAL
        return ScanResult(raw=raw, fields=out, status=status)


__all__ = [
    "DIGIKEY_PREFIXES",
    "NOREAD",
    "RS_MARKER",
    "RULES",
    "ResultParser",
    "Rule",
    "match_rule",
    "split_segments",
    "strip_trailer",
]
