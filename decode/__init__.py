from .fields import DIGIKEY, FIELD_KEYS, ScanFields, ScanResult, ScanStatus
from .parser import RULES, ResultParser, Rule, split_segments

__all__ = [
    "DIGIKEY",
    "FIELD_KEYS",
    "ScanFields",
    "ScanResult",
    "ScanStatus",
    "RULES",
    "ResultParser",
    "Rule",
    "split_segments",
]
