# -- coding: utf-8 --
"""Operator feedback for captures that did not identify a part."""

import logging
from collections import Counter, deque
from enum import Enum

from core.contracts import ScanRecord
from decode import ScanStatus

L = logging.getLogger("scan_runtime.output.feedback")

SIGNAL_HISTORY = 50


class FeedbackSignal(str, Enum):
    # values are buzzer melodies (Yoctopuce playNotes syntax)
    NOREAD = "C48 C C ,C#8"
    PARTIAL = "'F48 A C G ,C G C G C"


def signal_for(rec: ScanRecord) -> FeedbackSignal | None:
    if rec.status is ScanStatus.NOREAD:
        return FeedbackSignal.NOREAD
    if rec.status is ScanStatus.PARTIAL:
        return FeedbackSignal.PARTIAL
    return None


class LogFeedback:
    """Feedback channel that reports signals in the service log.

    A buzzer driver plugs in by implementing `signal()`.
    """

    def __init__(self, history: int = SIGNAL_HISTORY):
        self.signals: deque[FeedbackSignal] = deque(maxlen=max(int(history), 1))
        self.counts: Counter[FeedbackSignal] = Counter()

    def start(self):
        return None

    def stop(self):
        return None

    def signal(self, kind: FeedbackSignal):
        self.signals.append(kind)
        self.counts[kind] += 1
        L.info("Feedback %s (%s)", kind.name, kind.value)

    async def publish(self, rec: ScanRecord):
        kind = signal_for(rec)
        if kind is not None:
            self.signal(kind)

    async def publish_image(self, rec: ScanRecord):
        _ = rec
        return None


__all__ = ["SIGNAL_HISTORY", "FeedbackSignal", "LogFeedback", "signal_for"]
