# -- coding: utf-8 --

import logging
from dataclasses import dataclass
from enum import Enum

L = logging.getLogger("scan_runtime.trigger")

THRESHOLD_DISTANCE_MM = 50.0
THRESHOLD_MAX_DEVIATION = 1.0


class TriggerDecision(str, Enum):
    FIRE = "fire"
    ARM = "arm"
    DISARM = "disarm"
    NO_ACTION = "no_action"


@dataclass
class TriggerThresholds:
    distance_mm: float = THRESHOLD_DISTANCE_MM
    max_deviation: float = THRESHOLD_MAX_DEVIATION


class TriggerController:
    """Maps window statistics to an aim / fire / idle decision.

    Branches are evaluated in order and the first match wins:
      close and stable      -> FIRE
      close or unstable     -> ARM (light the aim pattern to guide placement)
      far and stable        -> DISARM
      anything else         -> NO_ACTION (only reachable on exact threshold values)
    """

    def __init__(self, thresholds: TriggerThresholds | None = None):
        self.thresholds = thresholds or TriggerThresholds()
        self.last_decision: TriggerDecision | None = None

    def decide(self, mean: float, stddev: float) -> TriggerDecision:
        dist = self.thresholds.distance_mm
        dev = self.thresholds.max_deviation
        if mean < dist and stddev < dev:
            decision = TriggerDecision.FIRE
        elif mean < dist or stddev > dev:
            decision = TriggerDecision.ARM
        elif mean > dist and stddev < dev:
            decision = TriggerDecision.DISARM
        else:
            decision = TriggerDecision.NO_ACTION
        if decision is not self.last_decision:
            L.debug(
                "Decision %s -> %s (mean=%.2f stddev=%.3f)",
                self.last_decision.value if self.last_decision else "-",
                decision.value,
                mean,
                stddev,
            )
        self.last_decision = decision
        return decision


__all__ = [
    "THRESHOLD_DISTANCE_MM",
    "THRESHOLD_MAX_DEVIATION",
    "TriggerController",
    "TriggerDecision",
    "TriggerThresholds",
]
