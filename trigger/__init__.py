from .controller import (
    THRESHOLD_DISTANCE_MM,
    THRESHOLD_MAX_DEVIATION,
    TriggerController,
    TriggerDecision,
    TriggerThresholds,
)

__all__ = [
    "THRESHOLD_DISTANCE_MM",
    "THRESHOLD_MAX_DEVIATION",
    "TriggerController",
    "TriggerDecision",
    "TriggerThresholds",
]
