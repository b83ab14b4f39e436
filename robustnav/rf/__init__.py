"""
Range-based indoor positioning with outlier rejection.

Submodules:
    types: RangingReading (distance to a located radio source)
    positioning: closed-form multilateration, ranging position problem
        and the robust position estimator
"""

from robustnav.rf.types import RangingReading
from robustnav.rf.positioning import (
    DEFAULT_RANGING_THRESHOLD,
    RangingPositionProblem,
    RobustRangingPositionEstimator,
    linear_multilateration,
    ranging_measurements,
)

__all__ = [
    "RangingReading",
    "DEFAULT_RANGING_THRESHOLD",
    "linear_multilateration",
    "RangingPositionProblem",
    "RobustRangingPositionEstimator",
    "ranging_measurements",
]
