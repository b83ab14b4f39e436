"""Data types shared by the robust estimation engine.

This module defines the measurement wrapper, the per-candidate inlier
record, the estimation result and the listener capability object used by
RobustEstimator.

Design principles:
    - Measurements are frozen (immutable); the engine never mutates input data
    - Results are plain dataclasses produced fresh on every calibrate() call
    - Listener methods are no-ops by default; override only what you need
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np


class RobustEstimatorMethod(str, Enum):
    """Robust estimation algorithm variants."""

    RANSAC = "ransac"
    LMEDS = "lmeds"
    MSAC = "msac"
    PROSAC = "prosac"
    PROMEDS = "promeds"

    @classmethod
    def parse(cls, method: "RobustEstimatorMethod | str") -> "RobustEstimatorMethod":
        """Accept an enum member or its (case-insensitive) name."""
        if isinstance(method, cls):
            return method
        try:
            return cls(str(method).lower())
        except ValueError:
            valid = [m.value for m in cls]
            raise ValueError(f"method must be one of {valid}, got {method!r}")


class EstimatorState(Enum):
    """Lifecycle state of a robust estimator."""

    NOT_READY = "not_ready"
    READY = "ready"
    RUNNING = "running"


@dataclass(frozen=True)
class Measurement:
    """A single sample plus its optional standard deviation.

    The value is opaque to the engine; only the CalibrationProblem knows
    how to interpret it. When a standard deviation is provided it becomes
    a 1/σ² weight during refinement.

    Attributes:
        value: Problem-specific sample (e.g., FrameBodyKinematics, RangingReading).
        std: Standard deviation of the observation, or None if unknown.

    Example:
        >>> m = Measurement(value=reading, std=0.1)
        >>> m.weight
        100.0
    """

    value: Any
    std: Optional[float] = None

    def __post_init__(self) -> None:
        if self.std is not None:
            if not np.isfinite(self.std) or self.std <= 0.0:
                raise ValueError(f"std must be positive and finite, got {self.std}")

    @property
    def weight(self) -> float:
        """Refinement weight 1/σ² (1.0 when no standard deviation is known)."""
        if self.std is None:
            return 1.0
        return 1.0 / (self.std ** 2)


@dataclass
class InliersData:
    """Inlier classification of one candidate solution.

    Attributes:
        inliers: Boolean mask (N,), True where residual <= threshold.
        residuals: Non-negative residual per measurement (N,).
        score: Variant-specific score (smaller is better).
    """

    inliers: np.ndarray
    residuals: np.ndarray
    score: float

    @property
    def num_inliers(self) -> int:
        return int(np.count_nonzero(self.inliers))

    @property
    def inlier_ratio(self) -> float:
        n = len(self.inliers)
        return self.num_inliers / n if n > 0 else 0.0

    @property
    def inlier_indices(self) -> np.ndarray:
        return np.flatnonzero(self.inliers)


@dataclass
class EstimationResult:
    """Outcome of a successful RobustEstimator.calibrate() call.

    Attributes:
        solution: Estimated parameter vector (full layout, fixed entries included).
        covariance: Parameter covariance (P × P), or None if not computed or
            unavailable. Rows/columns of fixed parameters are exactly zero.
        inliers_data: Inlier classification of the best candidate.
        method: Robust variant that produced the result.
        iterations: Number of sampling iterations executed.
        refined: True if `solution` is the refined one.
        preliminary_solution: Best candidate before refinement.
    """

    solution: np.ndarray
    covariance: Optional[np.ndarray]
    inliers_data: InliersData
    method: RobustEstimatorMethod
    iterations: int
    refined: bool
    preliminary_solution: np.ndarray


class RobustEstimatorListener:
    """Receives calibration events from a RobustEstimator.

    Callbacks run synchronously on the thread calling calibrate(). The
    estimator is locked while they run, so any mutator invoked from a
    callback raises ConcurrencyError (except from on_estimate_end, which
    is invoked once the estimator is unlocked).
    """

    def on_estimate_start(self, estimator) -> None:
        pass

    def on_estimate_end(self, estimator) -> None:
        pass

    def on_estimate_next_iteration(self, estimator, iteration: int) -> None:
        pass

    def on_estimate_progress_change(self, estimator, progress: float) -> None:
        pass
