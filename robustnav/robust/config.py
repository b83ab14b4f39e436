"""Configuration of the robust estimation engine.

All options of a RobustEstimator live in one frozen dataclass with named,
defaulted fields that is validated once at construction. Changing options
means building a new (validated) copy with `with_changes`.

Example:
    >>> config = RobustEstimatorConfig(confidence=0.999, max_iterations=2000)
    >>> config = config.with_changes(common_axis_used=True)
    >>> config = load_config("calibration.json")
"""

import json
import warnings
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

from robustnav.robust.errors import ConfigurationError

DEFAULT_CONFIDENCE = 0.99
DEFAULT_MAX_ITERATIONS = 5000
DEFAULT_PROGRESS_DELTA = 0.05


@dataclass(frozen=True)
class RobustEstimatorConfig:
    """Options controlling a robust calibration.

    Attributes:
        threshold: Residual threshold used to classify inliers. None uses the
            default threshold of the calibration problem.
        stop_threshold: Score below which the sampling loop terminates early.
            For median-based variants (LMedS, PROMedS) it is compared against
            the median residual; for MSAC against the truncated cost. Counting
            variants (RANSAC, PROSAC) stop once every measurement is an inlier.
            None disables threshold-based stopping.
        confidence: Target probability of sampling an all-inlier subset, in (0, 1).
        max_iterations: Hard cap on sampling iterations (> 0).
        progress_delta: Minimum progress change between progress callbacks, in [0, 1].
        common_axis_used: Fix the cross-coupling terms of the common-axis
            assumption to zero.
        linear_calibrator_used: Fit preliminary solutions with the linear solver
            (True) or with the nonlinear solver from the initial solution (False).
        preliminary_solution_refined: Refine every candidate with the nonlinear
            solver over its own subset.
        result_refined: Refine the best candidate over its inliers.
        refinement_required: Make a failed refinement fatal (RefinementError)
            instead of falling back to the unrefined candidate.
        covariance_kept: Compute and keep the parameter covariance.
        preliminary_subset_size: Subset size used for sampling. None uses the
            problem minimum; otherwise it must be >= that minimum.
        random_seed: Seed of the subset sampler. With a seed, repeated
            calibrations of an unchanged estimator give identical results.
    """

    threshold: Optional[float] = None
    stop_threshold: Optional[float] = None
    confidence: float = DEFAULT_CONFIDENCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    progress_delta: float = DEFAULT_PROGRESS_DELTA
    common_axis_used: bool = False
    linear_calibrator_used: bool = True
    preliminary_solution_refined: bool = False
    result_refined: bool = True
    refinement_required: bool = False
    covariance_kept: bool = True
    preliminary_subset_size: Optional[int] = None
    random_seed: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate option values."""
        if self.threshold is not None:
            if not np.isfinite(self.threshold) or self.threshold <= 0.0:
                raise ConfigurationError(
                    f"threshold must be positive, got {self.threshold}"
                )

        if self.stop_threshold is not None:
            if not np.isfinite(self.stop_threshold) or self.stop_threshold <= 0.0:
                raise ConfigurationError(
                    f"stop_threshold must be positive, got {self.stop_threshold}"
                )

        if not (0.0 < self.confidence < 1.0):
            raise ConfigurationError(
                f"confidence must be in (0, 1), got {self.confidence}"
            )
        if self.confidence > 0.9999:
            warnings.warn(
                f"confidence of {self.confidence} will usually drive the loop to "
                f"max_iterations ({self.max_iterations}).",
                UserWarning,
            )

        if isinstance(self.max_iterations, bool) or not isinstance(
            self.max_iterations, (int, np.integer)
        ):
            raise ConfigurationError(
                f"max_iterations must be an integer, got {type(self.max_iterations)}"
            )
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be positive, got {self.max_iterations}"
            )

        if not (0.0 <= self.progress_delta <= 1.0):
            raise ConfigurationError(
                f"progress_delta must be in [0, 1], got {self.progress_delta}"
            )

        if self.preliminary_subset_size is not None:
            if isinstance(self.preliminary_subset_size, bool) or not isinstance(
                self.preliminary_subset_size, (int, np.integer)
            ):
                raise ConfigurationError(
                    "preliminary_subset_size must be an integer, "
                    f"got {type(self.preliminary_subset_size)}"
                )
            if self.preliminary_subset_size < 1:
                raise ConfigurationError(
                    "preliminary_subset_size must be positive, "
                    f"got {self.preliminary_subset_size}"
                )

    def with_changes(self, **changes: Any) -> "RobustEstimatorConfig":
        """Return a validated copy with the given fields replaced."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigurationError(f"Unknown configuration options: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RobustEstimatorConfig":
        """Build a configuration from a plain dictionary (e.g., parsed JSON)."""
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ConfigurationError(f"Unknown configuration options: {sorted(unknown)}")
        return cls(**data)


def load_config(path: Union[str, Path]) -> RobustEstimatorConfig:
    """Load a RobustEstimatorConfig from a JSON file.

    The file holds a single object whose keys are RobustEstimatorConfig
    field names, for example::

        {"confidence": 0.999, "max_iterations": 2000, "random_seed": 7}

    Args:
        path: Path to the JSON file.

    Returns:
        Validated configuration.

    Raises:
        ConfigurationError: If the file is not a JSON object or holds
            unknown or invalid options.
    """
    path = Path(path)
    with open(path, "r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{path} must contain a JSON object, got {type(data).__name__}"
        )

    return RobustEstimatorConfig.from_dict(data)
