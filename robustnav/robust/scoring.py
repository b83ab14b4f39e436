"""
Candidate scoring and robust variant strategies.

Every candidate solution is turned into one residual per measurement and
a variant-specific score. Internally smaller is always better:

| Variant  | Score                                  | Sampling    |
|----------|----------------------------------------|-------------|
| RANSAC   | -#{r_i <= t}                           | uniform     |
| LMedS    | median(r_i²)                           | uniform     |
| MSAC     | Σ min(r_i², t²)                        | uniform     |
| PROSAC   | -#{r_i <= t}                           | progressive |
| PROMedS  | median(r_i²)                           | progressive |

Inliers are always r_i <= t, including for the median-based variants
where they are derived after scoring.

A variant is a single strategy value (RobustVariant) exposing sampling,
scoring and classification, so the orchestrator holds one value and
dispatches through it instead of relying on a class per algorithm.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from robustnav.robust.errors import ConfigurationError
from robustnav.robust.sampling import (
    ProgressiveSubsetSampler,
    SubsetSampler,
    UniformSubsetSampler,
)
from robustnav.robust.types import InliersData, RobustEstimatorMethod


def consensus_score(residuals: np.ndarray, threshold: float) -> float:
    """RANSAC score: negated number of residuals within threshold."""
    return -float(np.count_nonzero(residuals <= threshold))


def median_score(residuals: np.ndarray, threshold: float) -> float:
    """LMedS score: median of squared residuals (threshold unused)."""
    return float(np.median(residuals ** 2))


def truncated_quadratic_score(residuals: np.ndarray, threshold: float) -> float:
    """MSAC score: squared residuals truncated at threshold²."""
    return float(np.sum(np.minimum(residuals ** 2, threshold ** 2)))


def classify_inliers(residuals: np.ndarray, threshold: float) -> np.ndarray:
    """Boolean inlier mask r_i <= threshold."""
    return residuals <= threshold


@dataclass(frozen=True)
class RobustVariant:
    """
    Sampling and scoring policy of one robust algorithm.

    Attributes:
        method: Algorithm identifier.
        score_function: Maps (residuals, threshold) to a score, smaller is better.
        uses_quality_scores: True if sampling is guided by quality scores.
        stop_rule: One of "consensus" (stop when all measurements are
            inliers), "median" (stop when median residual <= stop threshold)
            or "cost" (stop when the score <= stop threshold).
    """

    method: RobustEstimatorMethod
    score_function: Callable[[np.ndarray, float], float]
    uses_quality_scores: bool
    stop_rule: str

    def create_sampler(
        self,
        num_measurements: int,
        subset_size: int,
        max_iterations: int,
        rng: np.random.Generator,
        quality_scores: Optional[np.ndarray] = None,
    ) -> SubsetSampler:
        """Build the subset sampler used by this variant."""
        if self.uses_quality_scores:
            if quality_scores is None:
                raise ConfigurationError(
                    f"{self.method.value} requires quality scores"
                )
            if len(quality_scores) != num_measurements:
                raise ConfigurationError(
                    f"Expected {num_measurements} quality scores, "
                    f"got {len(quality_scores)}"
                )
            return ProgressiveSubsetSampler(
                quality_scores, subset_size, max_iterations, rng
            )
        return UniformSubsetSampler(num_measurements, subset_size, rng)

    def score(self, residuals: np.ndarray, threshold: float) -> float:
        return self.score_function(residuals, threshold)

    def classify(self, residuals: np.ndarray, threshold: float) -> InliersData:
        """Score residuals and derive the inlier mask."""
        residuals = np.asarray(residuals, dtype=float)
        return InliersData(
            inliers=classify_inliers(residuals, threshold),
            residuals=residuals,
            score=self.score(residuals, threshold),
        )

    def should_stop(
        self, inliers_data: InliersData, stop_threshold: Optional[float]
    ) -> bool:
        """Whether the best candidate so far is good enough to stop sampling."""
        if self.stop_rule == "consensus":
            return bool(np.all(inliers_data.inliers))

        if stop_threshold is None:
            return False

        if self.stop_rule == "median":
            # Score is the median of squared residuals
            return inliers_data.score <= stop_threshold ** 2
        return inliers_data.score <= stop_threshold


VARIANTS: Dict[RobustEstimatorMethod, RobustVariant] = {
    RobustEstimatorMethod.RANSAC: RobustVariant(
        method=RobustEstimatorMethod.RANSAC,
        score_function=consensus_score,
        uses_quality_scores=False,
        stop_rule="consensus",
    ),
    RobustEstimatorMethod.LMEDS: RobustVariant(
        method=RobustEstimatorMethod.LMEDS,
        score_function=median_score,
        uses_quality_scores=False,
        stop_rule="median",
    ),
    RobustEstimatorMethod.MSAC: RobustVariant(
        method=RobustEstimatorMethod.MSAC,
        score_function=truncated_quadratic_score,
        uses_quality_scores=False,
        stop_rule="cost",
    ),
    RobustEstimatorMethod.PROSAC: RobustVariant(
        method=RobustEstimatorMethod.PROSAC,
        score_function=consensus_score,
        uses_quality_scores=True,
        stop_rule="consensus",
    ),
    RobustEstimatorMethod.PROMEDS: RobustVariant(
        method=RobustEstimatorMethod.PROMEDS,
        score_function=median_score,
        uses_quality_scores=True,
        stop_rule="median",
    ),
}


def get_variant(method) -> RobustVariant:
    """
    Look up the strategy for a robust method.

    Args:
        method: RobustEstimatorMethod or its name (e.g., "prosac").

    Returns:
        The matching RobustVariant.

    Raises:
        ConfigurationError: If the method is unknown.
    """
    try:
        return VARIANTS[RobustEstimatorMethod.parse(method)]
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
