"""
Adaptive iteration control for robust estimators.

Whenever a better candidate is found, the number of iterations needed to
draw at least one all-inlier subset with probability `confidence` is
recomputed from the best observed inlier ratio w:

    k = ⌈ log(1 - confidence) / log(1 - w^m) ⌉

where m is the subset size. The result is clamped to
[current_iteration, max_iterations] so the loop only moves forward and
never exceeds the hard cap.
"""

import numpy as np


def compute_required_iterations(
    confidence: float,
    inlier_ratio: float,
    subset_size: int,
    current_iteration: int,
    max_iterations: int,
) -> int:
    """
    Recompute the total number of iterations required.

    Args:
        confidence: Target probability in (0, 1) of sampling an all-inlier subset.
        inlier_ratio: Best observed fraction of inliers w in [0, 1].
        subset_size: Number of measurements per subset m (> 0).
        current_iteration: Iterations already executed.
        max_iterations: Hard cap on iterations.

    Returns:
        Total iteration count k with current_iteration <= k <= max_iterations.

    Raises:
        ValueError: If confidence is outside (0, 1), inlier_ratio outside
            [0, 1] or subset_size < 1.

    Example:
        >>> # 50% inliers, 4-point subsets, 99% confidence
        >>> compute_required_iterations(0.99, 0.5, 4, 0, 5000)
        72
        >>> # Every measurement is an inlier: nothing left to do
        >>> compute_required_iterations(0.99, 1.0, 4, 3, 5000)
        3
    """
    if not (0.0 < confidence < 1.0):
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")
    if not (0.0 <= inlier_ratio <= 1.0):
        raise ValueError(f"inlier_ratio must be in [0, 1], got {inlier_ratio}")
    if subset_size < 1:
        raise ValueError(f"subset_size must be positive, got {subset_size}")

    lower = min(max(current_iteration, 0), max_iterations)

    # Probability that a subset contains only inliers
    p_good = inlier_ratio ** subset_size

    if p_good >= 1.0:
        return lower
    if p_good <= 0.0:
        return max_iterations

    denominator = np.log1p(-p_good)
    if denominator >= 0.0:
        # p_good below floating point resolution
        return max_iterations

    required = np.log(1.0 - confidence) / denominator
    if not np.isfinite(required) or required >= max_iterations:
        return max_iterations

    return int(max(lower, int(np.ceil(required))))
