"""
Linear least squares for calibration subsets.

Calibration models that are affine in their parameters (accelerometer and
gyroscope known-frame models, linearized trilateration) reduce to a
stacked linear system A x = b, one block of rows per measurement. This
module solves that system, optionally with per-row weights wᵢ = 1/σᵢ².

Functions:
    - linear_least_squares: LS / WLS with rank check and covariance
    - expand_measurement_weights: repeat per-measurement weights over rows
"""

from typing import Optional, Tuple

import numpy as np


def linear_least_squares(
    A: np.ndarray,
    b: np.ndarray,
    weights: Optional[np.ndarray] = None,
    return_covariance: bool = False,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Solve x̂ = argmin (Ax - b)' W (Ax - b) with W = diag(weights).

    Solution: x̂ = (A'WA)⁻¹ A'Wb

    When weights are inverse variances the covariance is P = (A'WA)⁻¹.
    Without weights the residual variance σ̂² = ‖r‖²/(m - n) scales it,
    falling back to σ̂² = 1 for an exactly determined system.

    Args:
        A: Design matrix (m × n), m >= n.
        b: Observation vector (m,).
        weights: Optional non-negative weight per row (m,).
        return_covariance: If True, also compute P.

    Returns:
        Tuple of:
            - x_hat: Estimated parameters (n,).
            - P: Covariance (n × n), or None if return_covariance is False.

    Raises:
        ValueError: If dimensions mismatch, the system is underdetermined,
            weights are negative, or the (weighted) system is rank deficient.

    Example:
        >>> # Bias + scale of one axis from three reference forces
        >>> f_true = np.array([-9.81, 0.0, 9.81])
        >>> A = np.column_stack([np.ones(3), f_true])
        >>> b = 0.05 + 1.01 * f_true
        >>> x_hat, _ = linear_least_squares(A, b)   # [0.05, 1.01]
    """
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)

    if A.ndim != 2 or b.ndim != 1:
        raise ValueError(f"A must be 2D and b must be 1D. Got A: {A.shape}, b: {b.shape}")

    m, n = A.shape
    if len(b) != m:
        raise ValueError(f"Dimension mismatch: A has {m} rows, b has {len(b)} elements")
    if m < n:
        raise ValueError(f"Underdetermined system: m={m} < n={n}. Need m ≥ n.")

    if weights is None:
        w = np.ones(m)
    else:
        w = np.asarray(weights, dtype=float)
        if w.shape != (m,):
            raise ValueError(f"weights must have shape ({m},), got {w.shape}")
        if np.any(w < 0):
            raise ValueError("Weights must be non-negative")

    AtW = A.T * w
    AtWA = AtW @ A
    AtWb = AtW @ b

    rank = np.linalg.matrix_rank(AtWA)
    if rank < n:
        raise ValueError(f"A'WA is rank deficient: rank={rank} < n={n}")

    try:
        x_hat = np.linalg.solve(AtWA, AtWb)
    except np.linalg.LinAlgError as e:
        raise ValueError(f"Failed to solve normal equations: {e}")

    P = None
    if return_covariance:
        P = np.linalg.inv(AtWA)
        if weights is None:
            residuals = b - A @ x_hat
            sigma2 = np.sum(residuals ** 2) / (m - n) if m > n else 1.0
            P = sigma2 * P

    return x_hat, P


def expand_measurement_weights(weights: np.ndarray, rows_per_measurement: int) -> np.ndarray:
    """
    Repeat one weight per measurement over that measurement's rows.

    Args:
        weights: Weight per measurement (k,).
        rows_per_measurement: Observation dimension d of each measurement.

    Returns:
        Row weights (k·d,).

    Example:
        >>> expand_measurement_weights(np.array([1.0, 4.0]), 3)
        array([1., 1., 1., 4., 4., 4.])
    """
    weights = np.asarray(weights, dtype=float)
    if weights.ndim != 1:
        raise ValueError(f"weights must be 1D, got shape {weights.shape}")
    if rows_per_measurement < 1:
        raise ValueError(
            f"rows_per_measurement must be positive, got {rows_per_measurement}"
        )
    return np.repeat(weights, rows_per_measurement)
