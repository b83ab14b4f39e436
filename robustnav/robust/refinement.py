"""
Refinement and covariance estimation for robust candidates.

Once the sampling loop has picked its best candidate, the solution can be
re-fitted over its inliers with a weighted (1/σ²) nonlinear least squares
solve, and the parameter covariance can be estimated from the linearized
residual Jacobian:

    P_free = (J'WJ)⁻¹            (all measurements carry a std)
    P_free = σ̂² (J'WJ)⁻¹         (otherwise, σ̂² from the inlier residuals)

The covariance is reported in the full parameter layout; rows and columns
of parameters fixed by configuration are exactly zero.

Refinement never returns a worse fit: if the refined solution has a larger
weighted cost over the inliers than the candidate, the candidate is kept.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from robustnav.robust.errors import RefinementError
from robustnav.robust.problem import CalibrationProblem
from robustnav.robust.types import Measurement

DEFAULT_REFINEMENT_ITERATIONS = 100


@dataclass
class RefinementOutcome:
    """Result of refining a candidate over its inliers.

    Attributes:
        solution: Refined (or kept) full-layout parameter vector.
        covariance: Full-layout covariance, or None if not requested.
        improved: True if the refined solution replaced the candidate.
        initial_cost: Weighted inlier cost of the candidate.
        final_cost: Weighted inlier cost of `solution`.
    """

    solution: np.ndarray
    covariance: Optional[np.ndarray]
    improved: bool
    initial_cost: float
    final_cost: float


def weighted_cost(
    problem: CalibrationProblem,
    measurements: Sequence[Measurement],
    params: np.ndarray,
) -> float:
    """Aggregate cost ½ Σ wᵢ rᵢ² of the given measurements."""
    if len(measurements) == 0:
        return 0.0
    y = np.concatenate([problem.observation(m.value) for m in measurements])
    h = np.concatenate([problem.predict(params, m.value) for m in measurements])
    w = problem.measurement_weights(measurements)
    return 0.5 * float(np.sum(w * (y - h) ** 2))


def expand_covariance(covariance_free: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    Embed the covariance of free parameters in the full layout.

    Args:
        covariance_free: Covariance of free parameters (k × k).
        mask: Free-parameter mask (P,) with k True entries.

    Returns:
        Covariance (P × P) with exact zeros for fixed parameters.
    """
    mask = np.asarray(mask, dtype=bool)
    k = int(np.count_nonzero(mask))
    if covariance_free.shape != (k, k):
        raise ValueError(
            f"Covariance shape {covariance_free.shape} does not match {k} free parameters"
        )
    full = np.zeros((len(mask), len(mask)))
    full[np.ix_(mask, mask)] = covariance_free
    return full


def _select(measurements: Sequence[Measurement], inliers: np.ndarray):
    return [measurements[i] for i in np.flatnonzero(inliers)]


def _check_determined(
    problem: CalibrationProblem, subset: Sequence[Measurement], mask: np.ndarray
) -> None:
    free = int(np.count_nonzero(mask))
    rows = len(subset) * problem.observation_dimension
    if rows < free:
        raise RefinementError(
            f"{len(subset)} inliers give {rows} equations for {free} free parameters"
        )


def estimate_covariance(
    problem: CalibrationProblem,
    measurements: Sequence[Measurement],
    params: np.ndarray,
    inliers: np.ndarray,
    mask: np.ndarray,
) -> np.ndarray:
    """
    Covariance of a solution linearized over its inliers.

    Args:
        problem: Calibration model.
        measurements: All measurements.
        params: Full-layout solution.
        inliers: Boolean inlier mask (N,).
        mask: Free-parameter mask (P,).

    Returns:
        Full-layout covariance (P × P).

    Raises:
        RefinementError: If the inliers do not determine the parameters or
            the normal matrix is singular.
    """
    subset = _select(measurements, inliers)
    _check_determined(problem, subset, mask)

    y, h, J = problem.stack(params, subset)
    J = J[:, mask]
    w = problem.measurement_weights(subset)
    JtWJ = (J.T * w) @ J

    n = JtWJ.shape[0]
    if np.linalg.matrix_rank(JtWJ) < n:
        raise RefinementError("Normal matrix is singular; covariance unavailable")

    try:
        P = np.linalg.inv(JtWJ)
    except np.linalg.LinAlgError as e:
        raise RefinementError(f"Failed to invert normal matrix: {e}") from e

    if not all(m.std is not None for m in subset):
        m_rows = len(y)
        r = y - h
        sigma2 = float(np.sum(w * r ** 2)) / (m_rows - n) if m_rows > n else 1.0
        P = sigma2 * P

    return expand_covariance(P, mask)


def refine_solution(
    problem: CalibrationProblem,
    measurements: Sequence[Measurement],
    params: np.ndarray,
    inliers: np.ndarray,
    mask: np.ndarray,
    compute_covariance: bool = False,
    max_iter: int = DEFAULT_REFINEMENT_ITERATIONS,
) -> RefinementOutcome:
    """
    Weighted re-fit of a candidate restricted to its inliers.

    Args:
        problem: Calibration model.
        measurements: All measurements.
        params: Candidate full-layout solution (starting point).
        inliers: Boolean inlier mask (N,).
        mask: Free-parameter mask (P,).
        compute_covariance: Also estimate the covariance at the final solution.
        max_iter: Maximum Levenberg-Marquardt iterations.

    Returns:
        RefinementOutcome.

    Raises:
        RefinementError: If there are too few inliers, the solver does not
            converge, produces non-finite values, or the system is singular.
    """
    params = np.asarray(params, dtype=float)
    subset = _select(measurements, inliers)
    _check_determined(problem, subset, mask)

    initial_cost = weighted_cost(problem, subset, params)

    try:
        result = problem.nonlinear_solution(
            subset, mask, params, weighted=True, max_iter=max_iter
        )
    except (ValueError, np.linalg.LinAlgError) as e:
        raise RefinementError(f"Refinement failed: {e}") from e

    if not result.converged:
        raise RefinementError(
            f"Refinement did not converge after {result.iterations} iterations"
        )
    if not np.all(np.isfinite(result.x)):
        raise RefinementError("Refinement produced non-finite parameters")

    refined = params.copy()
    refined[mask] = result.x
    final_cost = weighted_cost(problem, subset, refined)

    improved = final_cost <= initial_cost
    solution = refined if improved else params
    cost = final_cost if improved else initial_cost

    covariance = None
    if compute_covariance:
        covariance = estimate_covariance(problem, measurements, solution, inliers, mask)

    return RefinementOutcome(
        solution=solution,
        covariance=covariance,
        improved=improved,
        initial_cost=initial_cost,
        final_cost=cost,
    )
