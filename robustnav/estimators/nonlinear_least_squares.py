"""
Nonlinear least squares with Gauss-Newton and Levenberg-Marquardt.

Used to fit calibration models that are nonlinear in their parameters
(trilateration) and to refine any robust candidate over its inliers.

Mathematical Formulation:
    Given observations y and model h(x), find
        x̂ = argmin ½‖y - h(x)‖²_W
    with residual r(x) = y - h(x).

    Gauss-Newton update:
        (J'WJ) Δx = J'W r  →  x ← x + Δx

    Levenberg-Marquardt update:
        (J'WJ + μI) Δx = J'W r
    with μ adapted from the gain ratio of each step.

Covariance:
    P = (J'WJ)⁻¹ when W holds inverse variances, otherwise
    P = σ̂² (J'WJ)⁻¹ with σ̂² = r'Wr / (m - n).
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np


@dataclass
class NonlinearLSResult:
    """Result container for nonlinear least squares optimization.

    Attributes:
        x: Estimated parameter vector.
        covariance: Covariance matrix (n × n), or None.
        iterations: Number of iterations performed.
        residuals: Final residuals r = y - h(x̂).
        cost: Final cost value ½‖r‖²_W.
        converged: Whether the solver converged within tolerance.
    """

    x: np.ndarray
    covariance: Optional[np.ndarray]
    iterations: int
    residuals: np.ndarray
    cost: float
    converged: bool


def gauss_newton(
    h: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    y: np.ndarray,
    x0: np.ndarray,
    weights: Optional[np.ndarray] = None,
    max_iter: int = 20,
    tol: float = 1e-10,
    return_covariance: bool = True,
    scale_covariance: bool = True,
) -> NonlinearLSResult:
    """
    Gauss-Newton solver for nonlinear least squares.

    Converges in one step for models affine in x, which makes it the
    natural refiner for known-frame IMU calibration.

    Args:
        h: Model function h: Rⁿ → Rᵐ.
        jacobian: Function returning J = ∂h/∂x (m × n).
        y: Observation vector (m,).
        x0: Initial estimate (n,).
        weights: Optional non-negative row weights (m,).
        max_iter: Maximum number of iterations.
        tol: Relative convergence tolerance on ‖Δx‖.
        return_covariance: If True, compute covariance at final estimate.
        scale_covariance: If True, scale (J'WJ)⁻¹ by the residual variance.
            Set False when weights are true inverse variances.

    Returns:
        NonlinearLSResult containing estimate, covariance and diagnostics.
    """
    return _solve_nonlinear_ls(
        h, jacobian, y, x0, weights, "gn", max_iter, tol,
        return_covariance=return_covariance,
        scale_covariance=scale_covariance,
    )


def levenberg_marquardt(
    h: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    y: np.ndarray,
    x0: np.ndarray,
    weights: Optional[np.ndarray] = None,
    max_iter: int = 50,
    tol: float = 1e-10,
    mu0: float = 1e-3,
    return_covariance: bool = True,
    scale_covariance: bool = True,
) -> NonlinearLSResult:
    """
    Levenberg-Marquardt solver for nonlinear least squares.

    Small μ behaves like Gauss-Newton (fast near the solution); large μ
    behaves like gradient descent (robust far from it). μ shrinks after
    accepted steps and grows after rejected ones.

    Args:
        h: Model function h: Rⁿ → Rᵐ.
        jacobian: Function returning J = ∂h/∂x (m × n).
        y: Observation vector (m,).
        x0: Initial estimate (n,).
        weights: Optional non-negative row weights (m,).
        max_iter: Maximum number of iterations.
        tol: Relative convergence tolerance on ‖Δx‖.
        mu0: Initial damping parameter.
        return_covariance: If True, compute covariance at final estimate.
        scale_covariance: If True, scale (J'WJ)⁻¹ by the residual variance.

    Returns:
        NonlinearLSResult containing estimate, covariance and diagnostics.

    Example:
        Fit a bias b and scale s of one sensor axis, z = b + (1 + s) u:

        >>> u = np.array([-9.81, 0.0, 9.81])
        >>> z = 0.05 + 1.002 * u
        >>> h = lambda p: p[0] + (1.0 + p[1]) * u
        >>> jac = lambda p: np.column_stack([np.ones_like(u), u])
        >>> result = levenberg_marquardt(h, jac, z, x0=np.zeros(2))
        >>> result.x  # ≈ [0.05, 0.002]
    """
    return _solve_nonlinear_ls(
        h, jacobian, y, x0, weights, "lm", max_iter, tol,
        mu0=mu0,
        return_covariance=return_covariance,
        scale_covariance=scale_covariance,
    )


def _solve_nonlinear_ls(
    h: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    y: np.ndarray,
    x0: np.ndarray,
    weights: Optional[np.ndarray],
    method: str,
    max_iter: int,
    tol: float,
    mu0: float = 1e-3,
    return_covariance: bool = True,
    scale_covariance: bool = True,
) -> NonlinearLSResult:
    """Internal solver implementing both Gauss-Newton and Levenberg-Marquardt."""
    y = np.asarray(y, dtype=float)
    x0 = np.asarray(x0, dtype=float)

    if y.ndim != 1:
        raise ValueError(f"y must be 1D array, got shape {y.shape}")
    if x0.ndim != 1:
        raise ValueError(f"x0 must be 1D array, got shape {x0.shape}")
    if method not in ("gn", "lm"):
        raise ValueError(f"Unknown method: {method}. Use 'gn' or 'lm'.")

    m = len(y)
    n = len(x0)
    if m < n:
        raise ValueError(f"Underdetermined problem: {m} observations < {n} unknowns")

    if weights is None:
        w = np.ones(m)
    else:
        w = np.asarray(weights, dtype=float)
        if w.ndim != 1 or len(w) != m:
            raise ValueError(f"weights must be 1D array of length {m}")
        if np.any(w < 0):
            raise ValueError("weights must be non-negative")

    def weighted_cost(r: np.ndarray) -> float:
        return 0.5 * float(np.sum(w * r ** 2))

    x = x0.copy()
    mu = mu0
    nu = 2.0
    converged = False
    iteration = 0

    for iteration in range(max_iter):
        hx = h(x)
        if len(hx) != m:
            raise ValueError(f"h(x) returned {len(hx)} elements, expected {m}")

        J = jacobian(x)
        if J.shape != (m, n):
            raise ValueError(f"Jacobian shape {J.shape}, expected ({m}, {n})")

        r = y - hx
        JtW = J.T * w
        JtWJ = JtW @ J
        JtWr = JtW @ r
        cost = weighted_cost(r)

        if method == "gn":
            try:
                delta_x = np.linalg.solve(JtWJ, JtWr)
            except np.linalg.LinAlgError:
                delta_x = np.linalg.lstsq(JtWJ, JtWr, rcond=None)[0]
            x = x + delta_x

        else:
            while True:
                JtWJ_damped = JtWJ + mu * np.eye(n)
                try:
                    delta_x = np.linalg.solve(JtWJ_damped, JtWr)
                except np.linalg.LinAlgError:
                    delta_x = np.linalg.lstsq(JtWJ_damped, JtWr, rcond=None)[0]

                x_new = x + delta_x
                cost_new = weighted_cost(y - h(x_new))

                # Predicted decrease: ½ Δx'(μΔx + J'Wr)
                predicted_decrease = 0.5 * delta_x @ (mu * delta_x + JtWr)
                actual_decrease = cost - cost_new

                if predicted_decrease > 1e-300:
                    gain_ratio = actual_decrease / predicted_decrease
                else:
                    gain_ratio = 0.0

                if gain_ratio > 0:
                    x = x_new
                    mu = mu * max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
                    nu = 2.0
                    break

                # Rejected step: more gradient-descent-like
                mu = mu * nu
                nu = 2.0 * nu
                if mu > 1e10:
                    break

        if np.linalg.norm(delta_x) <= tol * (np.linalg.norm(x) + tol):
            converged = True
            break

    r = y - h(x)
    cost = weighted_cost(r)

    P = None
    if return_covariance:
        J = jacobian(x)
        JtWJ = (J.T * w) @ J
        P = np.linalg.inv(JtWJ)
        if scale_covariance:
            sigma2 = float(np.sum(w * r ** 2)) / (m - n) if m > n else 1.0
            P = sigma2 * P

    return NonlinearLSResult(
        x=x,
        covariance=P,
        iterations=iteration + 1,
        residuals=r,
        cost=cost,
        converged=converged,
    )
