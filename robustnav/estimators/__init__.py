"""
Least squares solvers used by the calibration problems.

Available estimators:
    - Linear / weighted linear least squares (closed-form subset fits)
    - Nonlinear least squares (Gauss-Newton, Levenberg-Marquardt) for
      nonlinear preliminary fits and inlier refinement
"""

from robustnav.estimators.least_squares import (
    linear_least_squares,
    expand_measurement_weights,
)
from robustnav.estimators.nonlinear_least_squares import (
    gauss_newton,
    levenberg_marquardt,
    NonlinearLSResult,
)

__all__ = [
    # Linear LS
    "linear_least_squares",
    "expand_measurement_weights",
    # Nonlinear LS
    "gauss_newton",
    "levenberg_marquardt",
    "NonlinearLSResult",
]
