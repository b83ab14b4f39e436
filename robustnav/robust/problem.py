"""
Interface between the robust engine and a concrete calibration model.

The engine knows nothing about accelerometers, gyroscopes or radio
sources. A CalibrationProblem tells it how to:

    - predict an observation from a parameter vector (the sensor model),
    - measure the residual of one measurement against a candidate,
    - fit a preliminary solution from a minimal subset (linear or nonlinear),
    - linearize the model for refinement and covariance estimation.

Parameters always use the full layout (parameter_count entries). A boolean
mask of free parameters selects what is actually estimated; fixed entries
keep the value returned by initial_parameters() (e.g., cross-coupling terms
zeroed under the common-axis assumption).
"""

from abc import ABC, abstractmethod
from typing import Sequence, Tuple

import numpy as np

from robustnav.estimators.least_squares import (
    expand_measurement_weights,
    linear_least_squares,
)
from robustnav.estimators.nonlinear_least_squares import (
    NonlinearLSResult,
    levenberg_marquardt,
)
from robustnav.robust.types import Measurement


class CalibrationProblem(ABC):
    """Abstract base class for models fitted by RobustEstimator."""

    #: Names of the parameters in full-layout order
    parameter_names: Tuple[str, ...] = ()

    #: Number of scalar observations contributed by one measurement
    observation_dimension: int = 1

    #: Inlier threshold used when the configuration does not set one
    default_threshold: float = 1e-2

    @property
    def parameter_count(self) -> int:
        return len(self.parameter_names)

    def free_parameters(self, common_axis_used: bool = False) -> np.ndarray:
        """
        Mask of estimated parameters.

        Args:
            common_axis_used: Whether the common-axis assumption holds.

        Returns:
            Boolean array (parameter_count,), True for free parameters.
        """
        return np.ones(self.parameter_count, dtype=bool)

    def minimum_subset_size(self, common_axis_used: bool = False) -> int:
        """Smallest number of measurements that determines the free parameters."""
        free = int(np.count_nonzero(self.free_parameters(common_axis_used)))
        return int(np.ceil(free / self.observation_dimension))

    def fix_parameters(self, params: np.ndarray, mask: np.ndarray) -> np.ndarray:
        """
        Set the values of fixed parameters.

        The default keeps params unchanged. Problems whose fixed entries
        have a prescribed value (e.g., zero cross-coupling under the
        common-axis assumption) override this.
        """
        return params

    @abstractmethod
    def initial_parameters(self, measurements: Sequence[Measurement]) -> np.ndarray:
        """
        Starting point for nonlinear fits and values of fixed parameters.

        Args:
            measurements: Measurements the fit will use.

        Returns:
            Parameter vector (parameter_count,).
        """
        pass

    @abstractmethod
    def observation(self, value) -> np.ndarray:
        """Observed quantity of one measurement value (observation_dimension,)."""
        pass

    @abstractmethod
    def predict(self, params: np.ndarray, value) -> np.ndarray:
        """Model prediction of the observation (observation_dimension,)."""
        pass

    def jacobian(self, params: np.ndarray, value) -> np.ndarray:
        """
        ∂predict/∂params for one measurement value.

        Default implementation uses central differences; subclasses with
        closed-form derivatives override it.

        Returns:
            Matrix (observation_dimension × parameter_count).
        """
        params = np.asarray(params, dtype=float)
        J = np.zeros((self.observation_dimension, self.parameter_count))
        for k in range(self.parameter_count):
            step = 1e-6 * max(1.0, abs(params[k]))
            p_plus = params.copy()
            p_minus = params.copy()
            p_plus[k] += step
            p_minus[k] -= step
            J[:, k] = (self.predict(p_plus, value) - self.predict(p_minus, value)) / (2 * step)
        return J

    def residual(self, params: np.ndarray, measurement: Measurement) -> float:
        """Non-negative discrepancy between observation and prediction."""
        value = measurement.value
        return float(np.linalg.norm(self.observation(value) - self.predict(params, value)))

    def residuals(
        self, params: np.ndarray, measurements: Sequence[Measurement]
    ) -> np.ndarray:
        """Residual of every measurement (N,)."""
        return np.array([self.residual(params, m) for m in measurements], dtype=float)

    def stack(
        self, params: np.ndarray, measurements: Sequence[Measurement]
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Stack observations, predictions and Jacobians of several measurements.

        Returns:
            Tuple of (y, h, J) with shapes (k·d,), (k·d,), (k·d × parameter_count).
        """
        y = np.concatenate([self.observation(m.value) for m in measurements])
        h = np.concatenate([self.predict(params, m.value) for m in measurements])
        J = np.vstack([self.jacobian(params, m.value) for m in measurements])
        return y, h, J

    def measurement_weights(self, measurements: Sequence[Measurement]) -> np.ndarray:
        """Row weights 1/σ² expanded over each measurement's observations."""
        per_measurement = np.array([m.weight for m in measurements], dtype=float)
        return expand_measurement_weights(per_measurement, self.observation_dimension)

    def linear_solution(
        self, measurements: Sequence[Measurement], mask: np.ndarray
    ) -> np.ndarray:
        """
        Closed-form fit for models affine in their parameters.

        For h(p) = A p + c, with c = h(0) and A the (constant) Jacobian,
        solves A_free p_free = y - c - A_fixed p_fixed.

        Raises:
            ValueError: If the subset does not determine the free parameters.
        """
        base = self.fix_parameters(self.initial_parameters(measurements), mask)
        zeros = np.zeros(self.parameter_count)
        y, c, A = self.stack(zeros, measurements)

        rhs = y - c - A[:, ~mask] @ base[~mask]
        p_free, _ = linear_least_squares(A[:, mask], rhs)

        params = base.copy()
        params[mask] = p_free
        return params

    def nonlinear_solution(
        self,
        measurements: Sequence[Measurement],
        mask: np.ndarray,
        x0: np.ndarray,
        weighted: bool = False,
        max_iter: int = 50,
        return_covariance: bool = False,
    ) -> NonlinearLSResult:
        """
        Levenberg-Marquardt fit of the free parameters starting at x0.

        Args:
            measurements: Measurements to fit.
            mask: Free-parameter mask.
            x0: Full-layout starting point; fixed entries are kept.
            weighted: Use 1/σ² weights from the measurements.
            max_iter: Maximum LM iterations.
            return_covariance: Compute the covariance of the free parameters.

        Returns:
            NonlinearLSResult whose x (and covariance) cover free parameters only.
        """
        base = np.asarray(x0, dtype=float).copy()
        y = np.concatenate([self.observation(m.value) for m in measurements])

        def full(p_free: np.ndarray) -> np.ndarray:
            params = base.copy()
            params[mask] = p_free
            return params

        def h(p_free: np.ndarray) -> np.ndarray:
            params = full(p_free)
            return np.concatenate([self.predict(params, m.value) for m in measurements])

        def jac(p_free: np.ndarray) -> np.ndarray:
            params = full(p_free)
            return np.vstack([self.jacobian(params, m.value)[:, mask] for m in measurements])

        has_std = all(m.std is not None for m in measurements)
        weights = self.measurement_weights(measurements) if weighted else None

        return levenberg_marquardt(
            h,
            jac,
            y,
            base[mask],
            weights=weights,
            max_iter=max_iter,
            return_covariance=return_covariance,
            scale_covariance=not (weighted and has_std),
        )

    def preliminary_solution(
        self,
        measurements: Sequence[Measurement],
        mask: np.ndarray,
        linear: bool = True,
        refined: bool = False,
    ) -> np.ndarray:
        """
        Fit a candidate from a (minimal) subset.

        Args:
            measurements: Subset of measurements.
            mask: Free-parameter mask.
            linear: Use the linear solver; otherwise run LM from initial_parameters.
            refined: Polish the candidate with LM over the same subset.

        Returns:
            Full-layout parameter vector.

        Raises:
            ValueError, numpy.linalg.LinAlgError: If the subset is degenerate.
        """
        if linear:
            params = self.linear_solution(measurements, mask)
        else:
            x0 = self.fix_parameters(self.initial_parameters(measurements), mask)
            result = self.nonlinear_solution(measurements, mask, x0)
            params = x0.copy()
            params[mask] = result.x

        if refined:
            result = self.nonlinear_solution(measurements, mask, params)
            params = params.copy()
            params[mask] = result.x

        if not np.all(np.isfinite(params)):
            raise ValueError("Preliminary solution is not finite")
        return params
