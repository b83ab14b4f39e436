"""
Robust range-based positioning.

The agent position p is estimated from distances to located radio sources:

    d_i = ||p - a_i|| + n_i

Minimal subsets are solved in closed form by differencing the squared
range equations against a reference source (a_0, d_0):

    2 (a_i - a_0)ᵀ p = d_0² - d_i² + ||a_i||² - ||a_0||²,  i = 1..k-1

which needs at least dim + 1 readings with non-degenerate geometry. The
inlier refinement runs Levenberg-Marquardt on the range equations weighted
by 1/σ² of each reading.

Residual:
    r_i = | d_i - ||p - a_i|| |   (absolute range error in meters)

References:
    B.T. Fang, "Simple solutions for hyperbolic and related position fixes",
    IEEE Trans. Aerospace and Electronic Systems, 1990.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from robustnav.estimators.least_squares import linear_least_squares
from robustnav.robust.errors import ConfigurationError
from robustnav.robust.estimator import RobustEstimator
from robustnav.robust.problem import CalibrationProblem
from robustnav.robust.types import Measurement
from robustnav.rf.types import RangingReading

DEFAULT_RANGING_THRESHOLD = 0.1  # m


def linear_multilateration(
    anchors: np.ndarray,
    distances: np.ndarray,
    ref_idx: int = 0,
) -> np.ndarray:
    """
    Closed-form position from ranges by differencing squared range equations.

    Args:
        anchors: Anchor positions, shape (N, d) with d = 2 or 3.
        distances: Measured distances, shape (N,).
        ref_idx: Index of the reference anchor.

    Returns:
        Estimated position, shape (d,).

    Raises:
        ValueError: If fewer than d + 1 anchors are given or the geometry
            is degenerate (e.g., collinear anchors in 2D).

    Example:
        >>> anchors = np.array([[0, 0], [10, 0], [0, 10]])
        >>> distances = np.linalg.norm(anchors - np.array([3.0, 4.0]), axis=1)
        >>> linear_multilateration(anchors, distances)   # [3., 4.]
    """
    anchors = np.asarray(anchors, dtype=float)
    distances = np.asarray(distances, dtype=float)

    if anchors.ndim != 2 or anchors.shape[1] not in (2, 3):
        raise ValueError(f"anchors must have shape (N, 2) or (N, 3), got {anchors.shape}")
    if distances.shape != (anchors.shape[0],):
        raise ValueError(
            f"distances must have shape ({anchors.shape[0]},), got {distances.shape}"
        )

    n, dim = anchors.shape
    if n < dim + 1:
        raise ValueError(f"Need at least {dim + 1} anchors for {dim}D, got {n}")

    others = np.arange(n) != ref_idx
    a_ref = anchors[ref_idx]
    d_ref = distances[ref_idx]

    H = 2.0 * (anchors[others] - a_ref)
    y = (
        d_ref ** 2
        - distances[others] ** 2
        + np.sum(anchors[others] ** 2, axis=1)
        - np.sum(a_ref ** 2)
    )

    position, _ = linear_least_squares(H, y)
    return position


class RangingPositionProblem(CalibrationProblem):
    """
    Position of an agent from ranges to located radio sources.

    Args:
        dimension: 2 or 3.
        initial_position: Starting point of the nonlinear solver. If None,
            the centroid of the anchors is used.
    """

    observation_dimension = 1
    default_threshold = DEFAULT_RANGING_THRESHOLD

    def __init__(self, dimension: int = 2, initial_position=None):
        if dimension not in (2, 3):
            raise ConfigurationError(f"dimension must be 2 or 3, got {dimension}")
        self.dimension = dimension
        self.parameter_names = ("x", "y", "z")[:dimension]
        self.initial_position = initial_position

    @property
    def initial_position(self) -> Optional[np.ndarray]:
        return self._initial_position

    @initial_position.setter
    def initial_position(self, value) -> None:
        if value is not None:
            value = np.asarray(value, dtype=float)
            if value.shape != (self.dimension,):
                raise ConfigurationError(
                    f"initial_position must have shape ({self.dimension},), got {value.shape}"
                )
            if not np.all(np.isfinite(value)):
                raise ConfigurationError("initial_position must be finite")
        self._initial_position = value

    def minimum_subset_size(self, common_axis_used: bool = False) -> int:
        return self.dimension + 1

    def _reading(self, value) -> RangingReading:
        if not isinstance(value, RangingReading):
            raise TypeError(f"Expected RangingReading, got {type(value).__name__}")
        if value.dimension != self.dimension:
            raise ValueError(
                f"Reading is {value.dimension}D, problem is {self.dimension}D"
            )
        return value

    def initial_parameters(self, measurements) -> np.ndarray:
        if self._initial_position is not None:
            return self._initial_position.copy()
        if len(measurements) == 0:
            return np.zeros(self.dimension)
        anchors = np.array([self._reading(m.value).anchor for m in measurements])
        return anchors.mean(axis=0)

    def observation(self, value) -> np.ndarray:
        return np.array([self._reading(value).distance])

    def predict(self, params: np.ndarray, value) -> np.ndarray:
        return np.array([np.linalg.norm(params - self._reading(value).anchor)])

    def jacobian(self, params: np.ndarray, value) -> np.ndarray:
        diff = params - self._reading(value).anchor
        distance = np.linalg.norm(diff)
        if distance < 1e-12:
            return np.zeros((1, self.dimension))
        return (diff / distance).reshape(1, -1)

    def linear_solution(self, measurements, mask) -> np.ndarray:
        anchors, distances = self._arrays(measurements)
        return linear_multilateration(anchors, distances)

    def _arrays(self, measurements) -> Tuple[np.ndarray, np.ndarray]:
        readings = [self._reading(m.value) for m in measurements]
        anchors = np.array([r.anchor for r in readings])
        distances = np.array([r.distance for r in readings])
        return anchors, distances


def ranging_measurements(readings: Sequence[RangingReading]) -> list:
    """Wrap readings as measurements weighted by their distance std."""
    measurements = []
    for reading in readings:
        if not isinstance(reading, RangingReading):
            raise ConfigurationError(
                f"readings must be RangingReading instances, got {type(reading).__name__}"
            )
        measurements.append(Measurement(value=reading, std=reading.distance_std))
    return measurements


class RobustRangingPositionEstimator(RobustEstimator):
    """
    Robust 2D/3D position estimator from ranging readings.

    Readings affected by multipath or NLOS propagation are rejected as
    outliers before the position is refined over the remaining ones.

    Args:
        readings: Ranging readings to located sources.
        dimension: 2 or 3. Inferred from the readings when omitted
            (defaults to 2 without readings).
        method: Robust method name or RobustEstimatorMethod.
        config: RobustEstimatorConfig. Default threshold is 0.1 m.
        quality_scores: Per-reading quality (PROSAC, PROMedS), e.g. RSSI.
        listener: Optional RobustEstimatorListener.
        initial_position: Starting point of the nonlinear solver.

    Example:
        >>> estimator = RobustRangingPositionEstimator(readings, method="lmeds")
        >>> estimator.configure(random_seed=3)
        >>> estimator.calibrate()
        >>> estimator.estimated_position
    """

    def __init__(
        self,
        readings: Optional[Sequence[RangingReading]] = None,
        dimension: Optional[int] = None,
        method="ransac",
        config=None,
        quality_scores=None,
        listener=None,
        initial_position=None,
    ):
        if readings is not None:
            readings = list(readings)
        if dimension is None:
            dimension = readings[0].dimension if readings else 2

        super().__init__(
            RangingPositionProblem(dimension, initial_position),
            method=method,
            config=config,
            quality_scores=quality_scores,
            listener=listener,
        )
        if readings is not None:
            self.readings = readings

    @property
    def dimension(self) -> int:
        return self._problem.dimension

    @property
    def readings(self) -> Optional[list]:
        if self.measurements is None:
            return None
        return [m.value for m in self.measurements]

    @readings.setter
    def readings(self, readings: Sequence[RangingReading]) -> None:
        self._check_not_running()
        self.measurements = self._wrap(readings)

    def set_readings(
        self,
        readings: Sequence[RangingReading],
        quality_scores: Optional[np.ndarray] = None,
    ) -> None:
        """Replace readings and quality scores together."""
        self._check_not_running()
        self.set_data(self._wrap(readings), quality_scores)

    def _wrap(self, readings) -> list:
        measurements = ranging_measurements(readings)
        for m in measurements:
            if m.value.dimension != self.dimension:
                raise ConfigurationError(
                    f"Expected {self.dimension}D readings, got {m.value.dimension}D"
                )
        return measurements

    @property
    def initial_position(self) -> Optional[np.ndarray]:
        return self._problem.initial_position

    @initial_position.setter
    def initial_position(self, value) -> None:
        self._check_not_running()
        self._problem.initial_position = value

    @property
    def estimated_position(self) -> Optional[np.ndarray]:
        params = self.estimated_parameters
        return None if params is None else params.copy()

    @property
    def estimated_position_covariance(self) -> Optional[np.ndarray]:
        return self.covariance

    @property
    def estimated_position_standard_deviations(self) -> Optional[np.ndarray]:
        covariance = self.covariance
        if covariance is None:
            return None
        return np.sqrt(np.diag(covariance))
