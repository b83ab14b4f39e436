"""
Robust known-frame calibration of accelerometers and gyroscopes.

Each sample pairs the IMU output with the specific force and angular rate
expected from a known body frame (FrameBodyKinematics). The sensor error
models (see imu_models) are affine in their parameters, so a minimal
subset is solved in closed form and the robust engine rejects samples
corrupted by vibration, bumps or timing errors.

Accelerometer parameters (12):
    [bx, by, bz, sx, sy, sz, mxy, mxz, myx, myz, mzx, mzy]

Gyroscope parameters (21):
    [bx, by, bz, sx, sy, sz, mxy, mxz, myx, myz, mzx, mzy, g11 .. g33]
    with G_g stored row-major.

Each output axis of the triad only depends on its own row of parameters,
so the minimum number of samples is the largest count of free parameters
in any row (4 for the accelerometer, 7 for the gyroscope, 4 for a
gyroscope without g-dependent cross biases).

When the frames are unknown but the sensor is static and its bias known,
the accelerometer can still be calibrated from the gravity norm alone:

Gravity-norm accelerometer parameters (9):
    [sx, sy, sz, mxy, mxz, myx, myz, mzx, mzy]

This model is nonlinear in M_a and each sample contributes one scalar
equation (minimum 9 samples, 6 under the common-axis assumption).

Example:
    >>> calibrator = RobustKnownFrameAccelerometerCalibrator(
    ...     kinematics, method="prosac", quality_scores=scores)
    >>> calibrator.configure(random_seed=1, common_axis_used=True)
    >>> calibrator.calibrate()
    >>> calibrator.estimated_biases, calibrator.estimated_ma
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from robustnav.estimators.least_squares import linear_least_squares
from robustnav.robust.estimator import RobustEstimator
from robustnav.robust.errors import ConfigurationError
from robustnav.robust.problem import CalibrationProblem
from robustnav.robust.types import Measurement
from robustnav.sensors.imu_models import (
    COMMON_AXIS_ZEROED,
    CROSS_COUPLING_NAMES,
    CROSS_COUPLING_INDEX,
    build_cross_coupling_matrix,
    decompose_cross_coupling_matrix,
)
from robustnav.sensors.types import FrameBodyKinematics

DEFAULT_ACCELEROMETER_THRESHOLD = 1e-2  # m/s²
DEFAULT_GYROSCOPE_THRESHOLD = 1e-3  # rad/s
DEFAULT_GRAVITY_NORM_THRESHOLD = 1e-2  # m/s²
STANDARD_GRAVITY = 9.81  # m/s²

TRIAD_PARAMETER_NAMES = ("bx", "by", "bz", "sx", "sy", "sz") + CROSS_COUPLING_NAMES
G_DEPENDENT_NAMES = tuple(f"g{i}{j}" for i in range(1, 4) for j in range(1, 4))


def _check_vector3(name: str, value) -> np.ndarray:
    value = np.asarray(value, dtype=float)
    if value.shape != (3,):
        raise ConfigurationError(f"{name} must have shape (3,), got {value.shape}")
    if not np.all(np.isfinite(value)):
        raise ConfigurationError(f"{name} must be finite")
    return value


def _check_matrix3(name: str, value) -> np.ndarray:
    value = np.asarray(value, dtype=float)
    if value.shape != (3, 3):
        raise ConfigurationError(f"{name} must have shape (3, 3), got {value.shape}")
    if not np.all(np.isfinite(value)):
        raise ConfigurationError(f"{name} must be finite")
    return value


def _check_kinematics(value) -> FrameBodyKinematics:
    if not isinstance(value, FrameBodyKinematics):
        raise TypeError(
            f"Expected FrameBodyKinematics, got {type(value).__name__}"
        )
    return value


def _triad_jacobian(u: np.ndarray) -> np.ndarray:
    """∂(b + (I + M) u)/∂[b, s, m] (3 × 12)."""
    J = np.zeros((3, 12))
    J[:, 0:3] = np.eye(3)
    J[0, 3], J[1, 4], J[2, 5] = u
    for k, (i, j) in enumerate(CROSS_COUPLING_INDEX):
        J[i, 6 + k] = u[j]
    return J


def accelerometer_measurements(
    kinematics: Sequence[FrameBodyKinematics],
) -> list:
    """Wrap kinematics as measurements weighted by the specific force std."""
    return [
        Measurement(value=_check_kinematics(k), std=k.specific_force_std)
        for k in kinematics
    ]


def gyroscope_measurements(
    kinematics: Sequence[FrameBodyKinematics],
) -> list:
    """Wrap kinematics as measurements weighted by the angular rate std."""
    return [
        Measurement(value=_check_kinematics(k), std=k.angular_rate_std)
        for k in kinematics
    ]


class _CrossCouplingProblem(CalibrationProblem):
    """Common-axis masking of models holding a scale/cross-coupling matrix."""

    def free_parameters(self, common_axis_used: bool = False) -> np.ndarray:
        mask = np.ones(self.parameter_count, dtype=bool)
        if common_axis_used:
            for name in COMMON_AXIS_ZEROED:
                mask[self.parameter_names.index(name)] = False
        return mask

    def fix_parameters(self, params: np.ndarray, mask: np.ndarray) -> np.ndarray:
        params = np.array(params, dtype=float)
        for name in COMMON_AXIS_ZEROED:
            k = self.parameter_names.index(name)
            if not mask[k]:
                params[k] = 0.0
        return params


class _TriadCalibrationProblem(_CrossCouplingProblem):
    """Shared layout of affine triad models (one parameter row per axis)."""

    observation_dimension = 3

    #: Output axis (0, 1, 2) driven by each parameter
    parameter_rows: tuple = ()

    def minimum_subset_size(self, common_axis_used: bool = False) -> int:
        mask = self.free_parameters(common_axis_used)
        rows = np.asarray(self.parameter_rows)
        return int(max(np.count_nonzero(mask[rows == axis]) for axis in range(3)))


class AccelerometerKnownFrameProblem(_TriadCalibrationProblem):
    """
    Known-frame accelerometer model f̃ = b_a + (I + M_a) f.

    Args:
        initial_bias: Initial bias b_a (3,). Defaults to zero.
        initial_ma: Initial scale/cross-coupling matrix M_a (3, 3). Defaults to zero.
    """

    parameter_names = TRIAD_PARAMETER_NAMES
    parameter_rows = (0, 1, 2, 0, 1, 2, 0, 0, 1, 1, 2, 2)
    default_threshold = DEFAULT_ACCELEROMETER_THRESHOLD

    def __init__(self, initial_bias=None, initial_ma=None):
        self.initial_bias = np.zeros(3) if initial_bias is None else initial_bias
        self.initial_ma = np.zeros((3, 3)) if initial_ma is None else initial_ma

    @property
    def initial_bias(self) -> np.ndarray:
        return self._initial_bias

    @initial_bias.setter
    def initial_bias(self, value) -> None:
        self._initial_bias = _check_vector3("initial_bias", value)

    @property
    def initial_ma(self) -> np.ndarray:
        return self._initial_ma

    @initial_ma.setter
    def initial_ma(self, value) -> None:
        self._initial_ma = _check_matrix3("initial_ma", value)

    def initial_parameters(self, measurements) -> np.ndarray:
        scale, cross = decompose_cross_coupling_matrix(self._initial_ma)
        return np.concatenate([self._initial_bias, scale, cross])

    def observation(self, value) -> np.ndarray:
        return _check_kinematics(value).specific_force

    def predict(self, params: np.ndarray, value) -> np.ndarray:
        f = _check_kinematics(value).true_specific_force
        M = build_cross_coupling_matrix(params[3:6], params[6:12])
        return params[0:3] + (np.eye(3) + M) @ f

    def jacobian(self, params: np.ndarray, value) -> np.ndarray:
        return _triad_jacobian(_check_kinematics(value).true_specific_force)


class GyroscopeKnownFrameProblem(_TriadCalibrationProblem):
    """
    Known-frame gyroscope model ω̃ = b_g + (I + M_g) ω + G_g f.

    Args:
        initial_bias: Initial bias b_g (3,). Defaults to zero.
        initial_mg: Initial scale/cross-coupling matrix M_g (3, 3). Defaults to zero.
        initial_gg: Initial g-dependent cross biases G_g (3, 3). Defaults to zero.
        estimate_g_dependent_cross_biases: If False, G_g stays at initial_gg.
    """

    parameter_names = TRIAD_PARAMETER_NAMES + G_DEPENDENT_NAMES
    parameter_rows = (0, 1, 2, 0, 1, 2, 0, 0, 1, 1, 2, 2) + (0,) * 3 + (1,) * 3 + (2,) * 3
    default_threshold = DEFAULT_GYROSCOPE_THRESHOLD

    def __init__(
        self,
        initial_bias=None,
        initial_mg=None,
        initial_gg=None,
        estimate_g_dependent_cross_biases: bool = True,
    ):
        self.initial_bias = np.zeros(3) if initial_bias is None else initial_bias
        self.initial_mg = np.zeros((3, 3)) if initial_mg is None else initial_mg
        self.initial_gg = np.zeros((3, 3)) if initial_gg is None else initial_gg
        self.estimate_g_dependent_cross_biases = bool(estimate_g_dependent_cross_biases)

    @property
    def initial_bias(self) -> np.ndarray:
        return self._initial_bias

    @initial_bias.setter
    def initial_bias(self, value) -> None:
        self._initial_bias = _check_vector3("initial_bias", value)

    @property
    def initial_mg(self) -> np.ndarray:
        return self._initial_mg

    @initial_mg.setter
    def initial_mg(self, value) -> None:
        self._initial_mg = _check_matrix3("initial_mg", value)

    @property
    def initial_gg(self) -> np.ndarray:
        return self._initial_gg

    @initial_gg.setter
    def initial_gg(self, value) -> None:
        self._initial_gg = _check_matrix3("initial_gg", value)

    def free_parameters(self, common_axis_used: bool = False) -> np.ndarray:
        mask = super().free_parameters(common_axis_used)
        if not self.estimate_g_dependent_cross_biases:
            mask[12:] = False
        return mask

    def initial_parameters(self, measurements) -> np.ndarray:
        scale, cross = decompose_cross_coupling_matrix(self._initial_mg)
        return np.concatenate([self._initial_bias, scale, cross, self._initial_gg.ravel()])

    def observation(self, value) -> np.ndarray:
        return _check_kinematics(value).angular_rate

    def predict(self, params: np.ndarray, value) -> np.ndarray:
        kin = _check_kinematics(value)
        M = build_cross_coupling_matrix(params[3:6], params[6:12])
        G = params[12:21].reshape(3, 3)
        return params[0:3] + (np.eye(3) + M) @ kin.true_angular_rate + G @ kin.true_specific_force

    def jacobian(self, params: np.ndarray, value) -> np.ndarray:
        kin = _check_kinematics(value)
        J = np.zeros((3, 21))
        J[:, :12] = _triad_jacobian(kin.true_angular_rate)
        for i in range(3):
            J[i, 12 + 3 * i: 15 + 3 * i] = kin.true_specific_force
        return J


class AccelerometerGravityNormProblem(_CrossCouplingProblem):
    """
    Accelerometer model with known bias constrained by the gravity norm.

    A static accelerometer measures f̃ = b_a + (I + M_a) f with ‖f‖ = g
    whatever its attitude, so with b_a known every sample gives one
    equation

        ‖(I + M_a)⁻¹ (f̃ - b_a)‖ = g

    and the attitude of the samples is not needed. Writing
    T = (I + M_a)⁻¹ and Q = T'T, the equations are linear in the six
    entries of Q; the linear solver fits Q and recovers T as the upper
    triangular Cholesky factor of Q.

    The norm does not change under a rotation of T, so only an upper
    triangular M_a (the common-axis form) is fully determined. Without the
    common-axis assumption the linear solver still returns the upper
    triangular solution and the nonlinear solver the one reached from
    initial_ma.

    Parameters (9): [sx, sy, sz, mxy, mxz, myx, myz, mzx, mzy]

    Args:
        gravity_norm: Norm g of the specific force of a static sensor [m/s²].
        bias: Known bias b_a (3,). Defaults to zero.
        initial_ma: Initial M_a (3, 3). Defaults to zero.
    """

    parameter_names = ("sx", "sy", "sz") + CROSS_COUPLING_NAMES
    observation_dimension = 1
    default_threshold = DEFAULT_GRAVITY_NORM_THRESHOLD

    def __init__(self, gravity_norm: float = STANDARD_GRAVITY, bias=None, initial_ma=None):
        self.gravity_norm = gravity_norm
        self.bias = np.zeros(3) if bias is None else bias
        self.initial_ma = np.zeros((3, 3)) if initial_ma is None else initial_ma

    @property
    def gravity_norm(self) -> float:
        return self._gravity_norm

    @gravity_norm.setter
    def gravity_norm(self, value: float) -> None:
        value = float(value)
        if not np.isfinite(value) or value <= 0.0:
            raise ConfigurationError(f"gravity_norm must be positive, got {value}")
        self._gravity_norm = value

    @property
    def bias(self) -> np.ndarray:
        return self._bias

    @bias.setter
    def bias(self, value) -> None:
        self._bias = _check_vector3("bias", value)

    @property
    def initial_ma(self) -> np.ndarray:
        return self._initial_ma

    @initial_ma.setter
    def initial_ma(self, value) -> None:
        self._initial_ma = _check_matrix3("initial_ma", value)

    def initial_parameters(self, measurements) -> np.ndarray:
        return np.concatenate(decompose_cross_coupling_matrix(self._initial_ma))

    def _corrected(self, params: np.ndarray, value) -> np.ndarray:
        """(I + M_a)⁻¹ (f̃ - b_a)."""
        M = build_cross_coupling_matrix(params[0:3], params[3:9])
        u = _check_kinematics(value).specific_force - self._bias
        return np.linalg.solve(np.eye(3) + M, u)

    def observation(self, value) -> np.ndarray:
        return np.array([self._gravity_norm])

    def predict(self, params: np.ndarray, value) -> np.ndarray:
        return np.array([np.linalg.norm(self._corrected(params, value))])

    def jacobian(self, params: np.ndarray, value) -> np.ndarray:
        # ∂‖T u‖/∂M_ij = -(T'v)_i v_j / ‖v‖ with v = T u
        M = build_cross_coupling_matrix(params[0:3], params[3:9])
        T = np.linalg.inv(np.eye(3) + M)
        v = T @ (_check_kinematics(value).specific_force - self._bias)
        G = -np.outer(T.T @ v, v) / np.linalg.norm(v)

        J = np.zeros((1, 9))
        J[0, 0:3] = np.diag(G)
        for k, (i, j) in enumerate(CROSS_COUPLING_INDEX):
            J[0, 3 + k] = G[i, j]
        return J

    def linear_solution(self, measurements, mask: np.ndarray) -> np.ndarray:
        """
        Fit Q = T'T linearly and factor it.

        Raises:
            ValueError: If the samples do not determine Q.
            numpy.linalg.LinAlgError: If the fitted Q is not positive definite.
        """
        u = np.array(
            [_check_kinematics(m.value).specific_force for m in measurements]
        ) - self._bias
        A = np.column_stack([
            u[:, 0] ** 2,
            u[:, 1] ** 2,
            u[:, 2] ** 2,
            2.0 * u[:, 0] * u[:, 1],
            2.0 * u[:, 0] * u[:, 2],
            2.0 * u[:, 1] * u[:, 2],
        ])
        b = np.full(len(u), self._gravity_norm ** 2)
        q, _ = linear_least_squares(A, b)

        Q = np.array([
            [q[0], q[3], q[4]],
            [q[3], q[1], q[5]],
            [q[4], q[5], q[2]],
        ])
        T = np.linalg.cholesky(Q).T
        M = np.linalg.inv(T) - np.eye(3)
        return self.fix_parameters(
            np.concatenate(decompose_cross_coupling_matrix(M)), mask
        )


def _parameter_property(name: str, doc: str) -> property:
    def getter(self) -> Optional[float]:
        params = self.estimated_parameters
        if params is None:
            return None
        return float(params[self._problem.parameter_names.index(name)])

    return property(getter, doc=doc)


class _KinematicsCalibrator(RobustEstimator, ABC):
    """Kinematics input and scale/cross-coupling accessors of IMU calibrators."""

    @abstractmethod
    def _wrap(self, kinematics) -> list:
        """Convert kinematics to measurements weighted for this sensor."""
        pass

    @property
    def kinematics(self) -> Optional[list]:
        """Samples used for calibration."""
        if self.measurements is None:
            return None
        return [m.value for m in self.measurements]

    @kinematics.setter
    def kinematics(self, kinematics: Sequence[FrameBodyKinematics]) -> None:
        self._check_not_running()
        self.measurements = self._wrap(kinematics)

    def set_kinematics(
        self,
        kinematics: Sequence[FrameBodyKinematics],
        quality_scores: Optional[np.ndarray] = None,
    ) -> None:
        """Replace samples and quality scores together."""
        self._check_not_running()
        self.set_data(self._wrap(kinematics), quality_scores)

    def _estimated_cross_coupling(self) -> Optional[np.ndarray]:
        params = self.estimated_parameters
        if params is None:
            return None
        k = self._problem.parameter_names.index("sx")
        return build_cross_coupling_matrix(params[k:k + 3], params[k + 3:k + 9])

    estimated_sx = _parameter_property("sx", "Estimated x scale factor.")
    estimated_sy = _parameter_property("sy", "Estimated y scale factor.")
    estimated_sz = _parameter_property("sz", "Estimated z scale factor.")
    estimated_mxy = _parameter_property("mxy", "Estimated x-y cross coupling.")
    estimated_mxz = _parameter_property("mxz", "Estimated x-z cross coupling.")
    estimated_myx = _parameter_property("myx", "Estimated y-x cross coupling.")
    estimated_myz = _parameter_property("myz", "Estimated y-z cross coupling.")
    estimated_mzx = _parameter_property("mzx", "Estimated z-x cross coupling.")
    estimated_mzy = _parameter_property("mzy", "Estimated z-y cross coupling.")


class _KnownFrameTriadCalibrator(_KinematicsCalibrator):
    """Bias accessors shared by the accelerometer and gyroscope calibrators."""

    @property
    def estimated_biases(self) -> Optional[np.ndarray]:
        params = self.estimated_parameters
        return None if params is None else params[0:3].copy()

    @property
    def estimated_bias_standard_deviations(self) -> Optional[np.ndarray]:
        """Standard deviation of each bias component, from the covariance."""
        covariance = self.covariance
        if covariance is None:
            return None
        return np.sqrt(np.diag(covariance)[0:3])

    @property
    def estimated_bias_standard_deviation_norm(self) -> Optional[float]:
        std = self.estimated_bias_standard_deviations
        return None if std is None else float(np.linalg.norm(std))

    estimated_bx = _parameter_property("bx", "Estimated x bias.")
    estimated_by = _parameter_property("by", "Estimated y bias.")
    estimated_bz = _parameter_property("bz", "Estimated z bias.")


class RobustKnownFrameAccelerometerCalibrator(_KnownFrameTriadCalibrator):
    """
    Robust accelerometer calibrator using samples taken at known frames.

    Estimates bias b_a and scale/cross-coupling M_a of
        f̃ = b_a + (I + M_a) f
    rejecting outlier samples with the configured robust method.

    Args:
        kinematics: Calibration samples (FrameBodyKinematics).
        method: Robust method name or RobustEstimatorMethod.
        config: RobustEstimatorConfig. Default threshold is 1e-2 m/s².
        quality_scores: Per-sample quality (PROSAC, PROMedS).
        listener: Optional RobustEstimatorListener.
        initial_bias: Initial bias (3,), used by the nonlinear solver.
        initial_ma: Initial M_a (3, 3), used by the nonlinear solver.
    """

    def __init__(
        self,
        kinematics: Optional[Sequence[FrameBodyKinematics]] = None,
        method="ransac",
        config=None,
        quality_scores=None,
        listener=None,
        initial_bias=None,
        initial_ma=None,
    ):
        super().__init__(
            AccelerometerKnownFrameProblem(initial_bias, initial_ma),
            method=method,
            config=config,
            quality_scores=quality_scores,
            listener=listener,
        )
        if kinematics is not None:
            self.kinematics = kinematics

    def _wrap(self, kinematics):
        return accelerometer_measurements(kinematics)

    @property
    def initial_bias(self) -> np.ndarray:
        return self._problem.initial_bias

    @initial_bias.setter
    def initial_bias(self, value) -> None:
        self._check_not_running()
        self._problem.initial_bias = value

    @property
    def initial_ma(self) -> np.ndarray:
        return self._problem.initial_ma

    @initial_ma.setter
    def initial_ma(self, value) -> None:
        self._check_not_running()
        self._problem.initial_ma = value

    @property
    def estimated_ma(self) -> Optional[np.ndarray]:
        """Estimated scale factor and cross-coupling matrix M_a."""
        return self._estimated_cross_coupling()


class RobustKnownFrameGyroscopeCalibrator(_KnownFrameTriadCalibrator):
    """
    Robust gyroscope calibrator using samples taken at known frames.

    Estimates bias b_g, scale/cross-coupling M_g and g-dependent cross
    biases G_g of
        ω̃ = b_g + (I + M_g) ω + G_g f

    Args:
        kinematics: Calibration samples (FrameBodyKinematics).
        method: Robust method name or RobustEstimatorMethod.
        config: RobustEstimatorConfig. Default threshold is 1e-3 rad/s.
        quality_scores: Per-sample quality (PROSAC, PROMedS).
        listener: Optional RobustEstimatorListener.
        initial_bias: Initial bias (3,).
        initial_mg: Initial M_g (3, 3).
        initial_gg: Initial G_g (3, 3); kept when G_g is not estimated.
        estimate_g_dependent_cross_biases: Estimate G_g (default True).
    """

    def __init__(
        self,
        kinematics: Optional[Sequence[FrameBodyKinematics]] = None,
        method="ransac",
        config=None,
        quality_scores=None,
        listener=None,
        initial_bias=None,
        initial_mg=None,
        initial_gg=None,
        estimate_g_dependent_cross_biases: bool = True,
    ):
        super().__init__(
            GyroscopeKnownFrameProblem(
                initial_bias, initial_mg, initial_gg, estimate_g_dependent_cross_biases
            ),
            method=method,
            config=config,
            quality_scores=quality_scores,
            listener=listener,
        )
        if kinematics is not None:
            self.kinematics = kinematics

    def _wrap(self, kinematics):
        return gyroscope_measurements(kinematics)

    @property
    def estimate_g_dependent_cross_biases(self) -> bool:
        return self._problem.estimate_g_dependent_cross_biases

    @estimate_g_dependent_cross_biases.setter
    def estimate_g_dependent_cross_biases(self, value: bool) -> None:
        self._check_not_running()
        previous = self._problem.estimate_g_dependent_cross_biases
        self._problem.estimate_g_dependent_cross_biases = bool(value)
        try:
            self._validated_config(self._config)
        except ConfigurationError:
            self._problem.estimate_g_dependent_cross_biases = previous
            raise

    @property
    def initial_bias(self) -> np.ndarray:
        return self._problem.initial_bias

    @initial_bias.setter
    def initial_bias(self, value) -> None:
        self._check_not_running()
        self._problem.initial_bias = value

    @property
    def initial_mg(self) -> np.ndarray:
        return self._problem.initial_mg

    @initial_mg.setter
    def initial_mg(self, value) -> None:
        self._check_not_running()
        self._problem.initial_mg = value

    @property
    def initial_gg(self) -> np.ndarray:
        return self._problem.initial_gg

    @initial_gg.setter
    def initial_gg(self, value) -> None:
        self._check_not_running()
        self._problem.initial_gg = value

    @property
    def estimated_mg(self) -> Optional[np.ndarray]:
        """Estimated scale factor and cross-coupling matrix M_g."""
        return self._estimated_cross_coupling()

    @property
    def estimated_gg(self) -> Optional[np.ndarray]:
        """Estimated g-dependent cross biases G_g."""
        params = self.estimated_parameters
        return None if params is None else params[12:21].reshape(3, 3).copy()


class RobustKnownBiasAndGravityNormAccelerometerCalibrator(_KinematicsCalibrator):
    """
    Robust accelerometer calibrator from static samples and the gravity norm.

    Estimates the scale/cross-coupling M_a of an accelerometer with known
    bias from samples taken at rest in unknown attitudes. Only the
    measured specific force of each FrameBodyKinematics is used.

    Args:
        kinematics: Static samples (FrameBodyKinematics).
        gravity_norm: Norm of gravity at the calibration site [m/s²].
        method: Robust method name or RobustEstimatorMethod.
        config: RobustEstimatorConfig. Default threshold is 1e-2 m/s².
        quality_scores: Per-sample quality (PROSAC, PROMedS).
        listener: Optional RobustEstimatorListener.
        bias: Known bias b_a (3,). Defaults to zero.
        initial_ma: Initial M_a (3, 3), used by the nonlinear solver.

    Example:
        >>> calibrator = RobustKnownBiasAndGravityNormAccelerometerCalibrator(
        ...     kinematics, gravity_norm=9.81, bias=b_a, method="promeds",
        ...     quality_scores=scores)
        >>> calibrator.configure(common_axis_used=True)
        >>> calibrator.calibrate()
        >>> calibrator.estimated_ma
    """

    def __init__(
        self,
        kinematics: Optional[Sequence[FrameBodyKinematics]] = None,
        gravity_norm: float = STANDARD_GRAVITY,
        method="ransac",
        config=None,
        quality_scores=None,
        listener=None,
        bias=None,
        initial_ma=None,
    ):
        super().__init__(
            AccelerometerGravityNormProblem(gravity_norm, bias, initial_ma),
            method=method,
            config=config,
            quality_scores=quality_scores,
            listener=listener,
        )
        if kinematics is not None:
            self.kinematics = kinematics

    def _wrap(self, kinematics):
        return accelerometer_measurements(kinematics)

    @property
    def gravity_norm(self) -> float:
        return self._problem.gravity_norm

    @gravity_norm.setter
    def gravity_norm(self, value: float) -> None:
        self._check_not_running()
        self._problem.gravity_norm = value

    @property
    def bias(self) -> np.ndarray:
        """Known accelerometer bias b_a."""
        return self._problem.bias

    @bias.setter
    def bias(self, value) -> None:
        self._check_not_running()
        self._problem.bias = value

    @property
    def initial_ma(self) -> np.ndarray:
        return self._problem.initial_ma

    @initial_ma.setter
    def initial_ma(self, value) -> None:
        self._check_not_running()
        self._problem.initial_ma = value

    @property
    def estimated_ma(self) -> Optional[np.ndarray]:
        """Estimated scale factor and cross-coupling matrix M_a."""
        return self._estimated_cross_coupling()
