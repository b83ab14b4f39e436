"""
Synthetic calibration and positioning datasets with known outliers.

Each generator draws samples from a known model, corrupts a known subset
of them, and returns everything needed to check a robust estimator:

    - samples: FrameBodyKinematics (IMU) or RangingReading (ranging)
    - outliers: boolean mask of corrupted samples
    - quality_scores: per-sample quality ranking inliers above outliers
    - true_parameters: model parameters in the layout of the matching
      calibration problem

Outlier corruption:
    - IMU: an offset of random direction and norm in
      [outlier_magnitude, 2·outlier_magnitude] added to the measurement
    - Gravity norm: the sensed specific force scaled so its norm is off by
      [outlier_magnitude, 2·outlier_magnitude]
    - Ranging: a positive NLOS bias in [outlier_magnitude, 3·outlier_magnitude]

Set noise_std=0 for noiseless inliers (exact recovery tests).
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from robustnav.sensors.imu_models import (
    apply_accel_error_model,
    apply_gyro_error_model,
    decompose_cross_coupling_matrix,
)
from robustnav.sensors.types import FrameBodyKinematics
from robustnav.rf.types import RangingReading

GRAVITY = 9.81  # m/s²

DEFAULT_ACCEL_BIAS = np.array([0.05, -0.03, 0.02])
DEFAULT_ACCEL_MA = np.array([
    [5e-3, 1e-3, -2e-3],
    [-1.5e-3, -3e-3, 1e-3],
    [2e-3, -1e-3, 4e-3],
])
DEFAULT_GYRO_BIAS = np.array([2e-3, -1e-3, 1.5e-3])
DEFAULT_GYRO_MG = np.array([
    [-3e-3, 2e-3, 1e-3],
    [1e-3, 4e-3, -2e-3],
    [-2e-3, 1e-3, 2e-3],
])
DEFAULT_GYRO_GG = np.array([
    [1e-4, -2e-5, 3e-5],
    [2e-5, -1e-4, 1e-5],
    [-3e-5, 1e-5, 2e-4],
])


@dataclass
class SyntheticDataset:
    """
    Samples drawn from a known model with known outliers.

    Attributes:
        samples: List of FrameBodyKinematics or RangingReading.
        outliers: Boolean mask (N,), True for corrupted samples.
        quality_scores: Quality per sample (N,), inliers in [0.5, 1],
            outliers in [0, 0.5).
        true_parameters: Parameters of the generating model.
    """

    samples: list
    outliers: np.ndarray
    quality_scores: np.ndarray
    true_parameters: np.ndarray

    @property
    def inliers(self) -> np.ndarray:
        return ~self.outliers


def _outlier_mask(n: int, outlier_fraction: float, rng: np.random.Generator) -> np.ndarray:
    if not (0.0 <= outlier_fraction < 1.0):
        raise ValueError(f"outlier_fraction must be in [0, 1), got {outlier_fraction}")
    mask = np.zeros(n, dtype=bool)
    n_outliers = int(round(outlier_fraction * n))
    mask[rng.choice(n, size=n_outliers, replace=False)] = True
    return mask


def _quality_scores(outliers: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    return np.where(
        outliers,
        rng.uniform(0.0, 0.5, size=len(outliers)),
        rng.uniform(0.5, 1.0, size=len(outliers)),
    )


def _random_offsets(n: int, magnitude: float, rng: np.random.Generator) -> np.ndarray:
    directions = rng.normal(size=(n, 3))
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    return directions * rng.uniform(magnitude, 2.0 * magnitude, size=(n, 1))


def _gravity_directions(n: int, rng: np.random.Generator) -> np.ndarray:
    """Specific force of a static sensor at random attitudes."""
    directions = rng.normal(size=(n, 3))
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    return GRAVITY * directions


def generate_accelerometer_dataset(
    n_samples: int = 100,
    outlier_fraction: float = 0.2,
    noise_std: float = 0.0,
    outlier_magnitude: float = 1.0,
    bias: Optional[np.ndarray] = None,
    ma: Optional[np.ndarray] = None,
    rng: Optional[np.random.Generator] = None,
) -> SyntheticDataset:
    """
    Generate known-frame accelerometer samples.

    Args:
        n_samples: Number of samples.
        outlier_fraction: Fraction of corrupted samples in [0, 1).
        noise_std: White noise std of inlier specific force [m/s²].
            When positive it is also stored as specific_force_std.
        outlier_magnitude: Minimum norm of outlier offsets [m/s²].
        bias: True bias b_a (3,). Defaults to DEFAULT_ACCEL_BIAS.
        ma: True M_a (3, 3). Defaults to DEFAULT_ACCEL_MA.
        rng: Random generator. If None, uses np.random.default_rng().

    Returns:
        SyntheticDataset whose true_parameters follow the
        AccelerometerKnownFrameProblem layout.

    Example:
        >>> data = generate_accelerometer_dataset(50, 0.3, rng=np.random.default_rng(0))
        >>> data.outliers.sum()
        15
    """
    rng = rng if rng is not None else np.random.default_rng()
    bias = DEFAULT_ACCEL_BIAS if bias is None else np.asarray(bias, dtype=float)
    ma = DEFAULT_ACCEL_MA if ma is None else np.asarray(ma, dtype=float)

    f_true = _gravity_directions(n_samples, rng)
    w_true = rng.normal(scale=0.1, size=(n_samples, 3))
    f_meas = apply_accel_error_model(f_true, bias, ma)
    if noise_std > 0.0:
        f_meas = f_meas + rng.normal(scale=noise_std, size=f_meas.shape)

    outliers = _outlier_mask(n_samples, outlier_fraction, rng)
    f_meas[outliers] += _random_offsets(int(outliers.sum()), outlier_magnitude, rng)

    std = noise_std if noise_std > 0.0 else None
    samples = [
        FrameBodyKinematics(
            specific_force=f_meas[i],
            angular_rate=w_true[i],
            true_specific_force=f_true[i],
            true_angular_rate=w_true[i],
            specific_force_std=std,
        )
        for i in range(n_samples)
    ]

    scale, cross = decompose_cross_coupling_matrix(ma)
    return SyntheticDataset(
        samples=samples,
        outliers=outliers,
        quality_scores=_quality_scores(outliers, rng),
        true_parameters=np.concatenate([bias, scale, cross]),
    )


def generate_gyroscope_dataset(
    n_samples: int = 100,
    outlier_fraction: float = 0.2,
    noise_std: float = 0.0,
    outlier_magnitude: float = 0.05,
    bias: Optional[np.ndarray] = None,
    mg: Optional[np.ndarray] = None,
    gg: Optional[np.ndarray] = None,
    rng: Optional[np.random.Generator] = None,
) -> SyntheticDataset:
    """
    Generate known-frame gyroscope samples.

    True angular rates are drawn with a 0.5 rad/s spread (turntable-like
    motion) at random static attitudes.

    Args:
        n_samples: Number of samples.
        outlier_fraction: Fraction of corrupted samples in [0, 1).
        noise_std: White noise std of inlier angular rate [rad/s].
        outlier_magnitude: Minimum norm of outlier offsets [rad/s].
        bias: True bias b_g (3,). Defaults to DEFAULT_GYRO_BIAS.
        mg: True M_g (3, 3). Defaults to DEFAULT_GYRO_MG.
        gg: True G_g (3, 3). Defaults to DEFAULT_GYRO_GG.
        rng: Random generator.

    Returns:
        SyntheticDataset whose true_parameters follow the
        GyroscopeKnownFrameProblem layout.
    """
    rng = rng if rng is not None else np.random.default_rng()
    bias = DEFAULT_GYRO_BIAS if bias is None else np.asarray(bias, dtype=float)
    mg = DEFAULT_GYRO_MG if mg is None else np.asarray(mg, dtype=float)
    gg = DEFAULT_GYRO_GG if gg is None else np.asarray(gg, dtype=float)

    f_true = _gravity_directions(n_samples, rng)
    w_true = rng.normal(scale=0.5, size=(n_samples, 3))
    w_meas = apply_gyro_error_model(w_true, bias, mg, gg, f_true)
    if noise_std > 0.0:
        w_meas = w_meas + rng.normal(scale=noise_std, size=w_meas.shape)

    outliers = _outlier_mask(n_samples, outlier_fraction, rng)
    w_meas[outliers] += _random_offsets(int(outliers.sum()), outlier_magnitude, rng)

    std = noise_std if noise_std > 0.0 else None
    samples = [
        FrameBodyKinematics(
            specific_force=f_true[i],
            angular_rate=w_meas[i],
            true_specific_force=f_true[i],
            true_angular_rate=w_true[i],
            angular_rate_std=std,
        )
        for i in range(n_samples)
    ]

    scale, cross = decompose_cross_coupling_matrix(mg)
    return SyntheticDataset(
        samples=samples,
        outliers=outliers,
        quality_scores=_quality_scores(outliers, rng),
        true_parameters=np.concatenate([bias, scale, cross, gg.ravel()]),
    )


def generate_gravity_norm_dataset(
    n_samples: int = 100,
    outlier_fraction: float = 0.2,
    noise_std: float = 0.0,
    outlier_magnitude: float = 0.5,
    bias: Optional[np.ndarray] = None,
    ma: Optional[np.ndarray] = None,
    gravity_norm: float = GRAVITY,
    rng: Optional[np.random.Generator] = None,
) -> SyntheticDataset:
    """
    Generate static accelerometer samples at random unknown attitudes.

    Outliers stretch or shrink the true specific force along itself, so
    their norm is off by [outlier_magnitude, 2·outlier_magnitude].

    Args:
        n_samples: Number of samples.
        outlier_fraction: Fraction of corrupted samples in [0, 1).
        noise_std: White noise std of inlier specific force [m/s²].
        outlier_magnitude: Minimum norm error of outliers [m/s²].
        bias: Known bias b_a (3,). Defaults to DEFAULT_ACCEL_BIAS.
        ma: True M_a (3, 3). Defaults to the upper triangle of
            DEFAULT_ACCEL_MA, the form the gravity norm fully determines.
        gravity_norm: Norm of the true specific force [m/s²].
        rng: Random generator.

    Returns:
        SyntheticDataset whose true_parameters follow the
        AccelerometerGravityNormProblem layout.
    """
    rng = rng if rng is not None else np.random.default_rng()
    bias = DEFAULT_ACCEL_BIAS if bias is None else np.asarray(bias, dtype=float)
    ma = np.triu(DEFAULT_ACCEL_MA) if ma is None else np.asarray(ma, dtype=float)

    f_true = _gravity_directions(n_samples, rng) * (gravity_norm / GRAVITY)

    outliers = _outlier_mask(n_samples, outlier_fraction, rng)
    n_outliers = int(outliers.sum())
    errors = rng.uniform(outlier_magnitude, 2.0 * outlier_magnitude, size=n_outliers)
    errors *= rng.choice([-1.0, 1.0], size=n_outliers)
    f_sensed = f_true.copy()
    f_sensed[outliers] *= (1.0 + errors / gravity_norm)[:, np.newaxis]

    f_meas = apply_accel_error_model(f_sensed, bias, ma)
    if noise_std > 0.0:
        f_meas = f_meas + rng.normal(scale=noise_std, size=f_meas.shape)

    std = noise_std if noise_std > 0.0 else None
    samples = [
        FrameBodyKinematics(
            specific_force=f_meas[i],
            angular_rate=np.zeros(3),
            true_specific_force=f_true[i],
            true_angular_rate=np.zeros(3),
            specific_force_std=std,
        )
        for i in range(n_samples)
    ]

    scale, cross = decompose_cross_coupling_matrix(ma)
    return SyntheticDataset(
        samples=samples,
        outliers=outliers,
        quality_scores=_quality_scores(outliers, rng),
        true_parameters=np.concatenate([scale, cross]),
    )


def generate_ranging_dataset(
    n_anchors: int = 20,
    dimension: int = 2,
    outlier_fraction: float = 0.2,
    noise_std: float = 0.0,
    outlier_magnitude: float = 2.0,
    position: Optional[np.ndarray] = None,
    area_size: float = 20.0,
    rng: Optional[np.random.Generator] = None,
) -> SyntheticDataset:
    """
    Generate ranging readings to anchors scattered over a square/cubic area.

    Args:
        n_anchors: Number of located radio sources.
        dimension: 2 or 3.
        outlier_fraction: Fraction of NLOS readings in [0, 1).
        noise_std: White noise std of LOS distances [m].
        outlier_magnitude: Minimum NLOS bias [m].
        position: True agent position. Defaults to a random point in the
            central half of the area.
        area_size: Side of the area holding the anchors [m].
        rng: Random generator.

    Returns:
        SyntheticDataset with RangingReading samples; true_parameters is
        the agent position.
    """
    if dimension not in (2, 3):
        raise ValueError(f"dimension must be 2 or 3, got {dimension}")
    rng = rng if rng is not None else np.random.default_rng()

    anchors = rng.uniform(0.0, area_size, size=(n_anchors, dimension))
    if position is None:
        position = rng.uniform(0.25 * area_size, 0.75 * area_size, size=dimension)
    position = np.asarray(position, dtype=float)

    distances = np.linalg.norm(anchors - position, axis=1)
    if noise_std > 0.0:
        distances = distances + rng.normal(scale=noise_std, size=n_anchors)

    outliers = _outlier_mask(n_anchors, outlier_fraction, rng)
    distances[outliers] += rng.uniform(
        outlier_magnitude, 3.0 * outlier_magnitude, size=int(outliers.sum())
    )
    # Noise can push very short ranges below zero
    distances = np.abs(distances)

    std = noise_std if noise_std > 0.0 else None
    samples = [
        RangingReading(
            anchor=anchors[i], distance=distances[i], distance_std=std,
            source_id=f"anchor-{i}",
        )
        for i in range(n_anchors)
    ]

    return SyntheticDataset(
        samples=samples,
        outliers=outliers,
        quality_scores=_quality_scores(outliers, rng),
        true_parameters=position,
    )
