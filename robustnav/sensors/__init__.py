"""
Inertial sensor models and robust known-frame calibration.

This module provides:
    - FrameBodyKinematics: measured/expected kinematics of one sample
    - IMU error models (bias, scale factor, cross coupling, g-dependent
      cross biases) and their corrections
    - Accelerometer and gyroscope known-frame calibration problems
    - Known-bias accelerometer calibration from the gravity norm
    - Robust calibrators built on robustnav.robust.RobustEstimator
"""

from robustnav.sensors.types import FrameBodyKinematics
from robustnav.sensors.imu_models import (
    COMMON_AXIS_ZEROED,
    CROSS_COUPLING_NAMES,
    apply_accel_error_model,
    apply_gyro_error_model,
    build_cross_coupling_matrix,
    correct_accel,
    correct_gyro,
    decompose_cross_coupling_matrix,
)
from robustnav.sensors.calibration import (
    DEFAULT_ACCELEROMETER_THRESHOLD,
    DEFAULT_GRAVITY_NORM_THRESHOLD,
    DEFAULT_GYROSCOPE_THRESHOLD,
    STANDARD_GRAVITY,
    AccelerometerGravityNormProblem,
    AccelerometerKnownFrameProblem,
    GyroscopeKnownFrameProblem,
    RobustKnownBiasAndGravityNormAccelerometerCalibrator,
    RobustKnownFrameAccelerometerCalibrator,
    RobustKnownFrameGyroscopeCalibrator,
    accelerometer_measurements,
    gyroscope_measurements,
)

__all__ = [
    # Types
    "FrameBodyKinematics",
    # Error models
    "CROSS_COUPLING_NAMES",
    "COMMON_AXIS_ZEROED",
    "build_cross_coupling_matrix",
    "decompose_cross_coupling_matrix",
    "apply_accel_error_model",
    "apply_gyro_error_model",
    "correct_accel",
    "correct_gyro",
    # Calibration
    "DEFAULT_ACCELEROMETER_THRESHOLD",
    "DEFAULT_GYROSCOPE_THRESHOLD",
    "DEFAULT_GRAVITY_NORM_THRESHOLD",
    "STANDARD_GRAVITY",
    "AccelerometerKnownFrameProblem",
    "GyroscopeKnownFrameProblem",
    "AccelerometerGravityNormProblem",
    "RobustKnownBiasAndGravityNormAccelerometerCalibrator",
    "RobustKnownFrameAccelerometerCalibrator",
    "RobustKnownFrameGyroscopeCalibrator",
    "accelerometer_measurements",
    "gyroscope_measurements",
]
