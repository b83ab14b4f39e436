"""
Synthetic data for robust calibration and positioning.

Modules:
    calibration_data: accelerometer, gyroscope, gravity-norm and ranging
        datasets drawn from a known model with a known fraction of outliers
"""

from robustnav.sim.calibration_data import (
    GRAVITY,
    SyntheticDataset,
    generate_accelerometer_dataset,
    generate_gravity_norm_dataset,
    generate_gyroscope_dataset,
    generate_ranging_dataset,
)

__all__ = [
    "GRAVITY",
    "SyntheticDataset",
    "generate_accelerometer_dataset",
    "generate_gravity_norm_dataset",
    "generate_gyroscope_dataset",
    "generate_ranging_dataset",
]
