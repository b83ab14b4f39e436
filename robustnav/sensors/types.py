"""
Data structures for inertial sensor calibration.

A known-frame calibration pairs every IMU sample with the kinematics the
sensor should have measured at that instant, computed from a known
position, velocity and attitude (the frame). The frame-to-kinematics
conversion itself happens upstream; calibrators only see the resulting
pairs.

Frame Conventions:
    - B: Body frame (sensor frame)
    - All specific forces and angular rates are expressed in body frame B

Units:
    - Specific force: m/s²
    - Angular rate: rad/s
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np


def _as_vector3(name: str, value) -> np.ndarray:
    vector = np.asarray(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {vector.shape}")
    if not np.all(np.isfinite(vector)):
        raise ValueError(f"{name} must be finite")
    return vector


def _check_std(name: str, std: Optional[float]) -> None:
    if std is not None and (not np.isfinite(std) or std <= 0.0):
        raise ValueError(f"{name} must be positive and finite, got {std}")


@dataclass(frozen=True)
class FrameBodyKinematics:
    """
    Measured and expected body kinematics for one known-frame sample.

    Attributes:
        specific_force: Measured specific force f̃ in body frame B, shape (3,).
                        Units: m/s².
        angular_rate: Measured angular rate ω̃ in body frame B, shape (3,).
                      Units: rad/s.
        true_specific_force: Specific force f expected from the known frame,
                             shape (3,). Units: m/s².
        true_angular_rate: Angular rate ω expected from the known frame,
                           shape (3,). Units: rad/s.
        specific_force_std: Standard deviation of the measured specific
                            force (optional). Units: m/s².
        angular_rate_std: Standard deviation of the measured angular rate
                          (optional). Units: rad/s.

    Notes:
        - Arrays are converted to float and validated on construction.
        - Standard deviations become 1/σ² weights during refinement.

    Example:
        >>> kin = FrameBodyKinematics(
        ...     specific_force=[0.05, -0.02, -9.79],
        ...     angular_rate=[1e-3, 2e-3, 7.3e-5],
        ...     true_specific_force=[0.0, 0.0, -9.81],
        ...     true_angular_rate=[0.0, 0.0, 7.29e-5],
        ...     specific_force_std=0.01,
        ... )
    """

    specific_force: np.ndarray
    angular_rate: np.ndarray
    true_specific_force: np.ndarray
    true_angular_rate: np.ndarray
    specific_force_std: Optional[float] = None
    angular_rate_std: Optional[float] = None

    def __post_init__(self) -> None:
        """Convert vectors to float arrays and validate them."""
        for name in (
            "specific_force",
            "angular_rate",
            "true_specific_force",
            "true_angular_rate",
        ):
            object.__setattr__(self, name, _as_vector3(name, getattr(self, name)))

        _check_std("specific_force_std", self.specific_force_std)
        _check_std("angular_rate_std", self.angular_rate_std)
