"""
IMU deterministic error models.

Accelerometer model:
    f̃ = b_a + (I + M_a) f

Gyroscope model:
    ω̃ = b_g + (I + M_g) ω + G_g f

where:
    f, ω: true specific force [m/s²] and angular rate [rad/s] in body frame B
    f̃, ω̃: measured specific force and angular rate
    b_a, b_g: biases
    M_a, M_g: scale factor and cross-coupling matrices
    G_g: g-dependent cross biases of the gyroscope [rad/s per m/s²]

Scale and cross-coupling matrices are laid out as:

    M = [[sx,  mxy, mxz],
         [myx, sy,  myz],
         [mzx, mzy, sz ]]

Under the common-axis assumption the x axis of the sensor triad is aligned
with the body x axis and the y axis lies in the body x-y plane, which
makes myx, mzx and mzy exactly zero (M upper triangular).

Frame Conventions:
    - B: Body frame (sensor frame)
"""

from typing import Optional, Tuple

import numpy as np

#: Order of the cross-coupling terms in parameter vectors
CROSS_COUPLING_NAMES = ("mxy", "mxz", "myx", "myz", "mzx", "mzy")

#: (row, column) of each cross-coupling term in M
CROSS_COUPLING_INDEX = ((0, 1), (0, 2), (1, 0), (1, 2), (2, 0), (2, 1))

#: Cross-coupling terms that are zero under the common-axis assumption
COMMON_AXIS_ZEROED = ("myx", "mzx", "mzy")


def build_cross_coupling_matrix(scale: np.ndarray, cross: np.ndarray) -> np.ndarray:
    """
    Assemble the scale and cross-coupling matrix M.

    Args:
        scale: Scale factors [sx, sy, sz], shape (3,).
        cross: Cross-coupling terms [mxy, mxz, myx, myz, mzx, mzy], shape (6,).

    Returns:
        Matrix M, shape (3, 3).

    Example:
        >>> M = build_cross_coupling_matrix([0.01, -0.02, 0.005], np.zeros(6))
        >>> np.diag(M)
        array([ 0.01 , -0.02 ,  0.005])
    """
    scale = np.asarray(scale, dtype=float)
    cross = np.asarray(cross, dtype=float)
    if scale.shape != (3,):
        raise ValueError(f"scale must be (3,), got {scale.shape}")
    if cross.shape != (6,):
        raise ValueError(f"cross must be (6,), got {cross.shape}")

    M = np.diag(scale)
    for value, (i, j) in zip(cross, CROSS_COUPLING_INDEX):
        M[i, j] = value
    return M


def decompose_cross_coupling_matrix(M: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split M into scale factors and cross-coupling terms.

    Args:
        M: Scale and cross-coupling matrix, shape (3, 3).

    Returns:
        Tuple (scale (3,), cross (6,)) in the order of build_cross_coupling_matrix.
    """
    M = np.asarray(M, dtype=float)
    if M.shape != (3, 3):
        raise ValueError(f"M must be (3, 3), got {M.shape}")
    cross = np.array([M[i, j] for i, j in CROSS_COUPLING_INDEX])
    return np.diag(M).copy(), cross


def apply_accel_error_model(
    f_true: np.ndarray,
    b_a: np.ndarray,
    M_a: np.ndarray,
) -> np.ndarray:
    """
    Predict accelerometer output from the true specific force.

        f̃ = b_a + (I + M_a) f

    Args:
        f_true: True specific force in body frame B.
                Shape: (3,) or (N, 3). Units: m/s².
        b_a: Accelerometer bias, shape (3,). Units: m/s².
        M_a: Scale and cross-coupling matrix, shape (3, 3).

    Returns:
        Measured specific force, shape matches f_true.

    Example:
        >>> f = np.array([0.0, 0.0, -9.81])
        >>> b = np.array([0.1, -0.05, 0.02])
        >>> apply_accel_error_model(f, b, np.zeros((3, 3)))
        array([ 0.1 , -0.05, -9.79])
    """
    return _apply_linear_model(f_true, b_a, M_a, "f_true")


def apply_gyro_error_model(
    w_true: np.ndarray,
    b_g: np.ndarray,
    M_g: np.ndarray,
    G_g: Optional[np.ndarray] = None,
    f_true: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Predict gyroscope output from the true angular rate.

        ω̃ = b_g + (I + M_g) ω + G_g f

    Args:
        w_true: True angular rate in body frame B.
                Shape: (3,) or (N, 3). Units: rad/s.
        b_g: Gyroscope bias, shape (3,). Units: rad/s.
        M_g: Scale and cross-coupling matrix, shape (3, 3).
        G_g: G-dependent cross biases, shape (3, 3). If None, assumed zero.
        f_true: True specific force, same shape as w_true. Required when
                G_g is given.

    Returns:
        Measured angular rate, shape matches w_true.
    """
    w_meas = _apply_linear_model(w_true, b_g, M_g, "w_true")

    if G_g is not None:
        if f_true is None:
            raise ValueError("f_true is required with g-dependent cross biases")
        G_g = np.asarray(G_g, dtype=float)
        f_true = np.asarray(f_true, dtype=float)
        if G_g.shape != (3, 3):
            raise ValueError(f"G_g must be (3, 3), got {G_g.shape}")
        if f_true.shape != np.shape(w_true):
            raise ValueError(
                f"f_true shape {f_true.shape} does not match w_true {np.shape(w_true)}"
            )
        w_meas = w_meas + f_true @ G_g.T

    return w_meas


def correct_accel(
    accel_meas: np.ndarray,
    b_a: np.ndarray,
    M_a: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Recover the true specific force from a calibrated accelerometer.

    Inverts the accelerometer model:
        f = (I + M_a)⁻¹ (f̃ - b_a)

    Args:
        accel_meas: Measured specific force, shape (3,) or (N, 3). Units: m/s².
        b_a: Accelerometer bias, shape (3,).
        M_a: Scale and cross-coupling matrix (3, 3). If None, bias only.

    Returns:
        Corrected specific force, shape matches accel_meas.
    """
    accel_meas = np.asarray(accel_meas, dtype=float)
    f = accel_meas - np.asarray(b_a, dtype=float)
    if M_a is None:
        return f
    T = np.eye(3) + np.asarray(M_a, dtype=float)
    return np.linalg.solve(T, f.T).T


def correct_gyro(
    gyro_meas: np.ndarray,
    b_g: np.ndarray,
    M_g: Optional[np.ndarray] = None,
    G_g: Optional[np.ndarray] = None,
    f_true: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Recover the true angular rate from a calibrated gyroscope.

    Inverts the gyroscope model:
        ω = (I + M_g)⁻¹ (ω̃ - b_g - G_g f)

    Args:
        gyro_meas: Measured angular rate, shape (3,) or (N, 3). Units: rad/s.
        b_g: Gyroscope bias, shape (3,).
        M_g: Scale and cross-coupling matrix (3, 3). If None, bias only.
        G_g: G-dependent cross biases (3, 3). Requires f_true.
        f_true: Specific force sensed together with gyro_meas.

    Returns:
        Corrected angular rate, shape matches gyro_meas.
    """
    gyro_meas = np.asarray(gyro_meas, dtype=float)
    w = gyro_meas - np.asarray(b_g, dtype=float)
    if G_g is not None:
        if f_true is None:
            raise ValueError("f_true is required with g-dependent cross biases")
        w = w - np.asarray(f_true, dtype=float) @ np.asarray(G_g, dtype=float).T
    if M_g is None:
        return w
    T = np.eye(3) + np.asarray(M_g, dtype=float)
    return np.linalg.solve(T, w.T).T


def _apply_linear_model(u: np.ndarray, b: np.ndarray, M: np.ndarray, name: str) -> np.ndarray:
    u = np.asarray(u, dtype=float)
    b = np.asarray(b, dtype=float)
    M = np.asarray(M, dtype=float)

    if M.shape != (3, 3):
        raise ValueError(f"M must be (3, 3), got {M.shape}")
    if b.shape != (3,):
        raise ValueError(f"b must be (3,), got {b.shape}")
    if not (u.shape == (3,) or (u.ndim == 2 and u.shape[1] == 3)):
        raise ValueError(f"{name} must have shape (3,) or (N, 3), got {u.shape}")

    # Row-wise for batches: (I + M) u_i
    return b + u @ (np.eye(3) + M).T
