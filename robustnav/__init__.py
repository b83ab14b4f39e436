"""Robust calibration and positioning for navigation sensors.

This package contains the reusable components of the library:
- robust: Robust model fitting engine (RANSAC, LMedS, MSAC, PROSAC, PROMedS)
- estimators: Linear and nonlinear least squares used for fitting and refinement
- sensors: Inertial sensor error models and known-frame calibrators
- rf: Range-based indoor positioning with outlier rejection
- sim: Synthetic datasets with a known model and known outliers
"""

__version__ = "0.1.0"
