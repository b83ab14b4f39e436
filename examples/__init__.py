"""
Robust calibration and positioning examples.

Command-line scripts exercising the robust estimators on synthetic data
with a known outlier fraction.

Examples:
    - Accelerometer known-frame calibration
    - Gyroscope known-frame calibration (with g-dependent cross biases)
    - Range-based positioning with NLOS outliers
    - Comparison of RANSAC, LMedS, MSAC, PROSAC and PROMedS
"""

__version__ = "0.1.0"
