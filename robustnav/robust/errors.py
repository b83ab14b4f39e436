"""
Exceptions raised by the robust estimation engine.

All errors derive from CalibrationError so callers can catch the whole
family at once. Configuration errors are also ValueErrors, which is how
the numerical routines in this package report bad arguments.

Hierarchy:
    CalibrationError
    ├── ConfigurationError (also ValueError)
    ├── ReadinessError
    │   └── InsufficientMeasurementsError
    ├── ConcurrencyError
    └── AlgorithmicError
        ├── NotEnoughInliersError
        └── RefinementError
"""


class CalibrationError(Exception):
    """Base class for every error raised by a robust estimator."""


class ConfigurationError(CalibrationError, ValueError):
    """An option was given an invalid value.

    Raised eagerly by setters and by RobustEstimatorConfig validation, so
    the estimator state is left unchanged.
    """


class ReadinessError(CalibrationError):
    """The estimator does not hold enough data to start a calibration."""


class InsufficientMeasurementsError(ReadinessError):
    """Fewer measurements are available than the subset size requires."""


class ConcurrencyError(CalibrationError):
    """State was mutated, or calibrate() re-entered, while running."""


class AlgorithmicError(CalibrationError):
    """The robust fit itself failed (no consensus or failed refinement)."""


class NotEnoughInliersError(AlgorithmicError):
    """No candidate solution gathered enough inliers to be accepted."""


class RefinementError(AlgorithmicError):
    """Refinement of the best candidate failed to converge or was singular."""
