"""
Robust estimation engine.

Fits a CalibrationProblem to a batch of measurements partly corrupted by
outliers using one of five robust variants:

    - RANSAC: maximize the number of inliers
    - LMedS: minimize the median squared residual
    - MSAC: minimize the truncated quadratic cost
    - PROSAC: RANSAC with quality-guided progressive sampling
    - PROMedS: LMedS with quality-guided progressive sampling

Modules:
    - types: measurements, inlier records, results, listener
    - config: RobustEstimatorConfig and JSON loading
    - errors: exception hierarchy
    - sampling: uniform and progressive subset samplers
    - scoring: score functions and variant strategies
    - iterations: adaptive iteration control
    - problem: CalibrationProblem interface
    - refinement: inlier refinement and covariance estimation
    - estimator: RobustEstimator orchestrator
"""

from robustnav.robust.config import (
    DEFAULT_CONFIDENCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_PROGRESS_DELTA,
    RobustEstimatorConfig,
    load_config,
)
from robustnav.robust.errors import (
    AlgorithmicError,
    CalibrationError,
    ConcurrencyError,
    ConfigurationError,
    InsufficientMeasurementsError,
    NotEnoughInliersError,
    ReadinessError,
    RefinementError,
)
from robustnav.robust.estimator import RobustEstimator
from robustnav.robust.iterations import compute_required_iterations
from robustnav.robust.problem import CalibrationProblem
from robustnav.robust.refinement import (
    RefinementOutcome,
    estimate_covariance,
    refine_solution,
    weighted_cost,
)
from robustnav.robust.sampling import (
    ProgressiveSubsetSampler,
    SubsetSampler,
    UniformSubsetSampler,
)
from robustnav.robust.scoring import (
    VARIANTS,
    RobustVariant,
    consensus_score,
    get_variant,
    median_score,
    truncated_quadratic_score,
)
from robustnav.robust.types import (
    EstimationResult,
    EstimatorState,
    InliersData,
    Measurement,
    RobustEstimatorListener,
    RobustEstimatorMethod,
)

__all__ = [
    # Data model
    "Measurement",
    "InliersData",
    "EstimationResult",
    "EstimatorState",
    "RobustEstimatorListener",
    "RobustEstimatorMethod",
    # Configuration
    "RobustEstimatorConfig",
    "load_config",
    "DEFAULT_CONFIDENCE",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_PROGRESS_DELTA",
    # Errors
    "CalibrationError",
    "ConfigurationError",
    "ReadinessError",
    "InsufficientMeasurementsError",
    "ConcurrencyError",
    "AlgorithmicError",
    "NotEnoughInliersError",
    "RefinementError",
    # Sampling and scoring
    "SubsetSampler",
    "UniformSubsetSampler",
    "ProgressiveSubsetSampler",
    "RobustVariant",
    "VARIANTS",
    "get_variant",
    "consensus_score",
    "median_score",
    "truncated_quadratic_score",
    "compute_required_iterations",
    # Problem, refinement, orchestrator
    "CalibrationProblem",
    "RefinementOutcome",
    "refine_solution",
    "estimate_covariance",
    "weighted_cost",
    "RobustEstimator",
]
