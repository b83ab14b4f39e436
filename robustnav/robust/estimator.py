"""
Robust estimator orchestrator.

RobustEstimator drives the sampling loop shared by every robust variant:

    1. Draw a subset (uniform or progressive, per variant).
    2. Fit a preliminary solution from the subset (problem collaborator).
    3. Score the candidate against every measurement and classify inliers.
    4. Keep the best candidate and recompute the required iterations.
    5. Notify the listener; stop early once the stop rule is satisfied.

After the loop the best candidate is optionally refined over its inliers
and its covariance estimated (see robustnav.robust.refinement).

State machine:
    NOT_READY → READY → RUNNING → {success, failure} → READY

Every mutator checks the running flag and raises ConcurrencyError while a
calibration is in progress, including when called from a listener
callback. The flag is cleared on every exit path.

Example:
    >>> estimator = RobustEstimator(problem, measurements, method="msac")
    >>> estimator.configure(random_seed=0, threshold=0.05)
    >>> result = estimator.calibrate()
    >>> result.solution, result.inliers_data.num_inliers
"""

import warnings
from typing import Optional, Sequence

import numpy as np

from robustnav.robust.config import RobustEstimatorConfig
from robustnav.robust.errors import (
    ConcurrencyError,
    ConfigurationError,
    InsufficientMeasurementsError,
    NotEnoughInliersError,
    ReadinessError,
    RefinementError,
)
from robustnav.robust.iterations import compute_required_iterations
from robustnav.robust.problem import CalibrationProblem
from robustnav.robust.refinement import estimate_covariance, refine_solution
from robustnav.robust.scoring import RobustVariant, get_variant
from robustnav.robust.types import (
    EstimationResult,
    EstimatorState,
    InliersData,
    Measurement,
    RobustEstimatorListener,
    RobustEstimatorMethod,
)


class RobustEstimator:
    """
    Robust fit of a CalibrationProblem over outlier-contaminated measurements.

    Attributes are exposed through properties whose setters validate
    eagerly (ConfigurationError) and refuse to run while a calibration is
    in progress (ConcurrencyError). Invalid assignments leave the estimator
    unchanged.
    """

    def __init__(
        self,
        problem: CalibrationProblem,
        measurements: Optional[Sequence[Measurement]] = None,
        method="ransac",
        config: Optional[RobustEstimatorConfig] = None,
        quality_scores: Optional[np.ndarray] = None,
        listener: Optional[RobustEstimatorListener] = None,
    ):
        """
        Initialize estimator.

        Args:
            problem: Model to fit.
            measurements: Measurements (any sequence of Measurement).
            method: Robust variant, RobustEstimatorMethod or its name.
            config: Options. Defaults to RobustEstimatorConfig().
            quality_scores: One non-negative score per measurement
                (required by PROSAC and PROMedS).
            listener: Optional receiver of calibration events.

        Raises:
            ConfigurationError: If any argument is invalid.
        """
        self._problem = problem
        self._running = False
        self._result: Optional[EstimationResult] = None
        self._measurements: Optional[list] = None
        self._quality_scores: Optional[np.ndarray] = None

        self._variant: RobustVariant = get_variant(method)
        self._config = self._validated_config(
            config if config is not None else RobustEstimatorConfig()
        )
        self._listener = listener

        if measurements is not None:
            self.measurements = measurements
        if quality_scores is not None:
            self.quality_scores = quality_scores

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _check_not_running(self) -> None:
        if self._running:
            raise ConcurrencyError("Estimator is running; state cannot be changed")

    @property
    def problem(self) -> CalibrationProblem:
        return self._problem

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> EstimatorState:
        if self._running:
            return EstimatorState.RUNNING
        if self.is_ready:
            return EstimatorState.READY
        return EstimatorState.NOT_READY

    @property
    def quality_scores_required(self) -> bool:
        return self._variant.uses_quality_scores

    @property
    def minimum_subset_size(self) -> int:
        """Smallest subset size allowed by the problem and common-axis option."""
        return self._problem.minimum_subset_size(self._config.common_axis_used)

    @property
    def preliminary_subset_size(self) -> int:
        """Subset size used for sampling."""
        if self._config.preliminary_subset_size is None:
            return self.minimum_subset_size
        return self._config.preliminary_subset_size

    @property
    def threshold(self) -> float:
        """Inlier threshold in effect."""
        if self._config.threshold is None:
            return self._problem.default_threshold
        return self._config.threshold

    @property
    def is_ready(self) -> bool:
        """True if calibrate() has enough data to start."""
        if self._measurements is None:
            return False
        if len(self._measurements) < self.preliminary_subset_size:
            return False
        if self.quality_scores_required:
            return self._quality_scores is not None and len(
                self._quality_scores
            ) == len(self._measurements)
        return True

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    @property
    def measurements(self) -> Optional[list]:
        return self._measurements

    @measurements.setter
    def measurements(self, measurements: Sequence[Measurement]) -> None:
        self._check_not_running()
        measurements = self._validated_measurements(measurements)
        if self._quality_scores is not None and len(self._quality_scores) != len(
            measurements
        ):
            raise ConfigurationError(
                f"{len(measurements)} measurements do not match "
                f"{len(self._quality_scores)} quality scores"
            )
        self._measurements = measurements

    @staticmethod
    def _validated_measurements(measurements: Sequence[Measurement]) -> list:
        measurements = list(measurements)
        for m in measurements:
            if not isinstance(m, Measurement):
                raise ConfigurationError(
                    f"measurements must be Measurement instances, got {type(m).__name__}"
                )
        return measurements

    @property
    def quality_scores(self) -> Optional[np.ndarray]:
        return self._quality_scores

    @quality_scores.setter
    def quality_scores(self, quality_scores: Optional[np.ndarray]) -> None:
        self._check_not_running()
        self._quality_scores = self._validated_scores(
            quality_scores, self._measurements
        )

    def set_data(
        self,
        measurements: Sequence[Measurement],
        quality_scores: Optional[np.ndarray] = None,
    ) -> None:
        """Replace measurements and quality scores together."""
        self._check_not_running()
        measurements = self._validated_measurements(measurements)
        scores = self._validated_scores(quality_scores, measurements)

        self._measurements = measurements
        self._quality_scores = scores

    @staticmethod
    def _validated_scores(quality_scores, measurements) -> Optional[np.ndarray]:
        if quality_scores is None:
            return None
        scores = np.asarray(quality_scores, dtype=float)
        if scores.ndim != 1:
            raise ConfigurationError(
                f"quality_scores must be 1D, got shape {scores.shape}"
            )
        if not np.all(np.isfinite(scores)) or np.any(scores < 0.0):
            raise ConfigurationError("quality_scores must be finite and non-negative")
        if measurements is not None and len(scores) != len(measurements):
            raise ConfigurationError(
                f"Expected {len(measurements)} quality scores, got {len(scores)}"
            )
        return scores.copy()

    @property
    def method(self) -> RobustEstimatorMethod:
        return self._variant.method

    @method.setter
    def method(self, method) -> None:
        self._check_not_running()
        self._variant = get_variant(method)

    @property
    def config(self) -> RobustEstimatorConfig:
        return self._config

    @config.setter
    def config(self, config: RobustEstimatorConfig) -> None:
        self._check_not_running()
        self._config = self._validated_config(config)

    def configure(self, **changes) -> None:
        """Replace individual options, e.g. configure(confidence=0.999)."""
        self._check_not_running()
        self._config = self._validated_config(self._config.with_changes(**changes))

    def _validated_config(self, config: RobustEstimatorConfig) -> RobustEstimatorConfig:
        if not isinstance(config, RobustEstimatorConfig):
            raise ConfigurationError(
                f"config must be a RobustEstimatorConfig, got {type(config).__name__}"
            )
        minimum = self._problem.minimum_subset_size(config.common_axis_used)
        if (
            config.preliminary_subset_size is not None
            and config.preliminary_subset_size < minimum
        ):
            raise ConfigurationError(
                f"preliminary_subset_size must be at least {minimum}, "
                f"got {config.preliminary_subset_size}"
            )
        return config

    @property
    def listener(self) -> Optional[RobustEstimatorListener]:
        return self._listener

    @listener.setter
    def listener(self, listener: Optional[RobustEstimatorListener]) -> None:
        self._check_not_running()
        self._listener = listener

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @property
    def result(self) -> Optional[EstimationResult]:
        """Result of the last successful calibration, or None."""
        return self._result

    @property
    def estimated_parameters(self) -> Optional[np.ndarray]:
        return None if self._result is None else self._result.solution

    @property
    def covariance(self) -> Optional[np.ndarray]:
        return None if self._result is None else self._result.covariance

    @property
    def inliers_data(self) -> Optional[InliersData]:
        return None if self._result is None else self._result.inliers_data

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def calibrate(self) -> EstimationResult:
        """
        Run the robust fit.

        Returns:
            EstimationResult of this call (also kept in `result`).

        Raises:
            ConcurrencyError: If already running.
            ReadinessError: If measurements or quality scores are missing.
            InsufficientMeasurementsError: If there are fewer measurements
                than the subset size.
            NotEnoughInliersError: If no candidate gathered enough inliers.
            RefinementError: If refinement failed and is required.
        """
        self._check_not_running()
        self._check_ready()

        self._result = None
        self._running = True
        try:
            if self._listener is not None:
                self._listener.on_estimate_start(self)
            result = self._estimate()
        finally:
            self._running = False

        self._result = result
        if self._listener is not None:
            self._listener.on_estimate_end(self)
        return result

    def _check_ready(self) -> None:
        if self._measurements is None:
            raise ReadinessError("No measurements have been provided")
        subset_size = self.preliminary_subset_size
        if len(self._measurements) < subset_size:
            raise InsufficientMeasurementsError(
                f"Need at least {subset_size} measurements, "
                f"got {len(self._measurements)}"
            )
        if self.quality_scores_required and self._quality_scores is None:
            raise ReadinessError(f"{self.method.value} requires quality scores")

    def _estimate(self) -> EstimationResult:
        problem = self._problem
        config = self._config
        variant = self._variant
        measurements = self._measurements
        listener = self._listener

        mask = problem.free_parameters(config.common_axis_used)
        subset_size = self.preliminary_subset_size
        threshold = self.threshold
        max_iterations = config.max_iterations

        rng = np.random.default_rng(config.random_seed)
        sampler = variant.create_sampler(
            len(measurements), subset_size, max_iterations, rng, self._quality_scores
        )

        best_solution = None
        best_data: Optional[InliersData] = None
        required = max_iterations
        iteration = 0
        last_progress = 0.0

        while iteration < required and iteration < max_iterations:
            subset = [measurements[i] for i in sampler.sample()]
            iteration += 1

            try:
                candidate = problem.preliminary_solution(
                    subset,
                    mask,
                    linear=config.linear_calibrator_used,
                    refined=config.preliminary_solution_refined,
                )
                residuals = problem.residuals(candidate, measurements)
            except (ValueError, np.linalg.LinAlgError):
                # Degenerate subset or singular candidate
                candidate = None

            if candidate is not None:
                if np.all(np.isfinite(residuals)):
                    data = variant.classify(residuals, threshold)
                    if best_data is None or data.score < best_data.score:
                        best_solution = candidate
                        best_data = data
                        required = compute_required_iterations(
                            config.confidence,
                            data.inlier_ratio,
                            subset_size,
                            iteration,
                            max_iterations,
                        )

            if listener is not None:
                listener.on_estimate_next_iteration(self, iteration)
                progress = min(1.0, iteration / required)
                if progress - last_progress > config.progress_delta:
                    last_progress = progress
                    listener.on_estimate_progress_change(self, progress)

            if best_data is not None and variant.should_stop(
                best_data, config.stop_threshold
            ):
                break

        if best_data is None:
            raise NotEnoughInliersError(
                f"No valid candidate found after {iteration} iterations"
            )
        minimum = problem.minimum_subset_size(config.common_axis_used)
        if best_data.num_inliers < minimum:
            raise NotEnoughInliersError(
                f"Best candidate has {best_data.num_inliers} inliers, "
                f"at least {minimum} are required"
            )

        solution, covariance, refined = self._refine(
            best_solution, best_data, mask
        )

        return EstimationResult(
            solution=solution,
            covariance=covariance,
            inliers_data=best_data,
            method=variant.method,
            iterations=iteration,
            refined=refined,
            preliminary_solution=best_solution,
        )

    def _refine(self, solution: np.ndarray, data: InliersData, mask: np.ndarray):
        """Refine the best candidate and estimate its covariance per config."""
        config = self._config
        problem = self._problem
        measurements = self._measurements

        refined = False
        if config.result_refined:
            try:
                outcome = refine_solution(
                    problem, measurements, solution, data.inliers, mask
                )
            except RefinementError as e:
                if config.refinement_required:
                    raise
                warnings.warn(
                    f"Refinement failed, keeping unrefined solution: {e}",
                    RuntimeWarning,
                )
                return solution, None, False
            solution = outcome.solution
            refined = outcome.improved

        covariance = None
        if config.covariance_kept:
            # A singular normal matrix only costs the covariance
            try:
                covariance = estimate_covariance(
                    problem, measurements, solution, data.inliers, mask
                )
            except RefinementError as e:
                warnings.warn(f"Covariance unavailable: {e}", RuntimeWarning)

        return solution, covariance, refined
