"""
Unit tests for robustnav/robust/estimator.py.

Tests cover:
    - Exact recovery of a known model by every robust variant
    - State machine (NOT_READY / READY / RUNNING) and readiness errors
    - Concurrency guard observed from listener callbacks
    - Listener events and progress notifications
    - Determinism with a seeded sampler
    - Bounded runtime (max_iterations = 1)
    - Quality score validation for PROSAC / PROMedS
    - Refinement fallback, mandatory refinement and covariance failure
    - NotEnoughInliersError when no candidate gathers enough inliers
"""

import unittest
import warnings
from unittest import mock

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from robustnav.robust.config import RobustEstimatorConfig
from robustnav.robust.errors import (
    AlgorithmicError,
    ConcurrencyError,
    ConfigurationError,
    InsufficientMeasurementsError,
    NotEnoughInliersError,
    ReadinessError,
    RefinementError,
)
from robustnav.robust.estimator import RobustEstimator
from robustnav.robust.refinement import weighted_cost
from robustnav.robust.types import (
    EstimatorState,
    RobustEstimatorListener,
    RobustEstimatorMethod,
)
from robustnav.sensors.calibration import (
    AccelerometerKnownFrameProblem,
    accelerometer_measurements,
)
from robustnav.sim.calibration_data import generate_accelerometer_dataset

ALL_METHODS = ["ransac", "lmeds", "msac", "prosac", "promeds"]


def make_estimator(data, method="ransac", **config):
    config.setdefault("random_seed", 0)
    return RobustEstimator(
        AccelerometerKnownFrameProblem(),
        accelerometer_measurements(data.samples),
        method=method,
        config=RobustEstimatorConfig(**config),
        quality_scores=data.quality_scores,
    )


class RecordingListener(RobustEstimatorListener):
    """Listener recording events and mutation attempts."""

    def __init__(self):
        self.events = []
        self.iterations = []
        self.progress = []
        self.errors = []
        self.running_at_end = None

    def on_estimate_start(self, estimator):
        self.events.append("start")
        self._try_mutations(estimator)

    def on_estimate_end(self, estimator):
        self.events.append("end")
        self.running_at_end = estimator.running

    def on_estimate_next_iteration(self, estimator, iteration):
        self.iterations.append(iteration)
        if iteration == 1:
            self._try_mutations(estimator)

    def on_estimate_progress_change(self, estimator, progress):
        self.progress.append(progress)

    def _try_mutations(self, estimator):
        attempts = [
            lambda: estimator.configure(confidence=0.9),
            lambda: setattr(estimator, "method", "msac"),
            lambda: setattr(estimator, "measurements", estimator.measurements),
            lambda: setattr(estimator, "quality_scores", None),
            lambda: setattr(estimator, "listener", None),
            lambda: setattr(estimator, "config", RobustEstimatorConfig()),
            lambda: estimator.set_data(estimator.measurements),
            estimator.calibrate,
        ]
        for attempt in attempts:
            try:
                attempt()
            except ConcurrencyError as e:
                self.errors.append(e)


class TestExactRecovery(unittest.TestCase):
    """Every variant recovers a noiseless model contaminated by outliers."""

    def setUp(self):
        self.data = generate_accelerometer_dataset(
            n_samples=60, outlier_fraction=0.3, rng=np.random.default_rng(7)
        )

    def test_all_variants_recover_true_model(self):
        """Test every variant recovers the noiseless model and its inliers."""
        for method in ALL_METHODS:
            with self.subTest(method=method):
                estimator = make_estimator(self.data, method)
                result = estimator.calibrate()

                assert_allclose(result.solution, self.data.true_parameters, atol=1e-8)
                assert_array_equal(result.inliers_data.inliers, self.data.inliers)
                self.assertEqual(result.method, RobustEstimatorMethod(method))

    def test_all_variants_recover_without_refinement(self):
        """Test recovery with refinement and covariance disabled."""
        for method in ALL_METHODS:
            with self.subTest(method=method):
                estimator = make_estimator(
                    self.data, method, result_refined=False, covariance_kept=False
                )
                result = estimator.calibrate()

                assert_allclose(result.solution, self.data.true_parameters, atol=1e-8)
                self.assertFalse(result.refined)
                self.assertIsNone(result.covariance)

    def test_nonlinear_preliminary_solver(self):
        """Test the nonlinear preliminary solver with subset refinement."""
        estimator = make_estimator(
            self.data, "msac", linear_calibrator_used=False,
            preliminary_solution_refined=True,
        )
        result = estimator.calibrate()
        assert_allclose(result.solution, self.data.true_parameters, atol=1e-8)

    def test_larger_preliminary_subset(self):
        """Test recovery with subsets larger than the minimum."""
        estimator = make_estimator(self.data, "ransac", preliminary_subset_size=6)
        self.assertEqual(estimator.preliminary_subset_size, 6)
        result = estimator.calibrate()
        assert_allclose(result.solution, self.data.true_parameters, atol=1e-8)

    def test_result_accessors(self):
        """Test accessors before and after calibration."""
        estimator = make_estimator(self.data, "lmeds")
        self.assertIsNone(estimator.result)
        self.assertIsNone(estimator.estimated_parameters)

        result = estimator.calibrate()

        self.assertIs(estimator.result, result)
        assert_array_equal(estimator.estimated_parameters, result.solution)
        self.assertIs(estimator.inliers_data, result.inliers_data)
        self.assertEqual(estimator.covariance.shape, (12, 12))
        self.assertGreaterEqual(result.iterations, 1)
        self.assertEqual(result.preliminary_solution.shape, (12,))


class TestStateMachine(unittest.TestCase):
    """Readiness and states."""

    def setUp(self):
        self.data = generate_accelerometer_dataset(
            n_samples=20, outlier_fraction=0.1, rng=np.random.default_rng(1)
        )

    def test_not_ready_without_measurements(self):
        """Test that calibrating without measurements raises ReadinessError."""
        estimator = RobustEstimator(AccelerometerKnownFrameProblem())
        self.assertEqual(estimator.state, EstimatorState.NOT_READY)
        self.assertFalse(estimator.is_ready)
        with self.assertRaises(ReadinessError):
            estimator.calibrate()

    def test_too_few_measurements(self):
        """Test that fewer measurements than the subset size are rejected."""
        measurements = accelerometer_measurements(self.data.samples[:3])
        estimator = RobustEstimator(AccelerometerKnownFrameProblem(), measurements)
        self.assertFalse(estimator.is_ready)
        with self.assertRaises(InsufficientMeasurementsError):
            estimator.calibrate()
        self.assertFalse(estimator.running)

    def test_quality_scores_required(self):
        """Test PROSAC is not ready until quality scores are set."""
        estimator = RobustEstimator(
            AccelerometerKnownFrameProblem(),
            accelerometer_measurements(self.data.samples),
            method="prosac",
        )
        self.assertTrue(estimator.quality_scores_required)
        self.assertEqual(estimator.state, EstimatorState.NOT_READY)
        with self.assertRaises(ReadinessError):
            estimator.calibrate()

        estimator.quality_scores = self.data.quality_scores
        self.assertEqual(estimator.state, EstimatorState.READY)

    def test_ready(self):
        """Test a fully configured estimator is READY."""
        estimator = make_estimator(self.data)
        self.assertEqual(estimator.state, EstimatorState.READY)
        self.assertEqual(estimator.minimum_subset_size, 4)
        self.assertEqual(estimator.threshold, 1e-2)

    def test_subset_size_below_minimum_rejected(self):
        """Test subset sizes below the problem minimum are rejected eagerly."""
        estimator = make_estimator(self.data)
        config = estimator.config

        with self.assertRaises(ConfigurationError):
            estimator.configure(preliminary_subset_size=3)
        with self.assertRaises(ConfigurationError):
            RobustEstimator(
                AccelerometerKnownFrameProblem(),
                config=RobustEstimatorConfig(preliminary_subset_size=2),
            )
        self.assertIs(estimator.config, config)

    def test_invalid_method(self):
        """Test an unknown method leaves the current one unchanged."""
        estimator = make_estimator(self.data)
        with self.assertRaises(ConfigurationError):
            estimator.method = "mlesac"
        self.assertEqual(estimator.method, RobustEstimatorMethod.RANSAC)

    def test_measurements_must_be_measurement_instances(self):
        """Test that raw samples are rejected as measurements."""
        estimator = make_estimator(self.data)
        with self.assertRaises(ConfigurationError):
            estimator.measurements = self.data.samples

    def test_result_cleared_on_failure(self):
        """Test a failed calibration clears the previous result."""
        estimator = make_estimator(self.data)
        estimator.calibrate()
        self.assertIsNotNone(estimator.result)

        with mock.patch(
            "robustnav.robust.estimator.refine_solution",
            side_effect=RefinementError("singular"),
        ):
            estimator.configure(refinement_required=True)
            with self.assertRaises(RefinementError):
                estimator.calibrate()

        self.assertIsNone(estimator.result)
        self.assertFalse(estimator.running)
        self.assertEqual(estimator.state, EstimatorState.READY)

    def test_degenerate_samples_raise_not_enough_inliers(self):
        """Test that identical samples never yield a candidate."""
        samples = [self.data.samples[0]] * 20
        estimator = RobustEstimator(
            AccelerometerKnownFrameProblem(),
            accelerometer_measurements(samples),
            config=RobustEstimatorConfig(max_iterations=50, random_seed=0),
        )
        with self.assertRaisesRegex(NotEnoughInliersError, "No valid candidate"):
            estimator.calibrate()

        self.assertFalse(estimator.running)
        self.assertIsNone(estimator.result)
        self.assertEqual(estimator.state, EstimatorState.READY)

    def test_too_few_inliers_for_best_candidate(self):
        """Test that a best candidate with fewer inliers than a subset is rejected."""
        data = generate_accelerometer_dataset(
            n_samples=20, outlier_fraction=0.0, noise_std=0.1,
            rng=np.random.default_rng(2),
        )
        estimator = make_estimator(
            data, threshold=1e-6, preliminary_subset_size=6, max_iterations=20
        )
        with self.assertRaisesRegex(NotEnoughInliersError, "at least 4 are required"):
            estimator.calibrate()

        self.assertFalse(estimator.running)
        self.assertIsNone(estimator.result)


class TestQualityScores(unittest.TestCase):
    """Quality scores for PROSAC and PROMedS."""

    def setUp(self):
        self.data = generate_accelerometer_dataset(
            n_samples=40, outlier_fraction=0.2, rng=np.random.default_rng(3)
        )
        self.measurements = accelerometer_measurements(self.data.samples)

    def test_mis_sized_scores_rejected(self):
        """Test that mis-sized quality scores are rejected eagerly."""
        for method in ("prosac", "promeds"):
            with self.assertRaises(ConfigurationError):
                RobustEstimator(
                    AccelerometerKnownFrameProblem(), self.measurements,
                    method=method, quality_scores=np.ones(39),
                )

            estimator = RobustEstimator(
                AccelerometerKnownFrameProblem(), self.measurements, method=method
            )
            with self.assertRaises(ConfigurationError):
                estimator.quality_scores = np.ones(41)
            self.assertIsNone(estimator.quality_scores)

    def test_measurements_must_match_scores(self):
        """Test measurements and scores must keep the same length."""
        estimator = RobustEstimator(
            AccelerometerKnownFrameProblem(), self.measurements,
            method="prosac", quality_scores=np.ones(40),
        )
        with self.assertRaises(ConfigurationError):
            estimator.measurements = self.measurements[:30]

        estimator.set_data(self.measurements[:30], np.ones(30))
        self.assertEqual(len(estimator.measurements), 30)

    def test_negative_scores_rejected(self):
        """Test that negative quality scores are rejected."""
        scores = np.ones(40)
        scores[5] = -1.0
        with self.assertRaises(ConfigurationError):
            RobustEstimator(
                AccelerometerKnownFrameProblem(), self.measurements,
                method="prosac", quality_scores=scores,
            )

    def test_equal_scores_degenerate_to_uniform(self):
        """Test equal quality scores still recover the model."""
        for method in ("prosac", "promeds"):
            with self.subTest(method=method):
                estimator = RobustEstimator(
                    AccelerometerKnownFrameProblem(), self.measurements,
                    method=method, quality_scores=np.ones(40),
                    config=RobustEstimatorConfig(random_seed=2),
                )
                result = estimator.calibrate()
                assert_allclose(result.solution, self.data.true_parameters, atol=1e-8)


class TestListenerAndConcurrency(unittest.TestCase):
    """Listener callbacks observe a locked estimator."""

    def setUp(self):
        self.data = generate_accelerometer_dataset(
            n_samples=30, outlier_fraction=0.2, rng=np.random.default_rng(5)
        )

    def test_mutators_fail_while_running(self):
        """Test every mutator raises ConcurrencyError from callbacks."""
        listener = RecordingListener()
        estimator = make_estimator(self.data)
        estimator.listener = listener

        estimator.calibrate()

        # 8 attempts from on_estimate_start and 8 from the first iteration
        self.assertEqual(len(listener.errors), 16)
        self.assertTrue(all(isinstance(e, ConcurrencyError) for e in listener.errors))
        # Nothing changed
        self.assertEqual(estimator.method, RobustEstimatorMethod.RANSAC)
        self.assertEqual(estimator.config.confidence, 0.99)
        self.assertIs(estimator.listener, listener)

    def test_event_order(self):
        """Test start, iterations and end are notified in order."""
        listener = RecordingListener()
        estimator = make_estimator(self.data, progress_delta=0.0)
        estimator.listener = listener

        result = estimator.calibrate()

        self.assertEqual(listener.events, ["start", "end"])
        self.assertFalse(listener.running_at_end)
        self.assertEqual(listener.iterations, list(range(1, result.iterations + 1)))

    def test_progress_notifications(self):
        """Test progress is increasing and within (0, 1]."""
        listener = RecordingListener()
        estimator = make_estimator(self.data, progress_delta=0.0)
        estimator.listener = listener

        estimator.calibrate()

        self.assertGreater(len(listener.progress), 0)
        self.assertTrue(np.all(np.diff(listener.progress) > 0))
        self.assertTrue(all(0.0 < p <= 1.0 for p in listener.progress))

    def test_progress_delta_limits_notifications(self):
        """Test a coarser progress_delta sends fewer notifications."""
        coarse, fine = RecordingListener(), RecordingListener()
        for listener, delta in ((coarse, 0.5), (fine, 0.0)):
            estimator = make_estimator(self.data, progress_delta=delta)
            estimator.listener = listener
            estimator.calibrate()

        self.assertLessEqual(len(coarse.progress), 2)
        self.assertLessEqual(len(coarse.progress), len(fine.progress))

    def test_running_cleared_after_algorithmic_error(self):
        """Test running is cleared after a mandatory refinement failure."""
        estimator = make_estimator(self.data, refinement_required=True)
        with mock.patch(
            "robustnav.robust.estimator.refine_solution",
            side_effect=RefinementError("did not converge"),
        ):
            with self.assertRaises(RefinementError):
                estimator.calibrate()

        self.assertFalse(estimator.running)
        estimator.configure(refinement_required=False)


class TestDeterminismAndBounds(unittest.TestCase):
    """Seeded runs and iteration caps."""

    def setUp(self):
        self.data = generate_accelerometer_dataset(
            n_samples=50, outlier_fraction=0.4, noise_std=1e-3,
            rng=np.random.default_rng(9),
        )

    def test_seeded_runs_are_identical(self):
        """Test seeded calibrations are repeatable."""
        for method in ALL_METHODS:
            with self.subTest(method=method):
                estimator = make_estimator(self.data, method, random_seed=123)
                first = estimator.calibrate()
                second = estimator.calibrate()

                assert_array_equal(first.solution, second.solution)
                assert_array_equal(first.covariance, second.covariance)
                assert_array_equal(first.inliers_data.inliers, second.inliers_data.inliers)
                self.assertEqual(first.iterations, second.iterations)

    def test_single_iteration_terminates(self):
        """Test max_iterations=1 bounds the loop for every method."""
        data = generate_accelerometer_dataset(
            n_samples=50, outlier_fraction=0.5, rng=np.random.default_rng(10)
        )
        for method in ALL_METHODS:
            with self.subTest(method=method):
                estimator = make_estimator(data, method, max_iterations=1)
                try:
                    with warnings.catch_warnings():
                        warnings.simplefilter("ignore", RuntimeWarning)
                        result = estimator.calibrate()
                except AlgorithmicError:
                    self.assertIsNone(estimator.result)
                else:
                    self.assertEqual(result.iterations, 1)
                self.assertFalse(estimator.running)

    def test_stop_threshold_ends_median_search_early(self):
        """Test a stop threshold ends the LMedS search early."""
        data = generate_accelerometer_dataset(
            n_samples=50, outlier_fraction=0.2, rng=np.random.default_rng(12)
        )
        estimator = make_estimator(data, "lmeds", stop_threshold=1e-6)
        result = estimator.calibrate()

        assert_allclose(result.solution, data.true_parameters, atol=1e-8)
        reference = make_estimator(data, "lmeds").calibrate()
        self.assertLessEqual(result.iterations, reference.iterations)


class TestRefinementBehaviour(unittest.TestCase):
    """Refinement quality, fallback and covariance."""

    def setUp(self):
        self.data = generate_accelerometer_dataset(
            n_samples=60, outlier_fraction=0.3, noise_std=1e-3,
            rng=np.random.default_rng(21),
        )

    def test_refinement_never_worsens_fit(self):
        """Test refinement never increases the inlier cost."""
        for method in ALL_METHODS:
            with self.subTest(method=method):
                estimator = make_estimator(self.data, method)
                result = estimator.calibrate()

                inliers = [
                    estimator.measurements[i]
                    for i in result.inliers_data.inlier_indices
                ]
                refined_cost = weighted_cost(estimator.problem, inliers, result.solution)
                candidate_cost = weighted_cost(
                    estimator.problem, inliers, result.preliminary_solution
                )
                self.assertLessEqual(refined_cost, candidate_cost)

    def test_soft_refinement_failure_falls_back(self):
        """Test soft refinement failure keeps the candidate and warns."""
        estimator = make_estimator(self.data, "msac")
        with mock.patch(
            "robustnav.robust.estimator.refine_solution",
            side_effect=RefinementError("singular"),
        ):
            with pytest.warns(RuntimeWarning, match="Refinement failed"):
                result = estimator.calibrate()

        self.assertFalse(result.refined)
        self.assertIsNone(result.covariance)
        assert_array_equal(result.solution, result.preliminary_solution)

    def test_covariance_failure_keeps_refined_solution(self):
        """Test a singular covariance drops only the covariance."""
        reference = make_estimator(self.data, "msac").calibrate()

        estimator = make_estimator(self.data, "msac")
        with mock.patch(
            "robustnav.robust.estimator.estimate_covariance",
            side_effect=RefinementError("singular"),
        ):
            with pytest.warns(RuntimeWarning, match="Covariance unavailable"):
                result = estimator.calibrate()

        self.assertIsNone(result.covariance)
        self.assertEqual(result.refined, reference.refined)
        assert_array_equal(result.solution, reference.solution)
        assert_allclose(result.solution, self.data.true_parameters, atol=5e-3)

    def test_common_axis_covariance_exactly_zero(self):
        """Test common-axis terms are zero in solution and covariance."""
        ma = np.array([
            [4e-3, 1e-3, -2e-3],
            [0.0, -3e-3, 1e-3],
            [0.0, 0.0, 2e-3],
        ])
        data = generate_accelerometer_dataset(
            n_samples=60, outlier_fraction=0.3, noise_std=1e-3, ma=ma,
            rng=np.random.default_rng(8),
        )
        estimator = make_estimator(data, "ransac", common_axis_used=True)
        result = estimator.calibrate()

        names = estimator.problem.parameter_names
        fixed = [names.index(n) for n in ("myx", "mzx", "mzy")]
        covariance = result.covariance

        self.assertIsNotNone(covariance)
        for k in fixed:
            self.assertTrue(np.all(covariance[k, :] == 0.0))
            self.assertTrue(np.all(covariance[:, k] == 0.0))
            self.assertEqual(result.solution[k], 0.0)
        free = [k for k in range(12) if k not in fixed]
        self.assertTrue(np.all(np.diag(covariance)[free] > 0.0))

    def test_covariance_without_refinement(self):
        """Test covariance is estimated at the unrefined candidate."""
        estimator = make_estimator(self.data, "ransac", result_refined=False)
        result = estimator.calibrate()
        self.assertFalse(result.refined)
        self.assertEqual(result.covariance.shape, (12, 12))


if __name__ == "__main__":
    unittest.main()
