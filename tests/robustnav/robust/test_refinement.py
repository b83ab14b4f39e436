"""
Unit tests for robustnav/robust/refinement.py.

Tests cover:
    - Weighted refinement over inliers never increases the cost
    - Covariance in the full parameter layout (fixed entries exactly zero)
    - Refinement failures (too few inliers, no convergence)
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

from robustnav.robust.errors import RefinementError
from robustnav.robust.refinement import (
    estimate_covariance,
    expand_covariance,
    refine_solution,
    weighted_cost,
)
from robustnav.rf.positioning import RangingPositionProblem, ranging_measurements
from robustnav.sensors.calibration import (
    AccelerometerKnownFrameProblem,
    accelerometer_measurements,
)
from robustnav.sim.calibration_data import (
    generate_accelerometer_dataset,
    generate_ranging_dataset,
)


class TestWeightedCost(unittest.TestCase):
    """Aggregate weighted residual."""

    def test_uses_inverse_variance_weights(self):
        """Test cost uses 1/σ² weights from the readings."""
        data = generate_ranging_dataset(
            n_anchors=6, outlier_fraction=0.0, noise_std=0.2, rng=np.random.default_rng(0)
        )
        problem = RangingPositionProblem(2)
        measurements = ranging_measurements(data.samples)
        position = data.true_parameters + np.array([0.3, -0.1])

        residuals = problem.residuals(position, measurements)
        expected = 0.5 * np.sum((residuals / 0.2) ** 2)

        self.assertAlmostEqual(weighted_cost(problem, measurements, position), expected)

    def test_empty(self):
        """Test cost of no measurements is zero."""
        problem = RangingPositionProblem(2)
        self.assertEqual(weighted_cost(problem, [], np.zeros(2)), 0.0)


class TestExpandCovariance(unittest.TestCase):
    """Embedding of free-parameter covariance."""

    def test_fixed_rows_and_columns_are_zero(self):
        """Test fixed parameters get zero rows and columns."""
        mask = np.array([True, False, True, False])
        P_free = np.array([[2.0, 0.5], [0.5, 3.0]])

        P = expand_covariance(P_free, mask)

        self.assertEqual(P.shape, (4, 4))
        assert_array_equal(P[1], 0.0)
        assert_array_equal(P[:, 3], 0.0)
        assert_array_equal(P[np.ix_(mask, mask)], P_free)

    def test_shape_mismatch(self):
        """Test that a size mismatch raises ValueError."""
        with self.assertRaises(ValueError):
            expand_covariance(np.eye(3), np.array([True, True]))


class TestRefineSolution(unittest.TestCase):
    """Refinement of an accelerometer candidate."""

    def setUp(self):
        self.data = generate_accelerometer_dataset(
            n_samples=60, outlier_fraction=0.25, noise_std=1e-3,
            rng=np.random.default_rng(11),
        )
        self.problem = AccelerometerKnownFrameProblem()
        self.measurements = accelerometer_measurements(self.data.samples)
        self.mask = self.problem.free_parameters()
        self.inliers = self.data.inliers

        # Candidate fitted on the first four inliers only
        subset = [self.measurements[i] for i in np.flatnonzero(self.inliers)[:4]]
        self.candidate = self.problem.preliminary_solution(subset, self.mask)

    def test_refined_cost_not_larger(self):
        """Test refined cost never exceeds the candidate cost."""
        outcome = refine_solution(
            self.problem, self.measurements, self.candidate, self.inliers, self.mask
        )

        self.assertLessEqual(outcome.final_cost, outcome.initial_cost)
        inlier_measurements = [self.measurements[i] for i in np.flatnonzero(self.inliers)]
        self.assertAlmostEqual(
            outcome.final_cost,
            weighted_cost(self.problem, inlier_measurements, outcome.solution),
        )

    def test_refined_solution_close_to_truth(self):
        """Test refinement over inliers approaches the true model."""
        outcome = refine_solution(
            self.problem, self.measurements, self.candidate, self.inliers, self.mask
        )
        assert_allclose(outcome.solution, self.data.true_parameters, atol=2e-3)
        self.assertTrue(outcome.improved)

    def test_covariance_symmetric_positive_definite(self):
        """Test refined covariance is symmetric positive definite."""
        outcome = refine_solution(
            self.problem, self.measurements, self.candidate, self.inliers, self.mask,
            compute_covariance=True,
        )
        P = outcome.covariance

        self.assertEqual(P.shape, (12, 12))
        assert_allclose(P, P.T, atol=1e-15)
        self.assertTrue(np.all(np.linalg.eigvalsh(P) > 0))

    def test_bias_std_consistent_with_noise(self):
        """Test bias std is consistent with the noise level."""
        P = estimate_covariance(
            self.problem, self.measurements, self.data.true_parameters,
            self.inliers, self.mask,
        )
        # 45 inliers with 1e-3 noise: bias std well below the noise level
        bias_std = np.sqrt(np.diag(P)[:3])
        self.assertTrue(np.all(bias_std < 1e-3))

    def test_common_axis_covariance_zero(self):
        """Test common-axis terms have exactly zero covariance."""
        mask = self.problem.free_parameters(common_axis_used=True)
        P = estimate_covariance(
            self.problem, self.measurements, self.data.true_parameters,
            self.inliers, mask,
        )
        fixed = ~mask
        self.assertTrue(np.all(P[fixed, :] == 0.0))
        self.assertTrue(np.all(P[:, fixed] == 0.0))

    def test_too_few_inliers(self):
        """Test that too few inliers raise RefinementError."""
        inliers = np.zeros(len(self.measurements), dtype=bool)
        inliers[np.flatnonzero(self.data.inliers)[:3]] = True

        with self.assertRaises(RefinementError):
            refine_solution(
                self.problem, self.measurements, self.candidate, inliers, self.mask
            )
        with self.assertRaises(RefinementError):
            estimate_covariance(
                self.problem, self.measurements, self.candidate, inliers, self.mask
            )


class TestRefinementConvergence(unittest.TestCase):
    """Non-converged refinement is reported as RefinementError."""

    def test_single_iteration_does_not_converge(self):
        """Test that a non-converged solve raises RefinementError."""
        data = generate_ranging_dataset(
            n_anchors=10, outlier_fraction=0.0, noise_std=0.1, rng=np.random.default_rng(4)
        )
        problem = RangingPositionProblem(2)
        measurements = ranging_measurements(data.samples)
        start = data.true_parameters + np.array([2.0, -2.0])

        with self.assertRaises(RefinementError):
            refine_solution(
                problem, measurements, start, np.ones(10, dtype=bool),
                problem.free_parameters(), max_iter=1,
            )


if __name__ == "__main__":
    unittest.main()
