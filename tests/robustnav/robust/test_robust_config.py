"""
Unit tests for robustnav/robust/config.py.

Tests cover:
    - Default option values
    - Eager validation of every option
    - with_changes / from_dict / load_config
"""

import json
import os
import tempfile
import unittest

import pytest

from robustnav.robust.config import (
    DEFAULT_CONFIDENCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_PROGRESS_DELTA,
    RobustEstimatorConfig,
    load_config,
)
from robustnav.robust.errors import CalibrationError, ConfigurationError


class TestRobustEstimatorConfigDefaults(unittest.TestCase):
    """Default configuration."""

    def test_defaults(self):
        """Test default option values."""
        config = RobustEstimatorConfig()

        self.assertIsNone(config.threshold)
        self.assertIsNone(config.stop_threshold)
        self.assertEqual(config.confidence, DEFAULT_CONFIDENCE)
        self.assertEqual(config.max_iterations, DEFAULT_MAX_ITERATIONS)
        self.assertEqual(config.progress_delta, DEFAULT_PROGRESS_DELTA)
        self.assertFalse(config.common_axis_used)
        self.assertTrue(config.linear_calibrator_used)
        self.assertFalse(config.preliminary_solution_refined)
        self.assertTrue(config.result_refined)
        self.assertFalse(config.refinement_required)
        self.assertTrue(config.covariance_kept)
        self.assertIsNone(config.preliminary_subset_size)
        self.assertIsNone(config.random_seed)

    def test_default_constants(self):
        """Test module-level default constants."""
        self.assertEqual(DEFAULT_CONFIDENCE, 0.99)
        self.assertEqual(DEFAULT_MAX_ITERATIONS, 5000)
        self.assertEqual(DEFAULT_PROGRESS_DELTA, 0.05)

    def test_frozen(self):
        """Test that the configuration is immutable."""
        config = RobustEstimatorConfig()
        with self.assertRaises(AttributeError):
            config.confidence = 0.5


class TestRobustEstimatorConfigValidation(unittest.TestCase):
    """Invalid values raise ConfigurationError."""

    def test_non_positive_threshold(self):
        """Test that non-positive or non-finite thresholds are rejected."""
        for threshold in (0.0, -1.0, float("nan"), float("inf")):
            with self.assertRaises(ConfigurationError):
                RobustEstimatorConfig(threshold=threshold)

    def test_non_positive_stop_threshold(self):
        """Test that zero, negative and non-finite stop thresholds are rejected."""
        for stop_threshold in (0.0, -1e-3, float("nan"), float("inf")):
            with self.assertRaises(ConfigurationError):
                RobustEstimatorConfig(stop_threshold=stop_threshold)
        self.assertEqual(RobustEstimatorConfig(stop_threshold=1e-9).stop_threshold, 1e-9)

    def test_confidence_outside_open_interval(self):
        """Test that confidence outside (0, 1) is rejected."""
        for confidence in (0.0, 1.0, -0.1, 1.5):
            with self.assertRaises(ConfigurationError):
                RobustEstimatorConfig(confidence=confidence)

    def test_max_iterations(self):
        """Test max_iterations must be a positive integer."""
        for value in (0, -5):
            with self.assertRaises(ConfigurationError):
                RobustEstimatorConfig(max_iterations=value)
        with self.assertRaises(ConfigurationError):
            RobustEstimatorConfig(max_iterations=10.5)
        with self.assertRaises(ConfigurationError):
            RobustEstimatorConfig(max_iterations=True)

    def test_progress_delta(self):
        """Test progress_delta must lie in [0, 1]."""
        for value in (-0.01, 1.01):
            with self.assertRaises(ConfigurationError):
                RobustEstimatorConfig(progress_delta=value)
        RobustEstimatorConfig(progress_delta=0.0)
        RobustEstimatorConfig(progress_delta=1.0)

    def test_preliminary_subset_size(self):
        """Test preliminary_subset_size must be a positive integer."""
        with self.assertRaises(ConfigurationError):
            RobustEstimatorConfig(preliminary_subset_size=0)
        with self.assertRaises(ConfigurationError):
            RobustEstimatorConfig(preliminary_subset_size=4.0)

    def test_configuration_error_is_value_error(self):
        """Test ConfigurationError can be caught as ValueError."""
        with self.assertRaises(ValueError):
            RobustEstimatorConfig(confidence=2.0)
        with self.assertRaises(CalibrationError):
            RobustEstimatorConfig(confidence=2.0)

    def test_very_high_confidence_warns(self):
        """Test that confidence above 0.9999 warns."""
        with pytest.warns(UserWarning, match="confidence"):
            RobustEstimatorConfig(confidence=0.99999)


class TestRobustEstimatorConfigChanges(unittest.TestCase):
    """Copies, dictionaries and JSON files."""

    def test_with_changes_returns_validated_copy(self):
        """Test with_changes leaves the original untouched and validates."""
        config = RobustEstimatorConfig()
        changed = config.with_changes(confidence=0.95, common_axis_used=True)

        self.assertEqual(changed.confidence, 0.95)
        self.assertTrue(changed.common_axis_used)
        self.assertEqual(config.confidence, DEFAULT_CONFIDENCE)

        with self.assertRaises(ConfigurationError):
            config.with_changes(confidence=1.0)

    def test_with_changes_unknown_option(self):
        """Test that with_changes rejects unknown options."""
        with self.assertRaises(ConfigurationError):
            RobustEstimatorConfig().with_changes(confidnce=0.9)

    def test_dict_round_trip(self):
        """Test to_dict and from_dict preserve every option."""
        config = RobustEstimatorConfig(threshold=0.5, random_seed=3)
        self.assertEqual(RobustEstimatorConfig.from_dict(config.to_dict()), config)

    def test_from_dict_unknown_option(self):
        """Test that from_dict rejects unknown options."""
        with self.assertRaises(ConfigurationError):
            RobustEstimatorConfig.from_dict({"iterations": 10})

    def test_load_config(self):
        """Test loading options from a JSON file."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w") as f:
                json.dump({"confidence": 0.999, "max_iterations": 200, "random_seed": 7}, f)

            config = load_config(path)

        self.assertEqual(config.confidence, 0.999)
        self.assertEqual(config.max_iterations, 200)
        self.assertEqual(config.random_seed, 7)

    def test_load_config_rejects_non_object(self):
        """Test that a JSON file without an object is rejected."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w") as f:
                json.dump([1, 2, 3], f)

            with self.assertRaises(ConfigurationError):
                load_config(path)

    def test_load_config_invalid_value(self):
        """Test that invalid values in a JSON file are rejected."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w") as f:
                json.dump({"progress_delta": 2.0}, f)

            with self.assertRaises(ConfigurationError):
                load_config(path)


if __name__ == "__main__":
    unittest.main()
