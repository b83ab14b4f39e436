"""Integration test: example script helpers.

Validates the shared configuration loading, the console listener and a
tiny run of the method comparison.

References:
    - Example: examples/example_method_comparison.py
"""

import json

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from examples.common import ConsoleProgressListener, build_config
from examples.example_method_comparison import plot_summary, run_comparison
from robustnav.robust import ConfigurationError, RobustEstimatorConfig
from robustnav.sensors import RobustKnownFrameAccelerometerCalibrator
from robustnav.sim import generate_accelerometer_dataset


class TestBuildConfig:
    """Configuration from JSON plus command-line overrides."""

    def test_defaults(self):
        """Test that CLI defaults build the default configuration with the seed."""
        config = build_config(None, 3)
        assert config.random_seed == 3
        assert config.confidence == RobustEstimatorConfig().confidence

    def test_file_values_kept_unless_overridden(self, tmp_path):
        """Test that JSON file values survive unset command line options."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"confidence": 0.999, "common_axis_used": True}))

        config = build_config(str(path), 1, common_axis_used=None, max_iterations=200)

        assert config.confidence == 0.999
        assert config.common_axis_used is True
        assert config.max_iterations == 200

    def test_unknown_option_in_file(self, tmp_path):
        """Test that an unknown key in the config file raises ConfigurationError."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"confidense": 0.9}))

        with pytest.raises(ConfigurationError):
            build_config(str(path), 0)


class TestConsoleProgressListener:
    """Listener output."""

    def test_prints_start_and_end(self, capsys):
        """Test that the console listener prints start and end banners."""
        data = generate_accelerometer_dataset(
            n_samples=30, rng=np.random.default_rng(0)
        )
        calibrator = RobustKnownFrameAccelerometerCalibrator(
            data.samples,
            config=RobustEstimatorConfig(random_seed=0),
            listener=ConsoleProgressListener(),
        )
        calibrator.calibrate()

        out = capsys.readouterr().out
        assert "RANSAC on 30 measurements" in out
        assert "iterations" in out

    def test_silent(self, capsys):
        """Test that a non-verbose listener prints nothing."""
        data = generate_accelerometer_dataset(
            n_samples=30, rng=np.random.default_rng(0)
        )
        calibrator = RobustKnownFrameAccelerometerCalibrator(
            data.samples,
            config=RobustEstimatorConfig(random_seed=0),
            listener=ConsoleProgressListener(verbose=False),
        )
        calibrator.calibrate()
        assert capsys.readouterr().out == ""


class TestMethodComparison:
    """Tiny comparison run."""

    def test_every_method_reported(self):
        """Test that the comparison reports every robust method."""
        fractions = [0.1, 0.3]
        summary = run_comparison(
            fractions, n_trials=2, n_samples=40,
            config=RobustEstimatorConfig(random_seed=0), seed=0,
        )

        assert set(summary) == {"ransac", "lmeds", "msac", "prosac", "promeds"}
        for s in summary.values():
            assert s["bias_error"].shape == (2,)
            assert np.all(s["bias_error"] < 5e-3)
            assert np.all(s["failures"] == 0)

        fig = plot_summary(fractions, summary)
        assert len(fig.axes) == 2
