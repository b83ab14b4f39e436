"""
Robust Accelerometer Calibration Example.

Calibrates the bias and scale/cross-coupling matrix of an accelerometer
from static samples taken at known attitudes, a fraction of which are
corrupted (bumps, vibration, mislabelled attitudes).

    f̃ = b_a + (I + M_a) f

Can run with:
    - Defaults: python -m examples.example_accelerometer_calibration
    - Other method: python -m examples.example_accelerometer_calibration --method prosac
    - Common axis: python -m examples.example_accelerometer_calibration --common-axis
    - JSON config: python -m examples.example_accelerometer_calibration --config calib.json
"""

import argparse
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from examples.common import ConsoleProgressListener, build_config, print_header
from robustnav.robust import RobustEstimatorMethod
from robustnav.sensors import RobustKnownFrameAccelerometerCalibrator
from robustnav.sim import generate_accelerometer_dataset
from robustnav.sim.calibration_data import DEFAULT_ACCEL_MA


def print_results(calibrator, data) -> None:
    """Print estimated vs true parameters."""
    true = data.true_parameters
    est = calibrator.estimated_parameters
    names = calibrator.problem.parameter_names

    print(f"\n  {'param':>6} {'true':>12} {'estimated':>12} {'error':>12}")
    print("  " + "-" * 46)
    for name, t, e in zip(names, true, est):
        print(f"  {name:>6} {t:12.6f} {e:12.6f} {e - t:12.2e}")

    inliers = calibrator.inliers_data.inliers
    detected = np.count_nonzero(inliers & data.outliers)
    print(f"\n  Inliers: {calibrator.inliers_data.num_inliers}/{len(inliers)}"
          f" (true: {np.count_nonzero(data.inliers)})")
    print(f"  Outliers accepted as inliers: {detected}")

    std = calibrator.estimated_bias_standard_deviations
    if std is not None:
        print(f"  Bias std [m/s²]: {np.array2string(std, precision=6)}")


def plot_residuals(calibrator, data, output_file: str) -> None:
    """Plot residual per sample, colored by true outlier label."""
    residuals = calibrator.inliers_data.residuals
    idx = np.arange(len(residuals))

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.semilogy(idx[data.inliers], residuals[data.inliers] + 1e-16, "o",
                label="true inliers")
    ax.semilogy(idx[data.outliers], residuals[data.outliers], "x",
                label="true outliers")
    ax.axhline(calibrator.threshold, color="k", linestyle="--", label="threshold")
    ax.set_xlabel("Sample")
    ax.set_ylabel("Residual [m/s²]")
    ax.set_title(f"Accelerometer calibration residuals ({calibrator.method.value.upper()})")
    ax.legend()
    ax.grid(True, alpha=0.3)

    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"\n✓ Figure saved: {output_file}")


def main():
    """Run robust accelerometer calibration."""
    parser = argparse.ArgumentParser(
        description="Robust known-frame accelerometer calibration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--method", choices=[m.value for m in RobustEstimatorMethod],
                        default="ransac", help="Robust estimation method")
    parser.add_argument("--samples", type=int, default=100, help="Number of samples")
    parser.add_argument("--outliers", type=float, default=0.2, help="Outlier fraction")
    parser.add_argument("--noise", type=float, default=1e-3,
                        help="Specific force noise std [m/s²]")
    parser.add_argument("--common-axis", action="store_true",
                        help="Assume an upper triangular M_a")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON file with RobustEstimatorConfig options")
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument("--plot", action="store_true", help="Plot residuals")
    parser.add_argument("--output", type=str,
                        default="examples/figs/accelerometer_residuals.png",
                        help="Output file for the figure")
    args = parser.parse_args()

    print_header("Robust Accelerometer Calibration")

    rng = np.random.default_rng(args.seed)
    ma = np.triu(DEFAULT_ACCEL_MA) if args.common_axis else None
    data = generate_accelerometer_dataset(
        n_samples=args.samples, outlier_fraction=args.outliers,
        noise_std=args.noise, ma=ma, rng=rng,
    )

    config = build_config(args.config, args.seed, common_axis_used=args.common_axis or None)
    calibrator = RobustKnownFrameAccelerometerCalibrator(
        data.samples,
        method=args.method,
        config=config,
        quality_scores=data.quality_scores,
        listener=ConsoleProgressListener(),
    )
    calibrator.calibrate()

    print_results(calibrator, data)

    if args.plot:
        plot_residuals(calibrator, data, args.output)
        plt.show()


if __name__ == "__main__":
    main()
