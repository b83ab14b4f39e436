"""
Comparison of Robust Estimation Methods.

Runs RANSAC, LMedS, MSAC, PROSAC and PROMedS on accelerometer calibration
datasets with increasing outlier fractions and reports the bias error,
the number of sampling iterations and the runtime of each method.

Can run with:
    - Defaults: python -m examples.example_method_comparison
    - More trials: python -m examples.example_method_comparison --trials 50
    - Save figure: python -m examples.example_method_comparison --output figs/cmp.png
"""

import argparse
import time
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from examples.common import build_config, print_header
from robustnav.robust import AlgorithmicError, RobustEstimatorMethod
from robustnav.sensors import RobustKnownFrameAccelerometerCalibrator
from robustnav.sim import generate_accelerometer_dataset


def run_comparison(
    outlier_fractions: List[float],
    n_trials: int,
    n_samples: int,
    config,
    seed: int,
) -> Dict[str, Dict[str, np.ndarray]]:
    """
    Calibrate the same datasets with every method.

    Returns:
        Per method: arrays (len(outlier_fractions),) of mean bias error,
        mean iterations, mean runtime [ms] and failure count.
    """
    methods = [m.value for m in RobustEstimatorMethod]
    shape = (len(outlier_fractions), n_trials)
    results = {
        m: {
            "bias_error": np.full(shape, np.nan),
            "iterations": np.full(shape, np.nan),
            "runtime_ms": np.full(shape, np.nan),
        }
        for m in methods
    }

    rng = np.random.default_rng(seed)
    for i, fraction in enumerate(outlier_fractions):
        for t in tqdm(range(n_trials), desc=f"{100 * fraction:.0f}% outliers", unit="trial"):
            data = generate_accelerometer_dataset(
                n_samples=n_samples, outlier_fraction=fraction, noise_std=1e-3, rng=rng,
            )
            for method in methods:
                calibrator = RobustKnownFrameAccelerometerCalibrator(
                    data.samples, method=method, config=config,
                    quality_scores=data.quality_scores,
                )
                start = time.perf_counter()
                try:
                    result = calibrator.calibrate()
                except AlgorithmicError:
                    continue
                elapsed = time.perf_counter() - start

                error = np.linalg.norm(calibrator.estimated_biases - data.true_parameters[:3])
                results[method]["bias_error"][i, t] = error
                results[method]["iterations"][i, t] = result.iterations
                results[method]["runtime_ms"][i, t] = 1000 * elapsed

    summary = {}
    for method, r in results.items():
        summary[method] = {
            "bias_error": np.nanmean(r["bias_error"], axis=1),
            "iterations": np.nanmean(r["iterations"], axis=1),
            "runtime_ms": np.nanmean(r["runtime_ms"], axis=1),
            "failures": np.sum(np.isnan(r["bias_error"]), axis=1),
        }
    return summary


def print_summary(outlier_fractions: List[float], summary) -> None:
    for i, fraction in enumerate(outlier_fractions):
        print(f"\n  Outlier fraction {100 * fraction:.0f}%")
        print(f"  {'method':>8} {'bias err [m/s²]':>16} {'iterations':>11} "
              f"{'time [ms]':>10} {'failures':>9}")
        print("  " + "-" * 58)
        for method, s in summary.items():
            print(f"  {method:>8} {s['bias_error'][i]:16.2e} {s['iterations'][i]:11.1f} "
                  f"{s['runtime_ms'][i]:10.2f} {int(s['failures'][i]):9d}")


def plot_summary(outlier_fractions: List[float], summary):
    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    x = 100 * np.asarray(outlier_fractions)
    for method, s in summary.items():
        axes[0].semilogy(x, s["bias_error"], "o-", label=method.upper())
        axes[1].semilogy(x, s["iterations"], "o-", label=method.upper())

    axes[0].set_ylabel("Mean bias error [m/s²]")
    axes[1].set_ylabel("Mean iterations")
    for ax in axes:
        ax.set_xlabel("Outlier fraction [%]")
        ax.grid(True, alpha=0.3)
        ax.legend()
    plt.tight_layout()
    return fig


def main():
    """Run robust method comparison."""
    parser = argparse.ArgumentParser(
        description="Compare robust estimation methods on accelerometer calibration",
    )
    parser.add_argument("--trials", type=int, default=20, help="Trials per outlier fraction")
    parser.add_argument("--samples", type=int, default=100, help="Samples per dataset")
    parser.add_argument("--fractions", type=float, nargs="+",
                        default=[0.1, 0.3, 0.5], help="Outlier fractions")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON file with RobustEstimatorConfig options")
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument("--output", type=str, default="examples/figs/method_comparison.png",
                        help="Output file for figure")
    args = parser.parse_args()

    print_header("Robust Estimation Methods Comparison")
    overall_start = time.time()

    config = build_config(args.config, args.seed)
    summary = run_comparison(args.fractions, args.trials, args.samples, config, args.seed)
    print_summary(args.fractions, summary)

    plot_summary(args.fractions, summary)
    Path(args.output).parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(args.output, dpi=150, bbox_inches="tight")
    print(f"\n✓ Figure saved: {args.output}")
    plt.show()

    print(f"\nTotal execution time: {time.time() - overall_start:.2f} seconds")


if __name__ == "__main__":
    main()
