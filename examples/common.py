"""Helpers shared by the example scripts."""

import time
from typing import Optional

from robustnav.robust import RobustEstimatorConfig, RobustEstimatorListener, load_config


class ConsoleProgressListener(RobustEstimatorListener):
    """Print calibration progress to stdout."""

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self._start = 0.0

    def on_estimate_start(self, estimator):
        self._start = time.time()
        if self.verbose:
            print(f"  Running {estimator.method.value.upper()} "
                  f"on {len(estimator.measurements)} measurements...")

    def on_estimate_progress_change(self, estimator, progress):
        if self.verbose:
            print(f"    progress {100 * progress:5.1f}%")

    def on_estimate_end(self, estimator):
        if self.verbose:
            elapsed = time.time() - self._start
            print(f"  Done in {elapsed * 1000:.1f} ms "
                  f"({estimator.result.iterations} iterations)")


def build_config(path: Optional[str], seed: Optional[int], **overrides) -> RobustEstimatorConfig:
    """Load a JSON configuration (if given) and apply command-line overrides.

    Overrides set to None are ignored so that values from the file win.
    """
    config = load_config(path) if path else RobustEstimatorConfig()
    overrides["random_seed"] = seed
    return config.with_changes(**{k: v for k, v in overrides.items() if v is not None})


def print_header(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)
