"""
Subset samplers for robust estimation.

Two strategies draw the minimal index subsets fed to the preliminary solver:

    - UniformSubsetSampler: distinct indices uniformly at random
      (RANSAC, LMedS, MSAC).
    - ProgressiveSubsetSampler: PROSAC progressive sampling. Measurements
      are ordered by descending quality score and the candidate pool grows
      following the PROSAC growth function, so high-quality measurements
      are tried first while coverage converges to uniform sampling
      (PROSAC, PROMedS).

References:
    Chum, O. and Matas, J. (2005). Matching with PROSAC - Progressive
    Sample Consensus. CVPR 2005.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from scipy.special import comb

from robustnav.robust.errors import ConfigurationError, InsufficientMeasurementsError


class SubsetSampler(ABC):
    """Abstract base class for subset samplers."""

    def __init__(
        self,
        num_measurements: int,
        subset_size: int,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize sampler.

        Args:
            num_measurements: Total number of measurements N.
            subset_size: Number of distinct indices m drawn per sample.
            rng: Random generator. If None, uses np.random.default_rng().

        Raises:
            ConfigurationError: If subset_size is not positive.
            InsufficientMeasurementsError: If N < m.
        """
        if subset_size < 1:
            raise ConfigurationError(f"subset_size must be positive, got {subset_size}")
        if num_measurements < subset_size:
            raise InsufficientMeasurementsError(
                f"Need at least {subset_size} measurements, got {num_measurements}"
            )

        self.num_measurements = int(num_measurements)
        self.subset_size = int(subset_size)
        self.rng = rng if rng is not None else np.random.default_rng()

    @abstractmethod
    def sample(self) -> np.ndarray:
        """
        Draw one subset.

        Returns:
            Array of subset_size distinct measurement indices.
        """
        pass


class UniformSubsetSampler(SubsetSampler):
    """Draws distinct indices uniformly at random on every call."""

    def sample(self) -> np.ndarray:
        return self.rng.choice(
            self.num_measurements, size=self.subset_size, replace=False
        )


class ProgressiveSubsetSampler(SubsetSampler):
    """
    PROSAC progressive sampler.

    With measurements sorted by decreasing quality, sample t is drawn from
    the top-n measurements U_n. The size n grows according to the growth
    function T'_n:

        T_m = T_N · C(N, m)⁻¹
        T_{n+1} = T_n · (n + 1) / (n + 1 - m)
        T'_{n+1} = T'_n + ⌈T_{n+1} - T_n⌉,  T'_m = 1

    While T'_n >= t the sample is m-1 points from U_{n-1} plus the n-th
    point; afterwards it is m points drawn uniformly from U_n. Once n = N
    (or t exceeds T_N) sampling is uniform over all measurements.

    Ties in quality keep the original measurement order, so equal quality
    scores degrade gracefully to uniform coverage.
    """

    def __init__(
        self,
        quality_scores: np.ndarray,
        subset_size: int,
        max_iterations: int,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize progressive sampler.

        Args:
            quality_scores: Non-negative quality per measurement (N,).
                Larger is better.
            subset_size: Number of distinct indices m per sample.
            max_iterations: T_N, the number of samples after which sampling
                becomes uniform.
            rng: Random generator. If None, uses np.random.default_rng().

        Raises:
            ConfigurationError: If scores are not 1D, contain negative or
                non-finite values, or max_iterations < 1.
            InsufficientMeasurementsError: If N < m.
        """
        quality_scores = np.asarray(quality_scores, dtype=float)
        if quality_scores.ndim != 1:
            raise ConfigurationError(
                f"quality_scores must be 1D, got shape {quality_scores.shape}"
            )
        if not np.all(np.isfinite(quality_scores)) or np.any(quality_scores < 0.0):
            raise ConfigurationError("quality_scores must be finite and non-negative")
        if max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be positive, got {max_iterations}"
            )

        super().__init__(len(quality_scores), subset_size, rng)

        # Descending quality, stable for ties
        self.order = np.argsort(-quality_scores, kind="stable")
        self.max_iterations = int(max_iterations)
        self._growth = self._growth_function()

        self._t = 0
        self._n = self.subset_size

    def _growth_function(self) -> np.ndarray:
        """Compute T'_n for n = m..N (stored at index n-1)."""
        N = self.num_measurements
        m = self.subset_size

        growth = np.zeros(N, dtype=float)
        T_n = self.max_iterations / comb(N, m, exact=False)
        T_n_prime = 1.0

        for n in range(m, N):
            growth[n - 1] = T_n_prime
            T_next = T_n * (n + 1) / (n + 1 - m)
            T_n_prime += np.ceil(T_next - T_n)
            T_n = T_next
        growth[N - 1] = T_n_prime

        return growth

    @property
    def pool_size(self) -> int:
        """Current size n of the top-quality pool."""
        return self._n

    def sample(self) -> np.ndarray:
        self._t += 1
        m = self.subset_size
        N = self.num_measurements

        if self._t > self.max_iterations:
            local = self.rng.choice(N, size=m, replace=False)
            return self.order[local]

        if self._t >= self._growth[self._n - 1] and self._n < N:
            self._n += 1

        n = self._n
        if self._growth[n - 1] < self._t:
            local = self.rng.choice(n, size=m, replace=False)
        else:
            head = self.rng.choice(n - 1, size=m - 1, replace=False)
            local = np.append(head, n - 1)

        return self.order[local]
