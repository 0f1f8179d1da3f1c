"""
Streaming Statistics

Running mean and variance using Welford's online algorithm, so long
calibration runs can be summarized without storing every sample.
"""

import numpy as np


class StatsCalculator:
    """
    Accumulates count, mean and the sum of squared deviations (M2).

    Mean and deviation are derived from that state; the only way to
    change it is `add_value`.
    """

    def __init__(self):
        self._count = 0
        self._mean = 0.0
        self._m2 = 0.0

    def add_value(self, value: float) -> None:
        """Add a sample."""
        value = float(value)
        self._count += 1
        delta = value - self._mean
        self._mean += delta / self._count
        delta2 = value - self._mean
        self._m2 += delta * delta2

    @property
    def count(self) -> int:
        return self._count

    @property
    def mean(self) -> float:
        return self._mean

    @property
    def variance(self) -> float:
        """Population variance (NaN with no samples)."""
        if self._count < 1:
            return float("nan")
        return self._m2 / self._count

    @property
    def sample_variance(self) -> float:
        """Unbiased (n - 1) variance (NaN with fewer than two samples)."""
        if self._count < 2:
            return float("nan")
        return self._m2 / (self._count - 1)

    @property
    def standard_deviation(self) -> float:
        return float(np.sqrt(self.variance))

    def __repr__(self) -> str:
        return (
            f"StatsCalculator(count={self._count}, mean={self._mean:.6f}, "
            f"sd={self.standard_deviation:.6f})"
        )
