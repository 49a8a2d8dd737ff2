"""Weighted running statistics for the sum-of-squares objective."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(slots=True)
class WeightedAccumulator:
    """Running ``(weighted_sum, total_weight)`` over ``(value, weight)`` pairs.

    Minimising weighted squared error over a partition is equivalent to
    maximising the sum of :meth:`gain` over its parts.
    """

    weighted_sum: float = 0.0
    total_weight: float = 0.0

    @classmethod
    def from_rows(cls, values: np.ndarray, weights: np.ndarray) -> "WeightedAccumulator":
        """Accumulate every row of ``values``/``weights`` in one pass."""
        values_arr = np.asarray(values, dtype=np.float64)
        weights_arr = np.asarray(weights, dtype=np.float64)
        if values_arr.size == 0:
            return cls()
        return cls(
            weighted_sum=float(np.dot(values_arr, weights_arr)),
            total_weight=float(np.sum(weights_arr)),
        )

    def add(self, value: float, weight: float) -> None:
        self.weighted_sum += value * weight
        self.total_weight += weight

    def subtract(self, value: float, weight: float) -> None:
        # Removing more weight than was added is not guarded.
        self.weighted_sum -= value * weight
        self.total_weight -= weight

    def gain(self) -> float:
        if self.total_weight == 0:
            return 0.0
        return self.weighted_sum * (self.weighted_sum / self.total_weight)

    def mean(self) -> float:
        """Weighted mean of the accumulated values, ``0.0`` when weightless."""
        if self.total_weight == 0:
            return 0.0
        return self.weighted_sum / self.total_weight


def gains(sums: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Elementwise :meth:`WeightedAccumulator.gain` for arrays of statistics."""
    sums_arr = np.asarray(sums, dtype=np.float64)
    weights_arr = np.asarray(weights, dtype=np.float64)
    ratio = np.zeros(sums_arr.shape, dtype=np.float64)
    np.divide(sums_arr, weights_arr, out=ratio, where=weights_arr != 0)
    return sums_arr * ratio


def running_statistics(
    values: np.ndarray, weights: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Return excluded/included statistics at every interior cut position.

    For rows ``0..n-1`` in scan order, entry ``k`` describes the cut placed
    before row ``k + 1``: the excluded side holds rows ``[0, k]`` and the
    included side rows ``[k + 1, n)``. The included side is summed from the
    end rather than subtracted from the total so a weightless suffix is
    exactly zero.
    """

    values_arr = np.asarray(values, dtype=np.float64)
    weights_arr = np.asarray(weights, dtype=np.float64)
    if values_arr.size < 2:
        empty = np.empty(0, dtype=np.float64)
        return empty, empty, empty, empty

    weighted = values_arr * weights_arr
    excluded_sum = np.cumsum(weighted)[:-1]
    excluded_weight = np.cumsum(weights_arr)[:-1]
    included_sum = np.cumsum(weighted[::-1])[::-1][1:]
    included_weight = np.cumsum(weights_arr[::-1])[::-1][1:]
    return excluded_sum, excluded_weight, included_sum, included_weight
