"""Best-split search for one feature within one region."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .accumulator import gains, running_statistics
from .regions import Region


@dataclass(frozen=True, slots=True)
class SplitCandidate:
    """Best cut found for ``feature`` in one region.

    ``in_split`` is the absolute range of positions (in the feature's
    ordering) whose values lie above ``threshold``. A candidate with
    ``gain == -1`` and an empty ``in_split`` means no cut was accepted.
    """

    feature: int
    in_split: Region
    threshold: float
    gain: float

    @classmethod
    def none(cls, feature: int, region: Region) -> "SplitCandidate":
        return cls(feature=feature, in_split=Region(region.end, region.end), threshold=0.0, gain=-1.0)

    @property
    def empty(self) -> bool:
        return self.in_split.empty


def split_threshold(lo: float, hi: float) -> float:
    """Return a threshold ``t`` with ``lo <= t < hi`` near their midpoint."""
    width = hi - lo
    if np.isfinite(width):
        threshold = lo + width / 2
    else:
        threshold = lo / 2 + hi / 2
    # Adjacent doubles can round the midpoint up onto ``hi``.
    if threshold >= hi:
        return lo
    return threshold


def find_best_split(
    feature: int,
    ids: np.ndarray,
    region: Region,
    output: np.ndarray,
    weight: np.ndarray,
    values: np.ndarray,
    *,
    min_items: int,
    value_tolerance: float = 1e-6,
    gain_tolerance: float = 1e-6,
) -> SplitCandidate:
    """Scan ``ids`` (the region's rows sorted by ``values``) for the best cut.

    This is the array form of walking the rows in order and moving each one
    from an included :class:`WeightedAccumulator` to an excluded one with
    ``subtract``/``add``, scoring every boundary with ``gain``.

    Parameters
    ----------
    feature:
        Index of the feature being scanned.
    ids:
        Row ids of ``region`` in ascending order of ``values``.
    region:
        Position range that ``ids`` was taken from.
    output, weight:
        Per-row targets and weights over the full training set.
    values:
        The feature's values over the full training set.
    min_items:
        Minimum number of rows required on each side of a cut.
    value_tolerance:
        Adjacent values closer than this are treated as equal, so no cut is
        placed between them.
    gain_tolerance:
        A later cut replaces the current best only when it improves the gain
        by more than this amount.
    """

    n = int(ids.size)
    if n < 2:
        return SplitCandidate.none(feature, region)

    sorted_values = values[ids]
    ex_sum, ex_weight, in_sum, in_weight = running_statistics(output[ids], weight[ids])
    cut_gains = gains(ex_sum, ex_weight) + gains(in_sum, in_weight)

    # Entry k is the cut before position k + 1.
    positions = np.arange(1, n)
    boundary = ~(sorted_values[1:] < sorted_values[:-1] + value_tolerance)
    large_enough = (positions >= min_items) & (n - positions >= min_items)
    accepted = np.flatnonzero(boundary & large_enough)
    if accepted.size == 0:
        return SplitCandidate.none(feature, region)

    best_k = -1
    best_gain = -1.0
    for k, gain in zip(accepted.tolist(), cut_gains[accepted].tolist()):
        if gain > best_gain + gain_tolerance:
            best_k = k
            best_gain = gain
    if best_k < 0:
        return SplitCandidate.none(feature, region)

    threshold = split_threshold(float(sorted_values[best_k]), float(sorted_values[best_k + 1]))
    return SplitCandidate(
        feature=feature,
        in_split=Region(region.begin + best_k + 1, region.end),
        threshold=threshold,
        gain=best_gain,
    )


def is_better(candidate: SplitCandidate, incumbent: SplitCandidate | None) -> bool:
    """Total order used to reduce per-feature results: gain, then lower feature."""
    if incumbent is None:
        return True
    if candidate.gain != incumbent.gain:
        return candidate.gain > incumbent.gain
    return candidate.feature < incumbent.feature


def select_best_candidate(candidates: Iterable[SplitCandidate]) -> SplitCandidate | None:
    """Reduce ``candidates`` to one winner regardless of their arrival order."""
    best: SplitCandidate | None = None
    for candidate in candidates:
        if is_better(candidate, best):
            best = candidate
    return best
