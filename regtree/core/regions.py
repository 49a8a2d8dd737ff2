"""Regions and the shared row orderings they index into."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..utils.checks import ContractError, require
from .ordering import sort_ids_by_value


@dataclass(frozen=True, slots=True)
class Region:
    """Half-open ``[begin, end)`` range of positions in the row orderings."""

    begin: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.begin

    @property
    def empty(self) -> bool:
        return self.begin == self.end

    def split(self, count: int) -> Tuple["Region", "Region"]:
        """Return the leading ``count`` positions and the remainder."""
        if count < 0 or count > self.size:
            raise ContractError(f"cannot split {self} after {count} positions")
        mid = self.begin + count
        return Region(self.begin, mid), Region(mid, self.end)


class RowOrderings:
    """Global and per-feature row id orderings for one tree build.

    ``by_region_ids`` groups row ids by region. Row ``f`` of
    ``by_region_inputs`` groups ids by region and, within a region, sorts
    them ascending by feature ``f``. Every region owns the same slice of all
    orderings and no two live regions overlap, so concurrent tasks may
    mutate their own slices without locking.
    """

    def __init__(self, features: np.ndarray) -> None:
        features_arr = np.asarray(features, dtype=np.float64)
        if features_arr.ndim != 2:
            raise ValueError("features must be a 2D array [F, N]")
        n_features, n_rows = features_arr.shape
        self.n_rows = int(n_rows)
        self.n_features = int(n_features)
        self.by_region_ids = np.arange(n_rows, dtype=np.int64)
        self.by_region_inputs = np.empty((n_features, n_rows), dtype=np.int64)
        for feature in range(n_features):
            self.by_region_inputs[feature] = sort_ids_by_value(features_arr[feature])
        # Scratch membership flags; a region only ever touches its own ids.
        self.membership = np.zeros(n_rows, dtype=bool)

    @property
    def root(self) -> Region:
        return Region(0, self.n_rows)

    def ids(self, region: Region) -> np.ndarray:
        """View of the global ordering restricted to ``region``."""
        return self.by_region_ids[region.begin : region.end]

    def feature_ids(self, feature: int, region: Region) -> np.ndarray:
        """View of feature ``feature``'s ordering restricted to ``region``."""
        return self.by_region_inputs[feature, region.begin : region.end]

    def check_region(self, region: Region, features: np.ndarray) -> None:
        """Raise :class:`ContractError` if ``region`` breaks the ordering invariants."""
        expected = np.sort(self.ids(region))
        for feature in range(self.n_features):
            ids = self.feature_ids(feature, region)
            require(
                np.array_equal(np.sort(ids), expected),
                f"feature {feature} ordering holds different rows than region {region}",
            )
            values = features[feature, ids]
            require(
                bool(np.all(values[1:] >= values[:-1])),
                f"feature {feature} ordering is not sorted within region {region}",
            )
