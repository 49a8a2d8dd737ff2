"""Commit a winning split by reordering a region's slice of every ordering."""

from __future__ import annotations

import numpy as np

from ..utils.checks import require
from .regions import Region, RowOrderings
from .search import SplitCandidate


def _stable_partition(ids: np.ndarray, mask: np.ndarray) -> int:
    """Move ids flagged in ``mask`` to the front of ``ids`` in place, keeping order."""
    flags = mask[ids]
    included = ids[flags]
    excluded = ids[~flags]
    count = int(included.size)
    ids[:count] = included
    ids[count:] = excluded
    return count


def partition_region(orderings: RowOrderings, region: Region, candidate: SplitCandidate) -> int:
    """Reorder ``region`` so the candidate's included rows form a leading block.

    Every ordering keeps its relative order on both sides, so per-feature
    slices stay sorted by value and the two child regions need no re-sort.
    Returns the number of included rows.
    """

    require(not candidate.empty, "cannot partition", region, "with an empty candidate")
    require(
        region.begin <= candidate.in_split.begin and candidate.in_split.end <= region.end,
        f"candidate range {candidate.in_split} lies outside region {region}",
    )

    mask = orderings.membership
    included_ids = orderings.by_region_inputs[
        candidate.feature, candidate.in_split.begin : candidate.in_split.end
    ]
    mask[included_ids] = True
    try:
        count = _stable_partition(orderings.ids(region), mask)
        require(
            count == candidate.in_split.size,
            f"region {region} moved {count} rows, expected {candidate.in_split.size}",
        )
        for feature in range(orderings.n_features):
            feature_count = _stable_partition(orderings.feature_ids(feature, region), mask)
            require(
                feature_count == count,
                f"feature {feature} moved {feature_count} rows in region {region}, expected {count}",
            )
    finally:
        mask[included_ids] = False
    return count
