"""Core data structures and algorithms for regression tree construction."""

from .accumulator import WeightedAccumulator, gains, running_statistics
from .ordering import sort_ids_by_value
from .partition import partition_region
from .regions import Region, RowOrderings
from .search import SplitCandidate, find_best_split, is_better, select_best_candidate, split_threshold

__all__ = [
    "Region",
    "RowOrderings",
    "SplitCandidate",
    "WeightedAccumulator",
    "find_best_split",
    "gains",
    "is_better",
    "partition_region",
    "running_statistics",
    "select_best_candidate",
    "sort_ids_by_value",
    "split_threshold",
]
