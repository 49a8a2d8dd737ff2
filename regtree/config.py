"""Configuration objects for regtree."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TreeConfig:
    """Hyper-parameters steering regression tree construction.

    Parameters
    ----------
    max_depth:
        Maximum depth of the tree (the root sits at depth 0). The built tree
        always reserves ``2**max_depth - 1`` split slots and ``2**max_depth``
        leaf slots.
    min_items:
        Minimum number of rows required on each side of a split. Regions with
        fewer than ``2 * min_items`` rows are not split.
    value_tolerance:
        Adjacent feature values closer than this are treated as equal and
        never separated by a split. Very large or very small feature
        magnitudes may need a different value.
    gain_tolerance:
        A candidate split replaces the best one found so far for a feature
        only when it improves the gain by more than this amount. Scale it
        with the magnitude of ``output``.
    max_workers:
        Thread count for each of the region and feature pools. ``None`` uses
        ``os.cpu_count()``.
    parallel:
        Toggle for concurrent construction. When ``False`` regions and
        features are processed one at a time (useful for debugging); the
        resulting tree is identical.
    validate_partitions:
        Re-check the ordering invariants of both children after every
        committed split. Costs a sort per ordering; meant for debugging.
    """

    max_depth: int = 6
    min_items: int = 1
    value_tolerance: float = 1e-6
    gain_tolerance: float = 1e-6
    max_workers: int | None = None
    parallel: bool = True
    validate_partitions: bool = False
