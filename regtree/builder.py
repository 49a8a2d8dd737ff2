"""Concurrent regression tree construction over presorted row orderings."""

from __future__ import annotations

import json
import logging
import os
import threading
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from time import perf_counter
from typing import Sequence

import numpy as np

from .config import TreeConfig
from .core import (
    Region,
    RowOrderings,
    SplitCandidate,
    WeightedAccumulator,
    find_best_split,
    partition_region,
    select_best_candidate,
)
from .data import TrainingData, prepare_training_data
from .model import CONVERTED_LEAF, RegressionTree
from .utils.checks import require


class BuildCancelled(RuntimeError):
    """Raised when a build observes its cancellation event."""


@dataclass(slots=True)
class BuildInstrumentation:
    regions_processed: int = 0
    regions_split: int = 0
    regions_finalized: int = 0
    converted_leaves: int = 0
    rows_total: int = 0
    search_ms: float = 0.0
    partition_ms: float = 0.0

    def __iadd__(self, other: "BuildInstrumentation") -> "BuildInstrumentation":
        self.regions_processed += other.regions_processed
        self.regions_split += other.regions_split
        self.regions_finalized += other.regions_finalized
        self.converted_leaves += other.converted_leaves
        self.rows_total += other.rows_total
        self.search_ms += other.search_ms
        self.partition_ms += other.partition_ms
        return self

    def to_dict(self) -> dict[str, int | float]:
        return {
            "regions_processed": self.regions_processed,
            "regions_split": self.regions_split,
            "regions_finalized": self.regions_finalized,
            "converted_leaves": self.converted_leaves,
            "rows_total": self.rows_total,
            "search_ms": self.search_ms,
            "partition_ms": self.partition_ms,
        }


class _CompletionBarrier:
    """Counts completion units until ``target`` arrive or a worker fails."""

    def __init__(self, target: int) -> None:
        self._target = target
        self._received = 0
        self._error: BaseException | None = None
        self._cond = threading.Condition()

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def received(self) -> int:
        return self._received

    def report(self, units: int) -> None:
        with self._cond:
            self._received += units
            if self._received >= self._target:
                self._cond.notify_all()

    def abort(self, error: BaseException) -> None:
        with self._cond:
            if self._error is None:
                self._error = error
            self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._error is not None or self._received >= self._target)
            if self._error is not None:
                raise self._error


@dataclass(slots=True)
class _BuildState:
    data: TrainingData
    orderings: RowOrderings
    split_features: np.ndarray
    split_values: np.ndarray
    leaves: np.ndarray
    barrier: _CompletionBarrier
    cancel_event: threading.Event | None
    region_pool: Executor | None = None
    feature_pool: Executor | None = None
    depth_stats: dict[int, BuildInstrumentation] = field(default_factory=dict)
    stats_lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def split_count(self) -> int:
        return int(self.split_features.shape[0])

    def record(self, depth: int, stats: BuildInstrumentation) -> None:
        with self.stats_lock:
            self.depth_stats.setdefault(depth, BuildInstrumentation())
            self.depth_stats[depth] += stats


class TreeBuilder:
    """Builds one :class:`RegressionTree` per call to :meth:`build`.

    Every region scans all features concurrently, commits the winning split
    by reordering its own slice of the shared row orderings, and hands the two
    resulting sub-slices to independent child tasks. Sibling regions never
    share positions, so the orderings need no locking, and the reduction over
    features is order independent, so the tree does not depend on scheduling.
    """

    def __init__(self, config: TreeConfig | None = None) -> None:
        self.config = config if config is not None else TreeConfig()
        self._logger = logging.getLogger(__name__)
        self._parallel = bool(self.config.parallel) and os.getenv("REGTREE_DISABLE_PARALLEL") != "1"
        self._validate = bool(self.config.validate_partitions) or os.getenv("REGTREE_VALIDATE") == "1"
        self._depth_logs: list[dict[str, object]] = []
        self._check_config()

    def _check_config(self) -> None:
        cfg = self.config
        require(cfg.max_depth >= 0, "max_depth must be non-negative, got", cfg.max_depth)
        require(cfg.min_items >= 0, "min_items must be non-negative, got", cfg.min_items)
        require(cfg.value_tolerance >= 0, "value_tolerance must be non-negative")
        require(cfg.gain_tolerance >= 0, "gain_tolerance must be non-negative")
        require(
            cfg.max_workers is None or cfg.max_workers > 0,
            "max_workers must be positive, got",
            cfg.max_workers,
        )

    @property
    def depth_logs(self) -> Sequence[dict[str, object]]:
        return self._depth_logs

    @property
    def workers(self) -> int:
        if not self._parallel:
            return 1
        return int(self.config.max_workers or os.cpu_count() or 1)

    # Public -------------------------------------------------------------

    def build(
        self,
        output,
        weight,
        inputs,
        *,
        feature_names: Sequence[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RegressionTree:
        """Fit a tree to ``output`` weighted by ``weight`` over ``inputs`` ``[F, N]``."""
        data = prepare_training_data(output, weight, inputs, feature_names=feature_names)
        max_depth = int(self.config.max_depth)
        leaf_slots = 1 << max_depth

        state = _BuildState(
            data=data,
            orderings=RowOrderings(data.features),
            split_features=np.full(leaf_slots - 1, CONVERTED_LEAF, dtype=np.int32),
            split_values=np.zeros(leaf_slots - 1, dtype=np.float64),
            leaves=np.zeros(leaf_slots, dtype=np.float64),
            barrier=_CompletionBarrier(leaf_slots),
            cancel_event=cancel_event,
        )

        start = perf_counter()
        if self.workers > 1:
            self._build_parallel(state)
        else:
            self._build_sequential(state)
        elapsed = perf_counter() - start

        require(
            state.barrier.received == leaf_slots,
            f"construction reported {state.barrier.received} completion units, expected {leaf_slots}",
        )
        self._emit_depth_logs(state, elapsed)
        return RegressionTree(
            state.split_features,
            state.split_values,
            state.leaves,
            feature_names=data.feature_names,
        )

    # Scheduling ---------------------------------------------------------

    def _build_parallel(self, state: _BuildState) -> None:
        workers = self.workers
        # Separate pools: a region blocked on its feature searches must never
        # occupy a thread those searches need.
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="regtree-feature") as feature_pool:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="regtree-region") as region_pool:
                state.feature_pool = feature_pool
                state.region_pool = region_pool
                self._submit_region(state, state.orderings.root, 0, 0)
                state.barrier.wait()

    def _submit_region(self, state: _BuildState, region: Region, node: int, depth: int) -> None:
        assert state.region_pool is not None
        state.region_pool.submit(self._run_region_task, state, region, node, depth)

    def _run_region_task(self, state: _BuildState, region: Region, node: int, depth: int) -> None:
        if state.barrier.failed:
            return
        try:
            children = self._process_region(state, region, node, depth)
            for child_region, child_node in children:
                self._submit_region(state, child_region, child_node, depth + 1)
        except BaseException as exc:
            state.barrier.abort(exc)
            raise

    def _build_sequential(self, state: _BuildState) -> None:
        stack: list[tuple[Region, int, int]] = [(state.orderings.root, 0, 0)]
        while stack:
            region, node, depth = stack.pop()
            children = self._process_region(state, region, node, depth)
            # Push the excluded child first so the included one is handled next.
            for child_region, child_node in reversed(children):
                stack.append((child_region, child_node, depth + 1))

    # Region processing ----------------------------------------------------

    def _process_region(
        self, state: _BuildState, region: Region, node: int, depth: int
    ) -> list[tuple[Region, int]]:
        """Split ``region`` or finalize it; return the child tasks to schedule."""
        if state.cancel_event is not None and state.cancel_event.is_set():
            raise BuildCancelled(f"tree construction cancelled at node {node}")

        stats = BuildInstrumentation(regions_processed=1, rows_total=region.size)
        try:
            best = self._try_split(state, region, depth, stats)
            if best is None:
                self._finalize(state, region, node, depth, stats)
                return []

            t0 = perf_counter()
            count = partition_region(state.orderings, region, best)
            included, excluded = region.split(count)
            if self._validate:
                state.orderings.check_region(included, state.data.features)
                state.orderings.check_region(excluded, state.data.features)
            stats.partition_ms += (perf_counter() - t0) * 1000.0

            state.split_features[node] = best.feature
            state.split_values[node] = best.threshold
            stats.regions_split += 1
            return [(included, 2 * node + 1), (excluded, 2 * node + 2)]
        finally:
            state.record(depth, stats)

    def _try_split(
        self, state: _BuildState, region: Region, depth: int, stats: BuildInstrumentation
    ) -> SplitCandidate | None:
        cfg = self.config
        if depth + 1 > cfg.max_depth or region.size < 2 * cfg.min_items:
            return None
        if state.data.n_features == 0:
            return None

        t0 = perf_counter()
        best = select_best_candidate(self._search_features(state, region))
        stats.search_ms += (perf_counter() - t0) * 1000.0

        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "region [%d, %d) depth %d best split: %s", region.begin, region.end, depth, best
            )
        if best is None or best.empty:
            return None
        return best

    def _search_features(self, state: _BuildState, region: Region):
        """Yield one candidate per feature, in completion order when pooled."""
        data = state.data
        orderings = state.orderings

        def search(feature: int) -> SplitCandidate:
            return find_best_split(
                feature,
                orderings.feature_ids(feature, region),
                region,
                data.output,
                data.weight,
                data.features[feature],
                min_items=self.config.min_items,
                value_tolerance=self.config.value_tolerance,
                gain_tolerance=self.config.gain_tolerance,
            )

        if state.feature_pool is None:
            for feature in range(data.n_features):
                yield search(feature)
            return

        futures = [state.feature_pool.submit(search, feature) for feature in range(data.n_features)]
        for future in as_completed(futures):
            yield future.result()

    def _finalize(
        self,
        state: _BuildState,
        region: Region,
        node: int,
        depth: int,
        stats: BuildInstrumentation,
    ) -> None:
        ids = state.orderings.ids(region)
        adjustment = WeightedAccumulator.from_rows(state.data.output[ids], state.data.weight[ids]).mean()
        if node < state.split_count:
            # Every descendant of a converted leaf predicts this same value.
            state.split_features[node] = CONVERTED_LEAF
            state.split_values[node] = adjustment
            stats.converted_leaves += 1
        else:
            state.leaves[node - state.split_count] = adjustment
        stats.regions_finalized += 1
        state.barrier.report(1 << (self.config.max_depth - depth))

    # Logging ------------------------------------------------------------

    def _emit_depth_logs(self, state: _BuildState, elapsed: float) -> None:
        self._depth_logs = []
        for depth in sorted(state.depth_stats):
            depth_log: dict[str, object] = state.depth_stats[depth].to_dict()
            depth_log.update({
                "depth": depth,
                "max_depth": self.config.max_depth,
                "min_items": self.config.min_items,
                "workers": self.workers,
                "build_seconds": elapsed,
            })
            self._depth_logs.append(depth_log)
            if self._logger.isEnabledFor(logging.INFO):
                self._logger.info(json.dumps(depth_log))


def build_tree(
    output,
    weight,
    inputs,
    max_depth: int,
    min_items: int,
    **options,
) -> RegressionTree:
    """Build a single regression tree; ``options`` are extra :class:`TreeConfig` fields."""
    feature_names = options.pop("feature_names", None)
    cancel_event = options.pop("cancel_event", None)
    config = TreeConfig(max_depth=max_depth, min_items=min_items, **options)
    return TreeBuilder(config).build(
        output,
        weight,
        inputs,
        feature_names=feature_names,
        cancel_event=cancel_event,
    )
