"""Regression tests for concurrent and sequential construction."""

from __future__ import annotations

import threading

import numpy as np
import pytest

from regtree import BuildCancelled, ContractError, TreeBuilder, TreeConfig
from regtree import builder as builder_module


def make_random_regression(seed: int = 42, n_rows: int = 256, n_features: int = 6):
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n_features, n_rows))
    # Coarse values create many ties and exactly equal gains across features.
    X[0] = np.round(X[0])
    X[1] = X[0].copy()
    coefs = rng.normal(size=n_features)
    y = coefs @ X + 0.1 * rng.standard_normal(n_rows)
    w = rng.uniform(0.0, 2.0, size=n_rows)
    return y, w, X


def test_parallel_matches_sequential() -> None:
    y, w, X = make_random_regression(seed=99)
    common = dict(max_depth=5, min_items=3)
    parallel = TreeBuilder(TreeConfig(parallel=True, max_workers=8, **common)).build(y, w, X)
    sequential = TreeBuilder(TreeConfig(parallel=False, **common)).build(y, w, X)
    assert parallel.equals(sequential)
    np.testing.assert_array_equal(parallel.eval(X), sequential.eval(X))


def test_repeated_parallel_builds_are_identical() -> None:
    y, w, X = make_random_regression(seed=7)
    builder = TreeBuilder(TreeConfig(max_depth=6, min_items=2, max_workers=4))
    reference = builder.build(y, w, X)
    for _ in range(5):
        assert builder.build(y, w, X).equals(reference)


@pytest.mark.parametrize("workers", [1, 2, 3, 16])
def test_worker_count_does_not_change_tree(workers: int) -> None:
    y, w, X = make_random_regression(seed=202, n_rows=150)
    baseline = TreeBuilder(TreeConfig(max_depth=4, min_items=1, parallel=False)).build(y, w, X)
    tree = TreeBuilder(TreeConfig(max_depth=4, min_items=1, max_workers=workers)).build(y, w, X)
    assert tree.equals(baseline)


def test_duplicate_feature_prefers_lower_index() -> None:
    y, w, X = make_random_regression(seed=5)
    X[2:] = 0.0
    tree = TreeBuilder(TreeConfig(max_depth=3, min_items=1, max_workers=4)).build(y, w, X)
    used = set(tree.split_features[tree.split_features >= 0].tolist())
    assert used == {0}


def test_validation_mode_matches_default() -> None:
    y, w, X = make_random_regression(seed=13, n_rows=120)
    common = dict(max_depth=4, min_items=2, max_workers=4)
    checked = TreeBuilder(TreeConfig(validate_partitions=True, **common)).build(y, w, X)
    plain = TreeBuilder(TreeConfig(**common)).build(y, w, X)
    assert checked.equals(plain)


def test_env_disables_parallelism(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REGTREE_DISABLE_PARALLEL", "1")
    builder = TreeBuilder(TreeConfig(max_workers=8))
    assert builder.workers == 1


@pytest.mark.parametrize("parallel", [True, False])
def test_cancelled_build_raises(parallel: bool) -> None:
    y, w, X = make_random_regression(seed=1, n_rows=64)
    cancel = threading.Event()
    cancel.set()
    builder = TreeBuilder(TreeConfig(max_depth=3, parallel=parallel, max_workers=4))
    with pytest.raises(BuildCancelled):
        builder.build(y, w, X, cancel_event=cancel)


def test_unset_cancel_event_does_not_change_output() -> None:
    y, w, X = make_random_regression(seed=3, n_rows=64)
    builder = TreeBuilder(TreeConfig(max_depth=3, max_workers=4))
    assert builder.build(y, w, X, cancel_event=threading.Event()).equals(builder.build(y, w, X))


def test_worker_failure_propagates(monkeypatch: pytest.MonkeyPatch) -> None:
    y, w, X = make_random_regression(seed=9, n_rows=64)

    def broken_partition(*args, **kwargs):
        raise ContractError("partition invariant broken")

    monkeypatch.setattr(builder_module, "partition_region", broken_partition)
    builder = TreeBuilder(TreeConfig(max_depth=3, max_workers=4))
    with pytest.raises(ContractError, match="partition invariant broken"):
        builder.build(y, w, X)


def test_invalid_worker_count_raises() -> None:
    with pytest.raises(ContractError):
        TreeBuilder(TreeConfig(max_workers=0))
