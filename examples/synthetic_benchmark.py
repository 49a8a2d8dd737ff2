"""Benchmark regtree against scikit-learn's decision tree on synthetic data."""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

import numpy as np
import pandas as pd
from sklearn.datasets import make_regression
from sklearn.metrics import r2_score
from sklearn.model_selection import train_test_split
from sklearn.tree import DecisionTreeRegressor

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from regtree import RegressionTreeRegressor, TreeBuilder, TreeConfig
from regtree.data import as_feature_major


N_SAMPLES = 20000
N_FEATURES = 20
SEED = 123

MAX_DEPTH = 8
MIN_ITEMS = 20


@dataclass
class BenchmarkResult:
    name: str
    fit_time: float
    predict_time: float
    r2: float


def generate_data() -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Create a regression dataset with non-uniform sample weights."""
    X, y = make_regression(
        n_samples=N_SAMPLES,
        n_features=N_FEATURES,
        n_informative=8,
        noise=10.0,
        random_state=SEED,
    )
    rng = np.random.default_rng(SEED)
    weight = rng.uniform(0.5, 1.5, size=N_SAMPLES)
    return X, y, weight


def benchmark(
    name: str,
    fit_fn: Callable[[], None],
    predict_fn: Callable[[], np.ndarray],
    y_true: np.ndarray,
) -> BenchmarkResult:
    """Measure fit/predict time and compute R^2."""
    t0 = time.perf_counter()
    fit_fn()
    fit_time = time.perf_counter() - t0

    t0 = time.perf_counter()
    preds = predict_fn()
    predict_time = time.perf_counter() - t0

    r2 = float(r2_score(y_true, preds))
    return BenchmarkResult(name=name, fit_time=fit_time, predict_time=predict_time, r2=r2)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    X, y, weight = generate_data()
    X_train, X_test, y_train, y_test, w_train, _ = train_test_split(
        X, y, weight, test_size=0.2, random_state=SEED
    )
    feature_names = [f"f{i}" for i in range(X_train.shape[1])]
    X_train_df = pd.DataFrame(X_train, columns=feature_names)
    X_test_df = pd.DataFrame(X_test, columns=feature_names)

    results: List[BenchmarkResult] = []

    # regtree, one thread
    sequential = TreeBuilder(TreeConfig(max_depth=MAX_DEPTH, min_items=MIN_ITEMS, parallel=False))
    seq_tree = {}

    def seq_fit() -> None:
        seq_tree["tree"] = sequential.build(y_train, w_train, as_feature_major(X_train))

    results.append(
        benchmark(
            "regtree-seq",
            seq_fit,
            lambda: seq_tree["tree"].predict(X_test),
            y_test,
        )
    )

    # regtree, thread pools, via the estimator
    reg = RegressionTreeRegressor(max_depth=MAX_DEPTH, min_items=MIN_ITEMS)
    results.append(
        benchmark(
            "regtree-par",
            lambda: reg.fit(X_train_df, y_train, sample_weight=w_train),
            lambda: reg.predict(X_test_df),
            y_test,
        )
    )
    if not reg.get_tree().equals(seq_tree["tree"]):
        raise RuntimeError("parallel and sequential trees differ")

    # scikit-learn baseline
    skl = DecisionTreeRegressor(
        max_depth=MAX_DEPTH,
        min_samples_leaf=MIN_ITEMS,
        random_state=SEED,
    )
    results.append(
        benchmark(
            "sklearn",
            lambda: skl.fit(X_train, y_train, sample_weight=w_train),
            lambda: skl.predict(X_test),
            y_test,
        )
    )

    print("Model         Fit (s)   Predict (s)   R^2")
    print("-" * 44)
    for res in results:
        print(f"{res.name:<12} {res.fit_time:>8.3f} {res.predict_time:>12.3f} {res.r2:>7.4f}")
