"""scikit-learn wrapper for regtree."""

from __future__ import annotations

from typing import Optional

import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin

from .builder import TreeBuilder
from .config import TreeConfig
from .data import as_feature_major
from .model import RegressionTree


class RegressionTreeRegressor(BaseEstimator, RegressorMixin):
    """scikit-learn compatible estimator wrapping :class:`TreeBuilder`."""

    def __init__(
        self,
        *,
        max_depth: int = 6,
        min_items: int = 1,
        value_tolerance: float = 1e-6,
        gain_tolerance: float = 1e-6,
        max_workers: Optional[int] = None,
        parallel: bool = True,
    ) -> None:
        self.max_depth = max_depth
        self.min_items = min_items
        self.value_tolerance = value_tolerance
        self.gain_tolerance = gain_tolerance
        self.max_workers = max_workers
        self.parallel = parallel

    def fit(self, X, y, sample_weight=None) -> "RegressionTreeRegressor":
        """Fit the estimator.

        Parameters
        ----------
        X:
            Feature matrix of shape (n_samples, n_features); a DataFrame's
            column names are kept as ``feature_names_in_``.
        y:
            Targets of shape (n_samples,).
        sample_weight:
            Optional non-negative per-sample weights. Defaults to ones.
        """
        features = as_feature_major(X)
        y_np = np.asarray(y, dtype=np.float64)
        if sample_weight is None:
            weight = np.ones(y_np.shape[0], dtype=np.float64)
        else:
            weight = np.asarray(sample_weight, dtype=np.float64)

        columns = getattr(X, "columns", None)
        feature_names = [str(c) for c in columns] if columns is not None else None

        config = TreeConfig(
            max_depth=self.max_depth,
            min_items=self.min_items,
            value_tolerance=self.value_tolerance,
            gain_tolerance=self.gain_tolerance,
            max_workers=self.max_workers,
            parallel=self.parallel,
        )
        self.tree_: RegressionTree = TreeBuilder(config).build(
            y_np, weight, features, feature_names=feature_names
        )
        self.n_features_in_ = int(features.shape[0])
        if feature_names is not None:
            self.feature_names_in_ = np.asarray(feature_names, dtype=object)
        return self

    def predict(self, X) -> np.ndarray:
        tree = getattr(self, "tree_", None)
        if tree is None:
            raise RuntimeError("Estimator has not been fitted")
        return tree.predict(X)

    def get_tree(self) -> RegressionTree:
        tree = getattr(self, "tree_", None)
        if tree is None:
            raise RuntimeError("Estimator has not been fitted")
        return tree
