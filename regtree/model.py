"""Array-encoded regression tree and its batched evaluator."""

from __future__ import annotations

from typing import NamedTuple, Sequence

import numpy as np
import torch

from .data import as_feature_major, ensure_numpy
from .utils.checks import require

CONVERTED_LEAF = -1


class Split(NamedTuple):
    """One internal slot: a ``(feature, threshold)`` pair or a converted leaf.

    When ``feature`` is ``-1`` the subtree stopped splitting early and
    ``threshold_or_value`` is the constant prediction for all of it.
    """

    feature: int
    threshold_or_value: float

    @property
    def is_leaf(self) -> bool:
        return self.feature == CONVERTED_LEAF


def _frozen(array: np.ndarray, dtype) -> np.ndarray:
    out = np.array(array, dtype=dtype, copy=True)
    out.setflags(write=False)
    return out


class RegressionTree:
    """Complete binary tree of fixed depth stored in flat arrays.

    Split slot ``i`` has children ``2*i + 1`` (rows above the threshold) and
    ``2*i + 2`` (rows at or below it). Indices at or past the split count
    address ``leaves``.
    """

    __slots__ = ("_split_features", "_split_values", "_leaves", "_feature_names")

    def __init__(
        self,
        split_features: np.ndarray,
        split_values: np.ndarray,
        leaves: np.ndarray,
        feature_names: Sequence[str] | None = None,
    ) -> None:
        split_features = np.asarray(split_features)
        split_values = np.asarray(split_values)
        leaves = np.asarray(leaves)
        require(
            split_features.shape == split_values.shape,
            "split_features and split_values must have the same shape",
        )
        require(
            leaves.ndim == 1 and leaves.shape[0] == split_features.shape[0] + 1,
            f"expected {split_features.shape[0] + 1} leaves, got {leaves.shape}",
        )
        require(
            leaves.shape[0] & (leaves.shape[0] - 1) == 0,
            "leaf count must be a power of two, got",
            leaves.shape[0],
        )
        self._split_features = _frozen(split_features, np.int32)
        self._split_values = _frozen(split_values, np.float64)
        self._leaves = _frozen(leaves, np.float64)
        self._feature_names = tuple(feature_names) if feature_names is not None else None

    # Structure ----------------------------------------------------------

    @property
    def max_depth(self) -> int:
        return int(self._leaves.shape[0]).bit_length() - 1

    @property
    def split_features(self) -> np.ndarray:
        return self._split_features

    @property
    def split_values(self) -> np.ndarray:
        return self._split_values

    @property
    def splits(self) -> tuple[Split, ...]:
        return tuple(
            Split(int(feature), float(value))
            for feature, value in zip(self._split_features, self._split_values)
        )

    @property
    def leaves(self) -> np.ndarray:
        return self._leaves

    @property
    def feature_names(self) -> tuple[str, ...] | None:
        return self._feature_names

    @property
    def n_features_required(self) -> int:
        """Smallest feature count an input needs for :meth:`eval`."""
        if self._split_features.size == 0:
            return 0
        return int(self._split_features.max(initial=CONVERTED_LEAF)) + 1

    def equals(self, other: "RegressionTree") -> bool:
        """Exact equality of every slot, including unreachable ones."""
        return (
            np.array_equal(self._split_features, other._split_features)
            and np.array_equal(self._split_values, other._split_values)
            and np.array_equal(self._leaves, other._leaves)
        )

    def __repr__(self) -> str:
        return (
            f"RegressionTree(max_depth={self.max_depth}, "
            f"splits={list(self.splits)}, leaves={self._leaves.tolist()})"
        )

    # Evaluation ---------------------------------------------------------

    def apply(self, inputs) -> np.ndarray:
        """Return the terminal node index reached by each row.

        The index is either a converted-leaf split slot or
        ``split_count + leaf_slot`` for a slot in :attr:`leaves`.
        """
        features = self._feature_major(inputs)
        return self._route(features)

    def eval(self, inputs):
        """Predict one value per row for feature-major ``inputs`` ``[F, N]``.

        ``inputs`` may be a sequence of ``F`` feature sequences, an ``[F, N]``
        array, or an ``[F, N]`` tensor, in which case a ``float32`` tensor on
        the same device is returned.
        """
        features = self._feature_major(inputs)
        out = self._values_for(self._route(features))
        if isinstance(inputs, torch.Tensor):
            return torch.from_numpy(out.astype(np.float32)).to(device=inputs.device)
        return out

    def predict(self, X) -> np.ndarray:
        """Predict for row-major ``X`` ``[N, F]`` (ndarray, tensor or DataFrame)."""
        features = as_feature_major(X)
        self._check_feature_count(features.shape[0])
        return self._values_for(self._route(features))

    def _feature_major(self, inputs) -> np.ndarray:
        if isinstance(inputs, (np.ndarray, torch.Tensor)):
            features = np.asarray(ensure_numpy(inputs), dtype=np.float64)
        else:
            columns = [np.asarray(ensure_numpy(column), dtype=np.float64) for column in inputs]
            if not columns:
                features = np.empty((0, 0), dtype=np.float64)
            else:
                n_rows = columns[0].shape[0]
                require(
                    all(column.shape == (n_rows,) for column in columns),
                    "every feature must be 1-D with the same number of rows",
                )
                features = np.stack(columns)
        require(features.ndim == 2, "inputs must be 2D [F, N], got shape", features.shape)
        self._check_feature_count(features.shape[0])
        return features

    def _check_feature_count(self, n_features: int) -> None:
        required = self.n_features_required
        require(
            n_features >= required,
            f"tree splits on feature {required - 1} but inputs have {n_features} features",
        )

    def _route(self, features: np.ndarray) -> np.ndarray:
        n_rows = features.shape[1] if features.ndim == 2 else 0
        n_splits = int(self._split_features.shape[0])
        node_idx = np.zeros(n_rows, dtype=np.int64)
        if n_splits == 0 or n_rows == 0:
            return node_idx

        active = np.arange(n_rows, dtype=np.int64)
        while active.size > 0:
            nodes = node_idx[active]
            feature = self._split_features[nodes]
            done = feature == CONVERTED_LEAF
            if done.any():
                active = active[~done]
                nodes = nodes[~done]
                feature = feature[~done]
                if active.size == 0:
                    break

            row_values = features[feature, active]
            at_or_below = row_values <= self._split_values[nodes]
            next_nodes = 2 * nodes + 1 + at_or_below.astype(np.int64)
            node_idx[active] = next_nodes
            active = active[next_nodes < n_splits]
        return node_idx

    def _values_for(self, node_idx: np.ndarray) -> np.ndarray:
        n_splits = int(self._split_features.shape[0])
        out = np.empty(node_idx.shape[0], dtype=np.float64)
        terminal = node_idx >= n_splits
        out[terminal] = self._leaves[node_idx[terminal] - n_splits]
        internal = ~terminal
        out[internal] = self._split_values[node_idx[internal]]
        return out
