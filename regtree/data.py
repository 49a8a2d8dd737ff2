"""Input preparation and validation utilities for regtree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import torch

from .utils.checks import require


def ensure_numpy(array) -> np.ndarray:
    """Convert ``array`` (ndarray, tensor, DataFrame or sequence) to ``np.ndarray``."""

    if isinstance(array, np.ndarray):
        return np.asarray(array)
    if isinstance(array, torch.Tensor):
        return array.detach().cpu().numpy()
    if isinstance(array, Feature):
        return array.values
    return np.asarray(array)


@dataclass(slots=True)
class Feature:
    """Named dense vector holding one feature's value for every row."""

    values: np.ndarray
    name: str | None = None

    def __post_init__(self) -> None:
        values = np.asarray(ensure_numpy(self.values), dtype=np.float64)
        if values.ndim != 1:
            raise ValueError("Feature values must be 1D")
        self.values = values

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def size(self) -> int:
        return len(self)

    def value_at(self, offset: int) -> float:
        return float(self.values[offset])


@dataclass(frozen=True, slots=True)
class TrainingData:
    """Validated training arrays; ``features`` is feature-major ``[F, N]``."""

    output: np.ndarray
    weight: np.ndarray
    features: np.ndarray
    feature_names: tuple[str, ...]

    @property
    def n_rows(self) -> int:
        return int(self.output.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.features.shape[0])

    def feature(self, index: int) -> Feature:
        return Feature(self.features[index], name=self.feature_names[index])


def _as_features(inputs, feature_names: Sequence[str] | None) -> list[Feature]:
    if isinstance(inputs, (np.ndarray, torch.Tensor)):
        matrix = ensure_numpy(inputs)
        if matrix.ndim != 2:
            raise ValueError("inputs must be 2D [F, N] when given as an array")
        columns = list(matrix)
    else:
        columns = list(inputs)

    if feature_names is not None:
        names = [str(name) for name in feature_names]
        require(
            len(names) == len(columns),
            f"feature_names has {len(names)} entries for {len(columns)} features",
        )
    else:
        names = [
            column.name if isinstance(column, Feature) and column.name is not None else f"f{i}"
            for i, column in enumerate(columns)
        ]

    features: list[Feature] = []
    for name, column in zip(names, columns):
        values = column.values if isinstance(column, Feature) else column
        features.append(Feature(values, name=name))
    return features


def prepare_training_data(
    output,
    weight,
    inputs,
    *,
    feature_names: Sequence[str] | None = None,
) -> TrainingData:
    """Validate and convert training inputs to contiguous ``float64`` arrays.

    Parameters
    ----------
    output:
        Target value per row, length ``N``.
    weight:
        Non-negative weight per row, length ``N``.
    inputs:
        ``F`` feature columns, each of length ``N``: a sequence of sequences
        or :class:`Feature` objects, or a feature-major ``[F, N]`` array.
    feature_names:
        Optional names overriding those carried by :class:`Feature` inputs.

    Raises
    ------
    ContractError
        When shapes disagree or values are not finite, or weights are negative.
    """

    output_np = np.asarray(ensure_numpy(output), dtype=np.float64)
    weight_np = np.asarray(ensure_numpy(weight), dtype=np.float64)
    require(output_np.ndim == 1, "output must be 1-D, got shape", output_np.shape)
    require(weight_np.ndim == 1, "weight must be 1-D, got shape", weight_np.shape)
    n_rows = int(output_np.shape[0])
    require(
        weight_np.shape[0] == n_rows,
        f"weight has {weight_np.shape[0]} rows, output has {n_rows}",
    )
    require(bool(np.all(np.isfinite(output_np))), "output must be finite")
    require(bool(np.all(np.isfinite(weight_np))), "weight must be finite")
    require(bool(np.all(weight_np >= 0)), "weight must be non-negative")

    features = _as_features(inputs, feature_names)
    for index, feature in enumerate(features):
        require(
            feature.size() == n_rows,
            f"feature {index} ({feature.name}) has {feature.size()} values, expected {n_rows}",
        )
        require(
            bool(np.all(np.isfinite(feature.values))),
            f"feature {index} ({feature.name}) contains non-finite values",
        )

    if features:
        matrix = np.ascontiguousarray(np.stack([feature.values for feature in features]))
    else:
        matrix = np.empty((0, n_rows), dtype=np.float64)

    return TrainingData(
        output=np.ascontiguousarray(output_np),
        weight=np.ascontiguousarray(weight_np),
        features=matrix,
        feature_names=tuple(feature.name for feature in features),
    )


def as_feature_major(X) -> np.ndarray:
    """Return a row-major ``[N, F]`` matrix (ndarray, tensor or DataFrame) as ``[F, N]``."""

    X_np = np.asarray(ensure_numpy(X), dtype=np.float64)
    if X_np.ndim != 2:
        raise ValueError("X must be 2D [N, F]")
    return np.ascontiguousarray(X_np.T)
