"""Stable value ordering of row ids for a single feature."""

from __future__ import annotations

import numpy as np


def sort_ids_by_value(values) -> np.ndarray:
    """Return row ids sorted ascending by ``values``, ties kept in id order."""
    arr = np.asarray(getattr(values, "values", values), dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError("values must be a 1D array")
    return np.argsort(arr, kind="stable").astype(np.int64, copy=False)
