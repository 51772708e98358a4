"""Utility helpers for dataset factories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Sequence

import numpy as np

from ..core.errors import ShapeMismatchError
from ..core.types import Array, TrainingPair


def normalize_bytes(values: np.ndarray) -> Array:
    """Map raw ``uint8`` values to floats in ``[0, 1]``."""

    return np.asarray(values, dtype=np.float64) / 255.0


def one_hot(labels: Sequence[int] | Array, num_classes: int) -> Array:
    labels = np.asarray(labels, dtype=np.int64).reshape(-1)
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ShapeMismatchError(
            f"Labels must lie in [0, {num_classes}), got range "
            f"[{labels.min()}, {labels.max()}]"
        )
    out = np.zeros((labels.shape[0], num_classes), dtype=np.float64)
    out[np.arange(labels.shape[0]), labels] = 1.0
    return out


def outputs_from_labels(labels: Sequence[Array] | Array, output_size: int) -> Array:
    """Turn raw label items into expected network outputs.

    Single-byte labels become one-hot vectors of ``output_size`` unless the
    network has a single output; every other label is scaled byte-wise by
    ``1/255``.
    """

    items = np.asarray(labels, dtype=np.uint8)
    if items.ndim == 1:
        items = items.reshape(-1, 1)
    items = items.reshape(items.shape[0], -1)
    if items.shape[1] == 1 and output_size != 1:
        return one_hot(items[:, 0], output_size)
    if items.shape[1] != output_size:
        raise ShapeMismatchError(
            f"Labels have {items.shape[1]} values but the network has {output_size} outputs"
        )
    return normalize_bytes(items)


def to_pairs(inputs: Array, targets: Array) -> List[TrainingPair]:
    if len(inputs) != len(targets):
        raise ShapeMismatchError(f"{len(inputs)} inputs but {len(targets)} targets")
    return [
        (np.asarray(x, dtype=np.float64).reshape(-1), np.asarray(y, dtype=np.float64).reshape(-1))
        for x, y in zip(inputs, targets)
    ]


@dataclass(frozen=True)
class SplitIndices:
    """Indices for train/test partitions."""

    train: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {"train": int(self.train.size), "test": int(self.test.size)}


def deterministic_split(n_samples: int, *, test_split: float = 0.2, seed: int = 0) -> SplitIndices:
    """Return deterministic indices for the requested split ratio."""

    if not 0 <= test_split < 1:
        raise ValueError("test_split must be in [0, 1)")
    rng = np.random.default_rng(seed)
    indices = np.arange(n_samples)
    rng.shuffle(indices)
    test_size = int(round(n_samples * test_split))
    test_size = min(max(test_size, 1 if test_split > 0 else 0), n_samples)
    if n_samples - test_size <= 0:
        raise ValueError("Not enough samples for the requested splits")
    return SplitIndices(train=indices[test_size:], test=indices[:test_size])


__all__ = [
    "SplitIndices",
    "deterministic_split",
    "normalize_bytes",
    "one_hot",
    "outputs_from_labels",
    "to_pairs",
]
