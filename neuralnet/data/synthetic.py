"""Pure in-memory synthetic datasets."""

from __future__ import annotations

import numpy as np

from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import deterministic_split, one_hot


def _split(inputs: np.ndarray, targets: np.ndarray, *, test_split: float, seed: int):
    splits = deterministic_split(inputs.shape[0], test_split=test_split, seed=seed)
    result = {"train": (inputs[splits.train], targets[splits.train])}
    if splits.test.size:
        result["test"] = (inputs[splits.test], targets[splits.test])
    return result


def make_separable(n_points: int, dims: int, seed: int, spread: float = 0.08):
    """Two Gaussian clusters around 0.25 and 0.75 in every coordinate."""

    rng = np.random.default_rng(seed)
    labels = rng.integers(0, 2, size=n_points)
    centres = np.where(labels[:, None] == 1, 0.75, 0.25)
    inputs = np.clip(centres + spread * rng.standard_normal((n_points, dims)), 0.0, 1.0)
    return inputs, labels


@register_dataset("separable")
def build_separable(
    *,
    n_points: int = 200,
    dims: int = 2,
    seed: int = 0,
    test_split: float = 0.2,
    spread: float = 0.08,
) -> DatasetSpec:
    inputs, labels = make_separable(int(n_points), int(dims), int(seed), float(spread))
    targets = one_hot(labels, 2)
    return DatasetSpec(
        name="separable",
        data_spec=DataSpec(d_in=int(dims), d_out=2, num_classes=2),
        provenance={
            "type": "synthetic",
            "n_points": int(n_points),
            "dims": int(dims),
            "seed": int(seed),
            "spread": float(spread),
            "test_split": float(test_split),
        },
        splits=_split(inputs, targets, test_split=test_split, seed=seed),
    )


def make_bars(n_points: int, width: int, height: int, seed: int, noise: float = 0.1):
    """Images holding one full horizontal (label 0) or vertical (label 1) bar.

    Images are flattened column-major, the grid layout of the 2-D layers.
    """

    rng = np.random.default_rng(seed)
    labels = rng.integers(0, 2, size=n_points)
    images = rng.uniform(0.0, noise, size=(n_points, height, width))
    for image, label in zip(images, labels):
        if label == 0:
            image[rng.integers(0, height), :] = 1.0
        else:
            image[:, rng.integers(0, width)] = 1.0
    inputs = images.transpose(0, 2, 1).reshape(n_points, -1)
    return inputs, labels


@register_dataset("bars")
def build_bars(
    *,
    n_points: int = 200,
    width: int = 8,
    height: int = 8,
    seed: int = 0,
    test_split: float = 0.2,
    noise: float = 0.1,
) -> DatasetSpec:
    inputs, labels = make_bars(int(n_points), int(width), int(height), int(seed), float(noise))
    targets = one_hot(labels, 2)
    return DatasetSpec(
        name="bars",
        data_spec=DataSpec(
            d_in=int(width) * int(height),
            d_out=2,
            num_classes=2,
            extra={"input_shape": (int(width), int(height))},
        ),
        provenance={
            "type": "synthetic",
            "n_points": int(n_points),
            "width": int(width),
            "height": int(height),
            "seed": int(seed),
            "noise": float(noise),
            "test_split": float(test_split),
        },
        splits=_split(inputs, targets, test_split=test_split, seed=seed),
    )


__all__ = ["build_bars", "build_separable", "make_bars", "make_separable"]
