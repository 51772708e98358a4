"""Image/label datasets stored as IDX files on disk (MNIST layout)."""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np

from ..core.errors import ShapeMismatchError
from .idx import read_idx
from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import normalize_bytes, outputs_from_labels


def load_idx_arrays(
    images_path: str | Path,
    labels_path: str | Path,
    output_size: int,
    *,
    max_items: int | None = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(inputs, targets, labels)`` for an image/label file pair.

    Inputs are the flattened images scaled to ``[0, 1]``; ``labels`` holds the
    raw label items for accuracy bookkeeping.
    """

    images = read_idx(images_path)
    labels = read_idx(labels_path)
    if len(images) != len(labels):
        raise ShapeMismatchError(
            f"{images_path} holds {len(images)} images but {labels_path} holds {len(labels)} labels"
        )
    count = len(images) if max_items is None else min(int(max_items), len(images))
    raw_labels = labels.data.reshape(len(labels), -1)[:count]
    inputs = normalize_bytes(images.data.reshape(len(images), -1)[:count])
    targets = outputs_from_labels(raw_labels, output_size)
    return inputs, targets, raw_labels


@register_dataset("idx")
def build_idx(
    *,
    train_images: str,
    train_labels: str,
    test_images: str | None = None,
    test_labels: str | None = None,
    num_classes: int = 10,
    max_items: int | None = None,
) -> DatasetSpec:
    inputs, targets, _ = load_idx_arrays(
        train_images, train_labels, num_classes, max_items=max_items
    )
    splits = {"train": (inputs, targets)}
    if (test_images is None) != (test_labels is None):
        raise ValueError("test_images and test_labels must be given together")
    if test_images is not None:
        test_inputs, test_targets, _ = load_idx_arrays(
            test_images, test_labels, num_classes, max_items=max_items
        )
        splits["test"] = (test_inputs, test_targets)
    return DatasetSpec(
        name="idx",
        data_spec=DataSpec(
            d_in=int(inputs.shape[1]),
            d_out=int(targets.shape[1]),
            num_classes=int(num_classes) if num_classes != 1 else None,
        ),
        provenance={
            "type": "idx",
            "train_images": str(train_images),
            "train_labels": str(train_labels),
            "test_images": str(test_images) if test_images else None,
            "test_labels": str(test_labels) if test_labels else None,
            "max_items": max_items,
        },
        splits=splits,
    )


__all__ = ["build_idx", "load_idx_arrays"]
