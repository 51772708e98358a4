"""Core typing contracts for neuralnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

import numpy as np

Array = np.ndarray

TrainingPair = Tuple[Array, Array]


@dataclass(frozen=True)
class FullyConnectedGradient:
    """Per-sample weight and bias contribution of a fully connected layer."""

    weights: Array
    biases: Array


@dataclass(frozen=True)
class Conv2DGradient:
    """Per-sample contribution for every filter of a convolution layer."""

    filters: Tuple[Array, ...]


@dataclass(frozen=True)
class EmptyGradient:
    """Placeholder produced by layers without trainable parameters."""


Gradient = Union[FullyConnectedGradient, Conv2DGradient, EmptyGradient]

EMPTY_GRADIENT = EmptyGradient()


@dataclass
class ForwardCache:
    """Weighted inputs and activations recorded during one forward pass.

    Index ``i`` holds the values of layer ``i``; the input layer stores the raw
    input in both lists.
    """

    weighted_inputs: List[Array] = field(default_factory=list)
    activations: List[Array] = field(default_factory=list)

    @property
    def output(self) -> Array:
        return self.activations[-1]


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :meth:`neuralnet.training.trainer.Trainer.run`."""

    epochs: int
    batches: int
    metrics_path: str = ""
    manifest_path: str = ""
    summary_path: str = ""
    network_path: str = ""


def as_vector(values: Sequence[float] | Array) -> Array:
    """Return ``values`` as a contiguous 1-D float64 array."""

    return np.ascontiguousarray(np.asarray(values, dtype=np.float64).reshape(-1))


def as_pair(pair: Tuple[Sequence[float] | Array, Sequence[float] | Array]) -> TrainingPair:
    inputs, expected = pair
    return as_vector(inputs), as_vector(expected)


__all__ = [
    "Array",
    "TrainingPair",
    "FullyConnectedGradient",
    "Conv2DGradient",
    "EmptyGradient",
    "EMPTY_GRADIENT",
    "Gradient",
    "ForwardCache",
    "RunResult",
    "as_vector",
    "as_pair",
]
