"""Feed-forward network: an ordered chain of layers plus a cost function."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

import numpy as np

from . import backprop
from .costs import CostFunction
from .errors import ConfigurationError
from .layers import Conv2D, InputLayer, Layer
from .types import Array, Gradient, TrainingPair


@dataclass(eq=False)
class Network:
    """Ordered layers; index 0 is always the input layer."""

    cost_function: CostFunction
    layers: List[Layer] = field(default_factory=list)

    def __post_init__(self) -> None:
        pending = list(self.layers)
        self.layers = []
        for layer in pending:
            self.add_layer(layer)

    def add_layer(self, layer: Layer) -> "Network":
        """Append ``layer`` after checking it chains onto the current output."""

        if not self.layers:
            if not isinstance(layer, InputLayer):
                raise ConfigurationError("The first layer of a network must be an input layer")
        else:
            if isinstance(layer, InputLayer):
                raise ConfigurationError("Only the first layer of a network may be an input layer")
            previous = self.layers[-1]
            if layer.input_size != previous.size:
                raise ConfigurationError(
                    f"{type(layer).__name__} expects {layer.input_size} inputs "
                    f"but the previous layer produces {previous.size}"
                )
            if isinstance(layer, Conv2D) and any(l.trainable for l in self.layers):
                raise ConfigurationError(
                    "Conv2D does not propagate error and cannot follow a trainable layer"
                )
        self.layers.append(layer)
        return self


    def shape(self) -> List[int]:
        return [layer.size for layer in self.layers]

    @property
    def input_size(self) -> int:
        if not self.layers:
            raise ConfigurationError("Network has no layers")
        return self.layers[0].size

    @property
    def output_size(self) -> int:
        if not self.layers:
            raise ConfigurationError("Network has no layers")
        return self.layers[-1].size

    def trainable_layers(self) -> List[Layer]:
        return [layer for layer in self.layers if layer.trainable]

    def parameter_count(self) -> int:
        return int(sum(p.size for layer in self.layers for p in layer.parameters()))

    def copy(self) -> "Network":
        return copy.deepcopy(self)

    def feed_forward(self, inputs: Sequence[float] | Array) -> Array:
        """Evaluate the network; never mutates it."""

        if not self.layers:
            raise ConfigurationError("Cannot evaluate a network without layers")
        values = self.layers[0].feed_forward(inputs)
        for layer in self.layers[1:]:
            values = layer.feed_forward(values)
        return values


    def back_propagate(
        self, inputs: Sequence[float] | Array, expected: Sequence[float] | Array
    ) -> List[Gradient]:
        return backprop.back_propagate(self, inputs, expected)

    def cost(self, inputs: Sequence[float] | Array, expected: Sequence[float] | Array) -> float:
        return self.cost_function.total(self.feed_forward(inputs), expected)

    def stochastic_gradient_descent(
        self,
        training_pairs: Iterable[TrainingPair],
        batch_size: int,
        learning_rate: float,
        *,
        rng: np.random.Generator | None = None,
        progress: backprop.ProgressFn | None = None,
    ) -> int:
        return backprop.stochastic_gradient_descent(
            self, training_pairs, batch_size, learning_rate, rng=rng, progress=progress
        )

    def parallel_stochastic_gradient_descent(
        self,
        training_pairs: Iterable[TrainingPair],
        thread_count: int,
        batch_size: int,
        learning_rate: float,
        *,
        rng: np.random.Generator | None = None,
        progress: backprop.ProgressFn | None = None,
    ) -> int:
        return backprop.parallel_stochastic_gradient_descent(
            self,
            training_pairs,
            thread_count,
            batch_size,
            learning_rate,
            rng=rng,
            progress=progress,
        )


__all__ = ["Network"]
