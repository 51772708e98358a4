"""Layer variants: input, fully connected, 2-D pooling and 2-D convolution.

Every layer exposes the same surface:

``size`` / ``input_size``
    Output and expected input dimensionality.
``trainable``
    Whether :meth:`apply_results` may be called.
``weighted_input(x)`` / ``activation(z)`` / ``feed_forward(x)``
    Forward rules; ``feed_forward`` is ``activation(weighted_input(x))``.
``back_propagate(next_error, previous_activation, weighted_input)``
    Returns ``(gradient, upstream_error)``. ``next_error`` is the error with
    respect to this layer's activation; the returned error is the one the
    previous layer consumes.
``apply_results(gradients, learning_rate)``
    Averages the per-sample gradients of a batch and takes one descent step.

Two-dimensional layers read their input as a column-major flattened grid with
``input_height`` rows and ``input_width`` columns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, List, Sequence, Tuple, Union

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .activations import INPUT, ActivationFunction
from .errors import ConfigurationError, ShapeMismatchError, UnsupportedOperationError
from .types import (
    EMPTY_GRADIENT,
    Array,
    Conv2DGradient,
    EmptyGradient,
    FullyConnectedGradient,
    Gradient,
    as_vector,
)


def _to_grid(vector: Array, height: int, width: int) -> Array:
    return np.asarray(vector, dtype=np.float64).reshape((height, width), order="F")


def _flatten(grid: Array) -> Array:
    return np.ascontiguousarray(grid.reshape(-1, order="F"))


def _correlate(grid: Array, kernel: Array) -> Array:
    """Valid-mode, stride-1 cross-correlation of ``grid`` with ``kernel``."""

    windows = sliding_window_view(grid, kernel.shape)
    return np.einsum("ijkl,kl->ij", windows, kernel)


def _check_length(values: Array, expected: int, layer: str) -> Array:
    vector = as_vector(values)
    if vector.shape[0] != expected:
        raise ShapeMismatchError(
            f"{layer} expected an input of length {expected}, got {vector.shape[0]}"
        )
    return vector


def _check_gradients(gradients: Sequence[Gradient], kind: type, layer: str) -> List:
    items = list(gradients)
    if not items:
        raise ShapeMismatchError(f"{layer} received an empty gradient batch")
    for item in items:
        if not isinstance(item, kind):
            raise ShapeMismatchError(
                f"Incompatible gradient {type(item).__name__} for {layer} layer"
            )
    return items


class PoolType(Enum):
    MAX = "max"
    AVERAGE = "average"

    @classmethod
    def parse(cls, name: str) -> "PoolType":
        key = name.strip().lower()
        if key == "max":
            return cls.MAX
        if key in {"avg", "average"}:
            return cls.AVERAGE
        raise ConfigurationError(f"invalid pool type: {name!r}")


@dataclass
class InputLayer:
    """Entry point of a network; passes its input through unchanged."""

    size: int
    trainable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        self.size = int(self.size)
        if self.size <= 0:
            raise ConfigurationError(f"Input layer size must be positive, got {self.size}")

    @property
    def input_size(self) -> int:
        return self.size

    def weighted_input(self, inputs: Array) -> Array:
        return _check_length(inputs, self.size, "Input").copy()

    def activation(self, weighted_input: Array) -> Array:
        return weighted_input

    def feed_forward(self, inputs: Array) -> Array:
        return self.activation(self.weighted_input(inputs))

    def back_propagate(
        self, next_error: Array, previous_activation: Array, weighted_input: Array
    ) -> Tuple[EmptyGradient, Array]:
        return EMPTY_GRADIENT, next_error

    def apply_results(self, gradients: Sequence[Gradient], learning_rate: float) -> None:
        raise UnsupportedOperationError("Cannot apply results to the input layer")

    def parameters(self) -> Tuple[Array, ...]:
        return ()

    def load_parameters(self, parameters: Sequence[Array]) -> None:
        if len(parameters):
            raise UnsupportedOperationError("The input layer has no parameters")


@dataclass(eq=False)
class FullyConnected:
    """Dense layer ``f(W·x + b)``."""

    weights: Array
    biases: Array
    activation_function: ActivationFunction
    trainable: ClassVar[bool] = True

    def __post_init__(self) -> None:
        self.weights = np.array(self.weights, dtype=np.float64)
        self.biases = as_vector(self.biases).copy()
        if self.weights.ndim != 2:
            raise ConfigurationError("FullyConnected weights must be a matrix")
        if self.biases.shape[0] != self.weights.shape[0]:
            raise ConfigurationError(
                f"FullyConnected has {self.weights.shape[0]} weight rows "
                f"but {self.biases.shape[0]} biases"
            )
        if self.activation_function.kind == INPUT:
            raise ConfigurationError("A fully connected layer cannot use the input activation")

    @classmethod
    def create(
        cls,
        previous_size: int,
        size: int,
        activation_function: ActivationFunction,
        rng: np.random.Generator,
    ) -> "FullyConnected":
        weights = activation_function.initialize_weights((size, previous_size), previous_size, rng)
        return cls(weights, np.zeros(size), activation_function)

    @property
    def size(self) -> int:
        return int(self.biases.shape[0])

    @property
    def input_size(self) -> int:
        return int(self.weights.shape[1])

    def weighted_input(self, inputs: Array) -> Array:
        x = _check_length(inputs, self.input_size, "FullyConnected")
        return self.weights @ x + self.biases

    def activation(self, weighted_input: Array) -> Array:
        return self.activation_function.function(weighted_input)

    def feed_forward(self, inputs: Array) -> Array:
        return self.activation(self.weighted_input(inputs))

    def back_propagate(
        self, next_error: Array, previous_activation: Array, weighted_input: Array
    ) -> Tuple[FullyConnectedGradient, Array]:
        error = next_error * self.activation_function.derivative(weighted_input)
        gradient = FullyConnectedGradient(
            weights=np.outer(error, previous_activation),
            biases=error,
        )
        return gradient, self.weights.T @ error

    def apply_results(self, gradients: Sequence[Gradient], learning_rate: float) -> None:
        items = _check_gradients(gradients, FullyConnectedGradient, "FullyConnected")
        weight_sum = np.zeros_like(self.weights)
        bias_sum = np.zeros_like(self.biases)
        for gradient in items:
            if gradient.weights.shape != self.weights.shape or gradient.biases.shape != self.biases.shape:
                raise ShapeMismatchError(
                    f"Gradient shapes {gradient.weights.shape}/{gradient.biases.shape} do not match "
                    f"FullyConnected parameters {self.weights.shape}/{self.biases.shape}"
                )
            weight_sum += gradient.weights
            bias_sum += gradient.biases
        count = len(items)
        self.weights -= weight_sum * learning_rate / count
        self.biases -= bias_sum * learning_rate / count

    def parameters(self) -> Tuple[Array, ...]:
        return (self.weights, self.biases)

    def load_parameters(self, parameters: Sequence[Array]) -> None:
        weights, biases = parameters
        if np.shape(weights) != self.weights.shape or np.shape(biases) != self.biases.shape:
            raise ShapeMismatchError("Parameter shapes do not match the FullyConnected layer")
        self.weights = np.array(weights, dtype=np.float64)
        self.biases = np.array(biases, dtype=np.float64)


@dataclass
class Pool2D:
    """Non-overlapping max or average pooling over a 2-D grid."""

    pool_type: PoolType
    input_width: int
    input_height: int
    kernel_width: int
    kernel_height: int
    trainable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        for name in ("input_width", "input_height", "kernel_width", "kernel_height"):
            value = int(getattr(self, name))
            if value <= 0:
                raise ConfigurationError(f"Pool2D {name} must be positive, got {value}")
            setattr(self, name, value)
        if self.input_width % self.kernel_width:
            raise ConfigurationError(
                "Pool2D kernel width must fit in input width a whole amount of times"
            )
        if self.input_height % self.kernel_height:
            raise ConfigurationError(
                "Pool2D kernel height must fit in input height a whole amount of times"
            )

    @classmethod
    def square(cls, pool_type: PoolType, input_size: int, kernel_size: int) -> "Pool2D":
        return cls(pool_type, input_size, input_size, kernel_size, kernel_size)

    @property
    def output_width(self) -> int:
        return self.input_width // self.kernel_width

    @property
    def output_height(self) -> int:
        return self.input_height // self.kernel_height

    @property
    def size(self) -> int:
        return self.output_width * self.output_height

    @property
    def input_size(self) -> int:
        return self.input_width * self.input_height

    def _expand(self, pooled: Array) -> Array:
        grid = _to_grid(pooled, self.output_height, self.output_width)
        return np.repeat(np.repeat(grid, self.kernel_height, axis=0), self.kernel_width, axis=1)

    def weighted_input(self, inputs: Array) -> Array:
        x = _check_length(inputs, self.input_size, "Pool2D")
        blocks = _to_grid(x, self.input_height, self.input_width).reshape(
            self.output_height, self.kernel_height, self.output_width, self.kernel_width
        )
        if self.pool_type is PoolType.MAX:
            pooled = blocks.max(axis=(1, 3))
        else:
            pooled = blocks.sum(axis=(1, 3)) / (self.kernel_width * self.kernel_height)
        return _flatten(pooled)

    def activation(self, weighted_input: Array) -> Array:
        return weighted_input

    def feed_forward(self, inputs: Array) -> Array:
        return self.activation(self.weighted_input(inputs))

    def back_propagate(
        self, next_error: Array, previous_activation: Array, weighted_input: Array
    ) -> Tuple[EmptyGradient, Array]:
        spread = self._expand(next_error)
        if self.pool_type is PoolType.MAX:
            # Every cell equal to its block maximum receives the block's error.
            source = _to_grid(previous_activation, self.input_height, self.input_width)
            routed = np.where(source == self._expand(weighted_input), spread, 0.0)
        else:
            routed = spread / (self.kernel_width * self.kernel_height)
        return EMPTY_GRADIENT, _flatten(routed)

    def apply_results(self, gradients: Sequence[Gradient], learning_rate: float) -> None:
        raise UnsupportedOperationError("Cannot apply results to untrainable layer.")

    def parameters(self) -> Tuple[Array, ...]:
        return ()

    def load_parameters(self, parameters: Sequence[Array]) -> None:
        if len(parameters):
            raise UnsupportedOperationError("Pool2D has no parameters")


@dataclass(eq=False)
class Conv2D:
    """Bank of 2-D filters cross-correlated with a single-channel input grid.

    Outputs of the filters are flattened column-major and concatenated in
    filter order. The layer does not hand an error signal to the layer before
    it, so it must be the first trainable layer of a network.
    """

    filters: List[Array]
    input_width: int
    input_height: int
    trainable: ClassVar[bool] = True

    def __post_init__(self) -> None:
        self.input_width = int(self.input_width)
        self.input_height = int(self.input_height)
        self.filters = [np.array(f, dtype=np.float64) for f in self.filters]
        if not self.filters:
            raise ConfigurationError("Conv2D needs at least one filter")
        for kernel in self.filters:
            if kernel.ndim != 2:
                raise ConfigurationError("Conv2D filters must be 2-D")
            kernel_height, kernel_width = kernel.shape
            if not (0 < kernel_width <= self.input_width and 0 < kernel_height <= self.input_height):
                raise ConfigurationError(
                    f"Conv2D kernel {kernel_width}x{kernel_height} does not fit input "
                    f"{self.input_width}x{self.input_height}"
                )

    @classmethod
    def create(
        cls,
        filter_count: int,
        input_width: int,
        input_height: int,
        kernel_width: int,
        kernel_height: int,
        rng: np.random.Generator,
    ) -> "Conv2D":
        if filter_count <= 0:
            raise ConfigurationError(f"Conv2D filter count must be positive, got {filter_count}")
        deviation = np.sqrt(2.0 / (input_width * input_height))
        filters = [
            rng.normal(0.0, deviation, size=(kernel_height, kernel_width))
            for _ in range(filter_count)
        ]
        return cls(filters, input_width, input_height)

    @classmethod
    def square(
        cls, filter_count: int, input_size: int, kernel_size: int, rng: np.random.Generator
    ) -> "Conv2D":
        return cls.create(filter_count, input_size, input_size, kernel_size, kernel_size, rng)

    def _output_shape(self, kernel: Array) -> Tuple[int, int]:
        kernel_height, kernel_width = kernel.shape
        return self.input_height - kernel_height + 1, self.input_width - kernel_width + 1

    @property
    def size(self) -> int:
        return sum(h * w for h, w in map(self._output_shape, self.filters))

    @property
    def input_size(self) -> int:
        return self.input_width * self.input_height

    def weighted_input(self, inputs: Array) -> Array:
        x = _check_length(inputs, self.input_size, "Conv2D")
        grid = _to_grid(x, self.input_height, self.input_width)
        return np.concatenate([_flatten(_correlate(grid, kernel)) for kernel in self.filters])

    def activation(self, weighted_input: Array) -> Array:
        return weighted_input

    def feed_forward(self, inputs: Array) -> Array:
        return self.activation(self.weighted_input(inputs))

    def back_propagate(
        self, next_error: Array, previous_activation: Array, weighted_input: Array
    ) -> Tuple[Conv2DGradient, Array]:
        grid = _to_grid(previous_activation, self.input_height, self.input_width)
        gradients = []
        offset = 0
        for kernel in self.filters:
            output_height, output_width = self._output_shape(kernel)
            count = output_height * output_width
            error = _to_grid(next_error[offset : offset + count], output_height, output_width)
            gradients.append(_correlate(grid, error[::-1, ::-1]))
            offset += count
        return Conv2DGradient(filters=tuple(gradients)), np.zeros(self.input_size)

    def apply_results(self, gradients: Sequence[Gradient], learning_rate: float) -> None:
        items = _check_gradients(gradients, Conv2DGradient, "Conv2D")
        sums = [np.zeros_like(kernel) for kernel in self.filters]
        for gradient in items:
            if len(gradient.filters) != len(self.filters):
                raise ShapeMismatchError(
                    f"Gradient has {len(gradient.filters)} filters, layer has {len(self.filters)}"
                )
            for total, delta in zip(sums, gradient.filters):
                if delta.shape != total.shape:
                    raise ShapeMismatchError(
                        f"Filter gradient shape {delta.shape} does not match {total.shape}"
                    )
                total += delta
        count = len(items)
        for kernel, total in zip(self.filters, sums):
            kernel -= total * learning_rate / count

    def parameters(self) -> Tuple[Array, ...]:
        return tuple(self.filters)

    def load_parameters(self, parameters: Sequence[Array]) -> None:
        if len(parameters) != len(self.filters) or any(
            np.shape(new) != old.shape for new, old in zip(parameters, self.filters)
        ):
            raise ShapeMismatchError("Parameter shapes do not match the Conv2D layer")
        self.filters = [np.array(kernel, dtype=np.float64) for kernel in parameters]


Layer = Union[InputLayer, FullyConnected, Pool2D, Conv2D]


__all__ = [
    "Conv2D",
    "FullyConnected",
    "InputLayer",
    "Layer",
    "Pool2D",
    "PoolType",
]
