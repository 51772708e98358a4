"""Backpropagation and mini-batch stochastic gradient descent."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, List, Sequence

import numpy as np

from .errors import ConfigurationError, ShapeMismatchError
from .types import Array, ForwardCache, Gradient, TrainingPair, as_pair, as_vector

if TYPE_CHECKING:  # pragma: no cover
    from .network import Network

ProgressFn = Callable[[int, int], None]


def forward_pass(network: "Network", inputs: Array) -> ForwardCache:
    """Run ``inputs`` through ``network`` recording every weighted input and activation."""

    layers = network.layers
    if not layers:
        raise ConfigurationError("Cannot evaluate a network without layers")
    cache = ForwardCache()
    first = layers[0].feed_forward(inputs)
    cache.weighted_inputs.append(first)
    cache.activations.append(first)
    for layer in layers[1:]:
        weighted = layer.weighted_input(cache.activations[-1])
        cache.weighted_inputs.append(weighted)
        cache.activations.append(layer.activation(weighted))
    return cache


def back_propagate(network: "Network", inputs: Array, expected: Array) -> List[Gradient]:
    """Return one gradient per trainable layer for a single training pair.

    The error starts as the cost derivative at the output and is folded
    through the layers from last to first; each layer consumes the error of
    the layer above it and returns the error for the layer below.
    """

    expected = as_vector(expected)
    if expected.shape[0] != network.output_size:
        raise ShapeMismatchError(
            f"Expected output has length {expected.shape[0]}, network output is {network.output_size}"
        )
    cache = forward_pass(network, inputs)
    error = network.cost_function.derivative(cache.output, expected)

    gradients: List[Gradient] = []
    for index in reversed(range(len(network.layers))):
        layer = network.layers[index]
        previous_activation = cache.activations[max(index - 1, 0)]
        gradient, error = layer.back_propagate(
            error, previous_activation, cache.weighted_inputs[index]
        )
        if layer.trainable:
            gradients.append(gradient)
    gradients.reverse()
    return gradients


def train_batch(network: "Network", batch: Sequence[TrainingPair]) -> List[List[Gradient]]:
    """Collect the per-sample gradients of ``batch`` grouped per trainable layer."""

    per_layer: List[List[Gradient]] = [[] for _ in network.trainable_layers()]
    for inputs, expected in batch:
        for bucket, gradient in zip(per_layer, back_propagate(network, inputs, expected)):
            bucket.append(gradient)
    return per_layer


def apply_batch(
    network: "Network", results: Sequence[Sequence[Gradient]], learning_rate: float
) -> None:
    for layer, gradients in zip(network.trainable_layers(), results):
        layer.apply_results(gradients, learning_rate)


def iter_batches(
    pairs: Sequence[TrainingPair], order: Sequence[int], batch_size: int
) -> Iterator[List[TrainingPair]]:
    """Yield consecutive chunks of ``pairs`` in ``order``; the last may be short."""

    for start in range(0, len(order), batch_size):
        yield [pairs[i] for i in order[start : start + batch_size]]


def _prepare(
    training_pairs: Iterable[TrainingPair], batch_size: int, learning_rate: float
) -> List[TrainingPair]:
    if batch_size <= 0:
        raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
    if not np.isfinite(learning_rate):
        raise ConfigurationError(f"learning_rate must be finite, got {learning_rate}")
    return [as_pair(pair) for pair in training_pairs]


def stochastic_gradient_descent(
    network: "Network",
    training_pairs: Iterable[TrainingPair],
    batch_size: int,
    learning_rate: float,
    *,
    rng: np.random.Generator | None = None,
    progress: ProgressFn | None = None,
) -> int:
    """Shuffle, batch and train ``network`` in place; returns the batch count.

    Every batch is applied before the next one is evaluated, so later batches
    see the updated parameters.
    """

    pairs = _prepare(training_pairs, batch_size, learning_rate)
    if not pairs:
        return 0
    rng = rng if rng is not None else np.random.default_rng()
    order = rng.permutation(len(pairs))
    total = math.ceil(len(pairs) / batch_size)
    for index, batch in enumerate(iter_batches(pairs, order, batch_size), start=1):
        apply_batch(network, train_batch(network, batch), learning_rate)
        if progress is not None:
            progress(index, total)
    return total


def average_parameters(network: "Network", replicas: Sequence["Network"]) -> None:
    """Load the mean of every trainable tensor across ``replicas`` into ``network``."""

    for position, layer in enumerate(network.layers):
        if not layer.trainable:
            continue
        tensors = zip(*(replica.layers[position].parameters() for replica in replicas))
        layer.load_parameters([np.mean(np.stack(group), axis=0) for group in tensors])


def parallel_stochastic_gradient_descent(
    network: "Network",
    training_pairs: Iterable[TrainingPair],
    thread_count: int,
    batch_size: int,
    learning_rate: float,
    *,
    rng: np.random.Generator | None = None,
    progress: ProgressFn | None = None,
) -> int:
    """Data-parallel SGD over ``thread_count`` workers.

    The shuffled pairs are split across workers; each worker trains its own
    copy of the network with its own generator, and once all of them have
    finished the parameters are averaged back into ``network``. With a single
    worker this is exactly :func:`stochastic_gradient_descent`.
    """

    if thread_count <= 0:
        raise ConfigurationError(f"thread_count must be positive, got {thread_count}")
    if thread_count == 1:
        return stochastic_gradient_descent(
            network, training_pairs, batch_size, learning_rate, rng=rng, progress=progress
        )

    pairs = _prepare(training_pairs, batch_size, learning_rate)
    if not pairs:
        return 0
    rng = rng if rng is not None else np.random.default_rng()
    order = rng.permutation(len(pairs))
    partitions = [part for part in np.array_split(order, thread_count) if part.size]
    seeds = rng.integers(0, 2**32 - 1, size=len(partitions))
    replicas = [network.copy() for _ in partitions]

    def _work(replica: "Network", part: Array, seed: int) -> int:
        return stochastic_gradient_descent(
            replica,
            [pairs[i] for i in part],
            batch_size,
            learning_rate,
            rng=np.random.default_rng(int(seed)),
        )

    with ThreadPoolExecutor(max_workers=len(partitions)) as pool:
        futures = [
            pool.submit(_work, replica, part, seed)
            for replica, part, seed in zip(replicas, partitions, seeds)
        ]
        total = sum(future.result() for future in futures)

    average_parameters(network, replicas)
    if progress is not None:
        progress(total, total)
    return total


__all__ = [
    "average_parameters",
    "back_propagate",
    "forward_pass",
    "iter_batches",
    "parallel_stochastic_gradient_descent",
    "stochastic_gradient_descent",
    "train_batch",
]
