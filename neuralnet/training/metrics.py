"""Evaluation metrics for trained networks."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping

import numpy as np

from ..core.network import Network
from ..core.types import Array


def predict(network: Network, inputs: Iterable[Array]) -> Array:
    """Stack ``feed_forward`` outputs for every row of ``inputs``."""

    outputs = [network.feed_forward(x) for x in inputs]
    if not outputs:
        return np.zeros((0, network.output_size))
    return np.vstack(outputs)


def correct(predictions: Array, targets: Array) -> Array:
    """Per-row hit mask: the strongest output matches the target.

    Single-output networks count a row as correct when the prediction lies
    within 0.5 of the target.
    """

    predictions = np.atleast_2d(predictions)
    targets = np.atleast_2d(targets)
    if predictions.shape[1] == 1:
        return (np.abs(predictions - targets) < 0.5).reshape(-1)
    return np.argmax(predictions, axis=1) == np.argmax(targets, axis=1)


def accuracy(predictions: Array, targets: Array) -> float:
    if len(predictions) == 0:
        return 0.0
    return float(np.mean(correct(predictions, targets)))


def mean_cost(network: Network, predictions: Array, targets: Array) -> float:
    if len(predictions) == 0:
        return 0.0
    totals = [network.cost_function.total(p, t) for p, t in zip(predictions, targets)]
    return float(np.mean(totals))


def compute_metrics(network: Network, inputs: Array, targets: Array) -> Mapping[str, float]:
    predictions = predict(network, inputs)
    results: Dict[str, float] = {
        "accuracy": accuracy(predictions, targets),
        "cost": mean_cost(network, predictions, targets),
    }
    return results


__all__ = ["accuracy", "compute_metrics", "correct", "mean_cost", "predict"]
