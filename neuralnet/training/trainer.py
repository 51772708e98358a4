"""Epoch loop around the SGD engine with evaluation and checkpointing."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence, Tuple

import numpy as np

from ..core.backprop import ProgressFn
from ..core.errors import ConfigurationError
from ..core.network import Network
from ..core.types import Array, RunResult
from ..data.utils import to_pairs
from ..io.persistence import save_network
from .metrics import compute_metrics

SplitArrays = Tuple[Array, Array]


class Trainer:
    """Train a :class:`Network` for a number of epochs.

    Callbacks may implement ``on_epoch_start(epoch, samples)`` and
    ``on_epoch(epoch, metrics)``; per-split loggers receive the metrics of
    their split only and may be plain callables.
    """

    def __init__(
        self,
        network: Network,
        rng: np.random.Generator,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.network = network
        self.rng = rng
        self.callbacks = list(callbacks or [])

    def run(
        self,
        train: SplitArrays,
        epochs: int,
        batch_size: int,
        learning_rate: float,
        *,
        threads: int = 1,
        batch_count: int | None = None,
        test: SplitArrays | None = None,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
        checkpoint_dir: str | Path | None = None,
        progress: ProgressFn | None = None,
    ) -> RunResult:
        if epochs < 0:
            raise ConfigurationError(f"epochs must not be negative, got {epochs}")
        if threads < 1:
            raise ConfigurationError(f"threads must be at least 1, got {threads}")
        if batch_count is not None and batch_count <= 0:
            raise ConfigurationError(f"batch_count must be positive, got {batch_count}")
        train_inputs, train_targets = (np.asarray(a, dtype=np.float64) for a in train)
        split_loggers = split_loggers or {}

        total_batches = 0
        for epoch in range(1, epochs + 1):
            indices = self._epoch_indices(len(train_inputs), batch_size, batch_count)
            for callback in self.callbacks:
                if hasattr(callback, "on_epoch_start"):
                    callback.on_epoch_start(epoch, int(indices.size))  # type: ignore[attr-defined]
            pairs = to_pairs(train_inputs[indices], train_targets[indices])
            if threads > 1:
                total_batches += self.network.parallel_stochastic_gradient_descent(
                    pairs, threads, batch_size, learning_rate, rng=self.rng, progress=progress
                )
            else:
                total_batches += self.network.stochastic_gradient_descent(
                    pairs, batch_size, learning_rate, rng=self.rng, progress=progress
                )

            self._emit_epoch(
                "train", epoch, compute_metrics(self.network, train_inputs, train_targets), split_loggers
            )
            if test is not None:
                self._emit_epoch("test", epoch, compute_metrics(self.network, *test), split_loggers)

        network_path = ""
        if checkpoint_dir is not None:
            path = Path(checkpoint_dir) / "network.nnet"
            network_path = str(save_network(self.network, path, new=not path.exists()))
        return RunResult(epochs=epochs, batches=total_batches, network_path=network_path)

    def _epoch_indices(self, count: int, batch_size: int, batch_count: int | None) -> Array:
        # SGD shuffles on its own; only the subsample needs a draw here.
        if batch_count is None or batch_count * batch_size >= count:
            return np.arange(count)
        return np.sort(self.rng.permutation(count)[: batch_count * batch_size])

    def _emit_epoch(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, {"split": split, **metrics})  # type: ignore[attr-defined]
        for callback in loggers.get(split, []):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["Trainer"]
