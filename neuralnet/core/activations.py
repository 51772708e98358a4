"""Activation functions and their weight initialisation policies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import ConfigurationError, UnsupportedOperationError
from .types import Array

INPUT = "input"
SIGMOID = "sigmoid"
RELU = "relu"
LEAKY_RELU = "leakyrelu"
TANH = "tanh"

_KINDS = (INPUT, SIGMOID, RELU, LEAKY_RELU, TANH)


def _finish(x, value):
    # Scalars in, scalars out; arrays keep their shape.
    if np.ndim(x) == 0:
        return float(value)
    return value


def sigmoid(x: Array) -> Array:
    """Logistic function in the overflow-free ``tanh`` form."""

    return 0.5 * (1.0 + np.tanh(0.5 * np.asarray(x, dtype=np.float64)))


@dataclass(frozen=True)
class ActivationFunction:
    """Tagged activation function.

    ``kind`` is one of ``input``, ``sigmoid``, ``relu``, ``leakyrelu`` or
    ``tanh``; ``alpha`` is the negative slope and only meaningful for
    ``leakyrelu``. ``input`` marks the input layer and has no function,
    derivative or weights.
    """

    kind: str
    alpha: float = 0.0

    def __post_init__(self) -> None:
        if self.kind not in _KINDS:
            raise ConfigurationError(f"invalid activation function: {self.kind!r}")

    def __str__(self) -> str:
        if self.kind == LEAKY_RELU:
            return f"{LEAKY_RELU}({self.alpha!r})"
        return self.kind

    def _require_function(self, what: str) -> None:
        if self.kind == INPUT:
            raise UnsupportedOperationError(f"Input does not have {what}")

    def function(self, x):
        self._require_function("an activation function")
        values = np.asarray(x, dtype=np.float64)
        if self.kind == SIGMOID:
            out = sigmoid(values)
        elif self.kind == RELU:
            out = np.maximum(values, 0.0)
        elif self.kind == LEAKY_RELU:
            out = np.where(values >= 0.0, values, values * self.alpha)
        else:
            out = np.tanh(values)
        return _finish(x, out)

    def derivative(self, x):
        self._require_function("an activation function")
        values = np.asarray(x, dtype=np.float64)
        if self.kind == SIGMOID:
            s = sigmoid(values)
            out = s * (1.0 - s)
        elif self.kind == RELU:
            # The subgradient at exactly zero is taken as 1.
            out = np.where(values >= 0.0, 1.0, 0.0)
        elif self.kind == LEAKY_RELU:
            out = np.where(values >= 0.0, 1.0, self.alpha)
        else:
            out = 1.0 - np.tanh(values) ** 2
        return _finish(x, out)

    def initialize_weights(
        self, shape: Tuple[int, ...], fan_in: int, rng: np.random.Generator
    ) -> Array:
        """Draw a weight tensor of ``shape`` for a layer with ``fan_in`` inputs."""

        self._require_function("weights")
        if fan_in <= 0:
            raise ConfigurationError(f"fan_in must be positive, got {fan_in}")
        if self.kind in {SIGMOID, TANH}:
            bound = 1.0 / np.sqrt(fan_in)
            return rng.uniform(-bound, bound, size=shape)
        deviation = np.sqrt(2.0 / fan_in)
        return rng.normal(0.0, deviation, size=shape)

    def initialize_weight(self, fan_in: int, rng: np.random.Generator) -> float:
        return float(self.initialize_weights((), fan_in, rng))

    @classmethod
    def parse(cls, name: str) -> "ActivationFunction":
        """Parse ``sigmoid``, ``relu``, ``tanh``, ``input`` or ``leakyrelu(<a>)``."""

        text = name.strip().lower()
        if text.startswith(f"{LEAKY_RELU}(") and text.endswith(")"):
            raw = text[len(LEAKY_RELU) + 1 : -1]
            try:
                alpha = float(raw)
            except ValueError as exc:
                raise ConfigurationError(
                    f"invalid activation function: {name!r} (bad slope {raw!r})"
                ) from exc
            return cls(LEAKY_RELU, alpha)
        if text in {INPUT, SIGMOID, RELU, TANH}:
            return cls(text)
        raise ConfigurationError(f"invalid activation function: {name!r}")


def leaky_relu(alpha: float) -> ActivationFunction:
    return ActivationFunction(LEAKY_RELU, float(alpha))


__all__ = [
    "ActivationFunction",
    "INPUT",
    "SIGMOID",
    "RELU",
    "LEAKY_RELU",
    "TANH",
    "leaky_relu",
    "sigmoid",
]
