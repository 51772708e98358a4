"""Exception taxonomy for the neural network core."""

from __future__ import annotations


class NeuralNetError(Exception):
    """Base class for every error raised by :mod:`neuralnet`."""


class ConfigurationError(NeuralNetError, ValueError):
    """A network, layer or function was described incorrectly."""


class ShapeMismatchError(NeuralNetError, ValueError):
    """A vector, matrix or gradient does not fit the layer it was handed to."""


class UnsupportedOperationError(NeuralNetError, RuntimeError):
    """An operation was invoked on a layer or function that cannot perform it."""


__all__ = [
    "NeuralNetError",
    "ConfigurationError",
    "ShapeMismatchError",
    "UnsupportedOperationError",
]
