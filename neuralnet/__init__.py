"""neuralnet public API."""

from .core import activations, costs, layers, types  # noqa: F401
from .core.activations import ActivationFunction, leaky_relu
from .core.builder import build_network
from .core.costs import MEAN_ABSOLUTE_ERROR, MEAN_SQUARED_ERROR, CostFunction
from .core.errors import (
    ConfigurationError,
    NeuralNetError,
    ShapeMismatchError,
    UnsupportedOperationError,
)
from .core.layers import Conv2D, FullyConnected, InputLayer, Pool2D, PoolType
from .core.network import Network
from .io.persistence import PersistenceError, decode, encode, load_network, save_network
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "ActivationFunction",
    "ConfigurationError",
    "Conv2D",
    "CostFunction",
    "FullyConnected",
    "InputLayer",
    "MEAN_ABSOLUTE_ERROR",
    "MEAN_SQUARED_ERROR",
    "Network",
    "NeuralNetError",
    "PersistenceError",
    "Pool2D",
    "PoolType",
    "ShapeMismatchError",
    "Trainer",
    "UnsupportedOperationError",
    "activations",
    "build_network",
    "costs",
    "decode",
    "encode",
    "layers",
    "leaky_relu",
    "load_network",
    "load_preset",
    "presets",
    "run_pipeline",
    "save_network",
    "types",
]
