"""Core numerical primitives for neuralnet."""

from . import activations, backprop, builder, costs, errors, layers, network, types

__all__ = ["activations", "backprop", "builder", "costs", "errors", "layers", "network", "types"]
