"""Build networks from compact layer spec strings.

Grammar (case-insensitive)::

    input:<n>
    <activation>:<n>                         fully connected, e.g. ``relu:32``
    pool2d:<max|avg>:<w>x<h>:<kw>x<kh>
    conv2d:<filters>:<w>x<h>:<kw>x<kh>

``<w>x<h>`` may be abbreviated to ``<n>`` for square grids.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

import numpy as np

from .activations import INPUT, ActivationFunction
from .costs import CostFunction
from .errors import ConfigurationError
from .layers import Conv2D, FullyConnected, InputLayer, Layer, Pool2D, PoolType
from .network import Network


def _positive(text: str, spec: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid layer spec {spec!r}: {text!r} is not an integer") from exc
    if value <= 0:
        raise ConfigurationError(f"Invalid layer spec {spec!r}: {value} must be positive")
    return value


def _dims(text: str, spec: str) -> Tuple[int, int]:
    parts = text.lower().split("x")
    if len(parts) == 1:
        side = _positive(parts[0], spec)
        return side, side
    if len(parts) == 2:
        return _positive(parts[0], spec), _positive(parts[1], spec)
    raise ConfigurationError(f"Invalid layer spec {spec!r}: bad dimensions {text!r}")


def parse_layer(spec: str, previous_size: int | None, rng: np.random.Generator) -> Layer:
    """Create the layer described by ``spec``.

    ``previous_size`` is the output size of the layer before it and is only
    needed for fully connected layers.
    """

    parts = [part.strip() for part in spec.strip().split(":")]
    head = parts[0].lower()
    if head == "pool2d":
        if len(parts) != 4:
            raise ConfigurationError(f"Invalid layer spec {spec!r}: expected pool2d:<type>:<w>x<h>:<kw>x<kh>")
        width, height = _dims(parts[2], spec)
        kernel_width, kernel_height = _dims(parts[3], spec)
        return Pool2D(PoolType.parse(parts[1]), width, height, kernel_width, kernel_height)
    if head == "conv2d":
        if len(parts) != 4:
            raise ConfigurationError(f"Invalid layer spec {spec!r}: expected conv2d:<filters>:<w>x<h>:<kw>x<kh>")
        width, height = _dims(parts[2], spec)
        kernel_width, kernel_height = _dims(parts[3], spec)
        return Conv2D.create(_positive(parts[1], spec), width, height, kernel_width, kernel_height, rng)

    if len(parts) != 2:
        raise ConfigurationError(f"Invalid layer spec {spec!r}: expected <activation>:<size>")
    activation = ActivationFunction.parse(parts[0])
    size = _positive(parts[1], spec)
    if activation.kind == INPUT:
        return InputLayer(size)
    if previous_size is None:
        raise ConfigurationError(f"Layer {spec!r} needs a previous layer")
    return FullyConnected.create(previous_size, size, activation, rng)


def describe_layer(layer: Layer) -> str:
    """Inverse of :func:`parse_layer` (parameters aside)."""

    if isinstance(layer, InputLayer):
        return f"input:{layer.size}"
    if isinstance(layer, FullyConnected):
        return f"{layer.activation_function}:{layer.size}"
    if isinstance(layer, Pool2D):
        kind = "max" if layer.pool_type is PoolType.MAX else "avg"
        return (
            f"pool2d:{kind}:{layer.input_width}x{layer.input_height}"
            f":{layer.kernel_width}x{layer.kernel_height}"
        )
    kernel_height, kernel_width = layer.filters[0].shape
    return (
        f"conv2d:{len(layer.filters)}:{layer.input_width}x{layer.input_height}"
        f":{kernel_width}x{kernel_height}"
    )


def build_network(
    layer_specs: Iterable[str],
    cost: str | CostFunction = "mse",
    rng: np.random.Generator | None = None,
) -> Network:
    rng = rng if rng is not None else np.random.default_rng()
    cost_function = cost if isinstance(cost, CostFunction) else CostFunction.parse(str(cost))
    network = Network(cost_function)
    for spec in layer_specs:
        previous = network.layers[-1].size if network.layers else None
        network.add_layer(parse_layer(spec, previous, rng))
    if not network.layers:
        raise ConfigurationError("A network needs at least an input layer")
    return network


def describe_network(network: Network) -> List[str]:
    return [describe_layer(layer) for layer in network.layers]


__all__ = ["build_network", "describe_layer", "describe_network", "parse_layer"]
