"""Cost function registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Tuple

import numpy as np

from .errors import ConfigurationError
from .types import Array

CostFn = Callable[[Array, Array], Array]


@dataclass(frozen=True)
class CostFunction:
    """Elementwise cost with its derivative with respect to the output.

    ``function`` is kept for reporting; training only needs ``derivative``.
    Two cost functions compare equal when their names do.
    """

    name: str
    fn: CostFn = field(compare=False, repr=False)
    grad: CostFn = field(compare=False, repr=False)
    aliases: Tuple[str, ...] = field(default=(), compare=False)

    def function(self, output: Array, expected: Array) -> Array:
        return self.fn(np.asarray(output, dtype=np.float64), np.asarray(expected, dtype=np.float64))

    def derivative(self, output: Array, expected: Array) -> Array:
        return self.grad(np.asarray(output, dtype=np.float64), np.asarray(expected, dtype=np.float64))

    def total(self, output: Array, expected: Array) -> float:
        """Scalar cost summed over the output vector."""

        return float(np.sum(self.function(output, expected)))

    def __str__(self) -> str:
        return self.name

    @classmethod
    def parse(cls, name: str) -> "CostFunction":
        return REGISTRY.get(name)


class CostRegistry:
    """Central registry for cost functions and their aliases."""

    def __init__(self) -> None:
        self._registry: Dict[str, CostFunction] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, cost: CostFunction) -> CostFunction:
        self._registry[cost.name] = cost
        for alias in (cost.name, *cost.aliases):
            self._aliases[alias] = cost.name
        return cost

    def get(self, name: str) -> CostFunction:
        try:
            return self._registry[self._aliases[name]]
        except KeyError as exc:
            available = ", ".join(sorted(self._aliases))
            raise ConfigurationError(
                f"invalid cost function {name!r}. Available cost functions: {available}"
            ) from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)


REGISTRY = CostRegistry()


def _mae(output: Array, expected: Array) -> Array:
    return np.abs(output - expected)


def _mae_derivative(output: Array, expected: Array) -> Array:
    # -1, 0 or +1; zero only when the values are exactly equal.
    return np.sign(output - expected)


def _mse(output: Array, expected: Array) -> Array:
    return np.square(output - expected) / 2.0


def _mse_derivative(output: Array, expected: Array) -> Array:
    return output - expected


MEAN_ABSOLUTE_ERROR = REGISTRY.register(
    CostFunction("mae", _mae, _mae_derivative, aliases=("mean-absolute-error",))
)
MEAN_SQUARED_ERROR = REGISTRY.register(
    CostFunction("mse", _mse, _mse_derivative, aliases=("mean-squared-error",))
)

__all__ = [
    "CostFunction",
    "CostRegistry",
    "REGISTRY",
    "MEAN_ABSOLUTE_ERROR",
    "MEAN_SQUARED_ERROR",
]
