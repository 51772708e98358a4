"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, MutableMapping, Tuple

import numpy as np

from ..core.types import Array, TrainingPair
from .utils import to_pairs


@dataclass(frozen=True)
class DataSpec:
    """Structural information about a dataset.

    Attributes
    ----------
    d_in:
        Flattened dimensionality of the network inputs.
    d_out:
        Dimensionality of the expected outputs.
    num_classes:
        Number of classes when the targets are one-hot, otherwise ``None``.
    extra:
        Free-form metadata, for example the image grid of pixel datasets.
    """

    d_in: int
    d_out: int
    num_classes: int | None = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSpec:
    """Description of a dataset registered in the system.

    ``splits`` maps a split name to stacked ``(inputs, targets)`` arrays of
    shape ``(n, d_in)`` and ``(n, d_out)``.
    """

    name: str
    data_spec: DataSpec
    provenance: Dict[str, Any]
    splits: Dict[str, Tuple[Array, Array]]

    def pairs(self, split: str) -> List[TrainingPair]:
        """Return ``split`` as a list of ``(input, expected)`` vectors."""

        if split not in self.splits:
            raise KeyError(f"Unknown split {split!r}; available: {sorted(self.splits)}")
        inputs, targets = self.splits[split]
        return to_pairs(inputs, targets)

    @property
    def sizes(self) -> Dict[str, int]:
        return {name: int(inputs.shape[0]) for name, (inputs, _) in self.splits.items()}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("bars")
        def make_bars(**options):
            ...

    or directly::

        register_dataset("bars", make_bars)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str | None = None, /, **options: Any) -> DatasetSpec:
    """Return the :class:`DatasetSpec` for ``dataset``."""

    if dataset is None:
        if "name" in options:
            dataset = str(options.pop("name"))
        else:
            raise TypeError("Dataset name must be provided")

    if dataset not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset: {dataset}. Available datasets: {available}")

    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if "train" not in spec.splits:
        raise ValueError(f"Dataset {spec.name!r} has no train split")
    for split, (inputs, targets) in spec.splits.items():
        inputs = np.asarray(inputs)
        targets = np.asarray(targets)
        if inputs.shape[0] != targets.shape[0]:
            raise ValueError(
                f"Split {split!r} has {inputs.shape[0]} inputs but {targets.shape[0]} targets"
            )
        if inputs.ndim != 2 or inputs.shape[1] != spec.data_spec.d_in:
            raise ValueError(f"Split {split!r} inputs do not have d_in={spec.data_spec.d_in}")
        if targets.ndim != 2 or targets.shape[1] != spec.data_spec.d_out:
            raise ValueError(f"Split {split!r} targets do not have d_out={spec.data_spec.d_out}")


__all__ = [
    "DataSpec",
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
