"""Dataset registry and loader helpers."""

# Ensure built-in datasets register themselves when the package is imported.
from . import idx_files as _idx_files  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .idx import IdxFile, IdxFormatError, encode_idx, parse_idx, read_idx, write_idx
from .registry import DatasetSpec, DataSpec, available_datasets, get_dataset, register_dataset
from .utils import outputs_from_labels

__all__ = [
    "DataSpec",
    "DatasetSpec",
    "IdxFile",
    "IdxFormatError",
    "available_datasets",
    "encode_idx",
    "get_dataset",
    "outputs_from_labels",
    "parse_idx",
    "read_idx",
    "register_dataset",
    "write_idx",
]
