"""Binary persistence of networks as ``.nnet`` archives.

An encoded network is a compressed ``.npz`` archive. The ``header`` entry is
a UTF-8 JSON document describing the layer chain and cost function; every
parameter tensor is stored under ``layer<i>_param<j>`` at full float64
precision, so a round-trip is bit-exact.
"""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path
from typing import Dict, List, Mapping

import numpy as np

from ..core.activations import ActivationFunction
from ..core.costs import CostFunction
from ..core.errors import NeuralNetError
from ..core.layers import Conv2D, FullyConnected, InputLayer, Layer, Pool2D, PoolType
from ..core.network import Network

FORMAT_NAME = "neuralnet"
FORMAT_VERSION = 1
EXTENSION = ".nnet"


class PersistenceError(NeuralNetError, RuntimeError):
    """Raised when a network cannot be written or read back."""


def _layer_header(layer: Layer) -> Dict[str, object]:
    if isinstance(layer, InputLayer):
        return {"kind": "input", "size": layer.size}
    if isinstance(layer, FullyConnected):
        return {"kind": "fully_connected", "activation": str(layer.activation_function)}
    if isinstance(layer, Pool2D):
        return {
            "kind": "pool2d",
            "pool": layer.pool_type.value,
            "input_width": layer.input_width,
            "input_height": layer.input_height,
            "kernel_width": layer.kernel_width,
            "kernel_height": layer.kernel_height,
        }
    if isinstance(layer, Conv2D):
        return {
            "kind": "conv2d",
            "filters": len(layer.filters),
            "input_width": layer.input_width,
            "input_height": layer.input_height,
        }
    raise PersistenceError(f"Cannot encode layer of type {type(layer).__name__}")


def encode(network: Network) -> bytes:
    header = {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "cost": str(network.cost_function),
        "layers": [_layer_header(layer) for layer in network.layers],
    }
    arrays: Dict[str, np.ndarray] = {
        "header": np.frombuffer(json.dumps(header).encode("utf-8"), dtype=np.uint8)
    }
    for index, layer in enumerate(network.layers):
        for position, tensor in enumerate(layer.parameters()):
            arrays[f"layer{index}_param{position}"] = np.asarray(tensor, dtype=np.float64)
    buffer = io.BytesIO()
    np.savez_compressed(buffer, **arrays)
    return buffer.getvalue()


def _params(archive: Mapping[str, np.ndarray], index: int, count: int) -> List[np.ndarray]:
    return [archive[f"layer{index}_param{position}"] for position in range(count)]


def _build_layer(index: int, spec: Mapping[str, object], archive: Mapping[str, np.ndarray]) -> Layer:
    kind = spec["kind"]
    if kind == "input":
        return InputLayer(int(spec["size"]))
    if kind == "fully_connected":
        weights, biases = _params(archive, index, 2)
        return FullyConnected(weights, biases, ActivationFunction.parse(str(spec["activation"])))
    if kind == "pool2d":
        return Pool2D(
            PoolType(spec["pool"]),
            int(spec["input_width"]),
            int(spec["input_height"]),
            int(spec["kernel_width"]),
            int(spec["kernel_height"]),
        )
    if kind == "conv2d":
        filters = _params(archive, index, int(spec["filters"]))
        return Conv2D(filters, int(spec["input_width"]), int(spec["input_height"]))
    raise PersistenceError(f"Unknown layer kind {kind!r}")


def decode(data: bytes) -> Network:
    try:
        with np.load(io.BytesIO(data), allow_pickle=False) as npz:
            archive = {name: npz[name] for name in npz.files}
        header = json.loads(archive["header"].tobytes().decode("utf-8"))
        if header.get("format") != FORMAT_NAME:
            raise PersistenceError("Not a neuralnet archive")
        if int(header.get("version", -1)) != FORMAT_VERSION:
            raise PersistenceError(f"Unsupported format version {header.get('version')!r}")
        network = Network(CostFunction.parse(str(header["cost"])))
        for index, spec in enumerate(header["layers"]):
            network.add_layer(_build_layer(index, spec, archive))
    except PersistenceError:
        raise
    except (OSError, EOFError, ValueError, KeyError, TypeError, AttributeError, zipfile.BadZipFile) as exc:
        raise PersistenceError(f"Malformed network data: {exc}") from exc
    return network


def _check_extension(path: Path) -> None:
    if path.suffix != EXTENSION:
        raise PersistenceError(f"Network files must use the {EXTENSION} extension: {path}")


def save_network(network: Network, path: str | Path, *, new: bool = True) -> Path:
    """Write ``network`` to ``path``.

    ``new=True`` refuses to overwrite an existing file; ``new=False`` requires
    the file to exist already.
    """

    path = Path(path)
    _check_extension(path)
    if new and path.exists():
        raise PersistenceError(f"File already exists: {path}")
    if not new and not path.exists():
        raise PersistenceError(f"File does not exist: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode(network))
    return path


def load_network(path: str | Path) -> Network:
    path = Path(path)
    _check_extension(path)
    if not path.exists():
        raise PersistenceError(f"File does not exist: {path}")
    return decode(path.read_bytes())


__all__ = [
    "EXTENSION",
    "PersistenceError",
    "decode",
    "encode",
    "load_network",
    "save_network",
]
