"""Reader and writer for the IDX format with unsigned-byte payloads."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import numpy as np

from ..core.errors import NeuralNetError

UNSIGNED_BYTE = 0x08
_HEADER = struct.Struct(">HBB")
_DIMENSION = struct.Struct(">I")


class IdxFormatError(NeuralNetError, ValueError):
    """Raised for truncated or unsupported IDX data."""


@dataclass(frozen=True)
class IdxFile:
    """Decoded IDX file; ``data`` has ``shape`` and dtype ``uint8``."""

    shape: Tuple[int, ...]
    data: np.ndarray

    @property
    def items(self) -> List[np.ndarray]:
        """Items along the first dimension, each flattened."""

        return list(self.data.reshape(self.shape[0], -1))

    def __len__(self) -> int:
        return self.shape[0]


def parse_idx(payload: bytes) -> IdxFile:
    if len(payload) < _HEADER.size:
        raise IdxFormatError("Error while decoding IDX: header is truncated")
    _magic, data_type, dimensions = _HEADER.unpack_from(payload)
    if data_type != UNSIGNED_BYTE:
        raise IdxFormatError(
            f"Only IDX files with unsigned byte data are supported, got type 0x{data_type:02x}"
        )
    if dimensions == 0:
        raise IdxFormatError("Error while decoding IDX: no dimensions")
    offset = _HEADER.size
    end = offset + dimensions * _DIMENSION.size
    if len(payload) < end:
        raise IdxFormatError("Error while decoding IDX: dimension table is truncated")
    shape = tuple(
        _DIMENSION.unpack_from(payload, offset + i * _DIMENSION.size)[0] for i in range(dimensions)
    )
    body = payload[end:]
    expected = int(np.prod(shape, dtype=np.int64))
    if len(body) != expected:
        raise IdxFormatError(
            f"Error while decoding IDX: expected item count ({expected}) is not equal "
            f"to parsed item count ({len(body)})"
        )
    data = np.frombuffer(body, dtype=np.uint8).reshape(shape)
    return IdxFile(shape=shape, data=data)


def encode_idx(array: np.ndarray) -> bytes:
    values = np.asarray(array)
    if values.ndim == 0:
        raise IdxFormatError("Cannot encode a scalar as IDX")
    if values.size and (values.min() < 0 or values.max() > 255):
        raise IdxFormatError("IDX unsigned byte data must lie in [0, 255]")
    header = _HEADER.pack(0, UNSIGNED_BYTE, values.ndim)
    dims = b"".join(_DIMENSION.pack(int(d)) for d in values.shape)
    return header + dims + values.astype(np.uint8).tobytes(order="C")


def read_idx(path: str | Path) -> IdxFile:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File does not exist: {path}")
    return parse_idx(path.read_bytes())


def write_idx(path: str | Path, array: np.ndarray) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_idx(array))
    return path


__all__ = ["IdxFile", "IdxFormatError", "encode_idx", "parse_idx", "read_idx", "write_idx"]
