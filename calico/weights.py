"""Loading and validating the evaluation network's weight file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .features import FT_IN_DIMS, FT_OUT_DIMS, HALF_DIMENSIONS

NNUE_VERSION = 0x7AF32F16
HEADER_HASH = 0x3E5AA6EE
ARCHITECTURE_SIZE = 177
TRANSFORMER_HASH = 0x5D69D7B8
NETWORK_HASH = 0x63337156
NETWORK_SIZE = 21022697

HIDDEN_DIMS = 32
TRANSFORMER_START = 3 * 4 + ARCHITECTURE_SIZE
NETWORK_START = TRANSFORMER_START + 4 + 2 * HALF_DIMENSIONS + 2 * HALF_DIMENSIONS * FT_IN_DIMS


class NetworkError(ValueError):
    """The network file is missing or is not a supported network."""


def read_u32(data: bytes, offset: int) -> int:
    """Little-endian unsigned 32-bit integer at ``offset``."""
    if offset < 0 or offset + 4 > len(data):
        raise ValueError(f"cannot read 4 bytes at offset {offset}")
    return int.from_bytes(data[offset : offset + 4], "little")


def read_u16(data: bytes, offset: int) -> int:
    """Little-endian unsigned 16-bit integer at ``offset``."""
    if offset < 0 or offset + 2 > len(data):
        raise ValueError(f"cannot read 2 bytes at offset {offset}")
    return int.from_bytes(data[offset : offset + 2], "little")


def verify_net(data: bytes) -> bool:
    """Whether ``data`` has the size and header hashes of a supported network."""
    if len(data) != NETWORK_SIZE:
        return False
    return (
        read_u32(data, 0) == NNUE_VERSION
        and read_u32(data, 4) == HEADER_HASH
        and read_u32(data, 8) == ARCHITECTURE_SIZE
        and read_u32(data, TRANSFORMER_START) == TRANSFORMER_HASH
        and read_u32(data, NETWORK_START) == NETWORK_HASH
    )


class _Reader:
    def __init__(self, data: bytes, offset: int):
        self.data = data
        self.offset = offset

    def take(self, dtype: str, count: int, native) -> np.ndarray:
        array = np.frombuffer(self.data, dtype=dtype, count=count, offset=self.offset)
        self.offset += array.nbytes
        return array.astype(native)

    def skip(self, count: int) -> None:
        self.offset += count


@dataclass(eq=False)
class NetworkWeights:
    """All layers of the network.

    Hidden and output weights are stored as (outputs, inputs) matrices.
    """

    ft_biases: np.ndarray
    ft_weights: np.ndarray
    hidden1_biases: np.ndarray
    hidden1_weights: np.ndarray
    hidden2_biases: np.ndarray
    hidden2_weights: np.ndarray
    output_biases: np.ndarray
    output_weights: np.ndarray

    @classmethod
    def from_bytes(cls, data: bytes) -> "NetworkWeights":
        """Parse a verified network image."""
        data = bytes(data)
        if not verify_net(data):
            raise NetworkError("not a supported NNUE network")

        reader = _Reader(data, TRANSFORMER_START + 4)
        ft_biases = reader.take("<i2", HALF_DIMENSIONS, np.int16)
        ft_weights = reader.take("<i2", HALF_DIMENSIONS * FT_IN_DIMS, np.int16).reshape(
            FT_IN_DIMS, HALF_DIMENSIONS
        )

        reader.skip(4)
        hidden1_biases = reader.take("<i4", HIDDEN_DIMS, np.int32)
        hidden1_weights = reader.take("i1", HIDDEN_DIMS * FT_OUT_DIMS, np.int8).reshape(
            HIDDEN_DIMS, FT_OUT_DIMS
        )
        hidden2_biases = reader.take("<i4", HIDDEN_DIMS, np.int32)
        hidden2_weights = reader.take("i1", HIDDEN_DIMS * HIDDEN_DIMS, np.int8).reshape(
            HIDDEN_DIMS, HIDDEN_DIMS
        )
        output_biases = reader.take("<i4", 1, np.int32)
        output_weights = reader.take("i1", HIDDEN_DIMS, np.int8)

        return cls(
            ft_biases=ft_biases,
            ft_weights=ft_weights,
            hidden1_biases=hidden1_biases,
            hidden1_weights=hidden1_weights,
            hidden2_biases=hidden2_biases,
            hidden2_weights=hidden2_weights,
            output_biases=output_biases,
            output_weights=output_weights,
        )

    @classmethod
    def load(cls, path) -> "NetworkWeights":
        """Read and parse the network file at ``path``."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise NetworkError(f"NNUE file not found: {path}") from exc
        return cls.from_bytes(data)