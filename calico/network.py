"""Forward pass of the HalfKP evaluation network."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .fen import decode_fen
from .features import (
    NNUEData,
    NnuePosition,
    refresh_accumulator,
    update_accumulator,
)
from .weights import NetworkWeights

FV_SCALE = 16
SHIFT = 6
CLIP_MAX = 127


def _truncating_div(value: int, divisor: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


def affine_transform(inputs, biases, weights) -> np.ndarray:
    """Dense layer followed by the shift and a clipped ReLU to 0..127.

    ``weights`` is an (outputs, inputs) matrix.
    """
    x = np.asarray(inputs, dtype=np.int64)
    b = np.asarray(biases, dtype=np.int64)
    w = np.asarray(weights, dtype=np.int64)
    sums = b + w @ x
    return np.clip(np.right_shift(sums, SHIFT), 0, CLIP_MAX)


def clip_accumulation(accumulation, player: int) -> np.ndarray:
    """Both halves of the accumulator, side to move first, clipped to 0..127."""
    acc = np.asarray(accumulation, dtype=np.int64)
    side = 1 if player else 0
    joined = np.concatenate([acc[side], acc[1 - side]])
    return np.clip(joined, 0, CLIP_MAX)


class Network:
    """An evaluation network with loaded weights."""

    def __init__(self, weights: NetworkWeights):
        self.weights = weights

    @classmethod
    def load(cls, path) -> "Network":
        """Load the network file at ``path``."""
        return cls(NetworkWeights.load(path))

    def evaluate_position(self, position: NnuePosition) -> int:
        """Score relative to the side to move, in approximate centipawns."""
        w = self.weights
        if not update_accumulator(position, w.ft_biases, w.ft_weights):
            refresh_accumulator(position, w.ft_biases, w.ft_weights)
        data = position.ply_data(0)
        transformed = clip_accumulation(data.accumulator.accumulation, position.player)

        hidden1 = affine_transform(transformed, w.hidden1_biases, w.hidden1_weights)
        hidden2 = affine_transform(hidden1, w.hidden2_biases, w.hidden2_weights)
        out = int(np.asarray(w.output_biases, dtype=np.int64)[0]) + int(
            np.dot(np.asarray(w.output_weights, dtype=np.int64), hidden2)
        )
        return _truncating_div(out, FV_SCALE)

    def evaluate(self, player: int, pieces: Sequence[int], squares: Sequence[int]) -> int:
        """Evaluate a piece list from scratch."""
        position = NnuePosition(player, pieces, squares, (NNUEData(), None, None))
        return self.evaluate_position(position)

    def evaluate_incremental(
        self,
        player: int,
        pieces: Sequence[int],
        squares: Sequence[int],
        stack: Sequence[Optional[NNUEData]],
    ) -> int:
        """Evaluate reusing the accumulators of the current and two previous plies."""
        frames = list(stack)[:3]
        frames.extend([None] * (3 - len(frames)))
        if frames[0] is None:
            raise ValueError("the current ply needs network data")
        position = NnuePosition(player, pieces, squares, tuple(frames))
        return self.evaluate_position(position)

    def evaluate_fen(self, fen: str) -> int:
        """Evaluate the position described by ``fen``."""
        decoded = decode_fen(fen)
        return self.evaluate(decoded.player, decoded.pieces, decoded.squares)