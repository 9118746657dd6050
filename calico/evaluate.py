"""Board evaluation through the network, reusing accumulators ply by ply."""

from __future__ import annotations

from .board import BLACK, EMPTY, KING, Board
from .features import NNUEData
from .network import Network

MAX_PLY = 256
NO_SQUARE = 64


def to_nnue_square(square: int) -> int:
    """Map a 0x88 square to a1=0 ... h8=63; off-board squares map to 64."""
    if not 0 <= square < 128:
        raise ValueError(f"square out of range: {square}")
    rank, file = square >> 4, square & 15
    if file >= 8:
        return NO_SQUARE
    return (7 - rank) * 8 + file


class Evaluator:
    """Evaluates boards, keeping one accumulator per ply for incremental updates."""

    def __init__(self, network: Network):
        self.network = network
        self._stack = [NNUEData() for _ in range(MAX_PLY)]

    def evaluate(self, board: Board) -> int:
        """Score of ``board`` relative to the side to move."""
        pieces = [KING, KING + BLACK]
        squares = [to_nnue_square(board.kings[1]), to_nnue_square(board.kings[0])]
        for square, piece in enumerate(board.squares):
            if piece in (EMPTY, KING, KING + BLACK):
                continue
            pieces.append(piece)
            squares.append(to_nnue_square(square))

        ply = board.ply
        if not 0 <= ply < MAX_PLY:
            raise IndexError(f"ply {ply} is beyond the evaluation stack")
        current = self._stack[ply]
        current.dirty = board.dirty.copy()
        current.accumulator.computed = False
        previous = self._stack[ply - 1] if ply > 1 else None
        earlier = self._stack[ply - 2] if ply > 2 else None

        player = 0 if board.white_to_move else 1
        return self.network.evaluate_incremental(
            player, pieces, squares, (current, previous, earlier)
        )