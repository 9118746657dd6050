"""HalfKP input features and the incrementally updated accumulator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from .board import DirtyPiece

WHITE, BLACK = 0, 1
W_KING, B_KING = 1, 7
NO_SQUARE = 64

PS_W_PAWN = 1
PS_B_PAWN = 1 * 64 + 1
PS_W_KNIGHT = 2 * 64 + 1
PS_B_KNIGHT = 3 * 64 + 1
PS_W_BISHOP = 4 * 64 + 1
PS_B_BISHOP = 5 * 64 + 1
PS_W_ROOK = 6 * 64 + 1
PS_B_ROOK = 7 * 64 + 1
PS_W_QUEEN = 8 * 64 + 1
PS_B_QUEEN = 9 * 64 + 1
PS_END = 10 * 64 + 1

HALF_DIMENSIONS = 256
FT_IN_DIMS = 64 * PS_END
FT_OUT_DIMS = HALF_DIMENSIONS * 2

# Feature offset of each piece code, seen from each perspective.
PIECE_TO_INDEX = (
    (0, 0, PS_W_QUEEN, PS_W_ROOK, PS_W_BISHOP, PS_W_KNIGHT, PS_W_PAWN,
     0, PS_B_QUEEN, PS_B_ROOK, PS_B_BISHOP, PS_B_KNIGHT, PS_B_PAWN, 0),
    (0, 0, PS_B_QUEEN, PS_B_ROOK, PS_B_BISHOP, PS_B_KNIGHT, PS_B_PAWN,
     0, PS_W_QUEEN, PS_W_ROOK, PS_W_BISHOP, PS_W_KNIGHT, PS_W_PAWN, 0),
)


def _king_of(color: int) -> int:
    return B_KING if color else W_KING


def _is_king(piece: int) -> bool:
    return piece in (W_KING, B_KING)


@dataclass
class Accumulator:
    """First-layer sums for both perspectives."""

    accumulation: np.ndarray = field(
        default_factory=lambda: np.zeros((2, HALF_DIMENSIONS), dtype=np.int16)
    )
    computed: bool = False


@dataclass
class NNUEData:
    """Accumulator and changed pieces belonging to one ply."""

    accumulator: Accumulator = field(default_factory=Accumulator)
    dirty: DirtyPiece = field(default_factory=DirtyPiece)


@dataclass
class NnuePosition:
    """Piece list with kings first, plus the network data of this and the two previous plies.

    ``pieces[0]``/``squares[0]`` is the white king, index 1 the black king; the rest
    follow until a zero piece or the end of the list. Squares run a1=0 ... h8=63.
    """

    player: int
    pieces: Sequence[int]
    squares: Sequence[int]
    nnue: Sequence[Optional[NNUEData]] = (None, None, None)

    def ply_data(self, back: int) -> Optional[NNUEData]:
        return self.nnue[back] if back < len(self.nnue) else None


def orient(color: int, square: int) -> int:
    """Mirror the square for black's perspective."""
    return square ^ (0x00 if color == WHITE else 0x3F)


def make_index(color: int, square: int, piece: int, king_square: int) -> int:
    return orient(color, square) + PIECE_TO_INDEX[color][piece] + PS_END * king_square


def _king_square(position: NnuePosition, color: int) -> int:
    return orient(color, position.squares[color])


def active_indices(position: NnuePosition, color: int) -> list[int]:
    """Feature indices of every non-king piece, from ``color``'s perspective."""
    ksq = _king_square(position, color)
    indices = []
    for piece, square in zip(position.pieces[2:], position.squares[2:]):
        if not piece:
            break
        indices.append(make_index(color, square, piece, ksq))
    return indices


def changed_indices(
    position: NnuePosition, color: int, dirty: DirtyPiece
) -> tuple[list[int], list[int]]:
    """Features removed and added by one ply's changed pieces."""
    ksq = _king_square(position, color)
    removed: list[int] = []
    added: list[int] = []
    for i in range(dirty.dirty_num):
        piece = dirty.pc[i]
        if _is_king(piece):
            continue
        if dirty.frm[i] != NO_SQUARE:
            removed.append(make_index(color, dirty.frm[i], piece, ksq))
        if dirty.to[i] != NO_SQUARE:
            added.append(make_index(color, dirty.to[i], piece, ksq))
    return removed, added


def append_changed_indices(
    position: NnuePosition,
) -> tuple[list[list[int]], list[list[int]], list[bool]]:
    """Removed and added features per perspective, and which perspectives need a reset.

    A perspective is reset when its own king moved; its added list then holds all
    active features and its removed list stays empty.
    """
    current = position.ply_data(0)
    previous = position.ply_data(1)
    if current is None or previous is None:
        raise ValueError("incremental update needs the current and previous ply")
    dirties = [current.dirty]
    if not previous.accumulator.computed:
        dirties.append(previous.dirty)

    removed: list[list[int]] = [[], []]
    added: list[list[int]] = [[], []]
    reset = [False, False]
    for color in (WHITE, BLACK):
        reset[color] = any(d.pc[0] == _king_of(color) for d in dirties)
        if reset[color]:
            added[color].extend(active_indices(position, color))
            continue
        for dirty in dirties:
            gone, new = changed_indices(position, color, dirty)
            removed[color].extend(gone)
            added[color].extend(new)
    return removed, added, reset


def _row_sum(weights: np.ndarray, indices: list[int], width: int) -> np.ndarray:
    if not indices:
        return np.zeros(width, dtype=np.int16)
    return weights[indices].sum(axis=0, dtype=np.int16)


def _as_int16(values) -> np.ndarray:
    return np.asarray(values, dtype=np.int16)


def refresh_accumulator(position: NnuePosition, ft_biases, ft_weights) -> None:
    """Recompute the current ply's accumulator from scratch."""
    data = position.ply_data(0)
    if data is None:
        raise ValueError("position has no network data for the current ply")
    biases = _as_int16(ft_biases)
    weights = _as_int16(ft_weights)
    width = biases.shape[0]
    accumulation = np.empty((2, width), dtype=np.int16)
    for color in (WHITE, BLACK):
        accumulation[color] = biases + _row_sum(weights, active_indices(position, color), width)
    data.accumulator.accumulation = accumulation
    data.accumulator.computed = True


def update_accumulator(position: NnuePosition, ft_biases, ft_weights) -> bool:
    """Derive the current accumulator from an earlier ply's; False if none is usable."""
    data = position.ply_data(0)
    if data is None:
        raise ValueError("position has no network data for the current ply")
    if data.accumulator.computed:
        return True

    previous = position.ply_data(1)
    if previous is None:
        return False
    if previous.accumulator.computed:
        base = previous.accumulator
    else:
        earlier = position.ply_data(2)
        if earlier is None or not earlier.accumulator.computed:
            return False
        base = earlier.accumulator

    removed, added, reset = append_changed_indices(position)
    biases = _as_int16(ft_biases)
    weights = _as_int16(ft_weights)
    width = biases.shape[0]
    accumulation = np.empty((2, width), dtype=np.int16)
    for color in (WHITE, BLACK):
        if reset[color]:
            start = biases
        else:
            start = base.accumulation[color] - _row_sum(weights, removed[color], width)
        accumulation[color] = start + _row_sum(weights, added[color], width)
    data.accumulator.accumulation = accumulation
    data.accumulator.computed = True
    return True