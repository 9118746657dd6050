"""Zobrist keys used to hash board positions."""

from __future__ import annotations

import random
from typing import Optional, Sequence

PIECE_KINDS = 16
BOARD_SQUARES = 128


class ZobristKeys:
    """A full set of random 64-bit keys for pieces, en passant, side and castling."""

    def __init__(self, seed=None):
        rng = random.Random(seed)

        def draw() -> int:
            return rng.getrandbits(64)

        # Row 0 (the empty square) stays zero so that clearing a square is free.
        self.pieces: list[list[int]] = [[0] * BOARD_SQUARES]
        self.pieces.extend(
            [draw() for _ in range(BOARD_SQUARES)] for _ in range(1, PIECE_KINDS)
        )
        self.enpassant: list[int] = [draw() for _ in range(BOARD_SQUARES)]

        side, short, long_ = [], [], []
        for _ in range(2):
            side.append(draw())
            short.append(draw())
            long_.append(draw())
        self.side_to_move: tuple[int, int] = (side[0], side[1])
        self.short_castle: tuple[int, int] = (short[0], short[1])
        self.long_castle: tuple[int, int] = (long_[0], long_[1])

    def piece(self, piece: int, square: int) -> int:
        """Key for ``piece`` standing on the 0x88 ``square``."""
        return self.pieces[piece][square]

    def position_hash(
        self,
        base: int,
        enpassant: int,
        white_to_move: bool,
        short_castle: Sequence[bool],
        long_castle: Sequence[bool],
    ) -> int:
        """Combine a piece-placement hash with the rest of the position state."""
        key = base ^ self.enpassant[enpassant] ^ self.side_to_move[int(white_to_move)]
        for side in (0, 1):
            if short_castle[side]:
                key ^= self.short_castle[side]
        for side in (0, 1):
            if long_castle[side]:
                key ^= self.long_castle[side]
        return key


_keys: Optional[ZobristKeys] = None


def init_zobrists(seed=None) -> ZobristKeys:
    """Draw a fresh key set and make it the one used for hashing."""
    global _keys
    _keys = ZobristKeys(seed)
    return _keys


def get_keys() -> ZobristKeys:
    """Return the active key set, drawing one first if needed."""
    if _keys is None:
        return init_zobrists()
    return _keys