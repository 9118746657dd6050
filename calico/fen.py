"""FEN decoding into the piece lists the evaluation network expects."""

from __future__ import annotations

import re
from dataclasses import dataclass

W_KING, B_KING = 1, 7

_PIECE_CODES = {char: code for code, char in enumerate("KQRBNPkqrbnp", start=1)}
_RANK_NAMES = "12345678"
_FILE_NAMES = "abcdefgh"
_COLOR_NAMES = "WwBb"
_CASTLE_NAMES = "KQkq"
_DIGITS = "0123456789"
_CLOCKS = re.compile(r"\s*([+-]?\d+)(?:\s+([+-]?\d+))?")


@dataclass(frozen=True)
class DecodedFen:
    """A decoded FEN.

    ``pieces[0]``/``squares[0]`` hold the white king and index 1 the black king;
    the other pieces follow in board order. Squares run a1=0 ... h8=63.
    ``castle`` has bit 0 for K, 1 for Q, 2 for k and 3 for q.
    """

    player: int
    castle: int
    fifty: int
    move_number: int
    pieces: tuple[int, ...]
    squares: tuple[int, ...]
    en_passant: int


class _Cursor:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def peek(self, ahead: int = 0) -> str:
        index = self.pos + ahead
        return self.text[index] if index < len(self.text) else ""

    def advance(self, count: int = 1) -> None:
        self.pos += count

    def rest(self) -> str:
        return self.text[self.pos :]


def _find(table: str, char: str) -> int:
    """Position of ``char`` in ``table``, or -1; the empty string is never found."""
    return table.find(char) if char else -1


def _decode_placement(cursor: _Cursor) -> tuple[list[int], list[int]]:
    pieces = [0, 0]
    squares = [0, 0]
    kings_seen = set()
    for rank in range(7, -1, -1):
        file = 0
        while file <= 7:
            char = cursor.peek()
            square = rank * 8 + file
            code = _PIECE_CODES.get(char) if char else None
            if code == W_KING:
                pieces[0], squares[0] = code, square
                kings_seen.add(code)
            elif code == B_KING:
                pieces[1], squares[1] = code, square
                kings_seen.add(code)
            elif code is not None:
                pieces.append(code)
                squares.append(square)
            else:
                skip = _find(_RANK_NAMES, char)
                if skip > 0:
                    file += skip
            cursor.advance()
            file += 1
        cursor.advance()
    if kings_seen != {W_KING, B_KING}:
        raise ValueError("FEN must place both kings")
    return pieces, squares


def _decode_en_passant(cursor: _Cursor) -> int:
    char = cursor.peek()
    if char == "-" or not char:
        cursor.advance()
        return 0
    file = _find(_FILE_NAMES, char)
    if file < 0:
        raise ValueError(f"bad en passant file: {char!r}")
    cursor.advance()
    rank = _find(_RANK_NAMES, cursor.peek())
    if rank < 0:
        raise ValueError(f"bad en passant rank: {cursor.peek()!r}")
    cursor.advance()
    return file + 16 * rank


def _decode_clocks(cursor: _Cursor) -> tuple[int, int]:
    first, second = cursor.peek(0), cursor.peek(1)
    if (
        first
        and second
        and first in _DIGITS
        and (second in _DIGITS or second == " ")
    ):
        match = _CLOCKS.match(cursor.rest())
        if match:
            fifty = int(match.group(1))
            move_number = int(match.group(2)) if match.group(2) is not None else 1
            return fifty, max(move_number, 1) if move_number > 0 else 1
    return 0, 1


def decode_fen(fen: str) -> DecodedFen:
    """Decode a FEN string into side to move, castling, clocks and piece lists."""
    cursor = _Cursor(fen)
    pieces, squares = _decode_placement(cursor)

    color = _find(_COLOR_NAMES, cursor.peek())
    player = 1 if color >= 2 else 0
    cursor.advance(2)

    castle = 0
    if cursor.peek() == "-":
        cursor.advance()
    else:
        while (right := _find(_CASTLE_NAMES, cursor.peek())) >= 0:
            castle |= 1 << right
            cursor.advance()

    cursor.advance()
    en_passant = _decode_en_passant(cursor)

    cursor.advance()
    fifty, move_number = _decode_clocks(cursor)

    return DecodedFen(
        player=player,
        castle=castle,
        fifty=fifty,
        move_number=move_number,
        pieces=tuple(pieces),
        squares=tuple(squares),
        en_passant=en_passant,
    )