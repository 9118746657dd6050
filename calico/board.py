"""0x88 board representation, move generation and move application."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

from .zobrist import get_keys

N, S, W, E = -16, 16, -1, 1
EMPTY, KING, QUEEN, ROOK, BISHOP, KNIGHT, PAWN = 0, 1, 2, 3, 4, 5, 6
BLACK = 6
# Offset added to a piece type for the side indexed by ``white_to_move``.
PIECE_COLOR = (6, 0)
COLOR = (-1, 1)
A8, H8, A1, H1 = 0, 7, 112, 119
OFF_BOARD = 127
NO_SQUARE = 64

PIECE_CHARS = ".KQRBNPkqrbnp"
START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

KNIGHT_STEPS = (N + N + W, N + N + E, S + S + W, S + S + E, W + W + N, W + W + S, E + E + N, E + E + S)
DIAGONALS = (N + W, N + E, S + W, S + E)
ORTHOGONALS = (N, S, E, W)
ALL_DIRECTIONS = (N, S, E, W, N + W, N + E, S + W, S + E)

_FEN_OFFSETS = {"/": 8, **{str(n): n for n in range(1, 9)}}


def _sign(x: int) -> int:
    return (x > 0) - (x < 0)


def _build_lookup() -> tuple[int, ...]:
    table = [0] * 256
    for dr in range(-7, 8):
        for df in range(-7, 8):
            if dr == 0 and df == 0:
                continue
            if dr == 0 or df == 0 or abs(dr) == abs(df):
                table[dr * 16 + df + 0x77] = _sign(dr) * 16 + _sign(df)
    return tuple(table)


# Direction from a square towards another one on a shared line, keyed by their difference.
_LOOKUP = _build_lookup()


def _valid(n: int) -> bool:
    return (n & 0x88) == 0


def _nnue_square(square: int) -> int:
    """Map a 0x88 square to the a1=0 ... h8=63 numbering, off-board squares to 64."""
    rank, file = square >> 4, square & 15
    if file >= 8 or not 0 <= rank < 8:
        return NO_SQUARE
    return (7 - rank) * 8 + file


def square_to_str(n: int) -> str:
    rank = n >> 4
    file = n & 7
    return chr(ord("a") + file) + chr(ord("1") + (7 - rank))


def str_to_square(text: str) -> int:
    if len(text) < 2:
        raise ValueError(f"not a square: {text!r}")
    file = ord(text[0]) - ord("a")
    rank = 7 - (ord(text[1]) - ord("1"))
    return rank * 16 + file


def piece_to_char(piece: int) -> str:
    return PIECE_CHARS[piece]


def char_to_piece(char: str) -> int:
    index = PIECE_CHARS.find(char)
    if len(char) != 1 or index < 0:
        raise ValueError(f"not a piece character: {char!r}")
    return index


@dataclass(frozen=True)
class Move:
    start: int
    end: int

    def uci(self, promotion: int = EMPTY) -> str:
        """The move in coordinate notation, e.g. ``e2e4``."""
        text = square_to_str(self.start) + square_to_str(self.end)
        if promotion != EMPTY:
            text += piece_to_char(promotion)
        return text

    def __str__(self) -> str:
        return self.uci()


NULLMOVE = Move(9, 9)


@dataclass
class DirtyPiece:
    """Pieces changed by the last move, in network square numbering."""

    dirty_num: int = 0
    pc: list[int] = field(default_factory=lambda: [0, 0, 0])
    frm: list[int] = field(default_factory=lambda: [0, 0, 0])
    to: list[int] = field(default_factory=lambda: [0, 0, 0])

    def record(self, frm: int, to: int, piece: int, change_index: int = 0) -> None:
        self.dirty_num = change_index + 1
        self.pc[change_index] = piece
        self.frm[change_index] = _nnue_square(frm)
        self.to[change_index] = _nnue_square(to)

    def copy(self) -> "DirtyPiece":
        return DirtyPiece(self.dirty_num, list(self.pc), list(self.frm), list(self.to))


@dataclass
class Board:
    """A position; lists indexed by side use 0 for black and 1 for white."""

    squares: list[int] = field(default_factory=lambda: [EMPTY] * 128)
    kings: list[int] = field(default_factory=lambda: [0, 0])
    enpassant: int = 0
    piece_hash: int = 0
    short_castle: list[bool] = field(default_factory=lambda: [False, False])
    long_castle: list[bool] = field(default_factory=lambda: [False, False])
    white_to_move: bool = False
    in_check: bool = False
    ply: int = 0
    dirty: DirtyPiece = field(default_factory=DirtyPiece)

    def _at(self, index: int) -> Optional[int]:
        return self.squares[index] if 0 <= index < 128 else None

    def generate_moves(self, captures_only: bool = False) -> list[Move]:
        """Pseudo-legal moves for the side to move; also refreshes ``in_check``."""
        moves: list[Move] = []
        advance = N if self.white_to_move else S

        for i, piece in enumerate(self.squares[A8 : H1 + 1]):
            if piece == EMPTY or (piece <= 6) != self.white_to_move:
                continue
            kind = piece - 6 if piece > 6 else piece

            if kind == PAWN:
                for side in (W, E):
                    if _valid(i + advance + side):
                        self._add(moves, i, i + advance + side, True)
                if self._at(i + advance) == EMPTY:
                    self._add(moves, i, i + advance, captures_only)
                    if self._at(i + 2 * advance) == EMPTY and self._home_row(i):
                        self._add(moves, i, i + 2 * advance, captures_only)
            elif kind == KNIGHT:
                self._piece_moves(moves, i, KNIGHT_STEPS, False, captures_only)
            elif kind == BISHOP:
                self._piece_moves(moves, i, DIAGONALS, True, captures_only)
            elif kind == ROOK:
                self._piece_moves(moves, i, ORTHOGONALS, True, captures_only)
            elif kind == QUEEN:
                self._piece_moves(moves, i, ALL_DIRECTIONS, True, captures_only)
            elif kind == KING:
                self._piece_moves(moves, i, ALL_DIRECTIONS, False, captures_only)

        if self.enpassant != 0:
            own_pawn = PAWN + PIECE_COLOR[self.white_to_move]
            for origin in (self.enpassant - advance + W, self.enpassant - advance + E):
                if self._at(origin) == own_pawn:
                    self._add(moves, origin, self.enpassant, captures_only)

        side = int(self.white_to_move)
        king = self.kings[side]
        self.in_check = self.attacked(king)

        if not captures_only and not self.in_check:
            if (
                self.short_castle[side]
                and self._at(king + E) == EMPTY
                and self._at(king + 2 * E) == EMPTY
            ):
                self._add(moves, king, king + 2 * E, False)
            if (
                self.long_castle[side]
                and self._at(king + W) == EMPTY
                and self._at(king + 2 * W) == EMPTY
                and self._at(king + 3 * W) == EMPTY
            ):
                self._add(moves, king, king + 2 * W, False)

        return moves

    def _piece_moves(self, moves, start, pattern, ray, captures_only) -> None:
        for direction in pattern:
            end = start + direction
            while _valid(end):
                self._add(moves, start, end, captures_only)
                if self.squares[end] != EMPTY or not ray:
                    break
                end += direction

    def _add(self, moves, start, end, captures_only) -> None:
        target = self.squares[end]
        if captures_only and target == EMPTY:
            return
        if target != EMPTY and self.white_to_move == (target <= 6):
            return
        moves.append(Move(start, end))

    def _home_row(self, index: int) -> bool:
        rank = index >> 4
        return rank == 6 if self.white_to_move else rank == 1

    def attacked(self, index: int) -> bool:
        """Whether the side not to move attacks ``index``."""
        enemy = PIECE_COLOR[not self.white_to_move]
        pawn_dirs = (N + W, N + E) if self.white_to_move else (S + W, S + E)
        return (
            self.scan(PAWN + enemy, index, pawn_dirs, False)
            or self.scan(KNIGHT + enemy, index, KNIGHT_STEPS, False)
            or self.scan(BISHOP + enemy, index, DIAGONALS, True)
            or self.scan(ROOK + enemy, index, ORTHOGONALS, True)
            or self.scan(QUEEN + enemy, index, ALL_DIRECTIONS, True)
            or self.scan(KING + enemy, index, ALL_DIRECTIONS, False)
        )

    def fast_attacked(self, index: int, start: int) -> bool:
        """Whether vacating ``start`` exposes ``index`` to an enemy slider."""
        key = start - index + 0x77
        if not 0 <= key < len(_LOOKUP):
            return False
        direction = _LOOKUP[key]
        if direction == 0:
            return False
        enemy = PIECE_COLOR[not self.white_to_move]
        slider = ROOK if direction in ORTHOGONALS else BISHOP
        return self.scan(slider + enemy, index, (direction,), True) or self.scan(
            QUEEN + enemy, index, (direction,), True
        )

    def scan(self, find: int, start: int, pattern, ray: bool) -> bool:
        """Look from ``start`` along each direction for the first piece equal to ``find``."""
        for direction in pattern:
            end = start + direction
            while _valid(end):
                piece = self.squares[end]
                if not ray or piece != EMPTY:
                    if piece == find:
                        return True
                    break
                end += direction
        return False

    def edit(self, index: int, piece: int) -> None:
        keys = get_keys()
        self.piece_hash ^= keys.piece(self.squares[index], index) ^ keys.piece(piece, index)
        self.squares[index] = piece

    def update_eval(self, frm: int, to: int, piece: int, change_index: int = 0) -> None:
        self.dirty.record(frm, to, piece, change_index)

    def get_hash(self) -> int:
        return get_keys().position_hash(
            self.piece_hash,
            self.enpassant,
            self.white_to_move,
            self.short_castle,
            self.long_castle,
        )

    def render(self) -> str:
        """Eight rows of pieces, an ``x`` on the en passant square, then the hash."""
        rows = []
        for rank in range(8):
            row = []
            for file in range(8):
                i = rank * 16 + file
                if self.enpassant != 0 and i == self.enpassant:
                    row.append("x")
                else:
                    row.append(piece_to_char(self.squares[i]))
            rows.append("".join(row))
        rows.append(str(self.get_hash()))
        return "\n".join(rows) + "\n"

    def copy(self) -> "Board":
        return replace(
            self,
            squares=list(self.squares),
            kings=list(self.kings),
            short_castle=list(self.short_castle),
            long_castle=list(self.long_castle),
            dirty=self.dirty.copy(),
        )


def apply(board: Board, move: Move) -> Optional[Board]:
    """Return the position after ``move``, or None if it leaves the mover in check."""
    nb = board.copy()
    start, end = move.start, move.end
    moving = nb.squares[start]
    victim = nb.squares[end]
    is_white = nb.white_to_move
    side = int(is_white)
    nb.enpassant = 0
    nb.ply += 1

    nb.update_eval(start, end, moving, 0)
    if victim > 0:
        nb.update_eval(end, OFF_BOARD, victim, 1)

    if moving in (PAWN, PAWN + BLACK):
        distance = abs(end - start)
        if distance == 2 * S:
            nb.enpassant = end + S * COLOR[side]
        elif distance != S and nb.squares[end] == EMPTY:
            captured = end + S * COLOR[side]
            nb.edit(captured, EMPTY)
            nb.update_eval(captured, OFF_BOARD, PAWN + PIECE_COLOR[not is_white], 1)

        if end <= H8 or end >= A1:
            queen = QUEEN + PIECE_COLOR[side]
            nb.edit(start, queen)
            nb.update_eval(start, OFF_BOARD, moving, 0)
            nb.update_eval(0, end, queen, 2 if victim > 0 else 1)
            moving = queen

    nb.edit(end, moving)
    nb.edit(start, EMPTY)

    if moving not in (KING, KING + BLACK):
        if not nb.in_check:
            if nb.fast_attacked(nb.kings[side], start):
                return None
        elif nb.attacked(nb.kings[side]):
            return None
    else:
        rook = ROOK + PIECE_COLOR[side]
        if end - start == 2 * W:
            if nb.attacked(nb.kings[side] + W):
                return None
            nb.edit(end + 2 * W, EMPTY)
            nb.edit(end + E, rook)
            nb.update_eval(end + 2 * W, end + E, rook, 1)
        if end - start == 2 * E:
            if nb.attacked(nb.kings[side] + E):
                return None
            nb.edit(end + E, EMPTY)
            nb.edit(end + W, rook)
            nb.update_eval(end + W, end + E, rook, 1)

        nb.long_castle[side] = False
        nb.short_castle[side] = False
        nb.kings[side] = end

        if nb.attacked(nb.kings[side]):
            return None

    if H1 in (start, end):
        nb.short_castle[1] = False
    if H8 in (start, end):
        nb.short_castle[0] = False
    if A1 in (start, end):
        nb.long_castle[1] = False
    if A8 in (start, end):
        nb.long_castle[0] = False

    if start == end:
        nb.update_eval(OFF_BOARD, OFF_BOARD, EMPTY, 0)

    nb.white_to_move = not nb.white_to_move
    return nb


def trim(text: str) -> str:
    return text.strip(" ")


def before_word(text: str, word: str) -> str:
    found = text.find(word)
    if found != -1:
        return trim(text[:found])
    return trim(text)


def after_word(text: str, word: str) -> str:
    found = text.find(word)
    if found != -1:
        return trim(text[found + len(word) :])
    return ""


def new_board(fen: str = START_FEN) -> Board:
    """Build a board from a FEN string; clocks are ignored."""
    board = Board()

    i = 0
    for char in before_word(fen, " "):
        if char in _FEN_OFFSETS:
            i += _FEN_OFFSETS[char]
            continue
        if not 0 <= i < 128:
            raise ValueError(f"FEN placement runs off the board: {fen!r}")
        board.edit(i, char_to_piece(char))
        if char == "k":
            board.kings[0] = i
        if char == "K":
            board.kings[1] = i
        i += 1

    details = after_word(fen, " ")
    board.white_to_move = details[:1] == "w"

    rights = before_word(after_word(details, " "), " ")
    board.short_castle[1] = "K" in rights
    board.short_castle[0] = "k" in rights
    board.long_castle[1] = "Q" in rights
    board.long_castle[0] = "q" in rights

    ep = before_word(after_word(after_word(details, " "), " "), " ")
    if ep not in ("-", "", " "):
        board.enpassant = str_to_square(ep)

    return board


def perft(board: Board, depth: int) -> int:
    """Count the leaf positions reachable in ``depth`` plies."""
    if depth == 0:
        return 1
    nodes = 0
    for move in board.generate_moves():
        following = apply(board, move)
        if following is not None:
            nodes += perft(following, depth - 1)
    return nodes


def apply_move_str(board: Board, move_str: str) -> Optional[Board]:
    """Apply a move written like ``e2e4``; promotions always make a queen."""
    if len(move_str) < 4:
        return None
    return apply(board, Move(str_to_square(move_str[0:2]), str_to_square(move_str[2:4])))