"""Alpha-beta search with quiescence, move ordering heuristics and iterative deepening."""

from __future__ import annotations

import sys
import time
from typing import Callable, Iterable, Optional, TextIO

from .board import EMPTY, NULLMOVE, Board, Move, apply
from .table import Bound, TranspositionTable, TTEntry

MATE_SCORE = 10000
DRAW_SCORE = 0

TABLEMOVE_PRIORITY = 100_000_000
CAPTURE_PRIORITY = 1_000_000
KILLER_PRIORITY = 100
FOLLOW_PRIORITY = 10
COUNTER_PRIORITY = 10

# Largest gain a capture of each piece type can bring, for delta pruning.
DELTAS = (0, 0, 1300, 700, 450, 400, 150)

MAX_PLY = 255
MAX_DEPTH = 100
ASPIRATION = 20
QSEARCH_WARNING = 200
NO_MOVE = Move(0, 0)

# Quiet-move history, indexed by moving piece and target square; kept between searches.
HISTORY: list[list[int]] = [[0] * 128 for _ in range(13)]


class SearchTimeout(Exception):
    """Raised inside the search when the hard time limit has passed."""


def _div(value: int, divisor: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(value) // abs(divisor)
    return quotient if (value >= 0) == (divisor > 0) else -quotient


def _cutoff(entry: TTEntry, alpha: int, beta: int) -> bool:
    return (
        entry.bound == Bound.EXACT
        or (entry.bound == Bound.LOWER and entry.score >= beta)
        or (entry.bound == Bound.UPPER and entry.score <= alpha)
    )


def _select(moves: list[Move], priorities: list[int], i: int) -> Move:
    """Swap the highest-priority remaining move into slot ``i`` and return it."""
    best = max(range(i, len(moves)), key=priorities.__getitem__)
    if priorities[best] <= 0:
        best = 0
    moves[i], moves[best] = moves[best], moves[i]
    priorities[i], priorities[best] = priorities[best], priorities[i]
    return moves[i]


class Searcher:
    """State of one search: counters, repetition stack and ordering tables."""

    def __init__(
        self,
        table: TranspositionTable,
        evaluate: Callable[[Board], int],
        time_alloc: int,
        prev_hashes: Iterable[int] = (),
        out: Optional[TextIO] = None,
    ):
        self.table = table
        self.evaluate = evaluate
        self.time_alloc = time_alloc
        self.prev_hashes = list(prev_hashes)
        self.out = out if out is not None else sys.stdout
        self.nodes = 0
        self.qnodes = 0
        self.move_stack = [NO_MOVE] * MAX_PLY
        self.repetition = [0] * MAX_PLY
        self.killers = [NO_MOVE] * MAX_PLY
        self.follow_table: dict[Move, Move] = {}
        self.counter_table: dict[Move, Move] = {}
        self.start_time = time.monotonic()

    def push(self, key: int, ply: int) -> None:
        self.repetition[ply] = key

    def is_repetition(self, key: int, ply: int) -> bool:
        """Whether ``key`` occurred earlier in this line or in the game history."""
        if ply == 0:
            return False
        if key in self.repetition[:ply]:
            return True
        # The first game-history entry is the root position itself.
        return key in self.prev_hashes[1:]

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    def out_of_time(self, in_search: bool = True) -> bool:
        """Hard limit inside the search (checked every 1024 nodes), soft limit between depths."""
        if in_search and self.nodes % 1024 != 0:
            return False
        if not in_search:
            return self.elapsed_ms() > _div(self.time_alloc, 10)
        return self.elapsed_ms() > self.time_alloc

    def qsearch(self, board: Board, alpha: int, beta: int) -> int:
        """Search captures only until the position is quiet."""
        self.qnodes += 1
        key = board.get_hash()
        self.push(key, board.ply)

        entry = self.table.get(key)
        if entry is not None and _cutoff(entry, alpha, beta):
            return entry.score

        standpat = self.evaluate(board)
        best_score = standpat
        if best_score >= beta:
            return best_score
        alpha = max(alpha, standpat)

        squares = board.squares
        moves = board.generate_moves(True)
        priorities = [
            (16 - squares[m.end]) * 128 - (16 - squares[m.start]) + 16 for m in moves
        ]

        best_move = NULLMOVE
        for i in range(len(moves)):
            move = _select(moves, priorities, i)
            kind = squares[move.end]
            if kind > 6:
                kind -= 6
            if standpat + DELTAS[kind] <= alpha:
                break

            following = apply(board, move)
            if following is None:
                continue
            score = -self.qsearch(following, -beta, -alpha)

            if score > best_score:
                best_score = score
                best_move = move
            if score > alpha:
                alpha = score
                if score >= beta:
                    break

        bound = Bound.LOWER if best_score >= beta else Bound.EXACT
        self.table.set(key, best_move, 0, best_score, bound)
        return best_score

    def alphabeta(self, board: Board, alpha: int, beta: int, depth: int) -> int:
        """Principal variation search returning the score for the side to move."""
        if depth <= 0:
            before = self.qnodes
            score = self.qsearch(board, alpha, beta)
            spent = self.qnodes - before
            if spent > QSEARCH_WARNING:
                print(f"SCREAM {spent}", file=self.out)
                self.out.write(board.render())
            return score

        self.nodes += 1
        pv = beta > alpha + 1
        ply = board.ply

        key = board.get_hash()
        if self.is_repetition(key, ply):
            return DRAW_SCORE
        self.push(key, ply)

        entry = self.table.get(key)
        if entry is None and depth > 3 and not pv:
            depth -= 1 + depth // 8

        table_move = NO_MOVE
        if entry is not None:
            table_move = entry.move
            if depth <= entry.depth and _cutoff(entry, alpha, beta):
                return entry.score

        moves = board.generate_moves()
        static = self.evaluate(board)

        if static > beta and not pv and not board.in_check:
            margin = 75 * depth
            if depth <= 8 and static - margin >= beta:
                return static - margin
            if depth > 4:
                null_board = apply(board, NULLMOVE)
                if null_board is not None:
                    reduced = _div(depth * 100 + (beta - static), 186) - 1
                    score = -self.alphabeta(null_board, -beta, -alpha, reduced)
                    if score >= beta:
                        return score

        squares = board.squares
        killer = self.killers[ply]
        counter = follow = NO_MOVE
        if ply > 0:
            counter = self.counter_table.get(self.move_stack[ply - 1], NO_MOVE)
        if ply > 1:
            follow = self.follow_table.get(self.move_stack[ply - 2], NO_MOVE)

        def priority(move: Move) -> int:
            value = (16 - squares[move.end]) * 128 - (16 - squares[move.start]) + CAPTURE_PRIORITY
            value += HISTORY[squares[move.start]][move.end]
            if move == table_move:
                value = TABLEMOVE_PRIORITY
            if move == killer:
                value += KILLER_PRIORITY
            if move == counter:
                value += COUNTER_PRIORITY
            if move == follow:
                value += FOLLOW_PRIORITY
            return value

        priorities = [priority(m) for m in moves]

        legals = 0
        quiets_left = 100 if pv else depth * depth + 3
        best_score = -20000
        best_move = NO_MOVE
        raised_alpha = False

        for i in range(len(moves)):
            if self.out_of_time():
                raise SearchTimeout

            move = _select(moves, priorities, i)
            self.move_stack[ply] = move

            following = apply(board, move)
            if following is None:
                continue

            next_depth = depth if board.in_check else depth - 1
            if legals == 0:
                score = -self.alphabeta(following, -beta, -alpha, next_depth)
            else:
                reduction = _div(legals * 93 + depth * 144, 1000) + _div(
                    HISTORY[squares[move.start]][move.end], 172
                )
                if squares[move.end] != EMPTY or reduction < 0:
                    reduction = 0
                score = -self.alphabeta(following, -alpha - 1, -alpha, next_depth - reduction)
                if score > alpha and reduction > 0:
                    score = -self.alphabeta(following, -alpha - 1, -alpha, next_depth)
                if score > alpha and pv:
                    score = -self.alphabeta(following, -beta, -alpha, next_depth)
            legals += 1

            if score > best_score:
                best_score = score
                best_move = move
                if score > alpha:
                    raised_alpha = True
                    alpha = score
                    if score >= beta:
                        if squares[move.end] == EMPTY:
                            self._reward(board, moves, i, depth, static, alpha)
                        break

            if not pv and squares[move.end] != EMPTY:
                quiets_left -= 1
                if quiets_left <= 0:
                    break
                if depth <= 8 and static + 110 * depth < alpha:
                    break

        if legals == 0:
            return -MATE_SCORE + ply if board.in_check else DRAW_SCORE

        bound = Bound.EXACT
        if not raised_alpha:
            bound = Bound.UPPER
        if best_score >= beta:
            bound = Bound.LOWER
        self.table.set(key, best_move, depth, best_score, bound)
        return best_score

    def _reward(
        self, board: Board, moves: list[Move], i: int, depth: int, static: int, alpha: int
    ) -> None:
        """Update killer, counter, follow-up and history tables after a quiet cutoff."""
        ply = board.ply
        squares = board.squares
        move = moves[i]
        self.killers[ply] = move
        if ply > 0:
            self.counter_table[self.move_stack[ply - 1]] = move
        if ply > 1:
            self.follow_table[self.move_stack[ply - 2]] = move

        update = -(depth + 1) if static < alpha else depth
        row = HISTORY[squares[move.start]]
        row[move.end] += update - _div(update * row[move.end], 512)
        for earlier in moves[:i]:
            if squares[earlier.end] == EMPTY:
                row = HISTORY[squares[earlier.start]]
                row[earlier.end] -= update + _div(update * row[earlier.end], 512)


def iterative_search(
    board: Board,
    search_time: int,
    prev_hashes: Iterable[int],
    table: TranspositionTable,
    evaluate: Callable[[Board], int],
    out: Optional[TextIO] = None,
) -> Move:
    """Deepen the search until time runs out, report progress and the best move."""
    out = out if out is not None else sys.stdout
    searcher = Searcher(table, evaluate, search_time, prev_hashes, out)

    entry = table.get(board.get_hash())
    last_score = entry.score if entry is not None else 0
    chosen = NO_MOVE

    for depth in range(1, MAX_DEPTH):
        low, high = last_score - ASPIRATION, last_score + ASPIRATION
        try:
            score = searcher.alphabeta(board, low, high, depth)
            if score <= low or high <= score:
                score = searcher.alphabeta(board, -MATE_SCORE, MATE_SCORE, depth)
        except SearchTimeout:
            break

        line = "".join(f" {move.uci()}" for move in table.principal_variation(board))
        print(
            f"info depth {depth} score cp {score} time {searcher.elapsed_ms() + 1} "
            f"nodes {searcher.nodes + searcher.qnodes} pv{line}",
            file=out,
            flush=True,
        )

        entry = table.get(board.get_hash())
        if entry is not None:
            chosen = entry.move
        if searcher.out_of_time(False):
            break

    print(f"bestmove {chosen.uci()}", file=out, flush=True)
    return chosen