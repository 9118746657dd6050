import io

import pytest

from calico.board import (
    BISHOP,
    EMPTY,
    KING,
    KNIGHT,
    PAWN,
    QUEEN,
    ROOK,
    Move,
    apply,
    new_board,
    str_to_square,
)
from calico.search import (
    DRAW_SCORE,
    MATE_SCORE,
    Searcher,
    SearchTimeout,
    iterative_search,
)
from calico.table import Bound, TranspositionTable

VALUES = {PAWN: 100, KNIGHT: 320, BISHOP: 330, ROOK: 500, QUEEN: 900, KING: 0}


def material(board):
    total = 0
    for piece in board.squares:
        if piece == EMPTY:
            continue
        kind = piece - 6 if piece > 6 else piece
        total += VALUES[kind] if piece <= 6 else -VALUES[kind]
    return total if board.white_to_move else -total


def make_searcher(evaluate=material, time_alloc=10_000, prev=()):
    return Searcher(TranspositionTable(1 << 16), evaluate, time_alloc, prev, io.StringIO())


def test_repetition_ignores_root_ply():
    searcher = make_searcher()
    searcher.push(42, 0)
    assert searcher.is_repetition(42, 0) is False
    assert searcher.is_repetition(42, 1) is True
    assert searcher.is_repetition(43, 1) is False


def test_repetition_skips_first_history_entry():
    searcher = make_searcher(prev=[7, 8])
    assert searcher.is_repetition(7, 1) is False
    assert searcher.is_repetition(8, 1) is True


def test_out_of_time_only_checks_every_1024_nodes():
    searcher = make_searcher(time_alloc=-1)
    searcher.nodes = 5
    assert searcher.out_of_time() is False
    searcher.nodes = 1024
    assert searcher.out_of_time() is True
    assert searcher.out_of_time(False) is True


def test_out_of_time_false_with_large_budget():
    searcher = make_searcher(time_alloc=10_000_000)
    assert searcher.out_of_time(False) is False


def test_qsearch_stand_pat_cutoff():
    searcher = make_searcher(evaluate=lambda board: 50)
    board = new_board()
    assert searcher.qsearch(board, -100, 10) == 50
    assert searcher.qnodes == 1
    assert searcher.table.get(board.get_hash()) is None


def test_qsearch_takes_hanging_queen():
    board = new_board("4k3/8/8/3q4/4P3/8/8/4K3 w - - 0 1")
    capture = Move(str_to_square("e4"), str_to_square("d5"))
    searcher = make_searcher()
    score = searcher.qsearch(board, -MATE_SCORE, MATE_SCORE)
    assert score == -material(apply(board, capture))
    entry = searcher.table.get(board.get_hash())
    assert entry.move == capture
    assert entry.bound == Bound.EXACT


def test_alphabeta_checkmated_side():
    board = new_board("R5k1/5ppp/8/8/8/8/8/6K1 b - - 0 1")
    searcher = make_searcher()
    assert searcher.alphabeta(board, -MATE_SCORE, MATE_SCORE, 1) == -MATE_SCORE


def test_alphabeta_stalemate_is_draw():
    board = new_board("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
    searcher = make_searcher()
    assert searcher.alphabeta(board, -MATE_SCORE, MATE_SCORE, 1) == DRAW_SCORE


def test_alphabeta_repetition_is_draw():
    board = new_board("4k3/8/8/8/8/8/8/Q3K3 w - - 0 1")
    board.ply = 1
    fresh = make_searcher()
    assert fresh.alphabeta(board, -MATE_SCORE, MATE_SCORE, 1) > 0
    repeated = make_searcher(prev=[0, board.get_hash()])
    assert repeated.alphabeta(board, -MATE_SCORE, MATE_SCORE, 1) == DRAW_SCORE


def test_alphabeta_raises_on_timeout():
    searcher = make_searcher(time_alloc=-1)
    searcher.nodes = 1023
    with pytest.raises(SearchTimeout):
        searcher.alphabeta(new_board(), -MATE_SCORE, MATE_SCORE, 2)


def test_iterative_search_finds_back_rank_mate():
    board = new_board("6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1")
    out = io.StringIO()
    move = iterative_search(board, 2000, [], TranspositionTable(1 << 16), material, out)
    assert move == Move(str_to_square("a1"), str_to_square("a8"))
    lines = out.getvalue().splitlines()
    assert lines[0].startswith("info depth 1 ")
    assert lines[-1] == "bestmove a1a8"
    assert f"score cp {MATE_SCORE - 1}" in out.getvalue()


def test_iterative_search_move_is_legal():
    board = new_board()
    out = io.StringIO()
    move = iterative_search(board, 100, [], TranspositionTable(1 << 16), lambda b: 0, out)
    assert move in board.generate_moves()
    assert apply(board, move) is not None
    assert out.getvalue().splitlines()[-1] == f"bestmove {move.uci()}"