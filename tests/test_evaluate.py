import numpy as np
import pytest

from calico.board import apply_move_str, new_board, str_to_square
from calico.evaluate import Evaluator, to_nnue_square
from calico.features import FT_IN_DIMS, FT_OUT_DIMS, HALF_DIMENSIONS
from calico.network import Network
from calico.weights import NetworkWeights

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
AFTER_D4_FEN = "rnbqkbnr/pppppppp/8/8/3P4/8/PPP1PPPP/RNBQKBNR b KQkq - 0 1"
MIDGAME = "r1bqk2r/pppp1ppp/2n2n2/2b1p3/2B1P3/5N2/PPPP1PPP/RNBQ1RK1 w kq - 4 5"


@pytest.fixture(scope="module")
def network():
    rng = np.random.default_rng(99)
    return Network(
        NetworkWeights(
            ft_biases=rng.integers(0, 60, HALF_DIMENSIONS, dtype=np.int16),
            ft_weights=rng.integers(-20, 20, (FT_IN_DIMS, HALF_DIMENSIONS), dtype=np.int16),
            hidden1_biases=rng.integers(-500, 2000, 32, dtype=np.int32),
            hidden1_weights=rng.integers(-30, 30, (32, FT_OUT_DIMS), dtype=np.int8),
            hidden2_biases=rng.integers(-500, 2000, 32, dtype=np.int32),
            hidden2_weights=rng.integers(-30, 30, (32, 32), dtype=np.int8),
            output_biases=np.array([rng.integers(-1000, 1000)], dtype=np.int32),
            output_weights=rng.integers(-60, 60, 32, dtype=np.int8),
        )
    )


def test_to_nnue_square_corners():
    assert to_nnue_square(str_to_square("a1")) == 0
    assert to_nnue_square(str_to_square("h8")) == 63


def test_to_nnue_square_off_board():
    assert to_nnue_square(127) == 64
    assert to_nnue_square(8) == 64


def test_to_nnue_square_rejects_out_of_range():
    with pytest.raises(ValueError):
        to_nnue_square(-1)


def test_start_position_matches_fen(network):
    assert Evaluator(network).evaluate(new_board()) == network.evaluate_fen(START_FEN)


def test_midgame_position_matches_fen(network):
    board = new_board(MIDGAME)
    assert Evaluator(network).evaluate(board) == network.evaluate_fen(MIDGAME)


def test_incremental_game_matches_fresh_evaluation(network):
    moves = ["e2e4", "e7e5", "g1f3", "b8c6", "f1c4", "g8f6", "e1g1", "f6e4", "f3e5", "c6e5"]
    evaluator = Evaluator(network)
    board = new_board()
    assert evaluator.evaluate(board) == Evaluator(network).evaluate(board)
    for text in moves:
        board = apply_move_str(board, text)
        assert board is not None
        incremental = evaluator.evaluate(board)
        assert incremental == Evaluator(network).evaluate(board)


def test_evaluation_is_repeatable(network):
    evaluator = Evaluator(network)
    board = apply_move_str(new_board(), "d2d4")
    expected = network.evaluate_fen(AFTER_D4_FEN)
    assert evaluator.evaluate(board) == expected
    assert evaluator.evaluate(board) == expected


def test_ply_beyond_stack_raises(network):
    board = new_board()
    board.ply = 300
    with pytest.raises(IndexError):
        Evaluator(network).evaluate(board)