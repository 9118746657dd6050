import numpy as np
import pytest

from calico.board import DirtyPiece, str_to_square
from calico.features import FT_IN_DIMS, FT_OUT_DIMS, HALF_DIMENSIONS, NNUEData
from calico.fen import decode_fen
from calico.network import Network, affine_transform, clip_accumulation
from calico.weights import NetworkError, NetworkWeights

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
AFTER_KE2 = "rnbqkbnr/pppppppp/8/8/8/8/PPPPKPPP/RNBQ1BNR b kq - 0 1"
BEFORE_KE2 = "rnbqkbnr/pppppppp/8/8/8/8/PPPP1PPP/RNBQKBNR w KQkq - 0 1"
MIDGAME = "r1bqk2r/pppp1ppp/2n2n2/2b1p3/2B1P3/5N2/PPPP1PPP/RNBQ1RK1 w kq - 4 5"


def _weights(rng=None, output_bias=0):
    if rng is None:
        return NetworkWeights(
            ft_biases=np.zeros(HALF_DIMENSIONS, dtype=np.int16),
            ft_weights=np.zeros((FT_IN_DIMS, HALF_DIMENSIONS), dtype=np.int16),
            hidden1_biases=np.zeros(32, dtype=np.int32),
            hidden1_weights=np.zeros((32, FT_OUT_DIMS), dtype=np.int8),
            hidden2_biases=np.zeros(32, dtype=np.int32),
            hidden2_weights=np.zeros((32, 32), dtype=np.int8),
            output_biases=np.array([output_bias], dtype=np.int32),
            output_weights=np.zeros(32, dtype=np.int8),
        )
    return NetworkWeights(
        ft_biases=rng.integers(0, 60, HALF_DIMENSIONS, dtype=np.int16),
        ft_weights=rng.integers(-20, 20, (FT_IN_DIMS, HALF_DIMENSIONS), dtype=np.int16),
        hidden1_biases=rng.integers(-500, 2000, 32, dtype=np.int32),
        hidden1_weights=rng.integers(-30, 30, (32, FT_OUT_DIMS), dtype=np.int8),
        hidden2_biases=rng.integers(-500, 2000, 32, dtype=np.int32),
        hidden2_weights=rng.integers(-30, 30, (32, 32), dtype=np.int8),
        output_biases=np.array([rng.integers(-1000, 1000)], dtype=np.int32),
        output_weights=rng.integers(-60, 60, 32, dtype=np.int8),
    )


@pytest.fixture(scope="module")
def network():
    return Network(_weights(np.random.default_rng(1234)))


def _mirror(decoded):
    pieces = [1, 7]
    squares = [decoded.squares[1] ^ 0x3F, decoded.squares[0] ^ 0x3F]
    for piece, square in zip(decoded.pieces[2:], decoded.squares[2:]):
        pieces.append(piece + 6 if piece <= 6 else piece - 6)
        squares.append(square ^ 0x3F)
    return 1 - decoded.player, pieces, squares


def test_affine_transform_shifts_and_clips():
    out = affine_transform([0, 0], [64 * 3, -100, 64 * 200], np.zeros((3, 2)))
    assert out.tolist() == [3, 0, 127]


def test_affine_transform_output_range(network):
    rng = np.random.default_rng(7)
    inputs = rng.integers(0, 128, FT_OUT_DIMS)
    w = network.weights
    out = affine_transform(inputs, w.hidden1_biases, w.hidden1_weights)
    assert out.shape == (32,)
    assert out.min() >= 0 and out.max() <= 127


def test_clip_accumulation_orders_side_to_move_first():
    acc = np.array([[-5, 50, 300], [7, 200, -1]])
    assert clip_accumulation(acc, 0).tolist() == [0, 50, 127, 7, 127, 0]
    assert clip_accumulation(acc, 1).tolist() == [7, 127, 0, 0, 50, 127]


def test_zero_network_returns_scaled_output_bias():
    assert Network(_weights(output_bias=160)).evaluate_fen(START_FEN) == 10


def test_negative_output_truncates_toward_zero():
    assert Network(_weights(output_bias=-170)).evaluate_fen(START_FEN) == -10


def test_evaluate_fen_matches_piece_list(network):
    decoded = decode_fen(MIDGAME)
    assert network.evaluate_fen(MIDGAME) == network.evaluate(
        decoded.player, decoded.pieces, decoded.squares
    )


def test_mirrored_position_scores_the_same(network):
    decoded = decode_fen(MIDGAME)
    player, pieces, squares = _mirror(decoded)
    assert network.evaluate(player, pieces, squares) == network.evaluate_fen(MIDGAME)


def _incremental(network, before_fen, after_fen, frm, to, piece):
    before = decode_fen(before_fen)
    parent = NNUEData()
    network.evaluate_incremental(before.player, before.pieces, before.squares, (parent,))
    assert parent.accumulator.computed

    child = NNUEData()
    child.dirty = DirtyPiece()
    child.dirty.record(str_to_square(frm), str_to_square(to), piece, 0)
    after = decode_fen(after_fen)
    return network.evaluate_incremental(
        after.player, after.pieces, after.squares, (child, parent, None)
    ), child


def test_incremental_pawn_move_matches_full(network):
    score, child = _incremental(network, START_FEN, AFTER_E4, "e2", "e4", 6)
    assert score == network.evaluate_fen(AFTER_E4)
    full = NNUEData()
    decoded = decode_fen(AFTER_E4)
    network.evaluate_incremental(decoded.player, decoded.pieces, decoded.squares, (full,))
    assert np.array_equal(child.accumulator.accumulation, full.accumulator.accumulation)


def test_incremental_king_move_resets(network):
    score, _ = _incremental(network, BEFORE_KE2, AFTER_KE2, "e1", "e2", 1)
    assert score == network.evaluate_fen(AFTER_KE2)


def test_repeated_incremental_evaluation_is_stable(network):
    decoded = decode_fen(MIDGAME)
    data = NNUEData()
    first = network.evaluate_incremental(decoded.player, decoded.pieces, decoded.squares, [data])
    second = network.evaluate_incremental(decoded.player, decoded.pieces, decoded.squares, [data])
    assert first == second == network.evaluate_fen(MIDGAME)


def test_incremental_requires_current_data(network):
    decoded = decode_fen(START_FEN)
    with pytest.raises(ValueError):
        network.evaluate_incremental(decoded.player, decoded.pieces, decoded.squares, (None,))


def test_load_missing_file(tmp_path):
    with pytest.raises(NetworkError):
        Network.load(tmp_path / "missing.nnue")