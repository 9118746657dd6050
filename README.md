# calico

A chess engine that speaks the UCI protocol. It uses a 0x88 board
representation, an alpha-beta (principal variation) search with
quiescence, a transposition table, and a HalfKP NNUE evaluation network
computed with numpy.

## Installation

```
pip install .
```

## Running the engine

```
calico [--network FILE] [--log FILE]
```

- `--network` names the NNUE network file (default `nn-04cf2b4ed1da.nnue`
  in the current directory). If the file is missing or is not a supported
  network, the engine prints `NNUE file not found!` and carries on with an
  evaluation that scores every position as 0.
- `--log` names a file that records every input line (default
  `inputlog.txt`). It is overwritten on each start.

The engine reads UCI commands from standard input until `quit` or the end
of input, and writes replies to standard output:

```
uci
isready
position startpos moves e2e4 e7e5
go movetime 1000
quit
```

Supported commands:

- `uci`, `isready`, `quit`
- `position startpos [moves ...]` and `position fen <fen> [moves ...]`
- `go wtime <ms> btime <ms>`: searches for a quarter of the side to move's clock
- `go movetime <ms>`: searches for the given time; plain `go` searches for one second
- `print`: shows the current board (an `x` marks the en passant square) and its hash
- `perft <depth>`: counts leaf nodes to the given depth and reports the time taken
- `prev`: lists the hashes of up to 16 recent positions kept for repetition detection

During a search the engine prints `info depth ... score cp ... time ...
nodes ... pv ...` after each completed depth and ends with `bestmove`.
A malformed or illegal move in a `position` command is reported as an
`info string` line.

## What it does not do

- Pawns always promote to a queen; under-promotions are not generated.
- The advertised `ScreamIntoVoid` option is accepted by GUIs but ignored;
  `setoption`, `ucinewgame`, `stop` and `ponder` are not handled.
- There is no fifty-move rule; draws are found only by repetition and
  stalemate.
- Zobrist keys are drawn at random on each start, so hashes shown by
  `print` and `prev` differ between runs (use `calico.zobrist.init_zobrists(seed)`
  for repeatable keys when using the library).

## Evaluation network

`calico.weights.NetworkWeights` reads a HalfKP network file (format version
`0x7AF32F16`, 21,022,697 bytes) and checks its header; a file that fails
the checks raises `calico.weights.NetworkError`. `calico.network.Network`
runs the forward pass:

```python
from calico.network import Network

net = Network.load("nn-04cf2b4ed1da.nnue")
print(net.evaluate_fen("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"))
```

`calico.evaluate.Evaluator` wraps a `Network` and evaluates `Board`
objects, reusing the accumulators of earlier plies where it can.
`calico.fen.decode_fen` turns a FEN string into the piece lists the
network takes.

## Using the library

```python
from calico.board import new_board, perft, apply_move_str

board = new_board()
print(perft(board, 3))          # 8902
board = apply_move_str(board, "e2e4")
print(board.render())
```

A search can be run directly:

```python
from calico.board import new_board
from calico.search import iterative_search
from calico.table import TranspositionTable

move = iterative_search(new_board(), 500, [], TranspositionTable(1 << 16), lambda b: 0)
print(move.uci())
```

`calico.uci.UciEngine` handles single command lines via `handle(line)`,
which returns `False` after `quit`.

## Tests

```
pip install .[test]
pytest
```