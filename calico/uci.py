"""Command loop speaking the UCI protocol."""

from __future__ import annotations

import argparse
import re
import sys
import time
from typing import Callable, Optional, TextIO

from .board import Board, apply_move_str, after_word, before_word, new_board, perft
from .evaluate import Evaluator
from .network import Network
from .search import iterative_search
from .table import TranspositionTable
from .weights import NetworkError
from .zobrist import init_zobrists

DEFAULT_NETWORK = "nn-04cf2b4ed1da.nnue"
DEFAULT_LOG = "inputlog.txt"
MAX_HISTORY = 16
DEFAULT_MOVE_TIME = 1000

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _stoi(text: str) -> int:
    """Parse the integer at the start of ``text``."""
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(f"no integer in {text!r}")
    return int(match.group(1))


def _null_evaluate(board: Board) -> int:
    return 0


class UciEngine:
    """Holds the current position and answers UCI commands."""

    def __init__(
        self,
        evaluate: Callable[[Board], int],
        out: Optional[TextIO] = None,
        table: Optional[TranspositionTable] = None,
    ):
        self.evaluate = evaluate
        self.out = out if out is not None else sys.stdout
        self.table = table if table is not None else TranspositionTable()
        self.board = new_board()
        self.prev_positions: list[int] = []
        self._commands = {
            "uci": self._uci,
            "isready": self._isready,
            "print": self._print,
            "perft": self._perft,
            "position": self._position,
            "go": self._go,
            "prev": self._prev,
        }

    def _say(self, text: str) -> None:
        print(text, file=self.out, flush=True)

    def handle(self, line: str) -> bool:
        """Run one command line; False means the engine should stop."""
        command = before_word(line, " ")
        arguments = after_word(line, " ")
        if command == "quit":
            return False
        action = self._commands.get(command)
        if action is not None:
            action(arguments)
        return True

    def unroll_moves(self, board: Board, moves: str) -> list[int]:
        """Play ``moves`` from ``board``; returns recent position hashes, newest first."""
        hashes: list[int] = []
        current = board
        for text in moves.split():
            following = apply_move_str(current, text)
            if following is None:
                raise ValueError(f"illegal or malformed move: {text!r}")
            following.ply = 0
            hashes.append(following.get_hash())
            current = following
        self.board = current
        hashes.reverse()
        return hashes[:MAX_HISTORY]

    def _uci(self, arguments: str) -> None:
        self._say("id name Calico")
        self._say("id author the Calico developers")
        self._say("option name ScreamIntoVoid type string default <empty>")
        self._say("uciok")

    def _isready(self, arguments: str) -> None:
        self._say("readyok")

    def _print(self, arguments: str) -> None:
        self.out.write(self.board.render())
        self.out.flush()

    def _perft(self, arguments: str) -> None:
        started = time.perf_counter()
        self._say(str(perft(self.board, _stoi(arguments))))
        elapsed = int((time.perf_counter() - started) * 1000)
        self._say(f"{elapsed}ms")

    def _position(self, arguments: str) -> None:
        head = before_word(arguments, "moves")
        if head == "startpos":
            board = new_board()
        else:
            board = new_board(after_word(head, " "))
        self.board = board
        self.prev_positions = self.unroll_moves(board, after_word(arguments, "moves"))

    def _go(self, arguments: str) -> None:
        clock = "wtime" if self.board.white_to_move else "btime"
        try:
            total = _stoi(before_word(after_word(arguments, clock), " "))
            budget = int(total / 4)
        except ValueError:
            try:
                budget = _stoi(before_word(after_word(arguments, "movetime"), " "))
            except ValueError:
                budget = DEFAULT_MOVE_TIME
        iterative_search(
            self.board, budget, self.prev_positions, self.table, self.evaluate, self.out
        )

    def _prev(self, arguments: str) -> None:
        for key in self.prev_positions:
            self._say(f"hash{key}")


def main(argv=None) -> int:
    """Read UCI commands from standard input until ``quit`` or end of input."""
    parser = argparse.ArgumentParser(prog="calico", description="UCI chess engine.")
    parser.add_argument("--network", default=DEFAULT_NETWORK, help="NNUE network file")
    parser.add_argument("--log", default=DEFAULT_LOG, help="file recording every input line")
    args = parser.parse_args(argv)

    init_zobrists()
    try:
        evaluate = Evaluator(Network.load(args.network)).evaluate
    except NetworkError:
        print("NNUE file not found!", flush=True)
        evaluate = _null_evaluate

    engine = UciEngine(evaluate)
    with open(args.log, "w", encoding="utf-8") as log:
        for raw in sys.stdin:
            line = raw.rstrip("\r\n")
            log.write(line + "\n")
            log.flush()
            try:
                if not engine.handle(line):
                    break
            except ValueError as exc:
                print(f"info string {exc}", flush=True)
    return 0