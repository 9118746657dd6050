"""Transposition table keyed by position hash."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .board import Board, Move, apply

DEFAULT_SIZE = 256_000_000 // 16
MAX_PV_LENGTH = 40


class Bound(IntEnum):
    LOWER = -1
    EXACT = 0
    UPPER = 1


@dataclass(frozen=True)
class TTEntry:
    full_hash: int
    score: int
    depth: int
    move: Move
    bound: Bound


class TranspositionTable:
    """Always-replace table with one entry per slot."""

    def __init__(self, size: int = DEFAULT_SIZE):
        if size <= 0:
            raise ValueError("table size must be positive")
        self.size = size
        self._slots: dict[int, TTEntry] = {}

    def get(self, key: int) -> Optional[TTEntry]:
        entry = self._slots.get(key % self.size)
        if entry is not None and entry.full_hash == key:
            return entry
        return None

    def set(self, key: int, move: Move, depth: int, score: int, bound: Bound) -> None:
        self._slots[key % self.size] = TTEntry(key, score, depth, move, Bound(bound))

    def principal_variation(self, board: Board) -> list[Move]:
        """Follow stored best moves from ``board``, at most 41 of them."""
        line: list[Move] = []
        current: Optional[Board] = board
        while current is not None:
            entry = self.get(current.get_hash())
            if entry is None:
                break
            if entry.depth <= 0 and entry.move.start == entry.move.end:
                break
            line.append(entry.move)
            current = apply(current, entry.move)
            if len(line) > MAX_PV_LENGTH:
                break
        return line