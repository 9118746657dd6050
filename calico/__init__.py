"""A UCI chess engine with 0x88 move generation, alpha-beta search and NNUE evaluation."""

__version__ = "0.1.0"