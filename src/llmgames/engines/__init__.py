from __future__ import annotations

from .base import NOT_OVER, GameEnd, GameEngine
from .chess_engine import ChessEngine, ChessState
from .tictactoe_engine import Cell, TicTacToeEngine, TicTacToeState, coerce_cell

__all__ = [
    "GameEnd",
    "GameEngine",
    "NOT_OVER",
    "ChessEngine",
    "ChessState",
    "Cell",
    "TicTacToeEngine",
    "TicTacToeState",
    "coerce_cell",
]
