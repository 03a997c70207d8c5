from __future__ import annotations

from .base import JsonReplyMixin, PromptBuilder
from .chess_builder import ChessPromptBuilder
from .tictactoe_builder import TicTacToePromptBuilder

__all__ = ["PromptBuilder", "JsonReplyMixin", "ChessPromptBuilder", "TicTacToePromptBuilder"]
