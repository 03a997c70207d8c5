"""
Tic-tac-toe prompts. Moves are written "row,col" with rows and columns numbered 0-2.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Sequence

from ..engines.tictactoe_engine import CENTER, SIZE, Cell, TicTacToeEngine, TicTacToeState, coerce_cell
from ..errors import NoLegalMoves, ParseError
from ..prompting import render_custom_prompt
from .base import JsonReplyMixin

MOVE_RE = re.compile(r"^(\d)\s*,\s*(\d)$")

SYMBOLS = {"x": "X", "o": "O", None: "."}

CORNER_NAMES = {(0, 0): "top-left", (0, 2): "top-right", (2, 0): "bottom-left", (2, 2): "bottom-right"}
EDGE_NAMES = {(0, 1): "top", (1, 0): "left", (1, 2): "right", (2, 1): "bottom"}

SYSTEM_INSTRUCTIONS = """You are a tic-tac-toe expert who plays perfectly.
Analyse every position carefully.
Remember: win > block > center > corners > edges.
Always look for forks (two threats at once)."""

ANALYSIS_TEMPLATE = """You are playing tic-tac-toe as {SIDE}. Your opponent is {OPPONENT}.
To move: {TURN}

BOARD
{BOARD}

ANALYSIS
{ANALYSIS}

YOUR STRATEGY
"{STRATEGY}"

PRIORITIES
1. WIN: if you can win in one move, do it.
2. BLOCK: if your opponent can win in one move, block it.
3. CENTER: 1,1 is the strongest cell.
4. CORNERS: 0,0 0,2 2,0 2,2 give the most options.
5. EDGES: least valuable."""

MOVE_SELECTION_TEMPLATE = """AVAILABLE MOVES:
{MOVES}

TACTICS
{TACTICS}

Choose step by step:
1. Can you win in one move?
2. Can your opponent win in one move? Block it.
3. Otherwise take the center if free, then a corner that builds a fork, then an edge.

Moves are written as the string "row,col" (for example "1,1" for the center)."""

ERROR_RECOVERY_TEMPLATE = """CORRECTION NEEDED

Your previous move "{INVALID_MOVE}" was rejected.
Reason: "{ERROR}"

BOARD
{BOARD}

AVAILABLE MOVES:
{MOVES}

Pick a valid move from the list above, written "row,col" (for example "0,0" for the top-left corner)."""


def format_board(board) -> str:
    lines = ["  " + " ".join(str(c) for c in range(SIZE))]
    for r in range(SIZE):
        lines.append(f"{r} " + " ".join(SYMBOLS.get(board[r][c], "?") for c in range(SIZE)))
    return "\n".join(lines)


def position_name(cell: Cell) -> str:
    key = (cell.row, cell.col)
    if key == CENTER:
        return "center (strongest)"
    if key in CORNER_NAMES:
        return f"corner ({CORNER_NAMES[key]})"
    return f"edge ({EDGE_NAMES.get(key, 'unknown')})"


def _cells(cells: Iterable[Cell]) -> str:
    return ", ".join(str(c) for c in cells)


class TicTacToePromptBuilder(JsonReplyMixin):
    game_type = "tictactoe"
    move_hint = "row,col"
    default_strategy = "Take the center, then corners; always block an immediate threat."

    def __init__(self, strategy_max_chars: int | None = None) -> None:
        super().__init__(strategy_max_chars)
        self._engine = TicTacToeEngine()

    def system_instructions(self) -> str:
        return SYSTEM_INSTRUCTIONS

    # Prompts -------------------------------------------------------------
    def build_analysis_prompt(self, state: TicTacToeState, strategy: str, side: str) -> str:
        values = {
            "SIDE": side.upper(),
            "OPPONENT": self._engine.opponent(side).upper(),
            "TURN": state.current.upper(),
            "BOARD": format_board(state.board),
            "ANALYSIS": self._analysis(state, side),
            "STRATEGY": strategy or self.default_strategy,
        }
        return render_custom_prompt(ANALYSIS_TEMPLATE, values)

    def build_move_selection_prompt(
        self, state: TicTacToeState, legal_moves: Sequence[Any], strategy: str, side: str
    ) -> str:
        if not legal_moves:
            raise NoLegalMoves(f"No legal tic-tac-toe moves for {side}")
        values = {
            "MOVES": self._format_moves(legal_moves),
            "TACTICS": self._tactics(state, side, legal_moves),
        }
        return render_custom_prompt(MOVE_SELECTION_TEMPLATE, values) + "\n\n" + self.response_format_instructions()

    def build_error_recovery_prompt(
        self, state: TicTacToeState, invalid_move: Any, error_description: str, legal_moves: Sequence[Any]
    ) -> str:
        values = {
            "INVALID_MOVE": "(no move)" if invalid_move in (None, "") else str(invalid_move),
            "ERROR": error_description,
            "BOARD": format_board(state.board),
            "MOVES": self._format_moves(legal_moves),
        }
        return render_custom_prompt(ERROR_RECOVERY_TEMPLATE, values) + "\n\n" + self.response_format_instructions()

    def normalize_move(self, move: str) -> Cell:
        m = MOVE_RE.match(move.strip().strip('"'))
        if not m:
            raise ParseError(f'move "{move}" is not in "row,col" form')
        row, col = int(m.group(1)), int(m.group(2))
        if not (0 <= row < SIZE and 0 <= col < SIZE):
            raise ParseError(f'move "{move}" is off the board; rows and columns are 0-2')
        return Cell(row, col)

    # Analysis ------------------------------------------------------------
    def _format_moves(self, legal_moves: Sequence[Any]) -> str:
        lines = []
        for move in legal_moves:
            cell = coerce_cell(move)
            if cell is None:
                lines.append(f'"{move}"')
            else:
                lines.append(f'"{cell}" - {position_name(cell)}')
        return "\n".join(lines)

    def _analysis(self, state: TicTacToeState, side: str) -> str:
        eng = self._engine
        opponent = eng.opponent(side)
        lines = []
        wins = eng.winning_cells(state, side)
        if wins:
            lines.append(f"You can win now: {_cells(wins)}")
        threats = eng.winning_cells(state, opponent)
        if threats:
            lines.append(f"Danger, block: {_cells(threats)}")
        owner = eng.center_owner(state)
        if owner == side:
            lines.append("You hold the center.")
        elif owner == opponent:
            lines.append("Your opponent holds the center; play carefully.")
        else:
            lines.append("The center is free.")
        return "\n".join(lines)

    def _tactics(self, state: TicTacToeState, side: str, legal_moves: Sequence[Any]) -> str:
        eng = self._engine
        lines = []
        wins = eng.winning_cells(state, side)
        if wins:
            lines.append(f"WIN IMMEDIATELY: {_cells(wins)}")
        threats = eng.winning_cells(state, eng.opponent(side))
        if threats:
            lines.append(f"BLOCK THE THREAT: {_cells(threats)}")
        if eng.center_owner(state) is None:
            lines.append("Center 1,1 is free")
        legal = {coerce_cell(m) for m in legal_moves}
        corners = [c for c in eng.free_corners(state) if c in legal]
        if corners:
            lines.append(f"Free corners: {_cells(corners)}")
        return "\n".join(lines) or "Pick the best move for your strategy."
