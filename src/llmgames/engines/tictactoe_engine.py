"""
Tic-tac-toe engine (3x3, X moves first).

Moves are Cell(row, col) values; "row,col" strings, [row, col] sequences and
{"row", "col"} mappings are coerced. The rules are small enough to live here.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple

from ..errors import InvalidMove
from .base import NOT_OVER, GameEnd

SIZE = 3
CELL_RE = re.compile(r"^\(?\s*(\d+)\s*,\s*(\d+)\s*\)?$")

Board = Tuple[Tuple[Optional[str], ...], ...]

LINES: Tuple[Tuple[Tuple[int, int], ...], ...] = (
    # rows
    ((0, 0), (0, 1), (0, 2)),
    ((1, 0), (1, 1), (1, 2)),
    ((2, 0), (2, 1), (2, 2)),
    # columns
    ((0, 0), (1, 0), (2, 0)),
    ((0, 1), (1, 1), (2, 1)),
    ((0, 2), (1, 2), (2, 2)),
    # diagonals
    ((0, 0), (1, 1), (2, 2)),
    ((0, 2), (1, 1), (2, 0)),
)
CORNERS = ((0, 0), (0, 2), (2, 0), (2, 2))
EDGES = ((0, 1), (1, 0), (1, 2), (2, 1))
CENTER = (1, 1)


class Cell(NamedTuple):
    row: int
    col: int

    def __str__(self) -> str:
        return f"{self.row},{self.col}"


@dataclass(frozen=True)
class TicTacToeState:
    board: Board = ((None,) * SIZE,) * SIZE
    current: str = "x"
    last_move: Optional[Cell] = None
    move_count: int = 0


def coerce_cell(move: Any) -> Optional[Cell]:
    """Best-effort conversion of a client/model move into a Cell; None if malformed."""
    row = col = None
    if isinstance(move, str):
        m = CELL_RE.match(move.strip())
        if not m:
            return None
        row, col = int(m.group(1)), int(m.group(2))
    elif isinstance(move, Mapping):
        row, col = move.get("row"), move.get("col")
    elif isinstance(move, (list, tuple)) and len(move) == 2:
        row, col = move[0], move[1]
    if type(row) is not int or type(col) is not int:
        return None
    if not (0 <= row < SIZE and 0 <= col < SIZE):
        return None
    return Cell(row, col)


def winner_of(board: Board) -> Optional[str]:
    for line in LINES:
        first = board[line[0][0]][line[0][1]]
        if first and all(board[r][c] == first for r, c in line):
            return first
    return None


def is_full(board: Board) -> bool:
    return all(cell is not None for row in board for cell in row)


def empty_cells(board: Board) -> List[Cell]:
    return [Cell(r, c) for r in range(SIZE) for c in range(SIZE) if board[r][c] is None]


def _place(board: Board, cell: Cell, symbol: str) -> Board:
    return tuple(
        tuple(symbol if (r, c) == (cell.row, cell.col) else board[r][c] for c in range(SIZE))
        for r in range(SIZE)
    )


class TicTacToeEngine:
    game_type = "tictactoe"
    sides = ("x", "o")

    def initial_state(self) -> TicTacToeState:
        return TicTacToeState()

    def current_side(self, state: TicTacToeState) -> str:
        return state.current

    def opponent(self, side: str) -> str:
        return "o" if side == "x" else "x"

    def validate_move(self, state: TicTacToeState, move: Any, side: str) -> bool:
        if side != state.current or self.check_end(state).is_over:
            return False
        cell = coerce_cell(move)
        return cell is not None and state.board[cell.row][cell.col] is None

    def apply_move(self, state: TicTacToeState, move: Any, side: str) -> TicTacToeState:
        if not self.validate_move(state, move, side):
            raise InvalidMove(f"Illegal tic-tac-toe move for {side}: {move!r}")
        cell = coerce_cell(move)
        return TicTacToeState(
            board=_place(state.board, cell, state.current),
            current=self.opponent(state.current),
            last_move=cell,
            move_count=state.move_count + 1,
        )

    def legal_moves(self, state: TicTacToeState, side: str) -> List[Cell]:
        if side != state.current or self.check_end(state).is_over:
            return []
        return empty_cells(state.board)

    def check_end(self, state: TicTacToeState) -> GameEnd:
        winner = winner_of(state.board)
        if winner:
            return GameEnd(is_over=True, winner=winner, reason="win")
        if is_full(state.board):
            return GameEnd(is_over=True, winner=None, reason="draw")
        return NOT_OVER

    def describe_move(self, state: TicTacToeState, move: Any) -> str:
        cell = coerce_cell(move)
        return str(cell) if cell is not None else str(move)

    def to_dict(self, state: TicTacToeState) -> Dict[str, Any]:
        last = state.last_move
        return {
            "board": [list(row) for row in state.board],
            "current_player": state.current,
            "last_move": {"row": last.row, "col": last.col} if last else None,
            "move_count": state.move_count,
        }

    def metadata(self) -> Dict[str, Any]:
        return {
            "type": self.game_type,
            "name": "Tic-tac-toe",
            "description": "Classic 3x3 tic-tac-toe",
            "min_players": 2,
            "max_players": 2,
            "estimated_duration": "1-5 minutes",
            "sides": list(self.sides),
        }

    # ---------------- Position analysis -----------------
    def winning_cells(self, state: TicTacToeState, side: str) -> List[Cell]:
        """Empty cells that would complete a line for `side` immediately."""
        return [cell for cell in empty_cells(state.board) if winner_of(_place(state.board, cell, side)) == side]

    def free_corners(self, state: TicTacToeState) -> List[Cell]:
        return [Cell(r, c) for r, c in CORNERS if state.board[r][c] is None]

    def free_edges(self, state: TicTacToeState) -> List[Cell]:
        return [Cell(r, c) for r, c in EDGES if state.board[r][c] is None]

    def center_owner(self, state: TicTacToeState) -> Optional[str]:
        return state.board[CENTER[0]][CENTER[1]]
