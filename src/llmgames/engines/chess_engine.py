"""
Chess engine backed by python-chess.

- State is an immutable ChessState: starting FEN plus the UCI move list, so repetition
  and move-count rules see the full game when the board is rebuilt.
- Moves are accepted in SAN ("Nf3", "O-O", "0-0"), UCI ("g1f3", "e7e8q") or as
  {"from", "to", "promotion"} mappings sent by board UIs. legal_moves() returns SAN.
- The game ends at checkmate, stalemate, insufficient material, the fifty-move rule
  or threefold repetition; legal_moves() is empty exactly when check_end() reports it.
- Also exposes the positional analysis the chess prompt builder renders
  (material, phase, king safety, center control, piece placement).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Tuple

import chess

from ..errors import InvalidMove
from .base import NOT_OVER, GameEnd

UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$", re.I)
CASTLE_ZERO = {"0-0": "O-O", "0-0-0": "O-O-O", "o-o": "O-O", "o-o-o": "O-O-O"}

PIECE_VALUES = {chess.PAWN: 1, chess.KNIGHT: 3, chess.BISHOP: 3, chess.ROOK: 5, chess.QUEEN: 9, chess.KING: 0}
CENTER_SQUARES = (chess.D4, chess.D5, chess.E4, chess.E5)
COLORS = {"white": chess.WHITE, "black": chess.BLACK}


@dataclass(frozen=True)
class ChessState:
    start_fen: str = chess.STARTING_FEN
    moves: Tuple[str, ...] = ()


@lru_cache(maxsize=1024)
def _board(state: ChessState) -> chess.Board:
    """Rebuild (and cache) the board for a state. Callers must not mutate the result."""
    board = chess.Board(fen=state.start_fen)
    for uci in state.moves:
        board.push(chess.Move.from_uci(uci))
    return board


def _outcome(board: chess.Board) -> Optional[chess.Outcome]:
    """Board outcome including the fifty-move rule and threefold repetition once reached."""
    outcome = board.outcome()
    if outcome is not None:
        return outcome
    if board.is_fifty_moves():
        return chess.Outcome(chess.Termination.FIFTY_MOVES, None)
    if board.is_repetition(3):
        return chess.Outcome(chess.Termination.THREEFOLD_REPETITION, None)
    return None


def _side_name(color: chess.Color) -> str:
    return "white" if color == chess.WHITE else "black"


def _color(side: Any) -> Optional[chess.Color]:
    return COLORS.get(side) if isinstance(side, str) else None


def _token_from(move: Any) -> Optional[str]:
    if isinstance(move, chess.Move):
        return move.uci()
    if isinstance(move, Mapping):
        src, dst = move.get("from"), move.get("to")
        if not isinstance(src, str) or not isinstance(dst, str):
            return None
        promo = move.get("promotion") or ""
        if not isinstance(promo, str):
            return None
        return f"{src}{dst}{promo}".lower()
    if isinstance(move, str):
        token = move.strip().rstrip("!?")
        return CASTLE_ZERO.get(token.lower(), token)
    return None


class ChessEngine:
    game_type = "chess"
    sides = ("white", "black")

    def __init__(self, starting_fen: str | None = None):
        self.starting_fen = starting_fen or chess.STARTING_FEN

    # ---------------- Contract -----------------
    def initial_state(self) -> ChessState:
        return ChessState(start_fen=self.starting_fen)

    def current_side(self, state: ChessState) -> str:
        return _side_name(_board(state).turn)

    def opponent(self, side: str) -> str:
        return "black" if side == "white" else "white"

    def validate_move(self, state: ChessState, move: Any, side: str) -> bool:
        return self._resolve(state, move, side) is not None

    def apply_move(self, state: ChessState, move: Any, side: str) -> ChessState:
        mv = self._resolve(state, move, side)
        if mv is None:
            raise InvalidMove(f"Illegal chess move for {side}: {move!r}")
        return ChessState(start_fen=state.start_fen, moves=state.moves + (mv.uci(),))

    def legal_moves(self, state: ChessState, side: str) -> List[str]:
        board = _board(state)
        if _color(side) != board.turn or _outcome(board) is not None:
            return []
        return [board.san(mv) for mv in board.legal_moves]

    def check_end(self, state: ChessState) -> GameEnd:
        outcome = _outcome(_board(state))
        if outcome is None:
            return NOT_OVER
        winner = None if outcome.winner is None else _side_name(outcome.winner)
        return GameEnd(is_over=True, winner=winner, reason=outcome.termination.name.lower())

    def describe_move(self, state: ChessState, move: Any) -> str:
        board = _board(state)
        mv = self._resolve(state, move, _side_name(board.turn))
        return board.san(mv) if mv is not None else str(move)

    def to_dict(self, state: ChessState) -> Dict[str, Any]:
        board = _board(state)
        history = self.san_history(state)
        last_move = None
        if board.move_stack:
            mv = board.peek()
            last_move = {
                "from": chess.square_name(mv.from_square),
                "to": chess.square_name(mv.to_square),
                "uci": mv.uci(),
                "san": history[-1],
                "promotion": chess.piece_symbol(mv.promotion) if mv.promotion else None,
            }
        return {
            "fen": board.fen(),
            "turn": _side_name(board.turn),
            "history": history,
            "last_move": last_move,
            "move_number": board.fullmove_number,
            "in_check": board.is_check(),
        }

    def metadata(self) -> Dict[str, Any]:
        return {
            "type": self.game_type,
            "name": "Chess",
            "description": "Classic 8x8 chess",
            "min_players": 2,
            "max_players": 2,
            "estimated_duration": "10-60 minutes",
            "sides": list(self.sides),
        }

    # ---------------- Helpers -----------------
    def _resolve(self, state: ChessState, move: Any, side: str) -> Optional[chess.Move]:
        board = _board(state)
        if _color(side) != board.turn or _outcome(board) is not None:
            return None
        token = _token_from(move)
        if not token:
            return None
        try:
            if UCI_RE.fullmatch(token):
                mv = chess.Move.from_uci(token.lower())
            else:
                mv = board.parse_san(token)
        except ValueError:
            return None
        return mv if mv in board.legal_moves else None

    def san_history(self, state: ChessState) -> List[str]:
        replay = chess.Board(fen=state.start_fen)
        sans: List[str] = []
        for uci in state.moves:
            mv = chess.Move.from_uci(uci)
            sans.append(replay.san(mv))
            replay.push(mv)
        return sans

    def pgn_tail(self, state: ChessState, max_plies: int = 20) -> str:
        """Numbered SAN move list, truncated to the last max_plies."""
        if max_plies <= 0:
            return ""
        replay = chess.Board(fen=state.start_fen)
        parts: List[str] = []
        for uci in state.moves:
            mv = chess.Move.from_uci(uci)
            san = replay.san(mv)
            if replay.turn == chess.WHITE:
                parts.append(f"{replay.fullmove_number}. {san}")
            else:
                parts.append(san)
            replay.push(mv)
        return " ".join(parts[-max_plies:])

    # ---------------- Position analysis -----------------
    def fen(self, state: ChessState) -> str:
        return _board(state).fen()

    def is_check(self, state: ChessState) -> bool:
        return _board(state).is_check()

    def material_balance(self, state: ChessState) -> Dict[str, int]:
        board = _board(state)
        totals = {"white": 0, "black": 0}
        for piece in board.piece_map().values():
            totals[_side_name(piece.color)] += PIECE_VALUES[piece.piece_type]
        return {**totals, "difference": totals["white"] - totals["black"]}

    def game_phase(self, state: ChessState) -> str:
        board = _board(state)
        plies = len(state.moves)
        heavy = sum(
            len(board.pieces(pt, color))
            for pt in (chess.QUEEN, chess.ROOK)
            for color in (chess.WHITE, chess.BLACK)
        )
        if plies < 20 and heavy >= 4:
            return "opening"
        if plies < 40 and heavy >= 2:
            return "middlegame"
        return "endgame"

    def king_safety(self, state: ChessState, side: str) -> Dict[str, bool]:
        board = _board(state)
        color = COLORS[side]
        return {
            "in_check": board.is_check() and board.turn == color,
            "can_castle_kingside": board.has_kingside_castling_rights(color),
            "can_castle_queenside": board.has_queenside_castling_rights(color),
        }

    def center_control(self, state: ChessState) -> Dict[str, int]:
        board = _board(state)
        return {
            "white": sum(len(board.attackers(chess.WHITE, sq)) for sq in CENTER_SQUARES),
            "black": sum(len(board.attackers(chess.BLACK, sq)) for sq in CENTER_SQUARES),
        }

    def piece_squares(self, state: ChessState, side: str) -> Dict[str, List[str]]:
        """Map piece name -> occupied squares for one side, king first."""
        board = _board(state)
        color = COLORS[side]
        placement: Dict[str, List[str]] = {}
        for pt in (chess.KING, chess.QUEEN, chess.ROOK, chess.BISHOP, chess.KNIGHT, chess.PAWN):
            squares = sorted(chess.square_name(sq) for sq in board.pieces(pt, color))
            placement[chess.piece_name(pt)] = squares
        return placement
