"""
Chess prompts: positional analysis, SAN move selection and error recovery.

The analysis block is computed from python-chess through ChessEngine's analysis
helpers (material, phase, king safety, center control, piece placement). Legal
moves are listed in SAN, exactly as ChessEngine.legal_moves() returns them.
"""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

from ..engines.chess_engine import CASTLE_ZERO, ChessEngine, ChessState
from ..errors import NoLegalMoves
from ..prompting import render_custom_prompt
from .base import JsonReplyMixin

SYSTEM_INSTRUCTIONS = """You are a world-class chess grandmaster.
Analyse the position deeply and choose the best move.
Weigh tactics and strategy alike.
Priorities: mate > material > position > development."""

ANALYSIS_TEMPLATE = """You are playing chess as {SIDE_UPPER}.

POSITION
- FEN: {FEN}
- Side to move: {TURN} ({WHOSE_TURN})
- Game phase: {PHASE}
- Material: {MATERIAL}
- {CHECK_LINE}

KING SAFETY
{KING_SAFETY}

CENTER CONTROL
{CENTER}

RECENT MOVES
{HISTORY}

YOUR CURRENT STRATEGY
"{STRATEGY}"

YOUR PIECES
{PIECES}"""

MOVE_SELECTION_TEMPLATE = """LEGAL MOVES ({COUNT}):
{MOVES}

You may ONLY play one of the moves listed above; no other move is possible in this position.

Work through the position:
1. Tactics first: mating threats in 1-3 moves, forks, pins, double attacks.
2. Material: the current balance and whether trades simplify in your favour.
3. Position: piece activity, key squares and open lines.
4. Pawn structure: passed pawns, weaknesses, pawn breaks.
5. Plan: the next 3-5 moves.

Requirements:
- "move" must be copied EXACTLY from the legal move list (SAN).
- "strategy" explains the move and your plan for the next 2-3 moves.
- Do not move pieces that are not on the board; check YOUR PIECES above."""

ERROR_RECOVERY_TEMPLATE = """CORRECTION NEEDED

Your previous move "{INVALID_MOVE}" was rejected.
Reason: "{ERROR}"

LEGAL MOVES:
{MOVES}

Re-read the position and choose a DIFFERENT move copied exactly from the list above.

POSITION
FEN: {FEN}
Side to move: {TURN} (move {MOVE_NUMBER})
{CHECK_LINE}"""


class ChessPromptBuilder(JsonReplyMixin):
    game_type = "chess"
    move_hint = "one move copied exactly from the legal move list, in SAN (e.g. Nf3, e4, O-O)"
    default_strategy = "Develop pieces quickly, fight for the center and castle early."

    def __init__(self, strategy_max_chars: int | None = None, history_plies: int = 20) -> None:
        super().__init__(strategy_max_chars)
        self.history_plies = history_plies
        self._engine = ChessEngine()

    def system_instructions(self) -> str:
        return SYSTEM_INSTRUCTIONS

    # ---------------- Prompts -----------------
    def build_analysis_prompt(self, state: ChessState, strategy: str, side: str) -> str:
        eng = self._engine
        turn = eng.current_side(state)
        values = {
            "SIDE_UPPER": side.upper(),
            "FEN": eng.fen(state),
            "TURN": turn.capitalize(),
            "WHOSE_TURN": "you" if turn == side else "your opponent",
            "PHASE": eng.game_phase(state),
            "MATERIAL": self._format_material(state, side),
            "CHECK_LINE": "Your king is in check!" if eng.is_check(state) and turn == side else "No check.",
            "KING_SAFETY": self._format_king_safety(state, side),
            "CENTER": self._format_center(state),
            "HISTORY": eng.pgn_tail(state, self.history_plies) or "(no moves yet)",
            "STRATEGY": strategy or self.default_strategy,
            "PIECES": self._format_pieces(state, side),
        }
        return render_custom_prompt(ANALYSIS_TEMPLATE, values)

    def build_move_selection_prompt(
        self, state: ChessState, legal_moves: Sequence[Any], strategy: str, side: str
    ) -> str:
        if not legal_moves:
            raise NoLegalMoves(f"No legal chess moves for {side}")
        values = {
            "COUNT": str(len(legal_moves)),
            "MOVES": ", ".join(str(m) for m in legal_moves),
        }
        return render_custom_prompt(MOVE_SELECTION_TEMPLATE, values) + "\n\n" + self.response_format_instructions()

    def build_error_recovery_prompt(
        self, state: ChessState, invalid_move: Any, error_description: str, legal_moves: Sequence[Any]
    ) -> str:
        eng = self._engine
        values = {
            "INVALID_MOVE": "(no move)" if invalid_move in (None, "") else str(invalid_move),
            "ERROR": error_description,
            "MOVES": ", ".join(str(m) for m in legal_moves),
            "FEN": eng.fen(state),
            "TURN": eng.current_side(state).capitalize(),
            "MOVE_NUMBER": str(len(state.moves) // 2 + 1),
            "CHECK_LINE": "Check!" if eng.is_check(state) else "No check.",
        }
        return render_custom_prompt(ERROR_RECOVERY_TEMPLATE, values) + "\n\n" + self.response_format_instructions()

    def normalize_move(self, move: str) -> str:
        token = move.strip().strip('"').rstrip("!?")
        return CASTLE_ZERO.get(token.lower(), token)

    # ---------------- Formatting -----------------
    def _format_material(self, state: ChessState, side: str) -> str:
        bal = self._engine.material_balance(state)
        diff = bal["difference"] if side == "white" else -bal["difference"]
        if diff > 0:
            verdict = f"you are up {diff}"
        elif diff < 0:
            verdict = f"you are down {-diff}"
        else:
            verdict = "material is level"
        return f"white {bal['white']}, black {bal['black']} ({verdict})"

    def _format_king_safety(self, state: ChessState, side: str) -> str:
        ks = self._engine.king_safety(state, side)
        castling: List[str] = []
        if ks["can_castle_kingside"]:
            castling.append("kingside")
        if ks["can_castle_queenside"]:
            castling.append("queenside")
        lines = [
            "- King is in check" if ks["in_check"] else "- King is not in check",
            f"- Castling rights: {', '.join(castling) if castling else 'none'}",
        ]
        return "\n".join(lines)

    def _format_center(self, state: ChessState) -> str:
        cc = self._engine.center_control(state)
        return f"- Attacks on d4/d5/e4/e5: white {cc['white']}, black {cc['black']}"

    def _format_pieces(self, state: ChessState, side: str) -> str:
        placement: Dict[str, List[str]] = self._engine.piece_squares(state, side)
        lines = [f"- {name}: {', '.join(squares)}" for name, squares in placement.items() if squares]
        return "\n".join(lines) or "- (none)"
