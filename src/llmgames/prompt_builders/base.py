"""
Prompt builder contract: renders a game state into prompts and parses model text back.

Each game type ships one builder. The orchestrator only talks to this surface, so
prompt phrasing and move notation stay per-game while the retry loop stays shared.
"""
from __future__ import annotations

from typing import Any, Protocol, Sequence

from ..config import SETTINGS
from ..prompting import MoveProposal, parse_move_payload, render_response_format


class PromptBuilder(Protocol):
    game_type: str
    default_strategy: str

    def system_instructions(self) -> str:
        ...

    def response_format_instructions(self) -> str:
        ...

    def build_analysis_prompt(self, state: Any, strategy: str, side: str) -> str:
        ...

    def build_move_selection_prompt(
        self, state: Any, legal_moves: Sequence[Any], strategy: str, side: str
    ) -> str:
        """Must list every legal move verbatim; raises NoLegalMoves when empty."""
        ...

    def build_error_recovery_prompt(
        self, state: Any, invalid_move: Any, error_description: str, legal_moves: Sequence[Any]
    ) -> str:
        ...

    def parse_response(self, text: str) -> MoveProposal:
        """Raises ParseError on a missing/malformed payload."""
        ...


class JsonReplyMixin:
    """Shared JSON reply handling. Subclasses provide move_hint and normalize_move()."""

    move_hint: str = "your move"

    def __init__(self, strategy_max_chars: int | None = None) -> None:
        self.strategy_max_chars = (
            SETTINGS.strategy_max_chars if strategy_max_chars is None else strategy_max_chars
        )

    def response_format_instructions(self) -> str:
        return render_response_format(self.move_hint, self.strategy_max_chars)

    def normalize_move(self, move: str) -> Any:
        return move

    def parse_response(self, text: str) -> MoveProposal:
        proposal = parse_move_payload(text, self.strategy_max_chars)
        return MoveProposal(
            move=self.normalize_move(proposal.move),
            strategy=proposal.strategy,
            reasoning=proposal.reasoning,
        )
