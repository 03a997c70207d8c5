"""
Game engine contract consumed by the orchestrator and the session manager.

An engine wraps one game's rules behind a uniform surface so that callers never
branch on game type. States are immutable values owned by the engine; callers only
obtain new states through apply_move().
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence


@dataclass(frozen=True)
class GameEnd:
    is_over: bool
    winner: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"is_over": self.is_over, "winner": self.winner, "reason": self.reason}


NOT_OVER = GameEnd(is_over=False)


class GameEngine(Protocol):
    game_type: str
    # Concrete sides in play order (first mover first).
    sides: Sequence[str]

    def initial_state(self) -> Any:
        ...

    def validate_move(self, state: Any, move: Any, side: str) -> bool:
        """Total: returns False (never raises) for malformed, out-of-turn or illegal moves."""
        ...

    def apply_move(self, state: Any, move: Any, side: str) -> Any:
        """Return the successor state; raises InvalidMove if validate_move() is False."""
        ...

    def legal_moves(self, state: Any, side: str) -> List[Any]:
        ...

    def check_end(self, state: Any) -> GameEnd:
        ...

    def current_side(self, state: Any) -> str:
        ...

    def opponent(self, side: str) -> str:
        ...

    def describe_move(self, state: Any, move: Any) -> str:
        """Canonical display form of `move`, computed against the pre-move state."""
        ...

    def to_dict(self, state: Any) -> Dict[str, Any]:
        ...

    def metadata(self) -> Dict[str, Any]:
        ...
