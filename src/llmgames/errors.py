"""
Typed failures raised across the game/session/orchestration layers.

Every error carries a stable `kind` so outer layers (HTTP, CLI) can pick a status
or message without parsing free text.

- Caller errors: UnsupportedGameType, SessionNotFound, InvalidMove, InvalidSessionConfig, NoLegalMoves
- Per-attempt (retryable inside the orchestrator): ParseError, IllegalAiMove, TransportError, ModelNotFound
- Fatal transport errors: CredentialError, QuotaExceeded
- Aggregate: AiExhausted
"""
from __future__ import annotations

from typing import Optional


class GameError(Exception):
    kind: str = "game_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class UnsupportedGameType(GameError):
    kind = "unsupported_game_type"

    def __init__(self, game_type: str, supported: Optional[list[str]] = None):
        available = ", ".join(supported or []) or "none"
        super().__init__(f"Unsupported game type: {game_type}. Available: {available}")
        self.game_type = game_type


class SessionNotFound(GameError):
    kind = "session_not_found"

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidMove(GameError):
    kind = "invalid_move"


class InvalidSessionConfig(GameError):
    kind = "invalid_session_config"


class NoLegalMoves(GameError):
    """Raised when a move is requested for a side that has nothing to play."""

    kind = "no_legal_moves"


class ParseError(GameError):
    kind = "parse_error"


class IllegalAiMove(GameError):
    kind = "illegal_ai_move"


class TransportError(GameError):
    kind = "transport_error"


class ModelNotFound(TransportError):
    kind = "model_not_found"


class CredentialError(GameError):
    kind = "credential_error"


class QuotaExceeded(GameError):
    kind = "quota_exceeded"


class AiExhausted(GameError):
    kind = "ai_exhausted"

    def __init__(self, attempts: int, last_reason: str):
        super().__init__(f"AI failed to produce a legal move after {attempts} attempts: {last_reason}")
        self.attempts = attempts
        self.last_reason = last_reason


FATAL_ERRORS = (CredentialError, QuotaExceeded)
