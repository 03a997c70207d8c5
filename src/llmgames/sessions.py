"""
Session registry for human-vs-AI games.

- SessionManager owns every live GameSession; sessions are created through the GameFactory.
- Human moves are validated by the session's engine; AI moves are delegated to the MoveOrchestrator.
- Each session has its own asyncio.Lock so mutating calls on one session never interleave.
- Idle sessions are reclaimed by reclaim_stale().
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .config import SETTINGS, AiConfig, default_ai_config
from .engines.base import NOT_OVER, GameEnd, GameEngine
from .errors import InvalidMove, InvalidSessionConfig, NoLegalMoves, SessionNotFound
from .factory import GameFactory
from .orchestrator import MoveOrchestrator
from .prompt_builders.base import PromptBuilder

log = logging.getLogger("sessions")


class SessionStatus(str, Enum):
    ACTIVE = "active"
    FINISHED = "finished"


@dataclass(frozen=True)
class MoveRecord:
    move: str
    side: str
    player: str  # "human" | "ai"
    timestamp: float
    raw_model_text: Optional[str] = None
    attempts: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "move": self.move,
            "side": self.side,
            "player": self.player,
            "timestamp": self.timestamp,
        }
        if self.raw_model_text is not None:
            d["raw_model_text"] = self.raw_model_text
        if self.attempts is not None:
            d["attempts"] = self.attempts
        return d


@dataclass
class GameSession:
    id: str
    game_type: str
    engine: GameEngine
    prompt_builder: PromptBuilder
    state: Any
    ai_side: str
    human_side: str
    ai_config: AiConfig
    strategy: str
    created_at: float
    last_activity_at: float
    status: SessionStatus = SessionStatus.ACTIVE
    end: GameEnd = NOT_OVER
    history: List[MoveRecord] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


@dataclass(frozen=True)
class MoveResult:
    state: Any
    game_end: GameEnd
    record: MoveRecord


@dataclass(frozen=True)
class AiMoveResult:
    move: str
    new_strategy: str
    attempts_used: int
    state: Any
    game_end: GameEnd
    record: MoveRecord


class SessionManager:
    def __init__(
        self,
        factory: GameFactory,
        orchestrator: MoveOrchestrator,
        clock: Callable[[], float] = time.time,
    ):
        self.factory = factory
        self.orchestrator = orchestrator
        self._clock = clock
        self._sessions: Dict[str, GameSession] = {}

    # ---------------- Lifecycle -----------------
    def create_session(
        self,
        game_type: str,
        ai_side: str,
        ai_config: Optional[AiConfig] = None,
        strategy: Optional[str] = None,
    ) -> GameSession:
        ctx = self.factory.create(game_type)
        engine = ctx.engine
        if not isinstance(ai_side, str) or ai_side not in engine.sides:
            raise InvalidSessionConfig(
                f"ai_side must be one of {', '.join(engine.sides)} for {game_type}; got {ai_side!r}"
            )
        now = self._clock()
        session_id = f"game_{int(now)}_{uuid.uuid4().hex[:8]}"
        while session_id in self._sessions:
            session_id = f"game_{int(now)}_{uuid.uuid4().hex[:8]}"
        session = GameSession(
            id=session_id,
            game_type=game_type,
            engine=engine,
            prompt_builder=ctx.prompt_builder,
            state=engine.initial_state(),
            ai_side=ai_side,
            human_side=engine.opponent(ai_side),
            ai_config=ai_config or default_ai_config(),
            strategy=strategy or ctx.prompt_builder.default_strategy,
            created_at=now,
            last_activity_at=now,
        )
        self._sessions[session_id] = session
        log.info("Created %s session %s (ai=%s human=%s)", game_type, session_id, session.ai_side, session.human_side)
        return session

    def get_session(self, session_id: str) -> Optional[GameSession]:
        return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> GameSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def remove_session(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            log.info("Removed session %s", session_id)
        return removed

    def reclaim_stale(self, max_idle_s: Optional[float] = None) -> int:
        """Drop sessions idle for longer than max_idle_s; sessions with a move in flight are kept."""
        limit = SETTINGS.session_max_idle_s if max_idle_s is None else max_idle_s
        now = self._clock()
        expired = [
            sid
            for sid, s in self._sessions.items()
            if now - s.last_activity_at > limit and not s.lock.locked()
        ]
        for sid in expired:
            self._sessions.pop(sid, None)
        if expired:
            log.info("Reclaimed %d stale session(s)", len(expired))
        return len(expired)

    # ---------------- Moves -----------------
    async def apply_human_move(self, session_id: str, move: Any) -> MoveResult:
        session = self.require_session(session_id)
        async with session.lock:
            self._ensure_registered(session)
            self._touch(session)
            if session.status is SessionStatus.FINISHED:
                raise InvalidMove("The game is already finished")
            engine = session.engine
            side = session.human_side
            if engine.current_side(session.state) != side:
                raise InvalidMove(f"It is not {side}'s turn")
            if not engine.validate_move(session.state, move, side):
                raise InvalidMove(f"Illegal move for {side}: {move!r}")
            record = self._commit(session, move, side, "human")
            return MoveResult(state=session.state, game_end=session.end, record=record)

    async def request_ai_move(self, session_id: str, ai_config: Optional[AiConfig] = None) -> AiMoveResult:
        session = self.require_session(session_id)
        async with session.lock:
            self._ensure_registered(session)
            self._touch(session)
            if session.status is SessionStatus.FINISHED:
                raise NoLegalMoves("The game is already finished")
            engine = session.engine
            side = session.ai_side
            if engine.current_side(session.state) != side:
                raise NoLegalMoves(f"It is not the AI's turn ({engine.current_side(session.state)} to move)")
            decision = await self.orchestrator.choose_move(
                engine,
                session.prompt_builder,
                session.state,
                side,
                session.strategy,
                ai_config or session.ai_config,
            )
            record = self._commit(
                session, decision.move, side, "ai", raw_model_text=decision.raw_text, attempts=decision.attempts_used
            )
            session.strategy = decision.new_strategy
            return AiMoveResult(
                move=record.move,
                new_strategy=decision.new_strategy,
                attempts_used=decision.attempts_used,
                state=session.state,
                game_end=session.end,
                record=record,
            )

    # ---------------- Views -----------------
    def list_sessions(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": s.id,
                "game_type": s.game_type,
                "status": s.status.value,
                "ai_side": s.ai_side,
                "human_side": s.human_side,
                "current_side": s.engine.current_side(s.state),
                "move_count": len(s.history),
                "created_at": s.created_at,
                "last_activity_at": s.last_activity_at,
            }
            for s in self._sessions.values()
        ]

    def session_to_dict(self, session: GameSession) -> Dict[str, Any]:
        engine = session.engine
        current = engine.current_side(session.state)
        return {
            "id": session.id,
            "game_type": session.game_type,
            "status": session.status.value,
            "ai_side": session.ai_side,
            "human_side": session.human_side,
            "current_side": current,
            "state": engine.to_dict(session.state),
            "legal_moves": [str(m) for m in engine.legal_moves(session.state, current)],
            "history": [r.to_dict() for r in session.history],
            "strategy": session.strategy,
            "model": session.ai_config.model,
            "end": session.end.to_dict(),
            "created_at": session.created_at,
            "last_activity_at": session.last_activity_at,
        }

    # ---------------- Helpers -----------------
    def _ensure_registered(self, session: GameSession) -> None:
        # The session may have been removed while this call waited for its lock.
        if self._sessions.get(session.id) is not session:
            raise SessionNotFound(session.id)

    def _touch(self, session: GameSession) -> None:
        session.last_activity_at = self._clock()

    def _commit(self, session: GameSession, move: Any, side: str, player: str, **extra: Any) -> MoveRecord:
        engine = session.engine
        display = engine.describe_move(session.state, move)
        session.state = engine.apply_move(session.state, move, side)
        record = MoveRecord(move=display, side=side, player=player, timestamp=self._clock(), **extra)
        session.history.append(record)
        session.last_activity_at = record.timestamp
        session.end = engine.check_end(session.state)
        if session.end.is_over:
            session.status = SessionStatus.FINISHED
            log.info(
                "Session %s finished winner=%s reason=%s", session.id, session.end.winner, session.end.reason
            )
        return record
