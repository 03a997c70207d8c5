"""
Move orchestration: turn free-text model replies into a legal move.

One AI turn is a bounded loop of attempts. Each attempt builds a prompt, calls the
text completer under a timeout, parses the reply and validates the move against the
engine. Each attempt ends in exactly one AttemptOutcome:

- ACCEPTED           legal move found; the loop returns a MoveDecision
- PARSE_FAILURE      reply had no usable JSON payload (retry)
- ILLEGAL_MOVE       parsed move rejected by the engine, IllegalAiMove (retry)
- TRANSPORT_FAILURE  timeout / connection / unknown model (retry)
- FATAL              credential or quota rejection (raised immediately)

Retries use the builder's error-recovery prompt seeded with the previous rejection.
After max_attempts retryable failures, AiExhausted carries the last reason.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from .config import AiConfig, default_ai_config
from .engines.base import GameEngine
from .errors import (
    FATAL_ERRORS,
    AiExhausted,
    IllegalAiMove,
    ModelNotFound,
    NoLegalMoves,
    ParseError,
    TransportError,
)
from .llm_client import CompletionOptions, TextCompleter
from .prompt_builders.base import PromptBuilder

log = logging.getLogger("orchestrator")

ILLEGAL_MOVE_REASON = "move is illegal for the current position"


class AttemptOutcome(Enum):
    ACCEPTED = "accepted"
    PARSE_FAILURE = "parse_failure"
    ILLEGAL_MOVE = "illegal_move"
    TRANSPORT_FAILURE = "transport_failure"
    FATAL = "fatal"


@dataclass
class AttemptRecord:
    number: int
    outcome: AttemptOutcome
    model: str
    prompt: str
    raw_text: Optional[str] = None
    move: Any = None
    reason: Optional[str] = None
    elapsed_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "outcome": self.outcome.value,
            "model": self.model,
            "move": None if self.move is None else str(self.move),
            "reason": self.reason,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass
class MoveDecision:
    move: Any
    new_strategy: str
    attempts_used: int
    raw_text: str
    model: str
    reasoning: Optional[str] = None
    attempts: List[AttemptRecord] = field(default_factory=list)


class MoveOrchestrator:
    """Drives the attempt/validate/retry loop for one AI move. Attempts are strictly sequential."""

    def __init__(self, completer: TextCompleter, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.completer = completer
        self._sleep = sleep

    async def choose_move(
        self,
        engine: GameEngine,
        builder: PromptBuilder,
        state: Any,
        side: str,
        strategy: Optional[str] = None,
        ai_config: Optional[AiConfig] = None,
    ) -> MoveDecision:
        cfg = ai_config or default_ai_config()
        legal = engine.legal_moves(state, side)
        if not legal:
            raise NoLegalMoves(f"No legal moves for {side}; the game should have been checked for an end first")
        strategy = strategy or builder.default_strategy
        model = cfg.model
        records: List[AttemptRecord] = []
        last_move: Any = None
        last_reason = ""

        for number in range(1, cfg.max_attempts + 1):
            if number == 1:
                prompt = (
                    builder.build_analysis_prompt(state, strategy, side)
                    + "\n\n"
                    + builder.build_move_selection_prompt(state, legal, strategy, side)
                )
            else:
                prompt = builder.build_error_recovery_prompt(state, last_move, last_reason, legal)
            options = CompletionOptions(
                model=model,
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
                timeout_s=cfg.timeout_s,
                api_key=cfg.api_key,
                system=builder.system_instructions(),
            )
            record = AttemptRecord(number=number, outcome=AttemptOutcome.TRANSPORT_FAILURE, model=model, prompt=prompt)
            records.append(record)
            t0 = time.perf_counter()
            try:
                raw = await asyncio.wait_for(self.completer.complete(prompt, options), timeout=cfg.timeout_s)
            except asyncio.TimeoutError:
                record.reason = f"request timed out after {cfg.timeout_s:g}s"
            except FATAL_ERRORS as exc:
                record.outcome = AttemptOutcome.FATAL
                record.reason = exc.message
                log.error("Attempt %d/%d fatal (%s): %s", number, cfg.max_attempts, exc.kind, exc.message)
                raise
            except ModelNotFound as exc:
                record.reason = exc.message
                if cfg.fallback_model and model != cfg.fallback_model:
                    log.warning("Model %s not found; switching to fallback %s", model, cfg.fallback_model)
                    model = cfg.fallback_model
            except TransportError as exc:
                record.reason = exc.message
            else:
                record.raw_text = raw
                try:
                    proposal = builder.parse_response(raw)
                    record.move = proposal.move
                    if not engine.validate_move(state, proposal.move, side):
                        raise IllegalAiMove(ILLEGAL_MOVE_REASON)
                except ParseError as exc:
                    record.outcome = AttemptOutcome.PARSE_FAILURE
                    record.reason = exc.message
                except IllegalAiMove as exc:
                    record.outcome = AttemptOutcome.ILLEGAL_MOVE
                    record.reason = exc.message
                else:
                    record.outcome = AttemptOutcome.ACCEPTED
                    record.elapsed_ms = int((time.perf_counter() - t0) * 1000)
                    log.info(
                        "Attempt %d/%d accepted move=%s model=%s time_ms=%d",
                        number, cfg.max_attempts, proposal.move, model, record.elapsed_ms,
                    )
                    return MoveDecision(
                        move=proposal.move,
                        new_strategy=proposal.strategy or strategy,
                        attempts_used=number,
                        raw_text=raw,
                        model=model,
                        reasoning=proposal.reasoning,
                        attempts=records,
                    )
            record.elapsed_ms = int((time.perf_counter() - t0) * 1000)
            last_move = record.move
            last_reason = record.reason or record.outcome.value
            log.warning(
                "Attempt %d/%d %s: %s (move=%s)",
                number, cfg.max_attempts, record.outcome.value, last_reason, record.move,
            )
            if number < cfg.max_attempts:
                await self._sleep(cfg.retry_delay_s * number)

        log.error("AI exhausted %d attempts; last reason: %s", cfg.max_attempts, last_reason)
        raise AiExhausted(cfg.max_attempts, last_reason)
